import logging

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status
from sqlalchemy.orm import Session
from sqlalchemy import or_

from .. import schemas, models, auth, mailer
from ..database import get_db

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post(
    "/register",
    response_model=schemas.UserOut,
    status_code=status.HTTP_201_CREATED,
)
def register_user(
    user_in: schemas.UserCreate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
):
    existing_username = (
        db.query(models.User).filter(models.User.username == user_in.username).first()
    )
    if existing_username:
        raise HTTPException(status_code=400, detail="Username already registered")

    existing_email = (
        db.query(models.User).filter(models.User.email == user_in.email).first()
    )
    if existing_email:
        raise HTTPException(status_code=400, detail="Email already registered")

    user = models.User(
        username=user_in.username,
        email=user_in.email,
        password_hash=auth.get_password_hash(user_in.password),
        role="user",
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("Registered user %s (id=%s)", user.username, user.id)

    background_tasks.add_task(
        mailer.send_email,
        user.email,
        "Welcome to Movie Database",
        f"Hi {user.username},\n\nYour account is ready. Start rating movies "
        "to get personalised recommendations.",
    )

    return user


@router.post("/login", response_model=schemas.Token)
def login(
    creds: schemas.UserLogin,
    db: Session = Depends(get_db),
):
    user = (
        db.query(models.User)
        .filter(
            or_(
                models.User.username == creds.username_or_email,
                models.User.email == creds.username_or_email,
            )
        )
        .first()
    )

    if not user or not auth.verify_password(creds.password, user.password_hash):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials"
        )

    return schemas.Token(access_token=auth.token_for_user(user))


@router.get("/me", response_model=schemas.UserOut)
def get_me(current_user: models.User = Depends(auth.get_current_account)):
    return current_user
