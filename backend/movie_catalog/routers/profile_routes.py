from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session, joinedload

from .. import auth, models, schemas
from ..database import get_db
from ..queries import review_detail
from .user_routes import average_rating, user_reviews

router = APIRouter(prefix="/profile", tags=["profile"])


@router.get("/", response_model=schemas.OwnProfile)
def get_profile(
    db: Session = Depends(get_db),
    user: models.User = Depends(auth.get_current_account),
):
    liked = (
        db.query(models.Review)
        .join(
            models.ReviewHelpfulVote,
            models.ReviewHelpfulVote.review_id == models.Review.id,
        )
        .options(joinedload(models.Review.user), joinedload(models.Review.movie))
        .filter(models.ReviewHelpfulVote.user_id == user.id)
        .order_by(models.ReviewHelpfulVote.created_at.desc(), models.ReviewHelpfulVote.id.desc())
        .all()
    )

    return schemas.OwnProfile(
        id=user.id,
        username=user.username,
        email=user.email,
        avatar=user.avatar,
        created_at=user.created_at,
        reviews=[review_detail(r) for r in user_reviews(db, user.id)],
        liked_reviews=[review_detail(r) for r in liked],
        average_rating=average_rating(db, user.id),
    )


@router.put("/", response_model=schemas.UserOut)
def update_profile(
    profile_in: schemas.ProfileUpdate,
    db: Session = Depends(get_db),
    user: models.User = Depends(auth.get_current_account),
):
    taken = (
        db.query(models.User)
        .filter(models.User.username == profile_in.username, models.User.id != user.id)
        .first()
    )
    if taken:
        raise HTTPException(status_code=400, detail="Username already registered")

    user.username = profile_in.username
    user.avatar = profile_in.avatar
    db.commit()
    db.refresh(user)
    return user
