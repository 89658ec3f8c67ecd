from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import func, select
from sqlalchemy.orm import Session, joinedload

from .. import auth, models, schemas
from ..database import get_db
from ..queries import review_detail

router = APIRouter(prefix="/users", tags=["users"])


def average_rating(db: Session, user_id: int) -> float:
    stmt = select(func.avg(models.Review.rating)).where(models.Review.user_id == user_id)
    return float(db.execute(stmt).scalar() or 0)


def user_reviews(db: Session, user_id: int) -> List[models.Review]:
    return (
        db.query(models.Review)
        .options(joinedload(models.Review.user), joinedload(models.Review.movie))
        .filter(models.Review.user_id == user_id)
        .order_by(models.Review.created_at.desc(), models.Review.id.desc())
        .all()
    )


@router.get("/", response_model=List[schemas.UserSummary])
def list_users(
    db: Session = Depends(get_db),
    admin: schemas.TokenClaims = Depends(auth.require_admin),
):
    return (
        db.query(models.User)
        .filter(models.User.role != "admin")
        .order_by(models.User.id)
        .all()
    )


@router.get("/{user_id}", response_model=schemas.PublicProfile)
def public_profile(user_id: int, db: Session = Depends(get_db)):
    """
    Public view of a user: written reviews are listed in full, bare ratings
    are listed separately as movie cards.
    """
    user = db.get(models.User, user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")

    reviews = user_reviews(db, user_id)
    written = [r for r in reviews if r.review and r.review.strip()]
    rating_only = [
        schemas.RatingOnlyOut(
            id=r.movie.id,
            title=r.movie.title,
            poster_url=r.movie.poster_url,
            rating=r.rating,
        )
        for r in reviews
        if not (r.review and r.review.strip())
    ]

    return schemas.PublicProfile(
        id=user.id,
        username=user.username,
        avatar=user.avatar,
        joined=user.created_at,
        reviews=[review_detail(r) for r in written],
        rating_only=rating_only,
        average_rating=average_rating(db, user_id),
    )
