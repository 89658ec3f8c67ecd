import logging
from typing import List

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Response, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from .. import auth, mailer, models, schemas
from ..database import get_db
from ..queries import review_detail

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/reviews", tags=["reviews"])


def _detailed_reviews(db: Session):
    return (
        db.query(models.Review)
        .options(joinedload(models.Review.user), joinedload(models.Review.movie))
        .order_by(models.Review.created_at.desc(), models.Review.id.desc())
    )


def get_review_or_404(db: Session, review_id: int) -> models.Review:
    review = db.get(models.Review, review_id)
    if not review:
        raise HTTPException(status_code=404, detail="Review not found")
    return review


def _find_review(db: Session, user_id: int, movie_id: int):
    return (
        db.query(models.Review)
        .filter(
            models.Review.user_id == user_id,
            models.Review.movie_id == movie_id,
        )
        .first()
    )


@router.post(
    "/",
    response_model=schemas.ReviewOut,
    status_code=status.HTTP_201_CREATED,
)
def post_review(
    review_in: schemas.ReviewCreate,
    response: Response,
    db: Session = Depends(get_db),
    current_user: schemas.TokenClaims = Depends(auth.get_current_user),
):
    """
    Rate and optionally review a movie.

    A user holds one review per movie: posting again replaces the rating and
    text of the existing one (200 instead of 201).
    """
    movie = db.get(models.Movie, review_in.movie_id)
    if not movie:
        raise HTTPException(status_code=404, detail="Movie not found")

    review = _find_review(db, current_user.id, review_in.movie_id)

    if review is None:
        review = models.Review(
            user_id=current_user.id,
            movie_id=review_in.movie_id,
            rating=review_in.rating,
            review=review_in.review,
        )
        db.add(review)
        try:
            db.commit()
            db.refresh(review)
            return review
        except IntegrityError:
            # a concurrent request inserted the same (user, movie) pair first
            db.rollback()
            review = _find_review(db, current_user.id, review_in.movie_id)
            if review is None:
                raise

    review.rating = review_in.rating
    review.review = review_in.review
    response.status_code = status.HTTP_200_OK
    db.commit()
    db.refresh(review)
    return review


@router.get("/", response_model=List[schemas.ReviewDetail])
def list_reviews(db: Session = Depends(get_db)):
    return [review_detail(r) for r in _detailed_reviews(db).all()]


@router.get("/movie/{movie_id}", response_model=List[schemas.ReviewDetail])
def movie_reviews(movie_id: int, db: Session = Depends(get_db)):
    reviews = _detailed_reviews(db).filter(models.Review.movie_id == movie_id).all()
    return [review_detail(r) for r in reviews]


@router.get("/admin/all", response_model=List[schemas.ReviewDetail])
def admin_all_reviews(
    db: Session = Depends(get_db),
    admin: schemas.TokenClaims = Depends(auth.require_admin),
):
    return [review_detail(r) for r in _detailed_reviews(db).all()]


@router.get("/flagged/all", response_model=List[schemas.ReviewDetail])
def flagged_reviews(
    db: Session = Depends(get_db),
    admin: schemas.TokenClaims = Depends(auth.require_admin),
):
    reviews = _detailed_reviews(db).filter(models.Review.flagged.is_(True)).all()
    return [review_detail(r) for r in reviews]


@router.put("/{review_id}", response_model=schemas.ReviewOut)
def update_review(
    review_id: int,
    review_in: schemas.ReviewUpdate,
    db: Session = Depends(get_db),
    current_user: schemas.TokenClaims = Depends(auth.get_current_user),
):
    review = get_review_or_404(db, review_id)
    if review.user_id != current_user.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You can only update your own reviews",
        )

    review.rating = review_in.rating
    review.review = review_in.review
    db.commit()
    db.refresh(review)
    return review


@router.delete("/{review_id}", response_model=schemas.MessageOut)
def delete_review(
    review_id: int,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: schemas.TokenClaims = Depends(auth.get_current_user),
):
    review = get_review_or_404(db, review_id)
    is_author = review.user_id == current_user.id
    if not is_author and not current_user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You can only delete your own reviews",
        )

    author_email = review.user.email
    movie_title = review.movie.title
    db.delete(review)
    db.commit()

    if not is_author:
        logger.info("Admin %s removed review %s", current_user.id, review_id)
        background_tasks.add_task(
            mailer.send_email,
            author_email,
            "Your review was removed",
            f"Your review of \"{movie_title}\" was removed by a moderator "
            "for violating the community guidelines.",
        )

    return {"detail": "Review deleted"}


@router.post("/{review_id}/flag", response_model=schemas.MessageOut)
def flag_review(
    review_id: int,
    db: Session = Depends(get_db),
    current_user: schemas.TokenClaims = Depends(auth.get_current_user),
):
    review = get_review_or_404(db, review_id)
    review.flagged = True
    db.commit()
    logger.info("User %s flagged review %s", current_user.id, review_id)
    return {"detail": "Review flagged for moderation"}


@router.post("/{review_id}/approve", response_model=schemas.ReviewOut)
def approve_review(
    review_id: int,
    db: Session = Depends(get_db),
    admin: schemas.TokenClaims = Depends(auth.require_admin),
):
    review = get_review_or_404(db, review_id)
    review.flagged = False
    db.commit()
    db.refresh(review)
    return review


@router.post("/{review_id}/helpful", response_model=schemas.HelpfulVoteOut)
def toggle_helpful(
    review_id: int,
    db: Session = Depends(get_db),
    current_user: schemas.TokenClaims = Depends(auth.get_current_user),
):
    review = get_review_or_404(db, review_id)
    if review.user_id == current_user.id:
        raise HTTPException(status_code=400, detail="Cannot vote on your own review")

    vote = (
        db.query(models.ReviewHelpfulVote)
        .filter(
            models.ReviewHelpfulVote.review_id == review_id,
            models.ReviewHelpfulVote.user_id == current_user.id,
        )
        .first()
    )
    if vote:
        db.delete(vote)
        helpful = False
    else:
        db.add(models.ReviewHelpfulVote(review_id=review_id, user_id=current_user.id))
        helpful = True
    db.commit()

    return schemas.HelpfulVoteOut(review_id=review_id, helpful=helpful)
