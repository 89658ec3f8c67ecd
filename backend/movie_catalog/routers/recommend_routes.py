from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from .. import auth, recommender, schemas
from ..database import get_db

router = APIRouter(prefix="/recommend", tags=["recommend"])


@router.get("/content-based", response_model=List[schemas.MovieOut])
def content_based(
    db: Session = Depends(get_db),
    current_user: schemas.TokenClaims = Depends(auth.get_current_user),
):
    """Unrated movies sharing a genre with the user's highly rated movies."""
    return recommender.recommend_content_based(db, current_user.id)


@router.get("/collaborative", response_model=List[schemas.MovieOut])
def collaborative(
    db: Session = Depends(get_db),
    current_user: schemas.TokenClaims = Depends(auth.get_current_user),
):
    """
    Movies liked by users with overlapping taste, falling back to the
    best-rated movies for users with fewer than five ratings.
    """
    return recommender.recommend_collaborative(db, current_user.id)


@router.get("/hybrid", response_model=List[schemas.ScoredMovieOut])
def hybrid(
    db: Session = Depends(get_db),
    current_user: schemas.TokenClaims = Depends(auth.get_current_user),
):
    return [
        schemas.ScoredMovieOut(
            **schemas.MovieOut.model_validate(item.movie).model_dump(),
            score=item.score,
        )
        for item in recommender.recommend_hybrid(db, current_user.id)
    ]
