from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import case, or_, select
from sqlalchemy.orm import Session

from .. import models, schemas
from ..database import get_db
from ..queries import avg_rating, contains_ci, movie_with_rating, starts_with_ci

router = APIRouter(prefix="/search", tags=["search"])

QUICK_SEARCH_LIMIT = 10
FILTER_SEARCH_LIMIT = 100


@router.get("/", response_model=List[schemas.MovieWithRating])
def search_movies(
    query: Optional[str] = None,
    title: Optional[str] = None,
    genre: Optional[str] = None,
    min_rating: Optional[float] = Query(None, ge=0, le=5),
    db: Session = Depends(get_db),
):
    """
    Two modes:

    query=...   free text over title, genre and cast; titles starting with
                the text come first
    otherwise   title/genre substring filters plus a minimum average rating,
                best rated first
    """
    rating = avg_rating().label("avg_rating")
    stmt = select(models.Movie, rating)

    if query:
        stmt = (
            stmt.where(
                or_(
                    contains_ci(models.Movie.title, query),
                    contains_ci(models.Movie.genre, query),
                    contains_ci(models.Movie.cast, query),
                )
            )
            .order_by(
                case((starts_with_ci(models.Movie.title, query), 0), else_=1),
                models.Movie.title,
            )
            .limit(QUICK_SEARCH_LIMIT)
        )
    else:
        if title:
            stmt = stmt.where(contains_ci(models.Movie.title, title))
        if genre:
            stmt = stmt.where(contains_ci(models.Movie.genre, genre))
        if min_rating is not None:
            stmt = stmt.where(avg_rating() >= min_rating)
        stmt = stmt.order_by(rating.desc(), models.Movie.id).limit(FILTER_SEARCH_LIMIT)

    rows = db.execute(stmt).all()
    if not rows:
        raise HTTPException(status_code=404, detail="No movies found")

    return [movie_with_rating(movie, r) for movie, r in rows]


@router.get("/suggestions", response_model=List[schemas.MovieSuggestion])
def search_suggestions(q: str = "", db: Session = Depends(get_db)):
    text = q.strip()
    if not text:
        return []

    stmt = (
        select(models.Movie)
        .where(contains_ci(models.Movie.title, text))
        .order_by(
            case((starts_with_ci(models.Movie.title, text), 0), else_=1),
            models.Movie.title,
        )
        .limit(QUICK_SEARCH_LIMIT)
    )
    return db.execute(stmt).scalars().all()
