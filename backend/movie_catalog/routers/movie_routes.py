import logging
import math
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import extract, func, or_, select
from sqlalchemy.orm import Session

from .. import auth, models, schemas
from ..database import get_db
from ..queries import avg_rating, contains_ci, movie_with_rating

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/movies", tags=["movies"])

SIMILAR_MOVIES_LIMIT = 12
SUGGESTIONS_LIMIT = 10


def get_movie_or_404(db: Session, movie_id: int) -> models.Movie:
    movie = db.get(models.Movie, movie_id)
    if not movie:
        raise HTTPException(status_code=404, detail="Movie not found")
    return movie


def split_genres(genre: Optional[str]) -> List[str]:
    return [g.strip() for g in (genre or "").split(",") if g.strip()]


@router.get("/", response_model=schemas.MoviePage)
def list_movies(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    sort_by: Literal["title", "release_date", "avg_rating"] = "title",
    order: Literal["asc", "desc"] = "asc",
    genre: Optional[str] = None,
    year: Optional[int] = None,
    title: Optional[str] = None,
    db: Session = Depends(get_db),
):
    """
    Paginated catalog listing.

    genre and title are case-insensitive substring filters, year matches the
    release year.
    """
    conditions = []
    if genre:
        conditions.append(contains_ci(models.Movie.genre, genre))
    if year:
        conditions.append(extract("year", models.Movie.release_date) == year)
    if title:
        conditions.append(contains_ci(models.Movie.title, title))

    rating = avg_rating().label("avg_rating")
    sort_columns = {
        "title": models.Movie.title,
        "release_date": models.Movie.release_date,
        "avg_rating": rating,
    }
    sort_col = sort_columns[sort_by]
    sort_clause = sort_col.desc() if order == "desc" else sort_col.asc()

    stmt = (
        select(models.Movie, rating)
        .where(*conditions)
        .order_by(sort_clause, models.Movie.id)
        .limit(limit)
        .offset((page - 1) * limit)
    )
    rows = db.execute(stmt).all()

    total = db.execute(
        select(func.count(models.Movie.id)).where(*conditions)
    ).scalar_one()

    return schemas.MoviePage(
        page=page,
        total_pages=math.ceil(total / limit),
        total_movies=total,
        movies=[movie_with_rating(movie, r) for movie, r in rows],
    )


@router.get("/suggestions", response_model=List[schemas.MovieSuggestion])
def movie_suggestions(q: str = "", db: Session = Depends(get_db)):
    if not q.strip():
        return []

    stmt = (
        select(models.Movie)
        .where(contains_ci(models.Movie.title, q.strip()))
        .order_by(models.Movie.title)
        .limit(SUGGESTIONS_LIMIT)
    )
    return db.execute(stmt).scalars().all()


@router.get("/{movie_id}", response_model=schemas.MovieWithRating)
def get_movie(movie_id: int, db: Session = Depends(get_db)):
    row = db.execute(
        select(models.Movie, avg_rating()).where(models.Movie.id == movie_id)
    ).first()
    if row is None:
        raise HTTPException(status_code=404, detail="Movie not found")
    movie, rating = row
    return movie_with_rating(movie, rating)


@router.get("/{movie_id}/similar", response_model=List[schemas.MovieOut])
def similar_movies(movie_id: int, db: Session = Depends(get_db)):
    """Movies sharing at least one genre label with this one."""
    movie = get_movie_or_404(db, movie_id)

    genres = split_genres(movie.genre)
    if not genres:
        raise HTTPException(status_code=404, detail="No genre data for this movie")

    stmt = (
        select(models.Movie)
        .where(
            or_(*[contains_ci(models.Movie.genre, g) for g in genres]),
            models.Movie.id != movie_id,
        )
        .order_by(models.Movie.id)
        .limit(SIMILAR_MOVIES_LIMIT)
    )
    return db.execute(stmt).scalars().all()


@router.post(
    "/",
    response_model=schemas.MovieOut,
    status_code=status.HTTP_201_CREATED,
)
def create_movie(
    movie_in: schemas.MovieCreate,
    db: Session = Depends(get_db),
    admin: schemas.TokenClaims = Depends(auth.require_admin),
):
    existing = (
        db.query(models.Movie)
        .filter(
            models.Movie.title == movie_in.title,
            models.Movie.release_date == movie_in.release_date,
        )
        .first()
    )
    if existing:
        raise HTTPException(status_code=409, detail="Movie already exists")

    movie = models.Movie(**movie_in.model_dump())
    db.add(movie)
    db.commit()
    db.refresh(movie)
    logger.info("Admin %s added movie %s (id=%s)", admin.id, movie.title, movie.id)
    return movie


@router.put("/{movie_id}", response_model=schemas.MovieOut)
def update_movie(
    movie_id: int,
    movie_in: schemas.MovieUpdate,
    db: Session = Depends(get_db),
    admin: schemas.TokenClaims = Depends(auth.require_admin),
):
    movie = get_movie_or_404(db, movie_id)
    clash = (
        db.query(models.Movie)
        .filter(
            models.Movie.title == movie_in.title,
            models.Movie.release_date == movie_in.release_date,
            models.Movie.id != movie_id,
        )
        .first()
    )
    if clash:
        raise HTTPException(status_code=409, detail="Movie already exists")

    for field, value in movie_in.model_dump().items():
        setattr(movie, field, value)
    db.commit()
    db.refresh(movie)
    return movie


@router.delete("/{movie_id}", response_model=schemas.MessageOut)
def delete_movie(
    movie_id: int,
    db: Session = Depends(get_db),
    admin: schemas.TokenClaims = Depends(auth.require_admin),
):
    movie = get_movie_or_404(db, movie_id)
    db.delete(movie)
    db.commit()
    logger.info("Admin %s deleted movie %s", admin.id, movie_id)
    return {"detail": "Movie deleted"}
