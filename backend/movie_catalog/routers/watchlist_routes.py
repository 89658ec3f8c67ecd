from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .. import auth, models, schemas
from ..database import get_db

router = APIRouter(prefix="/watchlist", tags=["watchlist"])


def _find_entry(db: Session, user_id: int, movie_id: int):
    return (
        db.query(models.WatchlistEntry)
        .filter(
            models.WatchlistEntry.user_id == user_id,
            models.WatchlistEntry.movie_id == movie_id,
        )
        .first()
    )


@router.get("/", response_model=List[schemas.MovieOut])
def get_watchlist(
    db: Session = Depends(get_db),
    current_user: schemas.TokenClaims = Depends(auth.get_current_user),
):
    stmt = (
        select(models.Movie)
        .join(models.WatchlistEntry, models.WatchlistEntry.movie_id == models.Movie.id)
        .where(models.WatchlistEntry.user_id == current_user.id)
        .order_by(models.WatchlistEntry.created_at, models.WatchlistEntry.id)
    )
    return db.execute(stmt).scalars().all()


@router.get("/{movie_id}", response_model=schemas.WatchlistStatus)
def watchlist_status(
    movie_id: int,
    db: Session = Depends(get_db),
    current_user: schemas.TokenClaims = Depends(auth.get_current_user),
):
    return schemas.WatchlistStatus(
        in_watchlist=_find_entry(db, current_user.id, movie_id) is not None
    )


@router.post(
    "/",
    response_model=schemas.WatchlistStatus,
    status_code=status.HTTP_201_CREATED,
)
def add_to_watchlist(
    item: schemas.WatchlistAdd,
    db: Session = Depends(get_db),
    current_user: schemas.TokenClaims = Depends(auth.get_current_user),
):
    if not db.get(models.Movie, item.movie_id):
        raise HTTPException(status_code=404, detail="Movie not found")
    if _find_entry(db, current_user.id, item.movie_id):
        raise HTTPException(status_code=409, detail="Already in watchlist")

    db.add(models.WatchlistEntry(user_id=current_user.id, movie_id=item.movie_id))
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="Already in watchlist")
    return schemas.WatchlistStatus(in_watchlist=True)


@router.delete("/{movie_id}", response_model=schemas.WatchlistStatus)
def remove_from_watchlist(
    movie_id: int,
    db: Session = Depends(get_db),
    current_user: schemas.TokenClaims = Depends(auth.get_current_user),
):
    entry = _find_entry(db, current_user.id, movie_id)
    if entry:
        db.delete(entry)
        db.commit()
    return schemas.WatchlistStatus(in_watchlist=False)


@router.post("/toggle", response_model=schemas.WatchlistStatus)
def toggle_watchlist(
    item: schemas.WatchlistAdd,
    db: Session = Depends(get_db),
    current_user: schemas.TokenClaims = Depends(auth.get_current_user),
):
    entry = _find_entry(db, current_user.id, item.movie_id)
    if entry:
        db.delete(entry)
        db.commit()
        return schemas.WatchlistStatus(in_watchlist=False)

    if not db.get(models.Movie, item.movie_id):
        raise HTTPException(status_code=404, detail="Movie not found")
    db.add(models.WatchlistEntry(user_id=current_user.id, movie_id=item.movie_id))
    try:
        db.commit()
    except IntegrityError:
        # added by a concurrent request; the movie is in the watchlist either way
        db.rollback()
    return schemas.WatchlistStatus(in_watchlist=True)
