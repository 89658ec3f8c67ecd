"""
Recommendation engine.

Three fixed strategies, each returning at most RECOMMENDATION_LIMIT movies the
user has not rated yet:

content-based  movies whose genre string contains any genre string of a
               movie the user rated highly
collaborative  movies rated highly by peer users, with a popularity fallback
               for users with little history (cold start) and for backfill
hybrid         union of the uncapped content-based and collaborative
               candidate sets, ranked by how many strategies picked a movie

Candidate sets are computed deterministically; the randomness of the final
selection comes from an explicit shuffle-then-truncate step.
"""

import logging
import random
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session, aliased

from . import models
from .queries import avg_rating, contains_ci

logger = logging.getLogger(__name__)

RECOMMENDATION_LIMIT = 10
HIGH_RATING = 4
COLD_START_MIN_RATINGS = 5
POPULAR_POOL_SIZE = 20


@dataclass
class ScoredMovie:
    movie: models.Movie
    score: int = 0


def _rated_movie_ids_subq(user_id: int):
    return select(models.Review.movie_id).where(models.Review.user_id == user_id)


def rated_movie_ids(db: Session, user_id: int) -> set:
    return set(db.execute(_rated_movie_ids_subq(user_id)).scalars().all())


def count_ratings(db: Session, user_id: int) -> int:
    stmt = select(func.count(models.Review.id)).where(models.Review.user_id == user_id)
    return db.execute(stmt).scalar_one()


def liked_genres(db: Session, user_id: int) -> List[str]:
    """Distinct genre strings of the movies the user rated HIGH_RATING or more."""
    stmt = (
        select(models.Movie.genre)
        .join(models.Review, models.Review.movie_id == models.Movie.id)
        .where(
            models.Review.user_id == user_id,
            models.Review.rating >= HIGH_RATING,
        )
        .distinct()
    )
    genres = db.execute(stmt).scalars().all()
    # an empty string would match every movie
    return sorted({g.strip() for g in genres if g and g.strip()})


def peer_user_ids(db: Session, user_id: int) -> List[int]:
    """Users who rated at least one movie highly that this user also rated highly."""
    mine = aliased(models.Review)
    theirs = aliased(models.Review)
    stmt = (
        select(theirs.user_id)
        .join(mine, mine.movie_id == theirs.movie_id)
        .where(
            mine.user_id == user_id,
            mine.rating >= HIGH_RATING,
            theirs.user_id != user_id,
            theirs.rating >= HIGH_RATING,
        )
        .distinct()
        .order_by(theirs.user_id)
    )
    return list(db.execute(stmt).scalars().all())


def content_based_candidates(db: Session, user_id: int) -> List[models.Movie]:
    genres = liked_genres(db, user_id)
    if not genres:
        logger.debug("User %s has no highly rated movies", user_id)
        return []

    matches_any = or_(*[contains_ci(models.Movie.genre, g) for g in genres])
    stmt = (
        select(models.Movie)
        .where(matches_any, models.Movie.id.not_in(_rated_movie_ids_subq(user_id)))
        .order_by(models.Movie.id)
    )
    return list(db.execute(stmt).scalars().all())


def collaborative_candidates(db: Session, user_id: int) -> List[models.Movie]:
    peers = peer_user_ids(db, user_id)
    if not peers:
        logger.debug("User %s has no peer users", user_id)
        return []

    liked_by_peers = select(models.Review.movie_id).where(
        models.Review.user_id.in_(peers),
        models.Review.rating >= HIGH_RATING,
    )
    stmt = (
        select(models.Movie)
        .where(
            models.Movie.id.in_(liked_by_peers),
            models.Movie.id.not_in(_rated_movie_ids_subq(user_id)),
        )
        .order_by(models.Movie.id)
    )
    return list(db.execute(stmt).scalars().all())


def popular_movies(
    db: Session,
    user_id: int,
    exclude_ids: Iterable[int] = (),
    limit: int = RECOMMENDATION_LIMIT,
) -> List[models.Movie]:
    """
    Popularity fallback: the POPULAR_POOL_SIZE best-rated movies by average
    rating (unreviewed movies count as 0), minus what the user already rated
    and anything in exclude_ids.
    """
    stmt = (
        select(models.Movie)
        .order_by(avg_rating().desc(), models.Movie.id)
        .limit(POPULAR_POOL_SIZE)
    )
    pool = db.execute(stmt).scalars().all()

    skip = rated_movie_ids(db, user_id) | set(exclude_ids)
    return [m for m in pool if m.id not in skip][:limit]


def sample(
    movies: Sequence[models.Movie],
    limit: int = RECOMMENDATION_LIMIT,
    rng: Optional[random.Random] = None,
) -> List[models.Movie]:
    shuffled = list(movies)
    (rng or random).shuffle(shuffled)
    return shuffled[:limit]


def recommend_content_based(
    db: Session,
    user_id: int,
    rng: Optional[random.Random] = None,
) -> List[models.Movie]:
    return sample(content_based_candidates(db, user_id), RECOMMENDATION_LIMIT, rng)


def recommend_collaborative(
    db: Session,
    user_id: int,
    rng: Optional[random.Random] = None,
) -> List[models.Movie]:
    rated_count = count_ratings(db, user_id)
    if rated_count < COLD_START_MIN_RATINGS:
        logger.info(
            "Cold start for user %s (%d ratings), using popular movies",
            user_id,
            rated_count,
        )
        return popular_movies(db, user_id)

    picks = sample(collaborative_candidates(db, user_id), RECOMMENDATION_LIMIT, rng)
    if len(picks) < RECOMMENDATION_LIMIT:
        backfill = popular_movies(
            db,
            user_id,
            exclude_ids=[m.id for m in picks],
            limit=RECOMMENDATION_LIMIT - len(picks),
        )
        logger.debug(
            "Backfilled %d popular movies for user %s", len(backfill), user_id
        )
        picks.extend(backfill)
    return picks


def recommend_hybrid(db: Session, user_id: int) -> List[ScoredMovie]:
    # No cold-start fallback here, unlike recommend_collaborative.
    scored: Dict[int, ScoredMovie] = {}
    for candidates in (
        content_based_candidates(db, user_id),
        collaborative_candidates(db, user_id),
    ):
        for movie in candidates:
            entry = scored.setdefault(movie.id, ScoredMovie(movie=movie))
            entry.score += 1

    # sorted() is stable, ties keep insertion order
    ranked = sorted(scored.values(), key=lambda s: s.score, reverse=True)
    return ranked[:RECOMMENDATION_LIMIT]
