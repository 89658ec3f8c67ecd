"""
Query fragments shared by the catalog, search and recommendation code.
"""

from sqlalchemy import func, select

from . import models, schemas


def avg_rating():
    """Per-movie average review rating, 0 for movies nobody reviewed."""
    return (
        select(func.coalesce(func.avg(models.Review.rating), 0))
        .where(models.Review.movie_id == models.Movie.id)
        .correlate(models.Movie)
        .scalar_subquery()
    )


def contains_ci(column, text: str):
    """Case-insensitive substring match."""
    return func.lower(column).contains(text.lower(), autoescape=True)


def starts_with_ci(column, text: str):
    return func.lower(column).startswith(text.lower(), autoescape=True)


def movie_with_rating(movie: models.Movie, rating) -> schemas.MovieWithRating:
    return schemas.MovieWithRating(
        **schemas.MovieOut.model_validate(movie).model_dump(),
        avg_rating=float(rating or 0),
    )


def review_detail(review: models.Review) -> schemas.ReviewDetail:
    return schemas.ReviewDetail(
        **schemas.ReviewOut.model_validate(review).model_dump(),
        username=review.user.username,
        movie_title=review.movie.title,
    )
