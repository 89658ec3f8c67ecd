from datetime import date, datetime
from pydantic import BaseModel, EmailStr, Field
from pydantic.config import ConfigDict
from typing import List, Literal, Optional


# Auth & Users
class UserBase(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    username: str = Field(min_length=1, max_length=50)
    email: EmailStr


class UserCreate(UserBase):
    password: str = Field(min_length=6)


class UserLogin(BaseModel):
    username_or_email: str
    password: str


class UserOut(UserBase):
    id: int
    role: str
    avatar: Optional[str] = None
    created_at: Optional[datetime] = None


class UserSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    email: str
    role: str


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class TokenClaims(BaseModel):
    """Identity decoded from a bearer token."""

    id: int
    username: Optional[str] = None
    role: Literal["user", "admin"] = "user"

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


class ProfileUpdate(BaseModel):
    username: str = Field(min_length=1, max_length=50)
    avatar: Optional[str] = None


# Movies
class MovieBase(BaseModel):
    title: str = Field(min_length=1)
    genre: Optional[str] = None
    release_date: Optional[date] = None
    cast: Optional[str] = None
    poster_url: Optional[str] = None
    description: Optional[str] = None


class MovieCreate(MovieBase):
    pass


class MovieUpdate(MovieBase):
    pass


class MovieOut(MovieBase):
    model_config = ConfigDict(from_attributes=True)

    id: int


class MovieWithRating(MovieOut):
    avg_rating: float = 0.0


class ScoredMovieOut(MovieOut):
    score: int


class MoviePage(BaseModel):
    page: int
    total_pages: int
    total_movies: int
    movies: List[MovieWithRating]


class MovieSuggestion(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    genre: Optional[str] = None
    poster_url: Optional[str] = None


# Reviews
class ReviewCreate(BaseModel):
    movie_id: int
    rating: int = Field(ge=1, le=5)
    review: str = ""


class ReviewUpdate(BaseModel):
    rating: int = Field(ge=1, le=5)
    review: str = ""


class ReviewOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    movie_id: int
    rating: int
    review: str
    flagged: bool = False
    created_at: Optional[datetime] = None


class ReviewDetail(ReviewOut):
    username: str
    movie_title: str


class RatingOnlyOut(BaseModel):
    id: int
    title: str
    poster_url: Optional[str] = None
    rating: int


class HelpfulVoteOut(BaseModel):
    review_id: int
    helpful: bool


# Watchlist
class WatchlistAdd(BaseModel):
    movie_id: int


class WatchlistStatus(BaseModel):
    in_watchlist: bool


# Profiles
class PublicProfile(BaseModel):
    id: int
    username: str
    avatar: Optional[str] = None
    joined: Optional[datetime] = None
    reviews: List[ReviewDetail]
    rating_only: List[RatingOnlyOut]
    average_rating: float


class OwnProfile(BaseModel):
    id: int
    username: str
    email: str
    avatar: Optional[str] = None
    created_at: Optional[datetime] = None
    reviews: List[ReviewDetail]
    liked_reviews: List[ReviewDetail]
    average_rating: float


class MessageOut(BaseModel):
    detail: str
