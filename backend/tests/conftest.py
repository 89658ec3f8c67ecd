import datetime

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from movie_catalog import auth, models
from movie_catalog.database import Base, get_db
from movie_catalog.main import app


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, future=True)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db):
    def _make(username, role="user"):
        user = models.User(
            username=username,
            email=f"{username}@example.com",
            password_hash="unused",
            role=role,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def make_movie(db):
    def _make(title, genre=None, release_date=None, **fields):
        movie = models.Movie(
            title=title,
            genre=genre,
            release_date=release_date or datetime.date(2000, 1, 1),
            **fields,
        )
        db.add(movie)
        db.commit()
        db.refresh(movie)
        return movie

    return _make


@pytest.fixture
def rate(db):
    def _rate(user, movie, rating, text=""):
        review = models.Review(
            user_id=user.id, movie_id=movie.id, rating=rating, review=text
        )
        db.add(review)
        db.commit()
        db.refresh(review)
        return review

    return _rate


def auth_headers(user):
    return {"Authorization": f"Bearer {auth.token_for_user(user)}"}


@pytest.fixture
def headers():
    return auth_headers
