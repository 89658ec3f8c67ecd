"""
Initialize the movie catalog database.

- Waits for Postgres to be ready
- Creates tables
- Loads data/movies.csv into an empty catalog (runs exactly once)
- Creates the admin account from ADMIN_* environment variables
"""

import csv
import os
import time
from datetime import date
from pathlib import Path
from typing import Optional

from sqlalchemy import text
from sqlalchemy.orm import Session
from sqlalchemy.exc import OperationalError

from movie_catalog.auth import get_password_hash
from movie_catalog.database import SessionLocal, engine, Base
from movie_catalog.models import Movie, User


# CONFIG
CSV_PATH = Path(__file__).resolve().parents[2] / "data" / "movies.csv"
MAX_DB_WAIT_SECONDS = 180
DB_RETRY_INTERVAL = 2
BATCH_SIZE = 250


def wait_for_db():
    """Block until the database is accepting connections."""
    print("Waiting for the database to be ready...")

    deadline = time.time() + MAX_DB_WAIT_SECONDS

    while time.time() < deadline:
        try:
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            print("Database is ready.")
            return
        except OperationalError:
            print("Database not ready yet. Retrying...")
            time.sleep(DB_RETRY_INTERVAL)

    raise RuntimeError("Database did not become ready in time")


def database_already_initialized(db: Session) -> bool:
    """Authoritative idempotency check."""
    return db.query(Movie.id).limit(1).first() is not None


def parse_release_date(value: Optional[str]) -> Optional[date]:
    value = (value or "").strip()
    if not value:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        print(f"Skipping unparseable release date {value!r}")
        return None


def row_to_movie(row: dict) -> Movie:
    return Movie(
        title=row["title"].strip(),
        genre=(row.get("genre") or "").strip(),
        release_date=parse_release_date(row.get("release_date")),
        cast=row.get("cast") or "",
        poster_url=row.get("poster_url") or None,
        description=row.get("description") or "",
    )


def seed_movies(db: Session, csv_path: Path = CSV_PATH) -> int:
    """Load movies from csv_path into an empty catalog. Returns rows inserted."""
    if database_already_initialized(db):
        print("Catalog already seeded. Skipping movie import.")
        return 0

    if not csv_path.exists():
        print(f"No seed file at {csv_path}. Skipping movie import.")
        return 0

    total_inserted = 0
    batch = []

    with csv_path.open(newline="", encoding="utf-8") as f:
        reader = csv.DictReader(f)

        for row in reader:
            if not (row.get("title") or "").strip():
                continue

            batch.append(row_to_movie(row))

            if len(batch) >= BATCH_SIZE:
                db.add_all(batch)
                db.commit()
                total_inserted += len(batch)
                batch.clear()
                db.expunge_all()

        if batch:
            db.add_all(batch)
            db.commit()
            total_inserted += len(batch)
            db.expunge_all()

    print(f"Inserted {total_inserted} movies into the database.")
    return total_inserted


def ensure_admin(db: Session) -> Optional[User]:
    username = os.getenv("ADMIN_USERNAME")
    email = os.getenv("ADMIN_EMAIL")
    password = os.getenv("ADMIN_PASSWORD")
    if not (username and email and password):
        print("ADMIN_* variables not set. Skipping admin creation.")
        return None

    existing = db.query(User).filter(User.role == "admin").first()
    if existing:
        print(f"Admin account {existing.username} already exists.")
        return existing

    admin = User(
        username=username,
        email=email,
        password_hash=get_password_hash(password),
        role="admin",
    )
    db.add(admin)
    db.commit()
    db.refresh(admin)
    print(f"Created admin account {admin.username}.")
    return admin


def main():
    wait_for_db()

    # Ensure tables exist BEFORE querying them
    Base.metadata.create_all(bind=engine)

    db: Session = SessionLocal()
    try:
        seed_movies(db)
        ensure_admin(db)
    finally:
        db.close()


if __name__ == "__main__":
    main()
