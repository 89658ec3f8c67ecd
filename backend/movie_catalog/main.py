import logging
import os

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from .database import Base, engine
from .routers import (
    auth_routes,
    movie_routes,
    profile_routes,
    recommend_routes,
    review_routes,
    search_routes,
    user_routes,
    watchlist_routes,
)

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Movie Catalog API")

# Frontend runs at http://localhost:8080
origins = os.getenv(
    "CORS_ORIGINS",
    "http://localhost:8080"
).split(",")

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(SQLAlchemyError)
async def store_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error(
        "Database error on %s %s", request.method, request.url.path, exc_info=exc
    )
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


@app.on_event("startup")
def on_startup():
    Base.metadata.create_all(bind=engine)


app.include_router(auth_routes.router)
app.include_router(movie_routes.router)
app.include_router(search_routes.router)
app.include_router(review_routes.router)
app.include_router(watchlist_routes.router)
app.include_router(user_routes.router)
app.include_router(profile_routes.router)
app.include_router(recommend_routes.router)
