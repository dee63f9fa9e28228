"""Database engine and session setup for the basket snapshot cache."""
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

from storefront.models.base import Base


def create_db_engine(url: str) -> Engine:
    """
    Create the cache engine and make sure its tables exist.

    In-memory SQLite is pinned to one connection so every session sees the
    same database.
    """
    if url.startswith("sqlite") and ":memory:" in url:
        engine = create_engine(
            url,
            echo=False,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    elif url.startswith("sqlite"):
        engine = create_engine(url, echo=False, connect_args={"check_same_thread": False})
    else:
        engine = create_engine(url, echo=False, pool_pre_ping=True)

    Base.metadata.create_all(engine)
    return engine


def init_engine(url: str) -> Iterator[Engine]:
    """Engine resource: yields an engine and disposes it at shutdown."""
    engine = create_db_engine(url)
    try:
        yield engine
    finally:
        engine.dispose()


def create_session(engine: Engine) -> Session:
    return Session(bind=engine, expire_on_commit=False)
