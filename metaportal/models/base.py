"""Database engine, session factory and declarative base."""

import os

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

# In-memory SQLite by default: the catalog does not survive a restart.
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite://")

IN_MEMORY_URLS = ("sqlite://", "sqlite:///:memory:")


def make_engine(url: str = DATABASE_URL):
    """Create an engine, sharing one connection for in-memory SQLite."""
    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if url in IN_MEMORY_URLS:
            kwargs["poolclass"] = StaticPool
        return create_engine(url, **kwargs)
    return create_engine(url)


engine = make_engine()
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """Yield a database session for one request."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def create_tables(bind=None):
    """Create all catalog tables on the given engine."""
    # Model modules register themselves on Base when imported
    from . import catalog, lineage, governance  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)
