"""
Database connection and session management.
"""

from pathlib import Path
from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from config.settings import settings
from identity.models import Base

# SQLite file databases live under data/, which may not exist yet
if settings.DATABASE_URL.startswith("sqlite:///"):
    Path(settings.DATABASE_URL[len("sqlite:///"):]).parent.mkdir(parents=True, exist_ok=True)

engine = create_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
    future=True,
)

SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)


def init_db(bind: Optional[Engine] = None):
    """Initialize database tables."""
    Base.metadata.create_all(bind=bind or engine)


def get_db():
    """Get database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def create_session_factory(url: str) -> sessionmaker:
    """
    Build an engine + session factory for a specific database URL and create
    the tables on it. In-memory SQLite shares one connection so every session
    sees the same data.
    """
    kwargs = {"echo": settings.DEBUG, "future": True}
    if url in ("sqlite://", "sqlite:///:memory:"):
        kwargs.update(connect_args={"check_same_thread": False}, poolclass=StaticPool)
    bound = create_engine(url, **kwargs)
    init_db(bound)
    return sessionmaker(bind=bound, autoflush=False, autocommit=False)
