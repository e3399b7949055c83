"""Database session management."""

from typing import Generator

from sqlalchemy.orm import Session, sessionmaker

from quizsync.db.engine import engine

# Create session factory
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
    expire_on_commit=False,  # Delta rows are serialized after the per-item commits
)


def get_db() -> Generator[Session, None, None]:
    """Request-scoped session.

    Sync writes commit item by item inside the request. Anything still pending
    when the request fails is rolled back here, so a half-applied item never
    outlives the request that raised.
    """
    db = SessionLocal()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
