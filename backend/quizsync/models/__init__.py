"""Database models."""

# Import all models here so Alembic can detect them
from quizsync.models.progress import QuizResult, QuizSession, QuizSessionStatus

__all__ = [
    "QuizSession",
    "QuizSessionStatus",
    "QuizResult",
]
