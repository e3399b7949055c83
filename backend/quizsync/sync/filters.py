"""Typed filters for owner-scoped progress queries.

Every filter value becomes a bound parameter; no SQL text is assembled.
"""

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from sqlalchemy import Select, select
from sqlalchemy.sql.elements import ColumnElement

from quizsync.common.timeutil import to_utc
from quizsync.models.progress import QuizSession, QuizSessionStatus


@dataclass(frozen=True)
class ProgressFilter:
    """Owner-scoped session filter for the read-only progress view."""

    owner_id: UUID
    category: str | None = None
    status: QuizSessionStatus | None = None
    updated_after: datetime | None = None
    limit: int = 50
    offset: int = 0

    def conditions(self) -> list[ColumnElement[bool]]:
        clauses: list[ColumnElement[bool]] = [QuizSession.user_id == self.owner_id]
        if self.category is not None:
            clauses.append(QuizSession.category == self.category)
        if self.status is not None:
            clauses.append(QuizSession.status == self.status)
        if self.updated_after is not None:
            clauses.append(QuizSession.updated_at > to_utc(self.updated_after))
        return clauses

    def sessions_query(self) -> Select:
        """Newest sessions first; session_id breaks ties."""
        return (
            select(QuizSession)
            .where(*self.conditions())
            .order_by(QuizSession.started_at.desc(), QuizSession.session_id.asc())
            .offset(self.offset)
            .limit(self.limit)
        )
