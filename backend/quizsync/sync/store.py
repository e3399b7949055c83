"""Persistence for synced quiz sessions and results.

``RecordStore`` is the only component that touches durable storage. Writes are
single statements so the database linearizes concurrent writers of the same
id: session upserts carry the last-write-wins guard in their ``ON CONFLICT``
clause and result inserts never update. Storage errors propagate unchanged;
retry policy belongs to the caller.
"""

from collections.abc import Callable, Iterable
from datetime import date, datetime, timedelta
from typing import Any
from uuid import UUID

from sqlalchemy import ColumnElement, Table, and_, case, func, literal, or_, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from quizsync.common.timeutil import to_utc, utc_now
from quizsync.models.progress import QuizResult, QuizSession, QuizSessionStatus
from quizsync.schemas.progress import FieldUpdate, ProgressStats
from quizsync.schemas.sync import QuizResultIn, QuizSessionIn
from quizsync.sync.filters import ProgressFilter

_sessions: Table = QuizSession.__table__  # type: ignore[assignment]
_results: Table = QuizResult.__table__  # type: ignore[assignment]

# Attribute and column names differ for the metadata columns
_SESSION_META = QuizSession.__mapper__.columns["metadata_json"]
_RESULT_META = QuizResult.__mapper__.columns["metadata_json"]

_DIALECT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}

STREAK_LOOKBACK_DAYS = 366

KeysetKey = tuple[datetime, UUID]


def _after_key(ts_column: Any, id_column: Any, key: KeysetKey) -> ColumnElement[bool]:
    """Rows strictly after ``key`` in ``(timestamp, id)`` order."""
    at, row_id = to_utc(key[0]), key[1]
    return or_(ts_column > at, and_(ts_column == at, id_column > row_id))


def compute_streak(active_days: Iterable[date], today: date) -> int:
    """Consecutive active days ending today (or yesterday, if today is still open)."""
    days = set(active_days)
    if today in days:
        cursor = today
    elif today - timedelta(days=1) in days:
        cursor = today - timedelta(days=1)
    else:
        return 0
    streak = 0
    while cursor in days:
        streak += 1
        cursor -= timedelta(days=1)
    return streak


class RecordStore:
    """Owner-scoped access to the quiz_sessions and quiz_results tables."""

    def __init__(self, db: Session, clock: Callable[[], datetime] = utc_now):
        self.db = db
        self._clock = clock

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    def commit(self) -> None:
        self.db.commit()

    def rollback(self) -> None:
        self.db.rollback()

    def _insert(self, table: Table):
        dialect = self.db.get_bind().dialect.name
        try:
            return _DIALECT_INSERTS[dialect](table)
        except KeyError:
            raise NotImplementedError(f"Upserts are not supported on {dialect}") from None

    # ------------------------------------------------------------------
    # Point lookups
    # ------------------------------------------------------------------

    def get_session(self, session_id: UUID) -> QuizSession | None:
        stmt = (
            select(QuizSession)
            .where(QuizSession.session_id == session_id)
            .execution_options(populate_existing=True)
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def get_result(self, result_id: UUID) -> QuizResult | None:
        stmt = (
            select(QuizResult)
            .where(QuizResult.result_id == result_id)
            .execution_options(populate_existing=True)
        )
        return self.db.execute(stmt).scalar_one_or_none()

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def upsert_session(self, owner_id: UUID, record: QuizSessionIn) -> bool:
        """Insert the session, or replace its mutable fields if the stored copy is older.

        Returns False when nothing was written: the stored copy is at least as
        new, or the id belongs to another owner.
        """
        completed_at = record.completed_at
        if completed_at is None and record.status == QuizSessionStatus.COMPLETED:
            completed_at = record.updated_at

        c = _sessions.c
        stmt = self._insert(_sessions).values(
            {
                c.session_id: record.session_id,
                c.user_id: owner_id,
                c.mode: record.mode,
                c.category: record.category,
                c.status: record.status,
                c.current_question: record.current_question,
                c.total_questions: record.total_questions,
                c.score: record.score,
                c.time_spent: record.time_spent,
                c.started_at: to_utc(record.started_at),
                c.completed_at: to_utc(completed_at),
                c.updated_at: to_utc(record.updated_at),
                _SESSION_META: record.metadata,
                c.synced_at: self._clock(),
            }
        )
        excluded = stmt.excluded
        stmt = stmt.on_conflict_do_update(
            index_elements=[c.session_id],
            set_={
                c.mode: excluded.mode,
                c.category: excluded.category,
                c.status: excluded.status,
                c.current_question: excluded.current_question,
                c.total_questions: excluded.total_questions,
                c.score: excluded.score,
                c.time_spent: excluded.time_spent,
                c.started_at: excluded.started_at,
                # completed_at is written once
                c.completed_at: func.coalesce(c.completed_at, excluded.completed_at),
                c.updated_at: excluded.updated_at,
                _SESSION_META: excluded[_SESSION_META.key],
                c.synced_at: excluded.synced_at,
            },
            where=and_(
                c.updated_at < excluded.updated_at,
                c.user_id == excluded.user_id,
            ),
        )
        result = self.db.execute(stmt)
        return result.rowcount > 0

    def insert_result_if_absent(self, owner_id: UUID, record: QuizResultIn) -> bool:
        """Insert-only; an existing result_id is left untouched and returns False."""
        c = _results.c
        stmt = (
            self._insert(_results)
            .values(
                {
                    c.result_id: record.result_id,
                    c.session_id: record.session_id,
                    c.user_id: owner_id,
                    c.question_id: record.question_id,
                    c.selected_answer: record.selected_answer,
                    c.is_correct: record.is_correct,
                    c.time_taken: record.time_taken,
                    c.points_earned: record.points_earned,
                    c.created_at: to_utc(record.created_at),
                    _RESULT_META: record.metadata,
                }
            )
            .on_conflict_do_nothing(index_elements=[c.result_id])
        )
        result = self.db.execute(stmt)
        return result.rowcount > 0

    def apply_partial_update(
        self,
        owner_id: UUID,
        session_id: UUID,
        updates: list[FieldUpdate],
        now: datetime | None = None,
    ) -> bool:
        """Apply allow-listed field updates in one UPDATE statement.

        ``updated_at`` becomes ``max(stored, now)`` so it never moves backwards
        when a device clock ran ahead of the server.
        """
        now = to_utc(now or self._clock())
        c = _sessions.c
        now_param = literal(now, c.updated_at.type)

        values: dict[Any, Any] = {}
        for item in updates:
            if item.field == "metadata":
                values[_SESSION_META] = item.value
            else:
                values[c[item.field]] = item.value
            if item.field == "status" and item.value == QuizSessionStatus.COMPLETED:
                values[c.completed_at] = func.coalesce(c.completed_at, now_param)

        values[c.updated_at] = case((c.updated_at > now_param, c.updated_at), else_=now_param)
        values[c.synced_at] = now_param

        stmt = (
            update(_sessions)
            .where(c.session_id == session_id, c.user_id == owner_id)
            .values(values)
        )
        result = self.db.execute(stmt)
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Range queries
    # ------------------------------------------------------------------

    def list_sessions_updated_after(
        self,
        owner_id: UUID,
        after: datetime,
        limit: int,
        until: datetime | None = None,
        after_key: KeysetKey | None = None,
    ) -> list[QuizSession]:
        """Owner's sessions with ``after < updated_at [<= until]``, oldest first.

        ``after_key`` resumes a paged read after the last delivered
        ``(updated_at, session_id)``.
        """
        stmt = select(QuizSession).where(
            QuizSession.user_id == owner_id,
            QuizSession.updated_at > to_utc(after),
        )
        if until is not None:
            stmt = stmt.where(QuizSession.updated_at <= to_utc(until))
        if after_key is not None:
            stmt = stmt.where(_after_key(QuizSession.updated_at, QuizSession.session_id, after_key))
        stmt = (
            stmt.order_by(QuizSession.updated_at.asc(), QuizSession.session_id.asc())
            .limit(limit)
            .execution_options(populate_existing=True)
        )
        return list(self.db.execute(stmt).scalars().all())

    def list_results_created_after(
        self,
        owner_id: UUID,
        after: datetime,
        limit: int,
        until: datetime | None = None,
        after_key: KeysetKey | None = None,
    ) -> list[QuizResult]:
        """Owner's results with ``after < created_at [<= until]``, oldest first."""
        stmt = select(QuizResult).where(
            QuizResult.user_id == owner_id,
            QuizResult.created_at > to_utc(after),
        )
        if until is not None:
            stmt = stmt.where(QuizResult.created_at <= to_utc(until))
        if after_key is not None:
            stmt = stmt.where(_after_key(QuizResult.created_at, QuizResult.result_id, after_key))
        stmt = (
            stmt.order_by(QuizResult.created_at.asc(), QuizResult.result_id.asc())
            .limit(limit)
            .execution_options(populate_existing=True)
        )
        return list(self.db.execute(stmt).scalars().all())

    def list_sessions(self, flt: ProgressFilter) -> list[QuizSession]:
        stmt = flt.sessions_query().execution_options(populate_existing=True)
        return list(self.db.execute(stmt).scalars().all())

    def count_sessions(self, flt: ProgressFilter) -> int:
        stmt = select(func.count(QuizSession.session_id)).where(*flt.conditions())
        return int(self.db.execute(stmt).scalar_one())

    def results_for_sessions(
        self, owner_id: UUID, session_ids: list[UUID]
    ) -> dict[UUID, list[QuizResult]]:
        grouped: dict[UUID, list[QuizResult]] = {sid: [] for sid in session_ids}
        if not session_ids:
            return grouped
        stmt = (
            select(QuizResult)
            .where(QuizResult.user_id == owner_id, QuizResult.session_id.in_(session_ids))
            .order_by(QuizResult.created_at.asc(), QuizResult.result_id.asc())
        )
        for result in self.db.execute(stmt).scalars():
            grouped[result.session_id].append(result)
        return grouped

    # ------------------------------------------------------------------
    # Aggregates
    # ------------------------------------------------------------------

    def progress_stats(self, owner_id: UUID, category: str | None = None) -> ProgressStats:
        """Session and answer aggregates; computed separately so sums are not fanned out by joins."""
        flt = ProgressFilter(owner_id=owner_id, category=category)
        completed = QuizSession.status == QuizSessionStatus.COMPLETED

        session_row = self.db.execute(
            select(
                func.count(QuizSession.session_id),
                func.coalesce(func.sum(case((completed, 1), else_=0)), 0),
                func.avg(case((completed, QuizSession.score), else_=None)),
                func.coalesce(func.sum(QuizSession.time_spent), 0),
                func.max(QuizSession.updated_at),
            ).where(*flt.conditions())
        ).one()
        total_sessions, completed_sessions, average_score, total_time, last_activity = session_row

        result_row = self.db.execute(
            select(
                func.count(QuizResult.result_id),
                func.coalesce(func.sum(case((QuizResult.is_correct.is_(True), 1), else_=0)), 0),
            )
            .join(QuizSession, QuizSession.session_id == QuizResult.session_id)
            .where(QuizResult.user_id == owner_id, *flt.conditions())
        ).one()
        answered, correct = result_row

        today = self._clock().date()
        since = to_utc(datetime.combine(today - timedelta(days=STREAK_LOOKBACK_DAYS), datetime.min.time()))
        day_rows = self.db.execute(
            select(QuizResult.created_at)
            .join(QuizSession, QuizSession.session_id == QuizResult.session_id)
            .where(
                QuizResult.user_id == owner_id,
                QuizResult.created_at >= since,
                *flt.conditions(),
            )
        ).scalars()
        active_days = {to_utc(ts).date() for ts in day_rows}

        total_sessions = int(total_sessions or 0)
        completed_sessions = int(completed_sessions or 0)
        answered = int(answered or 0)
        correct = int(correct or 0)
        return ProgressStats(
            total_sessions=total_sessions,
            completed_sessions=completed_sessions,
            completion_rate=(completed_sessions / total_sessions * 100) if total_sessions else 0.0,
            average_score=float(average_score or 0.0),
            total_time_spent=int(total_time or 0),
            total_questions_answered=answered,
            accuracy_rate=(correct / answered * 100) if answered else 0.0,
            streak_days=compute_streak(active_days, today),
            last_activity=to_utc(last_activity),
        )
