"""Read-only progress view and narrow partial updates."""

from collections.abc import Callable
from datetime import datetime
from uuid import UUID

from quizsync.common.timeutil import to_utc, utc_now
from quizsync.core.logging import get_logger
from quizsync.models.progress import QuizSessionStatus
from quizsync.schemas.progress import (
    ProgressListOut,
    ProgressPagination,
    ProgressSessionOut,
    ProgressUpdateOut,
    SessionUpdates,
)
from quizsync.schemas.sync import QuizResultOut, QuizSessionOut
from quizsync.sync.errors import (
    InvalidStatusTransitionError,
    InvalidUpdateError,
    NoValidUpdatesError,
    SessionNotFoundError,
)
from quizsync.sync.filters import ProgressFilter
from quizsync.sync.store import RecordStore

logger = get_logger(__name__)

ALL_CATEGORIES = "all"


class ProgressService:
    def __init__(self, store: RecordStore, clock: Callable[[], datetime] = utc_now):
        self.store = store
        self._clock = clock

    def list_progress(
        self,
        owner_id: UUID,
        category: str | None = None,
        limit: int = 50,
        offset: int = 0,
        include_stats: bool = False,
    ) -> ProgressListOut:
        """
        Owner's sessions, newest first, each with its answered questions.

        Args:
            owner_id: Authenticated owner
            category: Restrict to one category (None means all)
            limit: Page size
            offset: Rows to skip
            include_stats: Attach aggregate stats for the same category

        Returns:
            One page of the progress view
        """
        flt = ProgressFilter(owner_id=owner_id, category=category, limit=limit, offset=offset)
        sessions = self.store.list_sessions(flt)
        total_count = self.store.count_sessions(flt)
        results = self.store.results_for_sessions(owner_id, [s.session_id for s in sessions])

        items = []
        for session in sessions:
            item = ProgressSessionOut.model_validate(session)
            item.quiz_results = [QuizResultOut.model_validate(r) for r in results[session.session_id]]
            items.append(item)

        stats = self.store.progress_stats(owner_id, category) if include_stats else None

        return ProgressListOut(
            sessions=items,
            stats=stats,
            total_count=total_count,
            category=category or ALL_CATEGORIES,
            pagination=ProgressPagination(
                limit=limit,
                offset=offset,
                has_more=offset + len(items) < total_count,
            ),
            last_updated=self._clock(),
        )

    def update_progress(
        self, owner_id: UUID, session_id: UUID, updates: SessionUpdates
    ) -> ProgressUpdateOut:
        field_updates = updates.to_field_updates()
        if not field_updates:
            raise NoValidUpdatesError("No valid fields to update")

        existing = self.store.get_session(session_id)
        if existing is None or existing.user_id != owner_id:
            raise SessionNotFoundError("Session not found", details={"session_id": str(session_id)})

        stored = QuizSessionOut.model_validate(existing)
        if updates.status is not None and stored.status.is_terminal and updates.status != stored.status:
            raise InvalidStatusTransitionError(
                f"Session is {stored.status.value}; cannot move to {updates.status.value}",
                details={"from": stored.status.value, "to": updates.status.value},
            )
        if updates.current_question is not None and updates.current_question > stored.total_questions:
            raise InvalidUpdateError(
                "current_question exceeds total_questions",
                details={"field": "current_question", "limit": stored.total_questions},
            )

        try:
            applied = self.store.apply_partial_update(owner_id, session_id, field_updates, now=self._clock())
            self.store.commit()
        except Exception:
            self.store.rollback()
            raise

        if not applied:
            # Deleted between the read and the write
            raise SessionNotFoundError("Session not found", details={"session_id": str(session_id)})

        current = self.store.get_session(session_id)
        updated_fields = [u.field for u in field_updates]
        logger.info(
            "Progress updated",
            extra={
                "user_id": str(owner_id),
                "session_id": str(session_id),
                "updated_fields": updated_fields,
                "completed": current.status == QuizSessionStatus.COMPLETED,
            },
        )
        return ProgressUpdateOut(
            session_id=session_id,
            updated_fields=updated_fields,
            updated_at=to_utc(current.updated_at),
        )
