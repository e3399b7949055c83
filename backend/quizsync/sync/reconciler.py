"""Batch reconciliation of pushed sessions and results."""

import time
from collections.abc import Callable
from dataclasses import dataclass, field
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError

from quizsync.core.logging import get_logger
from quizsync.models.progress import QuizSession, QuizSessionStatus
from quizsync.observability.metrics import sync_items_total
from quizsync.schemas.sync import ItemOutcome, QuizResultIn, QuizSessionIn, SyncResults
from quizsync.sync.errors import BatchTooLargeError, ItemRejectedError
from quizsync.sync.resolver import Conflict, Decision, build_conflict, resolve
from quizsync.sync.store import RecordStore

logger = get_logger(__name__)

DEFAULT_MAX_SESSIONS = 100
DEFAULT_MAX_RESULTS = 1000


@dataclass
class BatchOutcome:
    """Per-item accounting of one push."""

    session_outcomes: list[ItemOutcome] = field(default_factory=list)
    result_outcomes: list[ItemOutcome] = field(default_factory=list)
    conflicts: list[Conflict] = field(default_factory=list)

    def _ids(self, outcomes: list[ItemOutcome], status: str) -> list[UUID]:
        return [o.id for o in outcomes if o.status == status]

    @property
    def synced_sessions(self) -> list[UUID]:
        return self._ids(self.session_outcomes, "accepted")

    @property
    def stale_sessions(self) -> list[UUID]:
        return self._ids(self.session_outcomes, "rejected_stale")

    @property
    def failed_sessions(self) -> list[UUID]:
        return self._ids(self.session_outcomes, "failed")

    @property
    def synced_results(self) -> list[UUID]:
        return self._ids(self.result_outcomes, "accepted")

    @property
    def duplicate_results(self) -> list[UUID]:
        return self._ids(self.result_outcomes, "duplicate")

    @property
    def failed_results(self) -> list[UUID]:
        return self._ids(self.result_outcomes, "failed")

    def to_schema(self) -> SyncResults:
        return SyncResults(
            sessions=self.session_outcomes,
            results=self.result_outcomes,
            synced_sessions=self.synced_sessions,
            synced_results=self.synced_results,
            stale_sessions=self.stale_sessions,
            duplicate_results=self.duplicate_results,
            failed_sessions=self.failed_sessions,
            failed_results=self.failed_results,
            conflicts=[c.to_schema() for c in self.conflicts],
        )


class BatchReconciler:
    """Applies a device's pending writes item by item.

    Every item runs in its own transaction: it is committed when applied and
    rolled back when it fails, so one bad item never affects its siblings.
    Sessions go first because results may reference a session pushed in the
    same batch.
    """

    def __init__(
        self,
        store: RecordStore,
        max_sessions: int = DEFAULT_MAX_SESSIONS,
        max_results: int = DEFAULT_MAX_RESULTS,
    ):
        self.store = store
        self.max_sessions = max_sessions
        self.max_results = max_results

    def check_bounds(self, sessions: list[QuizSessionIn], results: list[QuizResultIn]) -> None:
        """Reject oversized batches wholesale, before any storage access."""
        violations = []
        if len(sessions) > self.max_sessions:
            violations.append(
                {"field": "quiz_sessions", "limit": self.max_sessions, "received": len(sessions)}
            )
        if len(results) > self.max_results:
            violations.append(
                {"field": "quiz_results", "limit": self.max_results, "received": len(results)}
            )
        if violations:
            raise BatchTooLargeError("Sync batch exceeds size limits", details=violations)

    def reconcile(
        self,
        owner_id: UUID,
        sessions: list[QuizSessionIn],
        results: list[QuizResultIn],
    ) -> BatchOutcome:
        self.check_bounds(sessions, results)

        start = time.perf_counter()
        outcome = BatchOutcome()

        for record in sessions:
            item = self._run_item(
                "session",
                record.session_id,
                lambda record=record: self._reconcile_session(owner_id, record, outcome.conflicts),
            )
            outcome.session_outcomes.append(item)

        for record in results:
            item = self._run_item(
                "result",
                record.result_id,
                lambda record=record: self._reconcile_result(owner_id, record),
            )
            outcome.result_outcomes.append(item)

        logger.info(
            "Sync batch reconciled",
            extra={
                "user_id": str(owner_id),
                "sessions_accepted": len(outcome.synced_sessions),
                "sessions_stale": len(outcome.stale_sessions),
                "sessions_failed": len(outcome.failed_sessions),
                "results_accepted": len(outcome.synced_results),
                "results_duplicate": len(outcome.duplicate_results),
                "results_failed": len(outcome.failed_results),
                "duration_ms": int((time.perf_counter() - start) * 1000),
            },
        )
        return outcome

    # ------------------------------------------------------------------
    # Per-item isolation
    # ------------------------------------------------------------------

    def _run_item(self, kind: str, item_id: UUID, apply: Callable[[], ItemOutcome]) -> ItemOutcome:
        try:
            item = apply()
            self.store.commit()
        except ItemRejectedError as e:
            self.store.rollback()
            item = ItemOutcome(id=item_id, status="failed", error_code=e.code, message=e.message)
        except SQLAlchemyError as e:
            self.store.rollback()
            logger.warning(
                "Sync item storage failure",
                extra={"kind": kind, "item_id": str(item_id), "error": str(e)},
            )
            item = ItemOutcome(
                id=item_id, status="failed", error_code="STORAGE_ERROR", message="Storage write failed"
            )
        except Exception as e:
            # Isolation boundary: the failure is reported for this item only
            self.store.rollback()
            logger.exception(
                "Sync item processing failure",
                extra={"kind": kind, "item_id": str(item_id), "error": str(e)},
            )
            item = ItemOutcome(id=item_id, status="failed", error_code="PROCESSING_ERROR", message=str(e))

        if item.status == "failed":
            logger.warning(
                "Sync item failed",
                extra={"kind": kind, "item_id": str(item_id), "error_code": item.error_code},
            )
        sync_items_total.labels(kind=kind, outcome=item.status).inc()
        return item

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def _reconcile_session(
        self, owner_id: UUID, record: QuizSessionIn, conflicts: list[Conflict]
    ) -> ItemOutcome:
        _validate_session(record)

        existing = self.store.get_session(record.session_id)
        if existing is not None and existing.user_id != owner_id:
            raise ItemRejectedError("SESSION_OWNERSHIP_CONFLICT", "Session id belongs to another account")

        if resolve(record, existing) is Decision.REJECT_AS_STALE:
            return self._stale(record, existing, conflicts)

        if existing is not None:
            _check_transition(existing, record)

        if self.store.upsert_session(owner_id, record):
            return ItemOutcome(id=record.session_id, status="accepted")

        # A concurrent writer got there first; the stored copy is now at least as new
        current = self.store.get_session(record.session_id)
        if current is None or current.user_id != owner_id:
            raise ItemRejectedError("SESSION_OWNERSHIP_CONFLICT", "Session id belongs to another account")
        return self._stale(record, current, conflicts)

    def _stale(
        self, record: QuizSessionIn, existing: QuizSession, conflicts: list[Conflict]
    ) -> ItemOutcome:
        conflicts.append(build_conflict(record, existing))
        return ItemOutcome(
            id=record.session_id,
            status="rejected_stale",
            error_code="STALE_WRITE",
            message="Server copy is newer or equal; kept server version",
        )

    # ------------------------------------------------------------------
    # Results
    # ------------------------------------------------------------------

    def _reconcile_result(self, owner_id: UUID, record: QuizResultIn) -> ItemOutcome:
        parent = self.store.get_session(record.session_id)
        if parent is None or parent.user_id != owner_id:
            raise ItemRejectedError("SESSION_NOT_FOUND", "Result references an unknown session")

        if self.store.insert_result_if_absent(owner_id, record):
            return ItemOutcome(id=record.result_id, status="accepted")

        stored = self.store.get_result(record.result_id)
        if stored is not None and stored.user_id != owner_id:
            raise ItemRejectedError("RESULT_ID_CONFLICT", "Result id belongs to another account")
        return ItemOutcome(id=record.result_id, status="duplicate", message="Already synced")


def _validate_session(record: QuizSessionIn) -> None:
    if record.completed_at is not None and record.status != QuizSessionStatus.COMPLETED:
        raise ItemRejectedError(
            "INVALID_COMPLETED_AT", "completed_at is only allowed on completed sessions"
        )
    if record.current_question > record.total_questions:
        raise ItemRejectedError(
            "CURRENT_QUESTION_OUT_OF_RANGE", "current_question exceeds total_questions"
        )


def _check_transition(existing: QuizSession, record: QuizSessionIn) -> None:
    stored = QuizSessionStatus(existing.status)
    if stored.is_terminal and record.status != stored:
        raise ItemRejectedError(
            "INVALID_STATUS_TRANSITION",
            f"Session is {stored.value}; cannot move to {record.status.value}",
        )
