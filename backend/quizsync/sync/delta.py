"""Server-to-device delta for the pull half of a sync."""

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID

from quizsync.common.timeutil import to_utc, utc_now
from quizsync.core.logging import get_logger
from quizsync.observability.metrics import sync_delta_rows_total
from quizsync.schemas.sync import (
    KeysetPosition,
    PullCursor,
    QuizResultOut,
    QuizSessionOut,
    ServerData,
)
from quizsync.sync.store import KeysetKey, RecordStore

logger = get_logger(__name__)

DEFAULT_DELTA_LIMIT = 100


def _key(position: KeysetPosition | None) -> KeysetKey | None:
    return (position.at, position.id) if position is not None else None


@dataclass
class Delta:
    """Records changed in ``(watermark, server_now]``.

    ``server_now`` is the next watermark. It is captured once, before the
    reads, and bounds both queries so a record written while the delta is
    being assembled lands in the next pull instead of being skipped. Rows are
    snapshots taken at read time.
    """

    server_now: datetime
    sessions: list[QuizSessionOut] = field(default_factory=list)
    results: list[QuizResultOut] = field(default_factory=list)
    has_more_sessions: bool = False
    has_more_results: bool = False
    next_cursor: PullCursor | None = None

    def to_schema(self) -> ServerData:
        return ServerData(
            quiz_sessions=list(self.sessions),
            quiz_results=list(self.results),
            server_timestamp=self.server_now,
            has_more_sessions=self.has_more_sessions,
            has_more_results=self.has_more_results,
            next_cursor=self.next_cursor,
        )


class DeltaProvider:
    def __init__(
        self,
        store: RecordStore,
        default_limit: int = DEFAULT_DELTA_LIMIT,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.default_limit = default_limit
        self._clock = clock

    def delta(
        self,
        owner_id: UUID,
        watermark: datetime,
        limit: int | None = None,
        cursor: PullCursor | None = None,
    ) -> Delta:
        """Owner's sessions and results changed after ``watermark``, oldest first.

        Each list holds at most ``limit`` rows. When either is full the delta
        carries ``next_cursor``; the client repeats the pull with the same
        watermark and that cursor. A cursor resumes each kind after the last
        row delivered, in ``(timestamp, id)`` order, and keeps the first
        page's ``server_now`` as the upper bound. Rows that change while the
        client pages move past that bound and arrive in the following pull.
        """
        limit = limit or self.default_limit
        watermark = to_utc(watermark)
        server_now = to_utc(self._clock())
        sessions_after = results_after = None
        if cursor is not None:
            # A cursor never pulls the bound forward past the server clock
            server_now = min(to_utc(cursor.until), server_now)
            sessions_after, results_after = cursor.sessions_after, cursor.results_after

        session_rows = self.store.list_sessions_updated_after(
            owner_id, watermark, limit + 1, until=server_now, after_key=_key(sessions_after)
        )
        result_rows = self.store.list_results_created_after(
            owner_id, watermark, limit + 1, until=server_now, after_key=_key(results_after)
        )

        sessions = [QuizSessionOut.model_validate(s) for s in session_rows[:limit]]
        results = [QuizResultOut.model_validate(r) for r in result_rows[:limit]]
        delta = Delta(
            server_now=server_now,
            sessions=sessions,
            results=results,
            has_more_sessions=len(session_rows) > limit,
            has_more_results=len(result_rows) > limit,
        )

        if delta.has_more_sessions or delta.has_more_results:
            if sessions:
                sessions_after = KeysetPosition(at=sessions[-1].updated_at, id=sessions[-1].session_id)
            if results:
                results_after = KeysetPosition(at=results[-1].created_at, id=results[-1].result_id)
            delta.next_cursor = PullCursor(
                until=server_now,
                sessions_after=sessions_after,
                results_after=results_after,
            )

        sync_delta_rows_total.labels(kind="session").inc(len(delta.sessions))
        sync_delta_rows_total.labels(kind="result").inc(len(delta.results))
        logger.debug(
            "Delta assembled",
            extra={
                "user_id": str(owner_id),
                "watermark": watermark.isoformat(),
                "server_now": server_now.isoformat(),
                "sessions": len(delta.sessions),
                "results": len(delta.results),
                "paged": cursor is not None,
            },
        )
        return delta
