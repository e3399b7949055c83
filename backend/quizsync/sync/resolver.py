"""Last-write-wins conflict resolution for quiz sessions.

Pure functions, no I/O. The device is the only writer of a session while it
is offline, so the comparison mostly exists to make replays of an already
synced batch harmless and to keep delayed deliveries from overwriting newer
state. Ties go to the stored copy, which makes an exact retry a no-op.

Results never reach this module: they are immutable and presence alone
decides their outcome (see ``RecordStore.insert_result_if_absent``).
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Protocol

from quizsync.common.timeutil import to_utc
from quizsync.models.progress import QuizSession
from quizsync.schemas.sync import ConflictOut, QuizSessionIn, QuizSessionOut


class Decision(str, Enum):
    ACCEPT = "accept"
    REJECT_AS_STALE = "reject_as_stale"


class _Versioned(Protocol):
    updated_at: datetime


def resolve(incoming: _Versioned, existing: _Versioned | None) -> Decision:
    """Decide whether an incoming session write replaces the stored one."""
    if existing is None:
        return Decision.ACCEPT
    if to_utc(incoming.updated_at) > to_utc(existing.updated_at):
        return Decision.ACCEPT
    return Decision.REJECT_AS_STALE


@dataclass(frozen=True)
class Conflict:
    """Both versions of a rejected write, kept for the client's merge UI."""

    incoming: QuizSessionIn
    existing: QuizSessionOut

    def to_schema(self) -> ConflictOut:
        return ConflictOut(
            id=self.incoming.session_id,
            server_data=self.existing,
            client_data=self.incoming,
        )


def build_conflict(incoming: QuizSessionIn, existing: QuizSession) -> Conflict:
    # Snapshot now; the ORM row may be expired by a later commit or rollback
    return Conflict(incoming=incoming, existing=QuizSessionOut.model_validate(existing))
