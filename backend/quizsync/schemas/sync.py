"""Schemas for offline progress sync (mobile push/pull)."""

from datetime import datetime
from typing import Any, Generic, Literal, TypeVar
from uuid import UUID

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from quizsync.common.timeutil import to_utc
from quizsync.models.progress import QuizSessionStatus

T = TypeVar("T")

ItemStatus = Literal["accepted", "rejected_stale", "duplicate", "failed"]


class _UTCModel(BaseModel):
    """Normalizes every datetime field to aware UTC."""

    @field_validator("*", mode="after")
    @classmethod
    def _normalize_datetimes(cls, value: Any) -> Any:
        if isinstance(value, datetime):
            return to_utc(value)
        return value


# ============================================================================
# Delta paging
# ============================================================================


class KeysetPosition(_UTCModel):
    """Last row delivered for one kind, in delta order."""

    at: datetime
    id: UUID


class PullCursor(_UTCModel):
    """Resume point for a paged pull.

    ``until`` is the first page's ``server_timestamp`` and bounds every later
    page, so rows written while the client pages land in the next pull.
    """

    until: datetime
    sessions_after: KeysetPosition | None = None
    results_after: KeysetPosition | None = None


# ============================================================================
# Push payload
# ============================================================================


class QuizSessionIn(_UTCModel):
    """Quiz session as recorded on the device."""

    model_config = ConfigDict(extra="ignore")

    session_id: UUID = Field(..., description="Client-generated session ID")
    user_id: UUID | None = Field(None, description="Ignored; the owner is the authenticated principal")
    mode: str = Field(
        "standard",
        min_length=1,
        max_length=50,
        validation_alias=AliasChoices("mode", "quiz_type"),
    )
    category: str = Field(..., min_length=1, max_length=50)
    status: QuizSessionStatus
    current_question: int = Field(..., ge=0)
    total_questions: int = Field(..., gt=0)
    score: float = Field(..., ge=0, le=100)
    time_spent: int = Field(..., ge=0, description="Seconds")
    started_at: datetime
    completed_at: datetime | None = None
    updated_at: datetime = Field(..., description="Device timestamp of the last local mutation")
    metadata: dict[str, Any] = Field(default_factory=dict)

    @field_validator("metadata", mode="before")
    @classmethod
    def _none_metadata(cls, value: Any) -> Any:
        return {} if value is None else value


class QuizResultIn(_UTCModel):
    """A single answered question as recorded on the device."""

    model_config = ConfigDict(extra="ignore")

    result_id: UUID = Field(..., description="Client-generated result ID")
    session_id: UUID
    user_id: UUID | None = Field(None, description="Ignored; the owner is the authenticated principal")
    question_id: UUID
    selected_answer: int = Field(..., ge=0)
    is_correct: bool
    time_taken: int = Field(..., ge=0, description="Seconds")
    points_earned: int = Field(0, ge=0)
    created_at: datetime
    metadata: dict[str, Any] = Field(default_factory=dict)

    @field_validator("metadata", mode="before")
    @classmethod
    def _none_metadata(cls, value: Any) -> Any:
        return {} if value is None else value


class SyncRequest(_UTCModel):
    """Push pending writes and pull changes since ``last_sync_at``."""

    quiz_sessions: list[QuizSessionIn] = Field(default_factory=list)
    quiz_results: list[QuizResultIn] = Field(default_factory=list)
    last_sync_at: datetime = Field(..., description="Client watermark (ISO-8601)")
    force_sync: bool = Field(False, description="User-initiated sync; bypasses the auto-sync switch")
    pull_cursor: PullCursor | None = Field(
        None, description="next_cursor from the previous response when a pull was full"
    )

    @field_validator("quiz_sessions", "quiz_results", mode="before")
    @classmethod
    def _none_as_empty(cls, value: Any) -> Any:
        return [] if value is None else value


# ============================================================================
# Stored records
# ============================================================================


class QuizSessionOut(_UTCModel):
    """Server copy of a quiz session."""

    model_config = ConfigDict(from_attributes=True)

    session_id: UUID
    user_id: UUID
    mode: str
    category: str
    status: QuizSessionStatus
    current_question: int
    total_questions: int
    score: float
    time_spent: int
    started_at: datetime
    completed_at: datetime | None = None
    updated_at: datetime
    metadata: dict[str, Any] = Field(
        default_factory=dict, validation_alias=AliasChoices("metadata_json", "metadata")
    )


class QuizResultOut(_UTCModel):
    """Server copy of an answered question."""

    model_config = ConfigDict(from_attributes=True)

    result_id: UUID
    session_id: UUID
    user_id: UUID
    question_id: UUID
    selected_answer: int
    is_correct: bool
    time_taken: int
    points_earned: int
    created_at: datetime
    metadata: dict[str, Any] = Field(
        default_factory=dict, validation_alias=AliasChoices("metadata_json", "metadata")
    )


# ============================================================================
# Outcomes
# ============================================================================


class ItemOutcome(BaseModel):
    """Per-item result of a push."""

    id: UUID
    status: ItemStatus
    error_code: str | None = None
    message: str | None = None


class ConflictOut(BaseModel):
    """Stale session write; the server copy was kept."""

    type: Literal["session"] = "session"
    id: UUID
    server_data: QuizSessionOut
    client_data: QuizSessionIn
    resolution: Literal["server_wins"] = "server_wins"


class SyncResults(BaseModel):
    """Complete accounting of a push, per item and grouped by outcome."""

    sessions: list[ItemOutcome] = Field(default_factory=list)
    results: list[ItemOutcome] = Field(default_factory=list)
    synced_sessions: list[UUID] = Field(default_factory=list)
    synced_results: list[UUID] = Field(default_factory=list)
    stale_sessions: list[UUID] = Field(default_factory=list)
    duplicate_results: list[UUID] = Field(default_factory=list)
    failed_sessions: list[UUID] = Field(default_factory=list)
    failed_results: list[UUID] = Field(default_factory=list)
    conflicts: list[ConflictOut] = Field(default_factory=list)


class ServerData(BaseModel):
    """Delta pulled back to the device."""

    quiz_sessions: list[QuizSessionOut]
    quiz_results: list[QuizResultOut]
    server_timestamp: datetime = Field(..., description="Next watermark for the client")
    has_more_sessions: bool = False
    has_more_results: bool = False
    next_cursor: PullCursor | None = Field(
        None, description="Send back as pull_cursor, with the same last_sync_at, to fetch the next page"
    )


class SyncResponse(BaseModel):
    """Combined push/pull response."""

    message: str = "Sync completed"
    sync_timestamp: datetime
    sync_results: SyncResults
    server_data: ServerData
    conflicts_resolved: bool


class SuccessEnvelope(BaseModel, Generic[T]):
    """Envelope returned for every successful request."""

    success: Literal[True] = True
    data: T
