"""Schemas for the read-only progress view and narrow partial updates."""

from datetime import datetime
from typing import Annotated, Any, Literal, Union
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from quizsync.models.progress import QuizSessionStatus
from quizsync.schemas.sync import QuizResultOut, QuizSessionOut

MAX_METADATA_KEYS = 50


# ============================================================================
# Progress view (GET)
# ============================================================================


class ProgressSessionOut(QuizSessionOut):
    """Session with its answered questions."""

    quiz_results: list[QuizResultOut] = Field(default_factory=list)


class ProgressStats(BaseModel):
    """Aggregate progress for the owner (optionally within one category)."""

    total_sessions: int = 0
    completed_sessions: int = 0
    completion_rate: float = 0.0
    average_score: float = 0.0
    total_time_spent: int = 0
    total_questions_answered: int = 0
    accuracy_rate: float = 0.0
    streak_days: int = 0
    last_activity: datetime | None = None


class ProgressPagination(BaseModel):
    limit: int
    offset: int
    has_more: bool


class ProgressListOut(BaseModel):
    sessions: list[ProgressSessionOut]
    stats: ProgressStats | None = None
    total_count: int
    category: str
    pagination: ProgressPagination
    last_updated: datetime


# ============================================================================
# Partial update (PUT)
# ============================================================================


class StatusUpdate(BaseModel):
    field: Literal["status"] = "status"
    value: QuizSessionStatus


class CurrentQuestionUpdate(BaseModel):
    field: Literal["current_question"] = "current_question"
    value: int = Field(..., ge=0)


class ScoreUpdate(BaseModel):
    field: Literal["score"] = "score"
    value: float = Field(..., ge=0, le=100)


class TimeSpentUpdate(BaseModel):
    field: Literal["time_spent"] = "time_spent"
    value: int = Field(..., ge=0)


class MetadataUpdate(BaseModel):
    """Replaces the metadata object wholesale; keys are never merged."""

    field: Literal["metadata"] = "metadata"
    value: dict[str, Any]


FieldUpdate = Annotated[
    Union[StatusUpdate, CurrentQuestionUpdate, ScoreUpdate, TimeSpentUpdate, MetadataUpdate],
    Field(discriminator="field"),
]


class SessionUpdates(BaseModel):
    """Allow-listed fields a client may change without re-uploading the session."""

    model_config = ConfigDict(extra="forbid")

    status: QuizSessionStatus | None = None
    current_question: int | None = Field(None, ge=0)
    score: float | None = Field(None, ge=0, le=100)
    time_spent: int | None = Field(None, ge=0)
    metadata: dict[str, Any] | None = None

    @field_validator("metadata")
    @classmethod
    def _bounded_metadata(cls, value: dict[str, Any] | None) -> dict[str, Any] | None:
        if value is not None and len(value) > MAX_METADATA_KEYS:
            raise ValueError(f"metadata may hold at most {MAX_METADATA_KEYS} keys")
        return value

    def to_field_updates(self) -> list[FieldUpdate]:
        """Explicitly provided, non-null fields as tagged updates."""
        builders = {
            "status": StatusUpdate,
            "current_question": CurrentQuestionUpdate,
            "score": ScoreUpdate,
            "time_spent": TimeSpentUpdate,
            "metadata": MetadataUpdate,
        }
        updates: list[FieldUpdate] = []
        for name, builder in builders.items():
            value = getattr(self, name)
            if name in self.model_fields_set and value is not None:
                updates.append(builder(value=value))
        return updates


class ProgressUpdateRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    session_id: UUID
    updates: SessionUpdates


class ProgressUpdateOut(BaseModel):
    message: str = "Progress updated"
    session_id: UUID
    updated_fields: list[str]
    updated_at: datetime
