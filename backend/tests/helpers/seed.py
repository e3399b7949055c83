"""Test seed helpers for building sync payloads and stored records."""

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any

from quizsync.schemas.sync import QuizResultIn, QuizSessionIn
from quizsync.sync.store import RecordStore

BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)


def ts(minutes: int = 0, base: datetime = BASE_TIME) -> datetime:
    """Deterministic timestamp ``minutes`` after the base time."""
    return base + timedelta(minutes=minutes)


def iso(value: datetime) -> str:
    return value.isoformat().replace("+00:00", "Z")


def session_payload(
    session_id: uuid.UUID | None = None,
    status: str = "started",
    updated_at: datetime | None = None,
    **overrides: Any,
) -> dict[str, Any]:
    """
    JSON body for one quiz session, as a device would send it.

    Args:
        session_id: Client-generated id (random when omitted)
        status: Session status
        updated_at: Device timestamp of the last local change
        **overrides: Any other field

    Returns:
        JSON-ready dict
    """
    payload: dict[str, Any] = {
        "session_id": str(session_id or uuid.uuid4()),
        "mode": "standard",
        "category": "anatomy",
        "status": status,
        "current_question": 0,
        "total_questions": 10,
        "score": 0,
        "time_spent": 0,
        "started_at": iso(BASE_TIME),
        "updated_at": iso(updated_at or BASE_TIME),
        "metadata": {},
    }
    for key, value in overrides.items():
        payload[key] = iso(value) if isinstance(value, datetime) else value
    return payload


def result_payload(
    session_id: uuid.UUID | str,
    result_id: uuid.UUID | None = None,
    created_at: datetime | None = None,
    **overrides: Any,
) -> dict[str, Any]:
    """JSON body for one answered question."""
    payload: dict[str, Any] = {
        "result_id": str(result_id or uuid.uuid4()),
        "session_id": str(session_id),
        "question_id": str(uuid.uuid4()),
        "selected_answer": 1,
        "is_correct": True,
        "time_taken": 12,
        "points_earned": 10,
        "created_at": iso(created_at or ts(1)),
        "metadata": {},
    }
    for key, value in overrides.items():
        payload[key] = iso(value) if isinstance(value, datetime) else value
    return payload


def make_session(**kwargs: Any) -> QuizSessionIn:
    return QuizSessionIn.model_validate(session_payload(**kwargs))


def make_result(session_id: uuid.UUID | str, **kwargs: Any) -> QuizResultIn:
    return QuizResultIn.model_validate(result_payload(session_id, **kwargs))


def seed_session(store: RecordStore, owner_id: uuid.UUID, **kwargs: Any) -> QuizSessionIn:
    """Store a session for ``owner_id`` and commit."""
    record = make_session(**kwargs)
    assert store.upsert_session(owner_id, record)
    store.commit()
    return record


def seed_result(
    store: RecordStore, owner_id: uuid.UUID, session_id: uuid.UUID | str, **kwargs: Any
) -> QuizResultIn:
    """Store a result for ``owner_id`` and commit."""
    record = make_result(session_id, **kwargs)
    assert store.insert_result_if_absent(owner_id, record)
    store.commit()
    return record
