"""Quiz progress models synced from devices (sessions and answered questions)."""

from enum import Enum as PyEnum

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Uuid,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from quizsync.db.base import Base

JSONType = JSON().with_variant(JSONB(), "postgresql")


class QuizSessionStatus(str, PyEnum):
    """Quiz session lifecycle status."""

    STARTED = "started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    ABANDONED = "abandoned"

    @property
    def is_terminal(self) -> bool:
        return self in (QuizSessionStatus.COMPLETED, QuizSessionStatus.ABANDONED)


class QuizSession(Base):
    """One quiz played on a device, keyed by a client-generated id."""

    __tablename__ = "quiz_sessions"

    session_id = Column(Uuid(as_uuid=True), primary_key=True)
    user_id = Column(Uuid(as_uuid=True), nullable=False)

    mode = Column(String(50), nullable=False, default="standard")
    category = Column(String(50), nullable=False)
    status = Column(
        Enum(
            QuizSessionStatus,
            name="quiz_session_status",
            native_enum=False,
            length=20,
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
        default=QuizSessionStatus.STARTED,
    )

    current_question = Column(Integer, nullable=False, default=0)
    total_questions = Column(Integer, nullable=False)
    score = Column(Numeric(5, 2, asdecimal=False), nullable=False, default=0.0)  # 0.00 to 100.00
    time_spent = Column(Integer, nullable=False, default=0)  # seconds

    # Device-assigned timestamps (updated_at drives last-write-wins)
    started_at = Column(DateTime(timezone=True), nullable=False)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    updated_at = Column(DateTime(timezone=True), nullable=False)

    metadata_json = Column("metadata", JSONType, nullable=False, default=dict)

    # Server receipt time of the latest accepted write
    synced_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    results = relationship(
        "QuizResult",
        back_populates="session",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="QuizResult.created_at",
    )

    __table_args__ = (
        CheckConstraint("total_questions > 0", name="ck_quiz_sessions_total_questions"),
        CheckConstraint("current_question >= 0", name="ck_quiz_sessions_current_question"),
        CheckConstraint("score >= 0 AND score <= 100", name="ck_quiz_sessions_score"),
        CheckConstraint("time_spent >= 0", name="ck_quiz_sessions_time_spent"),
        Index("ix_quiz_sessions_user_updated", "user_id", "updated_at", "session_id"),
        Index("ix_quiz_sessions_user_category", "user_id", "category"),
        Index("ix_quiz_sessions_user_started", "user_id", "started_at"),
    )


class QuizResult(Base):
    """A single answered question.

    IMPORTANT: results are facts. Rows are inserted once per result_id and
    never updated.
    """

    __tablename__ = "quiz_results"

    result_id = Column(Uuid(as_uuid=True), primary_key=True)
    session_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("quiz_sessions.session_id", ondelete="CASCADE", onupdate="CASCADE"),
        nullable=False,
    )
    user_id = Column(Uuid(as_uuid=True), nullable=False)
    question_id = Column(Uuid(as_uuid=True), nullable=False)

    selected_answer = Column(Integer, nullable=False)
    is_correct = Column(Boolean, nullable=False)
    time_taken = Column(Integer, nullable=False, default=0)  # seconds
    points_earned = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), nullable=False)
    metadata_json = Column("metadata", JSONType, nullable=False, default=dict)

    session = relationship("QuizSession", back_populates="results")

    __table_args__ = (
        CheckConstraint("selected_answer >= 0", name="ck_quiz_results_selected_answer"),
        CheckConstraint("time_taken >= 0", name="ck_quiz_results_time_taken"),
        CheckConstraint("points_earned >= 0", name="ck_quiz_results_points_earned"),
        Index("ix_quiz_results_session_id", "session_id"),
        Index("ix_quiz_results_user_created", "user_id", "created_at", "result_id"),
        Index("ix_quiz_results_question_id", "question_id"),
    )
