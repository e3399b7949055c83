"""Create quiz progress tables

Revision ID: 001
Revises:
Create Date: 2026-10-19 10:00:00.000000

"""

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "quiz_sessions",
        sa.Column("session_id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("mode", sa.String(50), nullable=False, server_default="standard"),
        sa.Column("category", sa.String(50), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="started"),
        sa.Column("current_question", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_questions", sa.Integer(), nullable=False),
        sa.Column("score", sa.Numeric(5, 2), nullable=False, server_default="0"),
        sa.Column("time_spent", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            "metadata",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
        sa.Column(
            "synced_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()
        ),
        sa.CheckConstraint(
            "status IN ('started', 'in_progress', 'completed', 'abandoned')",
            name="quiz_session_status",
        ),
        sa.CheckConstraint("total_questions > 0", name="ck_quiz_sessions_total_questions"),
        sa.CheckConstraint("current_question >= 0", name="ck_quiz_sessions_current_question"),
        sa.CheckConstraint("score >= 0 AND score <= 100", name="ck_quiz_sessions_score"),
        sa.CheckConstraint("time_spent >= 0", name="ck_quiz_sessions_time_spent"),
    )
    op.create_index(
        "ix_quiz_sessions_user_updated", "quiz_sessions", ["user_id", "updated_at", "session_id"]
    )
    op.create_index("ix_quiz_sessions_user_category", "quiz_sessions", ["user_id", "category"])
    op.create_index("ix_quiz_sessions_user_started", "quiz_sessions", ["user_id", "started_at"])

    op.create_table(
        "quiz_results",
        sa.Column("result_id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "session_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("quiz_sessions.session_id", ondelete="CASCADE", onupdate="CASCADE"),
            nullable=False,
        ),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("question_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("selected_answer", sa.Integer(), nullable=False),
        sa.Column("is_correct", sa.Boolean(), nullable=False),
        sa.Column("time_taken", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("points_earned", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            "metadata",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
        sa.CheckConstraint("selected_answer >= 0", name="ck_quiz_results_selected_answer"),
        sa.CheckConstraint("time_taken >= 0", name="ck_quiz_results_time_taken"),
        sa.CheckConstraint("points_earned >= 0", name="ck_quiz_results_points_earned"),
    )
    op.create_index("ix_quiz_results_session_id", "quiz_results", ["session_id"])
    op.create_index(
        "ix_quiz_results_user_created", "quiz_results", ["user_id", "created_at", "result_id"]
    )
    op.create_index("ix_quiz_results_question_id", "quiz_results", ["question_id"])


def downgrade() -> None:
    op.drop_index("ix_quiz_results_question_id", table_name="quiz_results")
    op.drop_index("ix_quiz_results_user_created", table_name="quiz_results")
    op.drop_index("ix_quiz_results_session_id", table_name="quiz_results")
    op.drop_table("quiz_results")

    op.drop_index("ix_quiz_sessions_user_started", table_name="quiz_sessions")
    op.drop_index("ix_quiz_sessions_user_category", table_name="quiz_sessions")
    op.drop_index("ix_quiz_sessions_user_updated", table_name="quiz_sessions")
    op.drop_table("quiz_sessions")
