"""interview sessions, transcripts, scores, app_config, ingest_events

Revision ID: b41d7c2e9a10
Revises:
Create Date: 2026-10-19 09:12:44.318207

"""
import uuid
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = 'b41d7c2e9a10'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


APP_CONFIG_DEFAULTS = [
    ("TAVUS_BASE_URL", "https://tavusapi.com/v2", "Base URL for Tavus API"),
    ("APP_VERSION", "1.0.0", "Current app version"),
    ("SUPPORTED_LANGUAGES", "english,spanish,french", "Comma-separated list of supported languages"),
    ("MAX_SESSION_DURATION_MINUTES", "60", "Maximum interview session duration in minutes"),
    ("MIN_SESSION_DURATION_MINUTES", "15", "Minimum interview session duration in minutes"),
    ("ENABLE_ANALYTICS", "false", "Enable analytics tracking"),
    ("MAINTENANCE_MODE", "false", "Enable maintenance mode"),
    ("FEATURE_CV_UPLOAD", "true", "Enable CV upload feature"),
    ("FEATURE_AI_SCORING", "true", "Enable AI scoring feature"),
    ("MAX_CV_FILE_SIZE_MB", "10", "Maximum CV file size in MB"),
]


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade():
    op.create_table(
        "interview_sessions",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.String(length=64), nullable=False, comment="Владелец (id из auth-провайдера)"),
        sa.Column("category", sa.String(length=32), nullable=False),
        sa.Column("session_name", sa.String(length=255), nullable=False),
        sa.Column("expected_duration_minutes", sa.Integer(), nullable=False),
        sa.Column("actual_duration_minutes", sa.Integer(), nullable=True),
        sa.Column("conversation_id", sa.String(length=255), nullable=True),
        sa.Column("session_status", sa.String(length=32), nullable=False, server_default="created"),
        sa.Column("end_reason", sa.Text(), nullable=True),
        sa.Column("score", sa.Integer(), nullable=True),
        sa.Column("questions_answered", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps(),
        sa.Column("started_timestamp", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_timestamp", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_interview_sessions")),
        sa.UniqueConstraint("conversation_id", name=op.f("uq_interview_sessions_conversation_id")),
        sa.CheckConstraint(
            "expected_duration_minutes > 0",
            name=op.f("ck_interview_sessions_expected_duration_positive"),
        ),
        sa.CheckConstraint(
            "actual_duration_minutes IS NULL OR actual_duration_minutes >= 0",
            name=op.f("ck_interview_sessions_actual_duration_non_negative"),
        ),
        sa.CheckConstraint(
            "questions_answered >= 0",
            name=op.f("ck_interview_sessions_questions_answered_non_negative"),
        ),
    )
    op.create_index(op.f("ix_interview_sessions_user_id"), "interview_sessions", ["user_id"])
    op.create_index("ix_interview_sessions_user_created", "interview_sessions", ["user_id", "created_at"])
    op.create_index("ix_interview_sessions_status", "interview_sessions", ["session_status"])

    op.create_table(
        "interview_transcripts",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("conversation_id", sa.String(length=255), nullable=False),
        sa.Column("transcript_data", sa.JSON(), nullable=False),
        sa.Column("message_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("user_message_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("assistant_message_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("webhook_timestamp", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_interview_transcripts")),
        sa.UniqueConstraint("conversation_id", name=op.f("uq_interview_transcripts_conversation_id")),
        sa.ForeignKeyConstraint(
            ["conversation_id"], ["interview_sessions.conversation_id"],
            name=op.f("fk_interview_transcripts_conversation_id_interview_sessions"),
            ondelete="CASCADE",
        ),
        sa.CheckConstraint("message_count >= 0", name=op.f("ck_interview_transcripts_message_count_non_negative")),
        sa.CheckConstraint(
            "user_message_count >= 0", name=op.f("ck_interview_transcripts_user_message_count_non_negative")
        ),
        sa.CheckConstraint(
            "assistant_message_count >= 0",
            name=op.f("ck_interview_transcripts_assistant_message_count_non_negative"),
        ),
    )

    op.create_table(
        "score_details",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("conversation_id", sa.String(length=255), nullable=False),
        sa.Column("clarity_score", sa.Integer(), nullable=False),
        sa.Column("clarity_reason", sa.Text(), nullable=True),
        sa.Column("grammar_score", sa.Integer(), nullable=False),
        sa.Column("grammar_reason", sa.Text(), nullable=True),
        sa.Column("substance_score", sa.Integer(), nullable=False),
        sa.Column("substance_reason", sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_score_details")),
        sa.UniqueConstraint("conversation_id", name=op.f("uq_score_details_conversation_id")),
        sa.ForeignKeyConstraint(
            ["conversation_id"], ["interview_sessions.conversation_id"],
            name=op.f("fk_score_details_conversation_id_interview_sessions"),
            ondelete="CASCADE",
        ),
        sa.CheckConstraint(
            "clarity_score >= 0 AND clarity_score <= 100", name=op.f("ck_score_details_clarity_score_range")
        ),
        sa.CheckConstraint(
            "grammar_score >= 0 AND grammar_score <= 100", name=op.f("ck_score_details_grammar_score_range")
        ),
        sa.CheckConstraint(
            "substance_score >= 0 AND substance_score <= 100", name=op.f("ck_score_details_substance_score_range")
        ),
    )

    app_config = op.create_table(
        "app_config",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("key_name", sa.String(length=128), nullable=False),
        sa.Column("key_value", sa.Text(), nullable=False),
        sa.Column("is_public", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("description", sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_app_config")),
        sa.UniqueConstraint("key_name", name=op.f("uq_app_config_key_name")),
    )
    op.create_index(op.f("ix_app_config_is_public"), "app_config", ["is_public"])

    op.create_table(
        "ingest_events",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("kind", sa.String(length=32), nullable=False),
        sa.Column("conversation_id", sa.String(length=255), nullable=False),
        sa.Column("payload", sa.JSON(), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="pending"),
        sa.Column("attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("next_attempt_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_error", sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_ingest_events")),
    )
    op.create_index(op.f("ix_ingest_events_conversation_id"), "ingest_events", ["conversation_id"])
    op.create_index("ix_ingest_events_due", "ingest_events", ["status", "next_attempt_at"])

    op.bulk_insert(
        app_config,
        [
            {"id": uuid.uuid4(), "key_name": key, "key_value": value, "is_public": True, "description": desc}
            for key, value, desc in APP_CONFIG_DEFAULTS
        ],
    )


def downgrade():
    op.drop_index("ix_ingest_events_due", table_name="ingest_events")
    op.drop_index(op.f("ix_ingest_events_conversation_id"), table_name="ingest_events")
    op.drop_table("ingest_events")
    op.drop_index(op.f("ix_app_config_is_public"), table_name="app_config")
    op.drop_table("app_config")
    op.drop_table("score_details")
    op.drop_table("interview_transcripts")
    op.drop_index("ix_interview_sessions_status", table_name="interview_sessions")
    op.drop_index("ix_interview_sessions_user_created", table_name="interview_sessions")
    op.drop_index(op.f("ix_interview_sessions_user_id"), table_name="interview_sessions")
    op.drop_table("interview_sessions")
