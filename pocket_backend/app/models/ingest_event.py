# pocket_backend/app/models/ingest_event.py
"""
Журнал входящих событий провайдера (вебхуки, оценки).

Событие сначала записывается, затем применяется идемпотентным upsert'ом.
Если сессия для conversation_id ещё не существует (вебхук пришёл раньше),
событие остаётся pending и повторяется с экспоненциальной задержкой.
"""

import enum
import uuid

from sqlalchemy import JSON, Column, DateTime, Index, Integer, String, Text, Uuid

from ..database import Base
from .interview_session import utcnow


class IngestKind(str, enum.Enum):
    TRANSCRIPT = "transcript"
    SCORE = "score"
    LIFECYCLE = "lifecycle"


class IngestStatus(str, enum.Enum):
    PENDING = "pending"
    APPLIED = "applied"
    SKIPPED = "skipped"    # событие устарело (например, shutdown для уже завершённой сессии)
    FAILED = "failed"      # невалидный payload или исчерпаны попытки


class IngestEvent(Base):
    __tablename__ = "ingest_events"
    __table_args__ = (
        Index("ix_ingest_events_due", "status", "next_attempt_at"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    kind = Column(String(32), nullable=False)
    conversation_id = Column(String(255), nullable=False, index=True)
    payload = Column(JSON, nullable=False, default=dict)

    status = Column(String(32), nullable=False, default=IngestStatus.PENDING.value)
    attempts = Column(Integer, nullable=False, default=0)
    next_attempt_at = Column(DateTime(timezone=True), nullable=True)
    last_error = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)
