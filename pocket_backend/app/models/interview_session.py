# pocket_backend/app/models/interview_session.py
"""
Модель сессии интервью.

Сессия создаётся пользователем, получает conversation_id от провайдера
(Tavus) при старте разговора и проходит статусы
created → active → completed | cancelled | error.
Транскрипт и оценки привязаны к сессии через conversation_id.
"""

import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import CheckConstraint, Column, DateTime, Index, Integer, String, Text, Uuid
from sqlalchemy.orm import relationship

from ..database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class InterviewCategory(str, enum.Enum):
    """Тип интервью"""
    TECHNICAL = "technical"
    BEHAVIORAL = "behavioral"


class SessionStatus(str, enum.Enum):
    """Статусы сессии"""
    CREATED = "created"      # Создана, разговор у провайдера ещё не начат
    ACTIVE = "active"        # Разговор идёт
    COMPLETED = "completed"  # Завершена
    CANCELLED = "cancelled"  # Отменена пользователем
    ERROR = "error"          # Ошибка провайдера/клиента

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES

    @property
    def rank(self) -> int:
        if self is SessionStatus.CREATED:
            return 0
        if self is SessionStatus.ACTIVE:
            return 1
        return 2


TERMINAL_STATUSES = frozenset({SessionStatus.COMPLETED, SessionStatus.CANCELLED, SessionStatus.ERROR})


class InterviewSession(Base):
    """Модель сессии интервью"""
    __tablename__ = "interview_sessions"
    __table_args__ = (
        Index("ix_interview_sessions_user_created", "user_id", "created_at"),
        Index("ix_interview_sessions_status", "session_status"),
        CheckConstraint("expected_duration_minutes > 0", name="expected_duration_positive"),
        CheckConstraint(
            "actual_duration_minutes IS NULL OR actual_duration_minutes >= 0",
            name="actual_duration_non_negative",
        ),
        CheckConstraint("questions_answered >= 0", name="questions_answered_non_negative"),
    )

    # === Основные поля ===
    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(String(64), nullable=False, index=True, comment="Владелец (id из auth-провайдера)")

    category = Column(String(32), nullable=False)
    session_name = Column(String(255), nullable=False)

    # === Длительность ===
    expected_duration_minutes = Column(Integer, nullable=False)
    actual_duration_minutes = Column(Integer, nullable=True, comment="Заполняется при завершении")

    # === Связь с провайдером ===
    conversation_id = Column(String(255), unique=True, nullable=True,
                             comment="ID разговора у провайдера, ключ для транскрипта и оценок")

    # === Статус ===
    session_status = Column(String(32), nullable=False, default=SessionStatus.CREATED.value)
    end_reason = Column(Text, nullable=True)

    # legacy-поле: итоговый балл (композит из score_details)
    score = Column(Integer, nullable=True)
    questions_answered = Column(Integer, nullable=False, default=0)

    # === Временные метки ===
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)
    started_timestamp = Column(DateTime(timezone=True), nullable=True)
    completed_timestamp = Column(DateTime(timezone=True), nullable=True)

    # === Связи ===
    transcript = relationship(
        "InterviewTranscript",
        back_populates="session",
        uselist=False,
        cascade="all, delete-orphan",
    )
    score_details = relationship(
        "ScoreDetails",
        back_populates="session",
        uselist=False,
        cascade="all, delete-orphan",
    )

    @property
    def status(self) -> SessionStatus:
        return SessionStatus(self.session_status)
