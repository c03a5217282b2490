# pocket_backend/app/schemas/session.py
"""Pydantic v2 схемы для работы с сессиями интервью"""
from __future__ import annotations

import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from ..models.interview_session import SessionStatus
from .score import ScoreResponse
from .transcript import TranscriptResponse


class Availability(str, Enum):
    AVAILABLE = "available"
    PENDING = "pending"


class SessionCreate(BaseModel):
    """Схема для создания сессии. Категория и длительность проверяются в репозитории."""
    category: str
    session_name: Optional[str] = Field(default=None, max_length=255)
    expected_duration_minutes: int


class ConversationAttach(BaseModel):
    conversation_id: str = Field(..., min_length=1, max_length=255)


class StatusTransition(BaseModel):
    status: SessionStatus
    end_reason: Optional[str] = None
    actual_duration_minutes: Optional[int] = Field(default=None, ge=0)


class SessionEnd(BaseModel):
    actual_duration_minutes: Optional[int] = Field(default=None, ge=0)
    end_reason: str = "manual"


class SessionResponse(BaseModel):
    """Карточка сессии"""
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    user_id: str
    category: str
    session_name: str

    expected_duration_minutes: int
    actual_duration_minutes: Optional[int] = None

    conversation_id: Optional[str] = None
    session_status: SessionStatus
    end_reason: Optional[str] = None
    score: Optional[int] = None
    questions_answered: int = 0

    created_at: datetime
    updated_at: datetime
    started_timestamp: Optional[datetime] = None
    completed_timestamp: Optional[datetime] = None


class ConversationStarted(BaseModel):
    session: SessionResponse
    conversation_url: Optional[str] = None


class SessionDetail(BaseModel):
    """Сессия вместе с транскриптом и оценкой; отсутствие данных отдаётся как pending."""
    session: SessionResponse
    transcript_status: Availability
    transcript: Optional[TranscriptResponse] = None
    score_status: Availability
    score: Optional[ScoreResponse] = None
