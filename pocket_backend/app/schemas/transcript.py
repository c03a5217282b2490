# pocket_backend/app/schemas/transcript.py
from __future__ import annotations

import uuid
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict


class TranscriptMessage(BaseModel):
    role: Literal["user", "assistant", "system"]
    content: str


class TranscriptResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    conversation_id: str
    transcript_data: List[TranscriptMessage]
    message_count: int
    user_message_count: int
    assistant_message_count: int
    webhook_timestamp: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class TranscriptAnalytics(BaseModel):
    """Сводка по транскриптам пользователя; средние значения целые."""
    total_transcripts: int
    total_messages: int
    total_user_messages: int
    total_assistant_messages: int
    average_messages_per_session: int
    average_user_responses_per_session: int
    engagement_rate: float
