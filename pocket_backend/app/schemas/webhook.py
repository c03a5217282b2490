# pocket_backend/app/schemas/webhook.py
"""Схема вебхука провайдера (Tavus callback_url)."""
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

TRANSCRIPTION_READY = "application.transcription_ready"
REPLICA_JOINED = "system.replica_joined"
SHUTDOWN = "system.shutdown"


class ProviderWebhook(BaseModel):
    """Payload is kept loose: the provider adds fields between API versions."""
    model_config = ConfigDict(extra="allow")

    conversation_id: Optional[str] = None
    event_type: Optional[str] = None
    message_type: Optional[str] = None
    timestamp: Optional[datetime] = None
    properties: Dict[str, Any] = Field(default_factory=dict)


class WebhookAck(BaseModel):
    status: str
    conversation_id: Optional[str] = None
    event_type: Optional[str] = None
    event_id: Optional[str] = None
