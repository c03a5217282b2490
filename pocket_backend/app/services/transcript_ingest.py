# pocket_backend/app/services/transcript_ingest.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, List, Mapping, Optional, Sequence

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..errors import ConflictError, NotFoundError, ValidationError
from ..models import InterviewTranscript, MessageRole
from .access_control import Principal, require_service
from .session_repository import SessionRepository

logger = logging.getLogger(__name__)

_ROLES = {r.value for r in MessageRole}


@dataclass(frozen=True)
class MessageCounts:
    total: int
    user: int
    assistant: int


def normalize_messages(messages: Sequence[Any]) -> List[dict]:
    """Приводит сообщения к [{"role", "content"}], роль в нижнем регистре, контент без пробелов по краям."""
    if not isinstance(messages, (list, tuple)):
        raise ValidationError("transcript messages must be a list")

    normalized: List[dict] = []
    for i, item in enumerate(messages):
        if isinstance(item, Mapping):
            role, content = item.get("role"), item.get("content")
        else:
            role, content = getattr(item, "role", None), getattr(item, "content", None)

        role = str(role or "").strip().lower()
        if role not in _ROLES:
            raise ValidationError(f"message #{i}: unknown role '{role}'")
        if content is None:
            content = ""
        if not isinstance(content, str):
            raise ValidationError(f"message #{i}: content must be a string")
        normalized.append({"role": role, "content": content.strip()})
    return normalized


def count_messages(messages: Sequence[dict]) -> MessageCounts:
    # system учитывается только в общем количестве
    user = sum(1 for m in messages if m["role"] == MessageRole.USER.value)
    assistant = sum(1 for m in messages if m["role"] == MessageRole.ASSISTANT.value)
    return MessageCounts(total=len(messages), user=user, assistant=assistant)


class TranscriptIngest:
    def __init__(self, db: Session):
        self.db = db
        self.sessions = SessionRepository(db)

    def ingest_transcript(
        self,
        conversation_id: str,
        messages: Sequence[Any],
        webhook_timestamp: Optional[datetime],
        principal: Principal,
    ) -> InterviewTranscript:
        """Upsert транскрипта по conversation_id: последняя запись побеждает, повтор того же payload ничего не меняет."""
        require_service(principal)

        session = self.sessions.get_by_conversation_id(conversation_id)
        if session is None:
            raise NotFoundError(f"Conversation {conversation_id} not found")

        data = normalize_messages(messages)
        counts = count_messages(data)

        transcript = (
            self.db.query(InterviewTranscript)
            .filter(InterviewTranscript.conversation_id == conversation_id)
            .first()
        )
        if transcript is not None and transcript.transcript_data == data:
            logger.info(f"transcript {conversation_id}: identical redelivery, skipped")
            return transcript

        now = datetime.now(timezone.utc)
        if transcript is None:
            transcript = InterviewTranscript(conversation_id=conversation_id, created_at=now)
            self.db.add(transcript)

        transcript.transcript_data = data
        transcript.message_count = counts.total
        transcript.user_message_count = counts.user
        transcript.assistant_message_count = counts.assistant
        transcript.webhook_timestamp = webhook_timestamp
        transcript.updated_at = now

        self.sessions.record_questions_answered(conversation_id, counts.user)

        try:
            self.db.flush()
        except IntegrityError as exc:
            raise ConflictError(f"Transcript for {conversation_id} was written concurrently") from exc

        logger.info(
            f"transcript {conversation_id} stored: {counts.total} messages "
            f"(user={counts.user}, assistant={counts.assistant})"
        )
        return transcript
