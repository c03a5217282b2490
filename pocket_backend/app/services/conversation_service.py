# pocket_backend/app/services/conversation_service.py
from __future__ import annotations

import logging
import uuid
from typing import Optional, Tuple

from sqlalchemy.orm import Session

from ..config import Settings
from ..errors import ConflictError, InvalidTransitionError
from ..models import InterviewSession, SessionStatus
from .access_control import Principal, require_user
from .session_repository import SessionRepository
from .tavus_client import TavusClient

logger = logging.getLogger(__name__)

TECHNICAL_CONTEXT = (
    "You are an expert technical interviewer. Evaluate technical knowledge, problem-solving approach, "
    "code quality and system design understanding. Ask one question at a time, build on previous answers, "
    "encourage the candidate to think out loud and give hints when they get stuck."
)
BEHAVIORAL_CONTEXT = (
    "You are an experienced behavioral interviewer. Ask about past situations using the STAR format "
    "(situation, task, action, result). Ask one question at a time and follow up on vague answers."
)


def conversational_context(category: str) -> str:
    return BEHAVIORAL_CONTEXT if category == "behavioral" else TECHNICAL_CONTEXT


class ConversationService:
    """Старт и завершение разговора у провайдера для сессии пользователя."""

    def __init__(self, db: Session, settings: Settings, client: TavusClient):
        self.db = db
        self.settings = settings
        self.client = client
        self.sessions = SessionRepository(db)

    def start(self, session_id: uuid.UUID, principal: Principal) -> Tuple[InterviewSession, str]:
        require_user(principal)
        session = self.sessions.get_session(session_id, principal)
        if session.status is not SessionStatus.CREATED:
            raise InvalidTransitionError(f"Session {session_id} is {session.status.value}, cannot start")
        if session.conversation_id is not None:
            raise ConflictError(f"Session {session_id} already has conversation {session.conversation_id}")

        conversation_id, conversation_url = self.client.create_conversation(
            persona_id=self.settings.persona_for(session.category),
            conversation_name=session.session_name,
            conversational_context=conversational_context(session.category),
            callback_url=self.settings.webhook_url,
            max_call_duration_seconds=session.expected_duration_minutes * 60,
        )

        try:
            self.sessions.attach_conversation_id(session_id, conversation_id, principal)
        except ConflictError:
            # разговор у провайдера уже создан, закрываем его
            self.client.end_conversation(conversation_id)
            raise
        self.sessions.transition_status(session_id, SessionStatus.ACTIVE, principal)
        logger.info(f"session {session_id} started, conversation {conversation_id}")
        return session, conversation_url

    def end(
        self,
        session_id: uuid.UUID,
        principal: Principal,
        actual_duration_minutes: Optional[int] = None,
        end_reason: str = "manual",
    ) -> InterviewSession:
        require_user(principal)
        session = self.sessions.get_session(session_id, principal)
        if session.status.is_terminal:
            raise InvalidTransitionError(f"Session {session_id} is already {session.status.value}")

        if session.conversation_id:
            self.client.end_conversation(session.conversation_id)
        return self.sessions.transition_status(
            session_id,
            SessionStatus.COMPLETED,
            principal,
            end_reason=end_reason,
            actual_duration_minutes=actual_duration_minutes,
        )
