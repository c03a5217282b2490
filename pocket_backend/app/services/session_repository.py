# pocket_backend/app/services/session_repository.py
from __future__ import annotations

import logging
import math
import uuid
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..errors import AuthorizationError, ConflictError, InvalidTransitionError, NotFoundError, ValidationError
from ..models import InterviewCategory, InterviewSession, SessionStatus
from .access_control import (
    Principal,
    UserPrincipal,
    load_session,
    owned_sessions,
    require_service,
    require_user,
)

logger = logging.getLogger(__name__)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # sqlite отдаёт naive datetime даже для timezone=True
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def parse_category(raw: str) -> InterviewCategory:
    try:
        return InterviewCategory(str(raw or "").strip().lower())
    except ValueError:
        allowed = ", ".join(c.value for c in InterviewCategory)
        raise ValidationError(f"Unknown category '{raw}', expected one of: {allowed}") from None


def default_session_name(category: InterviewCategory, now: datetime) -> str:
    return f"{category.value.title()} Practice {now:%Y-%m-%d %H:%M}"


def elapsed_minutes(started: datetime, finished: datetime) -> int:
    seconds = (as_utc(finished) - as_utc(started)).total_seconds()
    return max(0, math.floor(seconds / 60 + 0.5))


class SessionRepository:
    """CRUD по сессиям интервью и переходы статусов."""

    def __init__(self, db: Session):
        self.db = db

    def create_session(
        self,
        user_id: str,
        category: str,
        session_name: Optional[str],
        expected_duration_minutes: int,
        principal: Principal,
    ) -> InterviewSession:
        user = require_user(principal)
        if user.user_id != user_id:
            raise AuthorizationError("Sessions can only be created for the calling user")

        parsed = parse_category(category)
        if not isinstance(expected_duration_minutes, int) or expected_duration_minutes <= 0:
            raise ValidationError("expected_duration_minutes must be a positive integer")

        now = datetime.now(timezone.utc)
        name = (session_name or "").strip() or default_session_name(parsed, now)
        session = InterviewSession(
            user_id=user_id,
            category=parsed.value,
            session_name=name,
            expected_duration_minutes=expected_duration_minutes,
            session_status=SessionStatus.CREATED.value,
            questions_answered=0,
            created_at=now,
            updated_at=now,
        )
        self.db.add(session)
        self.db.flush()
        logger.info(f"session {session.id} created for user {user_id} ({parsed.value}, {expected_duration_minutes}m)")
        return session

    def get_session(self, session_id: uuid.UUID, principal: Principal) -> InterviewSession:
        return load_session(self.db, session_id, principal)

    def get_by_conversation_id(self, conversation_id: str) -> Optional[InterviewSession]:
        return (
            self.db.query(InterviewSession)
            .filter(InterviewSession.conversation_id == conversation_id)
            .first()
        )

    def attach_conversation_id(
        self, session_id: uuid.UUID, conversation_id: str, principal: Principal
    ) -> InterviewSession:
        conversation_id = (conversation_id or "").strip()
        if not conversation_id:
            raise ValidationError("conversation_id must not be empty")

        session = load_session(self.db, session_id, principal)
        if session.conversation_id == conversation_id:
            return session
        if session.conversation_id is not None:
            raise ConflictError(
                f"Session {session_id} already bound to conversation {session.conversation_id}"
            )

        other = self.get_by_conversation_id(conversation_id)
        if other is not None and other.id != session.id:
            raise ConflictError(f"Conversation {conversation_id} already attached to another session")

        session.conversation_id = conversation_id
        try:
            self.db.flush()
        except IntegrityError as exc:
            # гонка: тот же conversation_id записан параллельным запросом
            raise ConflictError(f"Conversation {conversation_id} already attached to another session") from exc
        logger.info(f"session {session_id} attached to conversation {conversation_id}")
        return session

    def transition_status(
        self,
        session_id: uuid.UUID,
        new_status: SessionStatus | str,
        principal: Principal,
        end_reason: Optional[str] = None,
        actual_duration_minutes: Optional[int] = None,
    ) -> InterviewSession:
        session = load_session(self.db, session_id, principal)
        return self._apply_transition(session, new_status, end_reason, actual_duration_minutes)

    def transition_by_conversation(
        self,
        conversation_id: str,
        new_status: SessionStatus | str,
        principal: Principal,
        end_reason: Optional[str] = None,
        actual_duration_minutes: Optional[int] = None,
    ) -> InterviewSession:
        """Переход по событию провайдера (lifecycle webhook)."""
        require_service(principal)
        session = self.get_by_conversation_id(conversation_id)
        if session is None:
            raise NotFoundError(f"Conversation {conversation_id} not found")
        return self._apply_transition(session, new_status, end_reason, actual_duration_minutes)

    def _apply_transition(
        self,
        session: InterviewSession,
        new_status: SessionStatus | str,
        end_reason: Optional[str],
        actual_duration_minutes: Optional[int],
    ) -> InterviewSession:
        try:
            target = SessionStatus(new_status)
        except ValueError:
            raise ValidationError(f"Unknown session status '{new_status}'") from None

        current = session.status
        if current.is_terminal:
            raise InvalidTransitionError(f"Session {session.id} is already {current.value}")
        if target.rank <= current.rank:
            raise InvalidTransitionError(f"Cannot move session {session.id} from {current.value} to {target.value}")
        if actual_duration_minutes is not None and actual_duration_minutes < 0:
            raise ValidationError("actual_duration_minutes must be >= 0")

        now = datetime.now(timezone.utc)
        session.session_status = target.value

        if target is SessionStatus.ACTIVE:
            session.started_timestamp = now
        elif target is SessionStatus.COMPLETED:
            session.completed_timestamp = now
            if actual_duration_minutes is None:
                started = session.started_timestamp or session.created_at
                actual_duration_minutes = elapsed_minutes(started, now)
            session.actual_duration_minutes = actual_duration_minutes
            if end_reason:
                session.end_reason = end_reason
        else:
            # cancelled / error всегда с причиной
            session.end_reason = end_reason or target.value
            if actual_duration_minutes is not None:
                session.actual_duration_minutes = actual_duration_minutes

        session.updated_at = now
        self.db.flush()
        logger.info(f"session {session.id}: {current.value} -> {target.value} (reason={session.end_reason})")
        return session

    def list_sessions(
        self,
        user_id: str,
        principal: Principal,
        category: Optional[str] = None,
        newest_first: bool = True,
    ) -> List[InterviewSession]:
        user = require_user(principal)
        if user.user_id != user_id:
            raise AuthorizationError("Cannot list sessions of another user")

        query = owned_sessions(self.db, user)
        if category:
            query = query.filter(InterviewSession.category == parse_category(category).value)
        order = InterviewSession.created_at.desc() if newest_first else InterviewSession.created_at.asc()
        return query.order_by(order).all()

    def delete_session(self, session_id: uuid.UUID, requesting_user_id: str) -> None:
        principal = UserPrincipal(requesting_user_id)
        session = load_session(self.db, session_id, principal)
        self.db.delete(session)  # транскрипт и оценка удаляются каскадом
        self.db.flush()
        logger.info(f"session {session_id} deleted by user {requesting_user_id}")

    def record_questions_answered(self, conversation_id: str, count: int) -> None:
        session = self.get_by_conversation_id(conversation_id)
        if session is None:
            return
        session.questions_answered = max(0, count)
        session.updated_at = datetime.now(timezone.utc)

    def record_score(self, conversation_id: str, composite: int) -> None:
        session = self.get_by_conversation_id(conversation_id)
        if session is None:
            return
        session.score = composite
        session.updated_at = datetime.now(timezone.utc)
