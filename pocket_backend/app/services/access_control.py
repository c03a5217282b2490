# pocket_backend/app/services/access_control.py
"""Row-level authorization applied in the data-access layer.

Every query over interview data goes through the helpers below, so ownership
cannot be skipped by a caller that forgets to check it at the API level.
Transcripts and scores have no user column of their own: they are visible
through an implicit join on ``interview_sessions.conversation_id``.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Union

from sqlalchemy.orm import Query, Session

from ..errors import AuthorizationError, NotFoundError
from ..models import InterviewSession, InterviewTranscript, ScoreDetails

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UserPrincipal:
    """End user authenticated by the auth provider."""

    user_id: str


@dataclass(frozen=True)
class ServicePrincipal:
    """Privileged ingest identity (provider webhooks, scoring worker)."""

    name: str = "service"


Principal = Union[UserPrincipal, ServicePrincipal]


def require_user(principal: Principal) -> UserPrincipal:
    if not isinstance(principal, UserPrincipal):
        logger.warning(f"{principal!r} tried to read user data")
        raise AuthorizationError("Service principal cannot read user data")
    return principal


def require_service(principal: Principal) -> ServicePrincipal:
    if not isinstance(principal, ServicePrincipal):
        logger.warning(f"{principal!r} tried to write ingest data")
        raise AuthorizationError("Only the service principal may write ingest data")
    return principal


def owned_sessions(db: Session, principal: Principal) -> Query:
    """Query over sessions the user owns."""
    user = require_user(principal)
    return db.query(InterviewSession).filter(InterviewSession.user_id == user.user_id)


def load_session(db: Session, session_id: uuid.UUID, principal: Principal) -> InterviewSession:
    """Сессия для изменения: пользователь: только свою, сервис: любую."""
    session = db.get(InterviewSession, session_id)
    if session is None:
        raise NotFoundError(f"Session {session_id} not found")
    if isinstance(principal, UserPrincipal) and session.user_id != principal.user_id:
        logger.warning(f"user {principal.user_id} denied access to session {session_id}")
        raise AuthorizationError("Session belongs to another user")
    return session


def readable_session(db: Session, session_id: uuid.UUID, principal: Principal) -> InterviewSession:
    require_user(principal)
    return load_session(db, session_id, principal)


def _owner_of_conversation(db: Session, conversation_id: str) -> InterviewSession:
    session = (
        db.query(InterviewSession)
        .filter(InterviewSession.conversation_id == conversation_id)
        .first()
    )
    if session is None:
        raise NotFoundError(f"Conversation {conversation_id} not found")
    return session


def visible_transcripts(db: Session, principal: Principal) -> Query:
    user = require_user(principal)
    return (
        db.query(InterviewTranscript)
        .join(InterviewSession, InterviewSession.conversation_id == InterviewTranscript.conversation_id)
        .filter(InterviewSession.user_id == user.user_id)
        .filter(InterviewSession.conversation_id.isnot(None))
    )


def visible_scores(db: Session, principal: Principal) -> Query:
    user = require_user(principal)
    return (
        db.query(ScoreDetails)
        .join(InterviewSession, InterviewSession.conversation_id == ScoreDetails.conversation_id)
        .filter(InterviewSession.user_id == user.user_id)
        .filter(InterviewSession.conversation_id.isnot(None))
    )


def check_conversation_owner(db: Session, conversation_id: str, principal: Principal) -> InterviewSession:
    """NotFoundError для неизвестного conversation_id, AuthorizationError для чужого."""
    user = require_user(principal)
    session = _owner_of_conversation(db, conversation_id)
    if session.user_id != user.user_id:
        logger.warning(f"user {user.user_id} denied access to conversation {conversation_id}")
        raise AuthorizationError("Conversation belongs to another user")
    return session
