# pocket_backend/app/api/sessions.py
from __future__ import annotations

import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from ..config import Settings
from ..database import get_db
from ..schemas import (
    ConversationAttach,
    ConversationStarted,
    SessionCreate,
    SessionDetail,
    SessionEnd,
    SessionResponse,
    StatusTransition,
)
from ..services.access_control import UserPrincipal
from ..services.conversation_service import ConversationService
from ..services.reconciliation import Reconciliation
from ..services.session_repository import SessionRepository
from ..services.tavus_client import TavusClient
from .deps import current_user, get_settings, get_tavus_client

router = APIRouter()


@router.post("", response_model=SessionResponse, status_code=status.HTTP_201_CREATED)
def create_session(
    payload: SessionCreate,
    user: UserPrincipal = Depends(current_user),
    db: Session = Depends(get_db),
):
    session = SessionRepository(db).create_session(
        user.user_id,
        payload.category,
        payload.session_name,
        payload.expected_duration_minutes,
        user,
    )
    db.commit()
    return session


@router.get("", response_model=List[SessionResponse])
def list_sessions(
    category: Optional[str] = Query(default=None),
    newest_first: bool = Query(default=True),
    user: UserPrincipal = Depends(current_user),
    db: Session = Depends(get_db),
):
    return SessionRepository(db).list_sessions(user.user_id, user, category=category, newest_first=newest_first)


@router.get("/{session_id}", response_model=SessionDetail)
def get_session_detail(
    session_id: uuid.UUID,
    user: UserPrincipal = Depends(current_user),
    db: Session = Depends(get_db),
):
    return Reconciliation(db).get_session_detail(session_id, user)


@router.delete("/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_session(
    session_id: uuid.UUID,
    user: UserPrincipal = Depends(current_user),
    db: Session = Depends(get_db),
):
    SessionRepository(db).delete_session(session_id, user.user_id)
    db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{session_id}/conversation", response_model=SessionResponse)
def attach_conversation(
    session_id: uuid.UUID,
    payload: ConversationAttach,
    user: UserPrincipal = Depends(current_user),
    db: Session = Depends(get_db),
):
    session = SessionRepository(db).attach_conversation_id(session_id, payload.conversation_id, user)
    db.commit()
    return session


@router.post("/{session_id}/status", response_model=SessionResponse)
def transition_status(
    session_id: uuid.UUID,
    payload: StatusTransition,
    user: UserPrincipal = Depends(current_user),
    db: Session = Depends(get_db),
):
    session = SessionRepository(db).transition_status(
        session_id,
        payload.status.value,
        user,
        end_reason=payload.end_reason,
        actual_duration_minutes=payload.actual_duration_minutes,
    )
    db.commit()
    return session


@router.post("/{session_id}/start", response_model=ConversationStarted)
def start_conversation(
    session_id: uuid.UUID,
    user: UserPrincipal = Depends(current_user),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    tavus: TavusClient = Depends(get_tavus_client),
):
    session, conversation_url = ConversationService(db, settings, tavus).start(session_id, user)
    db.commit()
    return ConversationStarted(session=SessionResponse.model_validate(session), conversation_url=conversation_url)


@router.post("/{session_id}/end", response_model=SessionResponse)
def end_conversation(
    session_id: uuid.UUID,
    payload: Optional[SessionEnd] = None,
    user: UserPrincipal = Depends(current_user),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    tavus: TavusClient = Depends(get_tavus_client),
):
    payload = payload or SessionEnd()
    session = ConversationService(db, settings, tavus).end(
        session_id,
        user,
        actual_duration_minutes=payload.actual_duration_minutes,
        end_reason=payload.end_reason,
    )
    db.commit()
    return session
