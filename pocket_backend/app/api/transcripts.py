# pocket_backend/app/api/transcripts.py
from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..database import get_db
from ..schemas import TranscriptAnalytics, TranscriptResponse
from ..services.access_control import UserPrincipal
from ..services.reconciliation import Reconciliation
from .deps import current_user

router = APIRouter()


@router.get("", response_model=List[TranscriptResponse])
def list_transcripts(user: UserPrincipal = Depends(current_user), db: Session = Depends(get_db)):
    return Reconciliation(db).list_transcripts(user)


@router.get("/analytics", response_model=TranscriptAnalytics)
def transcript_analytics(user: UserPrincipal = Depends(current_user), db: Session = Depends(get_db)):
    """Итоги по всем транскриптам пользователя."""
    return Reconciliation(db).transcript_analytics(user)


@router.get("/{conversation_id}", response_model=TranscriptResponse)
def get_transcript(
    conversation_id: str,
    user: UserPrincipal = Depends(current_user),
    db: Session = Depends(get_db),
):
    return Reconciliation(db).get_transcript(conversation_id, user)
