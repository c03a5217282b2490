# pocket_backend/app/services/reconciliation.py
"""
Сборка сессии с транскриптом и оценкой для клиента.

Транскрипт и оценка приходят асинхронно и в любом порядке, поэтому их
отсутствие отдаётся как ``pending``, а не как ошибка.
"""

from __future__ import annotations

import logging
import uuid
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..errors import NotFoundError
from ..models import InterviewTranscript, ScoreDetails
from ..schemas import (
    Availability,
    ScoreResponse,
    SessionDetail,
    SessionResponse,
    TranscriptAnalytics,
    TranscriptResponse,
)
from .access_control import (
    Principal,
    UserPrincipal,
    check_conversation_owner,
    readable_session,
    visible_scores,
    visible_transcripts,
)

logger = logging.getLogger(__name__)


class Reconciliation:
    def __init__(self, db: Session):
        self.db = db

    def get_session_detail(self, session_id: uuid.UUID, principal: Principal) -> SessionDetail:
        session = readable_session(self.db, session_id, principal)

        transcript: Optional[InterviewTranscript] = None
        score: Optional[ScoreDetails] = None
        if session.conversation_id is not None:
            transcript = (
                visible_transcripts(self.db, principal)
                .filter(InterviewTranscript.conversation_id == session.conversation_id)
                .first()
            )
            score = (
                visible_scores(self.db, principal)
                .filter(ScoreDetails.conversation_id == session.conversation_id)
                .first()
            )

        return SessionDetail(
            session=SessionResponse.model_validate(session),
            transcript_status=Availability.AVAILABLE if transcript else Availability.PENDING,
            transcript=TranscriptResponse.model_validate(transcript) if transcript else None,
            score_status=Availability.AVAILABLE if score else Availability.PENDING,
            score=ScoreResponse.model_validate(score) if score else None,
        )

    def get_transcript(self, conversation_id: str, principal: Principal) -> InterviewTranscript:
        check_conversation_owner(self.db, conversation_id, principal)
        transcript = (
            visible_transcripts(self.db, principal)
            .filter(InterviewTranscript.conversation_id == conversation_id)
            .first()
        )
        if transcript is None:
            raise NotFoundError(f"Transcript for {conversation_id} not available yet")
        return transcript

    def get_score(self, conversation_id: str, principal: Principal) -> ScoreDetails:
        check_conversation_owner(self.db, conversation_id, principal)
        score = (
            visible_scores(self.db, principal)
            .filter(ScoreDetails.conversation_id == conversation_id)
            .first()
        )
        if score is None:
            raise NotFoundError(f"Score for {conversation_id} not available yet")
        return score

    def list_transcripts(self, principal: Principal) -> List[InterviewTranscript]:
        return (
            visible_transcripts(self.db, principal)
            .order_by(InterviewTranscript.created_at.desc())
            .all()
        )

    def transcript_analytics(self, principal: Principal) -> TranscriptAnalytics:
        total, messages, user, assistant = (
            visible_transcripts(self.db, principal)
            .with_entities(
                func.count(InterviewTranscript.id),
                func.coalesce(func.sum(InterviewTranscript.message_count), 0),
                func.coalesce(func.sum(InterviewTranscript.user_message_count), 0),
                func.coalesce(func.sum(InterviewTranscript.assistant_message_count), 0),
            )
            .one()
        )
        return TranscriptAnalytics(
            total_transcripts=total,
            total_messages=messages,
            total_user_messages=user,
            total_assistant_messages=assistant,
            average_messages_per_session=messages // total if total else 0,
            average_user_responses_per_session=user // total if total else 0,
            engagement_rate=user / messages if messages else 0.0,
        )


def get_session_detail(db: Session, session_id: uuid.UUID, requesting_user_id: str) -> SessionDetail:
    return Reconciliation(db).get_session_detail(session_id, UserPrincipal(requesting_user_id))
