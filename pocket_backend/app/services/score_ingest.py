# pocket_backend/app/services/score_ingest.py
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Mapping, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..errors import ConflictError, NotFoundError, ValidationError
from ..models import ScoreDetails
from .access_control import Principal, require_service
from .session_repository import SessionRepository

logger = logging.getLogger(__name__)

SCORE_FIELDS = ("clarity", "grammar", "substance")


def _check_score(name: str, value) -> int:
    # bool: подкласс int, но оценкой не является
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{name} must be an integer, got {value!r}")
    if not 0 <= value <= 100:
        raise ValidationError(f"{name} must be within 0..100, got {value}")
    return value


def _check_reasons(reasons: Optional[Mapping[str, str]]) -> dict:
    if reasons is None:
        return {}
    if not isinstance(reasons, Mapping):
        raise ValidationError("reasons must be a mapping")
    unknown = set(reasons) - set(SCORE_FIELDS)
    if unknown:
        raise ValidationError(f"unknown reason keys: {', '.join(sorted(unknown))}")
    return {k: (str(v) if v is not None else None) for k, v in reasons.items()}


class ScoreIngest:
    def __init__(self, db: Session):
        self.db = db
        self.sessions = SessionRepository(db)

    def ingest_score(
        self,
        conversation_id: str,
        clarity: int,
        grammar: int,
        substance: int,
        reasons: Optional[Mapping[str, str]],
        principal: Principal,
    ) -> ScoreDetails:
        require_service(principal)

        clarity = _check_score("clarity", clarity)
        grammar = _check_score("grammar", grammar)
        substance = _check_score("substance", substance)
        reasons = _check_reasons(reasons)

        if self.sessions.get_by_conversation_id(conversation_id) is None:
            raise NotFoundError(f"Conversation {conversation_id} not found")

        score = (
            self.db.query(ScoreDetails)
            .filter(ScoreDetails.conversation_id == conversation_id)
            .first()
        )
        now = datetime.now(timezone.utc)
        if score is None:
            score = ScoreDetails(conversation_id=conversation_id, created_at=now)
            self.db.add(score)

        score.clarity_score = clarity
        score.clarity_reason = reasons.get("clarity")
        score.grammar_score = grammar
        score.grammar_reason = reasons.get("grammar")
        score.substance_score = substance
        score.substance_reason = reasons.get("substance")
        score.updated_at = now

        self.sessions.record_score(conversation_id, score.composite)

        try:
            self.db.flush()
        except IntegrityError as exc:
            raise ConflictError(f"Score for {conversation_id} was written concurrently") from exc

        logger.info(
            f"score {conversation_id}: clarity={clarity} grammar={grammar} "
            f"substance={substance} composite={score.composite}"
        )
        return score

    def current(self, conversation_id: str, principal: Principal) -> ScoreDetails:
        require_service(principal)
        score = (
            self.db.query(ScoreDetails)
            .filter(ScoreDetails.conversation_id == conversation_id)
            .first()
        )
        if score is None:
            raise NotFoundError(f"Score for {conversation_id} not found")
        return score
