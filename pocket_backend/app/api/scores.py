# pocket_backend/app/api/scores.py
from __future__ import annotations

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from ..database import get_db
from ..errors import ValidationError
from ..models import IngestKind, IngestStatus
from ..schemas import ScoreIngestRequest, ScoreResponse, WebhookAck
from ..services.access_control import ServicePrincipal, UserPrincipal
from ..services.ingest_queue import IngestQueue
from ..services.reconciliation import Reconciliation
from ..services.score_ingest import ScoreIngest
from ..services.scoring_service import ScoringConsumer, ScoringProvider
from .deps import current_user, get_ingest_queue, get_scoring_provider, service_principal

router = APIRouter()


@router.get("/{conversation_id}", response_model=ScoreResponse)
def get_score(
    conversation_id: str,
    user: UserPrincipal = Depends(current_user),
    db: Session = Depends(get_db),
):
    return Reconciliation(db).get_score(conversation_id, user)


@router.post(
    "",
    response_model=ScoreResponse,
    responses={status.HTTP_202_ACCEPTED: {"model": WebhookAck}},
)
def ingest_score(
    payload: ScoreIngestRequest,
    service: ServicePrincipal = Depends(service_principal),
    queue: IngestQueue = Depends(get_ingest_queue),
    db: Session = Depends(get_db),
):
    """
    Приём оценки от внешнего скоринга через очередь ингеста.

    Если сессия с этим conversation_id ещё не создана, событие остаётся
    pending (202) и применяется повторным проходом очереди.
    """
    result = queue.submit(
        IngestKind.SCORE,
        payload.conversation_id,
        {
            "clarity": payload.clarity,
            "grammar": payload.grammar,
            "substance": payload.substance,
            "reasons": payload.reasons,
        },
    )
    if result.status is IngestStatus.FAILED:
        raise ValidationError(result.error or "Score rejected")
    if result.status is IngestStatus.PENDING:
        ack = WebhookAck(
            status=result.status.value,
            conversation_id=payload.conversation_id,
            event_type="score",
            event_id=str(result.event_id),
        )
        return JSONResponse(status_code=status.HTTP_202_ACCEPTED, content=ack.model_dump(mode="json"))
    return ScoreIngest(db).current(payload.conversation_id, service)


@router.post("/{conversation_id}/compute", response_model=ScoreResponse)
def compute_score(
    conversation_id: str,
    service: ServicePrincipal = Depends(service_principal),
    db: Session = Depends(get_db),
    provider: ScoringProvider = Depends(get_scoring_provider),
):
    score = ScoringConsumer(db, provider, service).score_one(conversation_id)
    db.commit()
    return score
