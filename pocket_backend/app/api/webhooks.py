# pocket_backend/app/api/webhooks.py
"""
Вебхук провайдера (callback_url разговора).

- application.transcription_ready → транскрипт
- system.replica_joined            → сессия active
- system.shutdown                  → сессия completed (end_reason = shutdown_reason)

Остальные события подтверждаются и игнорируются.
"""
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse

from ..errors import ValidationError
from ..models import IngestKind, IngestStatus, SessionStatus
from ..schemas import ProviderWebhook, WebhookAck
from ..schemas.webhook import REPLICA_JOINED, SHUTDOWN, TRANSCRIPTION_READY
from ..services.access_control import ServicePrincipal
from ..services.ingest_queue import IngestQueue
from .deps import get_ingest_queue, webhook_principal

logger = logging.getLogger(__name__)

router = APIRouter()


def _ack(code: int, ack: WebhookAck) -> JSONResponse:
    return JSONResponse(status_code=code, content=ack.model_dump(mode="json"))


@router.post("/tavus", response_model=WebhookAck)
def tavus_webhook(
    payload: ProviderWebhook,
    _service: ServicePrincipal = Depends(webhook_principal),
    queue: IngestQueue = Depends(get_ingest_queue),
):
    conversation_id = (payload.conversation_id or "").strip()
    if not conversation_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing conversation_id")

    event_type = payload.event_type or payload.message_type
    logger.info(f"webhook {event_type} for {conversation_id}")

    if event_type == TRANSCRIPTION_READY:
        transcript = payload.properties.get("transcript")
        if not isinstance(transcript, list):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid transcript format")
        kind = IngestKind.TRANSCRIPT
        event_payload = {
            "messages": transcript,
            "webhook_timestamp": payload.timestamp.isoformat() if payload.timestamp else None,
        }
    elif event_type == REPLICA_JOINED:
        kind = IngestKind.LIFECYCLE
        event_payload = {"status": SessionStatus.ACTIVE.value}
    elif event_type == SHUTDOWN:
        kind = IngestKind.LIFECYCLE
        event_payload = {
            "status": SessionStatus.COMPLETED.value,
            "end_reason": payload.properties.get("shutdown_reason"),
        }
    else:
        return _ack(status.HTTP_200_OK, WebhookAck(
            status="ignored", conversation_id=conversation_id, event_type=event_type,
        ))

    result = queue.submit(kind, conversation_id, event_payload)
    if result.status is IngestStatus.FAILED:
        raise ValidationError(result.error or "Webhook payload rejected")

    ack = WebhookAck(
        status=result.status.value,
        conversation_id=conversation_id,
        event_type=event_type,
        event_id=str(result.event_id),
    )
    if result.status is IngestStatus.PENDING:
        return _ack(status.HTTP_202_ACCEPTED, ack)
    return _ack(status.HTTP_200_OK, ack)
