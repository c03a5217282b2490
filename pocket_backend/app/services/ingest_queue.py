# pocket_backend/app/services/ingest_queue.py
"""
Очередь входящих событий провайдера.

Событие сначала сохраняется в ``ingest_events``, затем применяется в
отдельной транзакции вместе с отметкой ``applied``. Если сессия для
conversation_id ещё не создана, событие остаётся ``pending`` и повторяется
с экспоненциальной задержкой; после ``INGEST_MAX_ATTEMPTS`` попыток оно
помечается ``failed``.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from ..config import Settings
from ..database import Database
from ..errors import ConflictError, InvalidTransitionError, NotFoundError, PocketInterviewError, ValidationError
from ..models import IngestEvent, IngestKind, IngestStatus
from .access_control import Principal, ServicePrincipal
from .score_ingest import ScoreIngest
from .session_repository import SessionRepository
from .transcript_ingest import TranscriptIngest

logger = logging.getLogger(__name__)

_RETRYABLE = (NotFoundError, ConflictError)


def parse_timestamp(value: Any) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    try:
        # провайдер присылает ISO-8601, иногда с "Z"
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        raise ValidationError(f"invalid timestamp {value!r}") from None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


@dataclass(frozen=True)
class ApplyResult:
    event_id: uuid.UUID
    status: IngestStatus
    error: Optional[str] = None


class IngestQueue:
    def __init__(self, database: Database, settings: Settings, principal: Principal | None = None):
        self.database = database
        self.settings = settings
        self.principal = principal or ServicePrincipal("ingest")

    # --- запись ---

    def enqueue(self, kind: IngestKind | str, conversation_id: str, payload: Dict[str, Any]) -> uuid.UUID:
        kind = IngestKind(kind)

        def work(db: Session) -> uuid.UUID:
            event = IngestEvent(
                kind=kind.value,
                conversation_id=conversation_id,
                payload=payload,
                status=IngestStatus.PENDING.value,
                attempts=0,
            )
            db.add(event)
            db.flush()
            return event.id

        event_id = self.database.run(work)
        logger.info(f"ingest event {event_id} queued: {kind.value} for {conversation_id}")
        return event_id

    def submit(self, kind: IngestKind | str, conversation_id: str, payload: Dict[str, Any]) -> ApplyResult:
        """enqueue + немедленная попытка применить."""
        return self.apply(self.enqueue(kind, conversation_id, payload))

    # --- применение ---

    def apply(self, event_id: uuid.UUID, now: Optional[datetime] = None) -> ApplyResult:
        now = now or datetime.now(timezone.utc)

        def dispatch(db: Session) -> Optional[IngestStatus]:
            # FOR UPDATE на postgres; sqlite сериализует запись сам
            event = db.query(IngestEvent).filter(IngestEvent.id == event_id).with_for_update().one()
            if event.status != IngestStatus.PENDING.value:
                return IngestStatus(event.status)
            self._dispatch(db, event)
            event.status = IngestStatus.APPLIED.value
            event.attempts += 1
            event.last_error = None
            event.next_attempt_at = None
            return None

        current = self.database.run(lambda db: self._status_of(db, event_id))
        if current is not IngestStatus.PENDING:
            return ApplyResult(event_id, current)

        try:
            raced = self.database.run(dispatch)
        except _RETRYABLE as exc:
            return self._record_failure(event_id, exc, now, retry=True)
        except InvalidTransitionError as exc:
            return self._record_failure(event_id, exc, now, retry=False, status=IngestStatus.SKIPPED)
        except PocketInterviewError as exc:
            return self._record_failure(event_id, exc, now, retry=False)

        if raced is not None:
            logger.info(f"ingest event {event_id} already {raced.value}, skipping")
            return ApplyResult(event_id, raced)
        logger.info(f"ingest event {event_id} applied")
        return ApplyResult(event_id, IngestStatus.APPLIED)

    def process_due(self, now: Optional[datetime] = None, limit: int = 100) -> Dict[str, int]:
        now = now or datetime.now(timezone.utc)

        def due(db: Session):
            return [
                row.id
                for row in db.query(IngestEvent.id)
                .filter(IngestEvent.status == IngestStatus.PENDING.value)
                .filter(or_(IngestEvent.next_attempt_at.is_(None), IngestEvent.next_attempt_at <= now))
                .order_by(IngestEvent.created_at.asc())
                .limit(limit)
                .all()
            ]

        summary = {s.value: 0 for s in IngestStatus}
        for event_id in self.database.run(due):
            result = self.apply(event_id, now=now)
            summary[result.status.value] += 1
        logger.info(f"ingest pass: {summary}")
        return summary

    def retry_delay(self, attempts: int) -> timedelta:
        seconds = self.settings.INGEST_RETRY_BASE_SECONDS * (2 ** attempts)
        return timedelta(seconds=min(seconds, self.settings.INGEST_RETRY_MAX_SECONDS))

    # --- внутреннее ---

    @staticmethod
    def _status_of(db: Session, event_id: uuid.UUID) -> IngestStatus:
        event = db.get(IngestEvent, event_id)
        if event is None:
            raise NotFoundError(f"Ingest event {event_id} not found")
        return IngestStatus(event.status)

    def _record_failure(
        self,
        event_id: uuid.UUID,
        exc: PocketInterviewError,
        now: datetime,
        retry: bool,
        status: IngestStatus = IngestStatus.FAILED,
    ) -> ApplyResult:
        def work(db: Session) -> IngestStatus:
            event = db.query(IngestEvent).filter(IngestEvent.id == event_id).with_for_update().one()
            if event.status != IngestStatus.PENDING.value:
                return IngestStatus(event.status)
            delay = self.retry_delay(event.attempts)
            event.attempts += 1
            event.last_error = f"{type(exc).__name__}: {exc.message}"
            if retry and event.attempts < self.settings.INGEST_MAX_ATTEMPTS:
                event.next_attempt_at = now + delay
                logger.warning(
                    f"ingest event {event_id} ({event.kind}) attempt {event.attempts} failed: {exc.message}; "
                    f"retry in {delay.total_seconds():.0f}s"
                )
            else:
                event.status = status.value
                event.next_attempt_at = None
                logger.error(f"ingest event {event_id} ({event.kind}) marked {status.value}: {exc.message}")
            return IngestStatus(event.status)

        return ApplyResult(event_id, self.database.run(work), str(exc.message))

    def _dispatch(self, db: Session, event: IngestEvent) -> None:
        payload = event.payload or {}
        try:
            kind = IngestKind(event.kind)
        except ValueError:
            raise ValidationError(f"Unknown ingest kind {event.kind}") from None

        if kind is IngestKind.TRANSCRIPT:
            TranscriptIngest(db).ingest_transcript(
                event.conversation_id,
                payload.get("messages", []),
                parse_timestamp(payload.get("webhook_timestamp")),
                self.principal,
            )
        elif kind is IngestKind.SCORE:
            ScoreIngest(db).ingest_score(
                event.conversation_id,
                payload.get("clarity"),
                payload.get("grammar"),
                payload.get("substance"),
                payload.get("reasons") or {},
                self.principal,
            )
        elif kind is IngestKind.LIFECYCLE:
            SessionRepository(db).transition_by_conversation(
                event.conversation_id,
                payload.get("status"),
                self.principal,
                end_reason=payload.get("end_reason"),
                actual_duration_minutes=payload.get("actual_duration_minutes"),
            )
