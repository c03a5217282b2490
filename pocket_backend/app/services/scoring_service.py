# pocket_backend/app/services/scoring_service.py
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Mapping, Optional, Protocol, Sequence, cast

from openai import OpenAI, OpenAIError
from openai.types.chat import ChatCompletionMessageParam
from sqlalchemy.orm import Session

from ..config import Settings
from ..database import Database
from ..errors import ConflictError, NotFoundError, ProviderError, ValidationError
from ..models import InterviewTranscript, ScoreDetails
from .access_control import Principal, ServicePrincipal
from .score_ingest import SCORE_FIELDS, ScoreIngest

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScoreResult:
    clarity: int
    grammar: int
    substance: int
    reasons: Dict[str, str] = field(default_factory=dict)


class ScoringProvider(Protocol):
    def score_transcript(self, conversation_id: str, messages: Sequence[Mapping[str, str]]) -> ScoreResult:
        ...


def _chat_message(role: Literal["assistant", "system", "user"], content: str) -> ChatCompletionMessageParam:
    return cast(ChatCompletionMessageParam, {"role": role, "content": content})


def _transcript_blob(messages: Sequence[Mapping[str, str]]) -> str:
    lines = []
    for m in messages:
        role = m.get("role", "user")
        if role == "system":
            continue
        speaker = "CANDIDATE" if role == "user" else "INTERVIEWER"
        lines.append(f"{speaker}: {m.get('content', '')}")
    return "\n".join(lines)


def _coerce_score(value: Any) -> int:
    try:
        score = int(round(float(value)))
    except (TypeError, ValueError):
        raise ValidationError(f"scoring provider returned a non-numeric score: {value!r}") from None
    return max(0, min(100, score))


def parse_score_payload(raw_content: str) -> ScoreResult:
    """Разбор JSON-ответа модели: {"clarity": {"score": 80, "reason": "..."}, ...}."""
    try:
        parsed = json.loads(raw_content or "{}")
    except json.JSONDecodeError:
        raise ValidationError("scoring provider returned invalid JSON") from None
    if not isinstance(parsed, Mapping):
        raise ValidationError("scoring provider returned a non-object payload")

    scores: Dict[str, int] = {}
    reasons: Dict[str, str] = {}
    for name in SCORE_FIELDS:
        item = parsed.get(name)
        if isinstance(item, Mapping):
            scores[name] = _coerce_score(item.get("score"))
            if item.get("reason"):
                reasons[name] = str(item["reason"]).strip()
        else:
            scores[name] = _coerce_score(item)
    return ScoreResult(reasons=reasons, **scores)


class OpenAIScoringProvider:
    """Оценивает транскрипт интервью по трём шкалам через chat completions."""

    system_prompt = (
        "You are an interview coach. Evaluate the CANDIDATE answers in a mock interview transcript. "
        "Return a compact JSON object with keys clarity, grammar, substance; each value is an object "
        '{"score": <int 0..100>, "reason": "<one sentence>"}. Do not add commentary.'
    )

    def __init__(self, settings: Settings, client: Optional[OpenAI] = None):
        self.model = settings.OPENAI_MODEL
        if client is None:
            try:
                client = OpenAI(api_key=settings.OPENAI_API_KEY) if settings.OPENAI_API_KEY else OpenAI()
            except OpenAIError as exc:
                raise ProviderError(f"OpenAI client is not configured: {exc}") from exc
        self._client = client

    def score_transcript(self, conversation_id: str, messages: Sequence[Mapping[str, str]]) -> ScoreResult:
        blob = _transcript_blob(messages)
        if not blob:
            raise ValidationError(f"transcript {conversation_id} has no candidate/interviewer messages")

        try:
            response = self._client.chat.completions.create(
                model=self.model,
                messages=[
                    _chat_message("system", self.system_prompt),
                    _chat_message("user", f"TRANSCRIPT:\n{blob}"),
                ],
                temperature=0.0,
                response_format={"type": "json_object"},
            )
        except OpenAIError as exc:
            logger.error(f"scoring {conversation_id} failed: {exc}")
            raise ProviderError(f"Scoring provider error: {exc}") from exc

        return parse_score_payload(response.choices[0].message.content or "{}")


class ScoringConsumer:
    """Находит транскрипты без оценки, оценивает их и передаёт результат в ScoreIngest."""

    def __init__(self, db: Session, provider: ScoringProvider, principal: Principal | None = None):
        self.db = db
        self.provider = provider
        self.principal = principal or ServicePrincipal("scoring")

    def unscored(self, limit: int = 20) -> List[InterviewTranscript]:
        return (
            self.db.query(InterviewTranscript)
            .outerjoin(ScoreDetails, ScoreDetails.conversation_id == InterviewTranscript.conversation_id)
            .filter(ScoreDetails.id.is_(None))
            .order_by(InterviewTranscript.created_at.asc())
            .limit(limit)
            .all()
        )

    def score_one(self, conversation_id: str) -> ScoreDetails:
        transcript = (
            self.db.query(InterviewTranscript)
            .filter(InterviewTranscript.conversation_id == conversation_id)
            .first()
        )
        if transcript is None:
            raise NotFoundError(f"Transcript for {conversation_id} not found")

        result = self.provider.score_transcript(conversation_id, transcript.transcript_data or [])
        return ScoreIngest(self.db).ingest_score(
            conversation_id,
            result.clarity,
            result.grammar,
            result.substance,
            result.reasons,
            self.principal,
        )


def score_pending(
    database: Database,
    provider: ScoringProvider,
    limit: int = 20,
    principal: Principal | None = None,
) -> int:
    """Оценивает транскрипты без оценки, каждый в своей транзакции."""
    pending = database.run(
        lambda db: [t.conversation_id for t in ScoringConsumer(db, provider, principal).unscored(limit)]
    )
    scored = 0
    for conversation_id in pending:
        try:
            database.run(lambda db, cid=conversation_id: ScoringConsumer(db, provider, principal).score_one(cid))
        except (ProviderError, ValidationError, ConflictError, NotFoundError) as exc:
            logger.warning(f"scoring {conversation_id} skipped: {exc}")
            continue
        scored += 1
    logger.info(f"scoring pass done: {scored} transcript(s) scored")
    return scored
