# pocket_backend/app/schemas/score.py
"""Pydantic v2 схемы для оценок"""
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


def _empty_reasons() -> Dict[str, str]:
    return {}


class ScoreIngestRequest(BaseModel):
    """Оценка от внешнего скоринга. Диапазон 0..100 проверяется в сервисе ингеста."""
    conversation_id: str = Field(..., min_length=1)
    clarity: int
    grammar: int
    substance: int
    reasons: Dict[str, str] = Field(default_factory=_empty_reasons)


class ScoreResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    conversation_id: str

    clarity_score: int
    clarity_reason: Optional[str] = None
    grammar_score: int
    grammar_reason: Optional[str] = None
    substance_score: int
    substance_reason: Optional[str] = None

    composite: int

    created_at: datetime
    updated_at: datetime
