# pocket_backend/app/models/score_details.py
"""
Детальная оценка интервью: три подоценки 0..100 с обоснованием.

Итоговый балл = 0.30 * clarity + 0.20 * grammar + 0.50 * substance.
"""

import uuid

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import relationship

from ..database import Base
from .interview_session import utcnow

CLARITY_WEIGHT = 30
GRAMMAR_WEIGHT = 20
SUBSTANCE_WEIGHT = 50


def composite_score(clarity: int, grammar: int, substance: int) -> int:
    """round(0.30*clarity + 0.20*grammar + 0.50*substance), половина округляется вверх.

    Считается в целых (веса в процентах), чтобы 0.3*85 не превращалось в 25.4999...
    """
    weighted = CLARITY_WEIGHT * clarity + GRAMMAR_WEIGHT * grammar + SUBSTANCE_WEIGHT * substance
    return (weighted + 50) // 100


class ScoreDetails(Base):
    """Оценка по conversation_id"""
    __tablename__ = "score_details"
    __table_args__ = (
        CheckConstraint("clarity_score >= 0 AND clarity_score <= 100", name="clarity_score_range"),
        CheckConstraint("grammar_score >= 0 AND grammar_score <= 100", name="grammar_score_range"),
        CheckConstraint("substance_score >= 0 AND substance_score <= 100", name="substance_score_range"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    conversation_id = Column(
        String(255),
        ForeignKey("interview_sessions.conversation_id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )

    clarity_score = Column(Integer, nullable=False)
    clarity_reason = Column(Text, nullable=True)
    grammar_score = Column(Integer, nullable=False)
    grammar_reason = Column(Text, nullable=True)
    substance_score = Column(Integer, nullable=False)
    substance_reason = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    session = relationship("InterviewSession", back_populates="score_details")

    @property
    def composite(self) -> int:
        return composite_score(self.clarity_score, self.grammar_score, self.substance_score)
