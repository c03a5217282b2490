# pocket_backend/app/models/transcript.py
import enum
import uuid

from sqlalchemy import JSON, CheckConstraint, Column, DateTime, ForeignKey, Integer, String, Uuid
from sqlalchemy.orm import relationship

from ..database import Base
from .interview_session import utcnow


class MessageRole(str, enum.Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class InterviewTranscript(Base):
    __tablename__ = "interview_transcripts"
    __table_args__ = (
        CheckConstraint("message_count >= 0", name="message_count_non_negative"),
        CheckConstraint("user_message_count >= 0", name="user_message_count_non_negative"),
        CheckConstraint("assistant_message_count >= 0", name="assistant_message_count_non_negative"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    conversation_id = Column(
        String(255),
        ForeignKey("interview_sessions.conversation_id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )

    # Структура: [{"role": "assistant", "content": "..."}, {"role": "user", "content": "..."}]
    transcript_data = Column(JSON, nullable=False, default=list)
    message_count = Column(Integer, nullable=False, default=0)
    user_message_count = Column(Integer, nullable=False, default=0)
    assistant_message_count = Column(Integer, nullable=False, default=0)

    webhook_timestamp = Column(DateTime(timezone=True), nullable=True, comment="Когда провайдер отправил вебхук")
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    session = relationship("InterviewSession", back_populates="transcript")
