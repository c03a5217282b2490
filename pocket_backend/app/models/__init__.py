# pocket_backend/app/models/__init__.py
from .interview_session import InterviewSession, InterviewCategory, SessionStatus, TERMINAL_STATUSES
from .transcript import InterviewTranscript, MessageRole
from .score_details import ScoreDetails, composite_score
from .app_config import AppConfig
from .ingest_event import IngestEvent, IngestKind, IngestStatus

__all__ = [
    "InterviewSession", "InterviewCategory", "SessionStatus", "TERMINAL_STATUSES",
    "InterviewTranscript", "MessageRole",
    "ScoreDetails", "composite_score",
    "AppConfig",
    "IngestEvent", "IngestKind", "IngestStatus",
]
