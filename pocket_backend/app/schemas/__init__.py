from .session import (
    SessionCreate,
    SessionResponse,
    SessionDetail,
    ConversationAttach,
    StatusTransition,
    SessionEnd,
    ConversationStarted,
    Availability,
)
from .transcript import TranscriptAnalytics, TranscriptMessage, TranscriptResponse
from .score import ScoreIngestRequest, ScoreResponse
from .config import AppConfigUpsert, PublicConfigResponse
from .webhook import ProviderWebhook, WebhookAck

__all__ = [
    "SessionCreate",
    "SessionResponse",
    "SessionDetail",
    "ConversationAttach",
    "StatusTransition",
    "SessionEnd",
    "ConversationStarted",
    "Availability",
    "TranscriptMessage",
    "TranscriptResponse",
    "TranscriptAnalytics",
    "ScoreIngestRequest",
    "ScoreResponse",
    "AppConfigUpsert",
    "PublicConfigResponse",
    "ProviderWebhook",
    "WebhookAck",
]
