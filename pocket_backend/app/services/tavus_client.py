# pocket_backend/app/services/tavus_client.py
"""HTTP-клиент провайдера видео-интервью (Tavus v2)."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Tuple

import httpx

from ..config import Settings
from ..errors import ProviderError

logger = logging.getLogger(__name__)

USER_AGENT = "PocketInterview/1.0"


def _error_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text[:500]
    if isinstance(data, dict):
        return str(data.get("message") or data.get("error") or data)
    return str(data)


class TavusClient:
    def __init__(self, settings: Settings, transport: Optional[httpx.BaseTransport] = None):
        self.base_url = settings.TAVUS_BASE_URL.rstrip("/")
        self.api_key = settings.TAVUS_API_KEY
        self.timeout = settings.REQUEST_TIMEOUT_SECONDS
        self._transport = transport

    def _client(self) -> httpx.Client:
        if not self.api_key:
            raise ProviderError("TAVUS_API_KEY is not configured")
        return httpx.Client(
            base_url=self.base_url,
            headers={"x-api-key": self.api_key, "User-Agent": USER_AGENT},
            timeout=self.timeout,
            transport=self._transport,
        )

    def _post(self, path: str, payload: Optional[Dict[str, Any]] = None) -> httpx.Response:
        try:
            with self._client() as client:
                return client.post(path, json=payload)
        except httpx.TimeoutException as exc:
            logger.error(f"Tavus {path}: timeout after {self.timeout}s")
            raise ProviderError(f"Tavus request timed out: {path}") from exc
        except httpx.HTTPError as exc:
            logger.error(f"Tavus {path}: {exc}")
            raise ProviderError(f"Tavus request failed: {exc}") from exc

    def create_conversation(
        self,
        persona_id: str,
        conversation_name: str,
        conversational_context: str,
        callback_url: str,
        max_call_duration_seconds: int,
    ) -> Tuple[str, str]:
        """Создаёт разговор у провайдера, возвращает (conversation_id, conversation_url)."""
        if not persona_id:
            raise ProviderError("Tavus persona id is not configured")

        payload = {
            "persona_id": persona_id,
            "conversation_name": conversation_name,
            "conversational_context": conversational_context,
            "callback_url": callback_url,
            "properties": {
                "max_call_duration": max_call_duration_seconds,
                "participant_left_timeout": 10,
                "participant_absent_timeout": 60,
                "enable_recording": False,
                "enable_closed_captions": True,
                "language": "english",
            },
        }
        response = self._post("/conversations", payload)
        if response.status_code not in (200, 201):
            message = _error_message(response)
            logger.error(f"Tavus create_conversation -> {response.status_code}: {message}")
            raise ProviderError(f"Tavus error {response.status_code}: {message}", response.status_code)

        data = response.json()
        conversation_id = data.get("conversation_id")
        conversation_url = data.get("conversation_url")
        if not conversation_id or not conversation_url:
            raise ProviderError("Tavus response is missing conversation_id/conversation_url")

        logger.info(f"Tavus conversation {conversation_id} created ({conversation_name})")
        return conversation_id, conversation_url

    def end_conversation(self, conversation_id: str) -> None:
        response = self._post(f"/conversations/{conversation_id}/end")
        if response.status_code == 404:
            # уже завершён или удалён у провайдера
            logger.info(f"Tavus conversation {conversation_id} already gone")
            return
        if response.status_code not in (200, 204):
            message = _error_message(response)
            logger.error(f"Tavus end_conversation {conversation_id} -> {response.status_code}: {message}")
            raise ProviderError(f"Tavus error {response.status_code}: {message}", response.status_code)
        logger.info(f"Tavus conversation {conversation_id} ended")
