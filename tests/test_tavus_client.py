import json

import httpx
import pytest
from conftest import make_settings

from pocket_backend.app.errors import ProviderError
from pocket_backend.app.services.tavus_client import TavusClient


def _client(handler, **overrides):
    return TavusClient(make_settings(**overrides), transport=httpx.MockTransport(handler))


def test_create_conversation_request_and_response():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["api_key"] = request.headers.get("x-api-key")
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={
            "conversation_id": "c123",
            "conversation_url": "https://tavus.daily.co/c123",
            "status": "active",
        })

    conversation_id, url = _client(handler).create_conversation(
        persona_id="p-technical",
        conversation_name="Backend",
        conversational_context="be brief",
        callback_url="https://api.example.test/api/webhooks/tavus?token=k",
        max_call_duration_seconds=1800,
    )

    assert (conversation_id, url) == ("c123", "https://tavus.daily.co/c123")
    assert seen["url"] == "https://tavusapi.com/v2/conversations"
    assert seen["api_key"] == "tavus-test-key"
    assert seen["body"]["persona_id"] == "p-technical"
    assert seen["body"]["callback_url"].endswith("token=k")
    assert seen["body"]["properties"]["max_call_duration"] == 1800


def test_create_conversation_error_status():
    handler = lambda request: httpx.Response(404, json={"message": "Persona not found"})  # noqa: E731
    with pytest.raises(ProviderError) as exc:
        _client(handler).create_conversation("p", "n", "c", "u", 60)
    assert exc.value.upstream_status == 404
    assert "Persona not found" in exc.value.message


def test_create_conversation_incomplete_response():
    handler = lambda request: httpx.Response(200, json={"status": "active"})  # noqa: E731
    with pytest.raises(ProviderError):
        _client(handler).create_conversation("p", "n", "c", "u", 60)


def test_end_conversation_treats_404_as_done():
    calls = []

    def handler(request):
        calls.append(request.url.path)
        return httpx.Response(404, json={"message": "not found"})

    _client(handler).end_conversation("c123")
    assert calls == ["/v2/conversations/c123/end"]


def test_end_conversation_server_error():
    with pytest.raises(ProviderError) as exc:
        _client(lambda request: httpx.Response(500, text="boom")).end_conversation("c123")
    assert exc.value.upstream_status == 500


def test_timeout_is_reported_as_provider_error():
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(ProviderError):
        _client(handler, REQUEST_TIMEOUT_SECONDS=1).end_conversation("c123")


def test_missing_api_key():
    with pytest.raises(ProviderError):
        _client(lambda request: httpx.Response(200), TAVUS_API_KEY=None).end_conversation("c123")
