import json
from types import SimpleNamespace

import httpx
import pytest
from conftest import SERVICE_HEADERS, auth_headers
from openai import APIConnectionError

from pocket_backend.app.errors import NotFoundError, ProviderError, ValidationError
from pocket_backend.app.models import ScoreDetails
from pocket_backend.app.services.scoring_service import (
    OpenAIScoringProvider,
    ScoreResult,
    ScoringConsumer,
    parse_score_payload,
    score_pending,
)
from pocket_backend.app.services.session_repository import SessionRepository
from pocket_backend.app.services.transcript_ingest import TranscriptIngest

MESSAGES = [
    {"role": "system", "content": "persona"},
    {"role": "assistant", "content": "Describe a hard bug"},
    {"role": "user", "content": "A race in a cache"},
]


class FakeCompletions:
    def __init__(self, content=None, error=None):
        self.content = content
        self.error = error
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error:
            raise self.error
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def _openai(completions):
    return SimpleNamespace(chat=SimpleNamespace(completions=completions))


class FlakyProvider:
    def __init__(self, fail_on):
        self.fail_on = fail_on
        self.calls = []

    def score_transcript(self, conversation_id, messages):
        self.calls.append(conversation_id)
        if conversation_id == self.fail_on:
            raise ProviderError("scoring backend unavailable")
        return ScoreResult(60, 60, 60)


class StaticProvider:
    def __init__(self, result):
        self.result = result
        self.seen = []

    def score_transcript(self, conversation_id, messages):
        self.seen.append((conversation_id, list(messages)))
        return self.result


def test_parse_nested_and_flat_payloads():
    nested = parse_score_payload(json.dumps({
        "clarity": {"score": 81, "reason": "clear"},
        "grammar": {"score": 90.4},
        "substance": {"score": 140, "reason": "deep"},
    }))
    assert nested == ScoreResult(81, 90, 100, {"clarity": "clear", "substance": "deep"})

    flat = parse_score_payload('{"clarity": 10, "grammar": 20, "substance": 30}')
    assert (flat.clarity, flat.grammar, flat.substance) == (10, 20, 30)

    with pytest.raises(ValidationError):
        parse_score_payload("not json")
    with pytest.raises(ValidationError):
        parse_score_payload('{"clarity": "n/a", "grammar": 1, "substance": 1}')


def test_openai_provider_builds_prompt(settings):
    completions = FakeCompletions(content='{"clarity": 70, "grammar": 80, "substance": 80}')
    provider = OpenAIScoringProvider(settings, client=_openai(completions))

    result = provider.score_transcript("c1", MESSAGES)

    assert (result.clarity, result.grammar, result.substance) == (70, 80, 80)
    call = completions.calls[0]
    assert call["model"] == "gpt-4o-mini"
    assert call["response_format"] == {"type": "json_object"}
    prompt = call["messages"][1]["content"]
    assert "CANDIDATE: A race in a cache" in prompt
    assert "persona" not in prompt


def test_openai_errors_become_provider_errors(settings):
    error = APIConnectionError(request=httpx.Request("POST", "https://api.openai.com"))
    provider = OpenAIScoringProvider(settings, client=_openai(FakeCompletions(error=error)))
    with pytest.raises(ProviderError):
        provider.score_transcript("c1", MESSAGES)


def test_consumer_scores_unscored_transcripts(db, alice, service, make_session):
    session = make_session(alice, conversation_id="c1")
    make_session(alice, conversation_id="c2")
    TranscriptIngest(db).ingest_transcript("c1", MESSAGES, None, service)
    db.commit()

    provider = StaticProvider(ScoreResult(70, 80, 80, {"grammar": "ok"}))
    consumer = ScoringConsumer(db, provider)

    assert [t.conversation_id for t in consumer.unscored()] == ["c1"]
    consumer.score_one("c1")
    assert provider.seen[0][0] == "c1"
    assert session.score == 77
    assert consumer.unscored() == []

    with pytest.raises(NotFoundError):
        consumer.score_one("c2")


def test_score_pending_commits_each_transcript(database, alice, service):
    def seed(db):
        repo = SessionRepository(db)
        for cid in ("c1", "c2", "c3"):
            session = repo.create_session(alice.user_id, "technical", cid, 10, alice)
            repo.attach_conversation_id(session.id, cid, alice)
            TranscriptIngest(db).ingest_transcript(cid, MESSAGES, None, service)

    database.run(seed)
    provider = FlakyProvider(fail_on="c2")

    assert score_pending(database, provider) == 2
    assert sorted(provider.calls) == ["c1", "c2", "c3"]

    scored = database.run(lambda db: sorted(s.conversation_id for s in db.query(ScoreDetails).all()))
    assert scored == ["c1", "c3"]


def test_compute_endpoint(client, app):
    alice = auth_headers("user-alice")
    session_id = client.post(
        "/api/sessions", json={"category": "technical", "expected_duration_minutes": 10}, headers=alice
    ).json()["id"]
    conversation_id = client.post(f"/api/sessions/{session_id}/start", headers=alice).json()["session"]["conversation_id"]
    client.post(
        "/api/webhooks/tavus",
        headers=SERVICE_HEADERS,
        json={"conversation_id": conversation_id, "event_type": "application.transcription_ready",
              "properties": {"transcript": MESSAGES}},
    )
    app.state.scoring_provider = StaticProvider(ScoreResult(100, 100, 0))

    assert client.post(f"/api/scores/{conversation_id}/compute", headers=alice).status_code == 401
    response = client.post(f"/api/scores/{conversation_id}/compute", headers=SERVICE_HEADERS)
    assert response.status_code == 200
    assert response.json()["composite"] == 50
