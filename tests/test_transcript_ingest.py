from datetime import datetime, timezone

import pytest

from pocket_backend.app.errors import AuthorizationError, NotFoundError, ValidationError
from pocket_backend.app.models import InterviewTranscript
from pocket_backend.app.services.transcript_ingest import TranscriptIngest, count_messages, normalize_messages

MESSAGES = [
    {"role": "system", "content": "You are an interviewer"},
    {"role": "assistant", "content": "Tell me about yourself "},
    {"role": "user", "content": "  I build backends"},
    {"role": "assistant", "content": "Why Python?"},
    {"role": "user", "content": "Ecosystem."},
]


def test_normalize_strips_content_and_lowercases_roles():
    normalized = normalize_messages([{"role": "User", "content": "  hi \n"}, {"role": "assistant", "content": None}])
    assert normalized == [{"role": "user", "content": "hi"}, {"role": "assistant", "content": ""}]


def test_unknown_role_is_rejected():
    with pytest.raises(ValidationError):
        normalize_messages([{"role": "moderator", "content": "x"}])


def test_counts_include_system_only_in_total():
    counts = count_messages(normalize_messages(MESSAGES))
    assert (counts.total, counts.user, counts.assistant) == (5, 2, 2)
    assert counts.total >= counts.user + counts.assistant


def test_ingest_creates_transcript_and_updates_questions(db, alice, service, make_session):
    session = make_session(alice, conversation_id="c1")
    ts = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)

    transcript = TranscriptIngest(db).ingest_transcript("c1", MESSAGES, ts, service)

    assert transcript.message_count == 5
    assert transcript.user_message_count == 2
    assert transcript.assistant_message_count == 2
    assert transcript.transcript_data[2] == {"role": "user", "content": "I build backends"}
    assert transcript.webhook_timestamp == ts
    assert session.questions_answered == 2


def test_ingest_unknown_conversation(db, service):
    with pytest.raises(NotFoundError):
        TranscriptIngest(db).ingest_transcript("nope", MESSAGES, None, service)


def test_user_principal_cannot_ingest(db, alice, make_session):
    make_session(alice, conversation_id="c1")
    with pytest.raises(AuthorizationError):
        TranscriptIngest(db).ingest_transcript("c1", MESSAGES, None, alice)


def test_redelivery_is_idempotent(db, alice, service, make_session):
    make_session(alice, conversation_id="c1")
    ingest = TranscriptIngest(db)
    first = ingest.ingest_transcript("c1", MESSAGES, None, service)
    db.commit()
    updated_at = first.updated_at

    second = ingest.ingest_transcript("c1", MESSAGES, None, service)
    db.commit()

    assert second.id == first.id
    assert second.updated_at == updated_at
    assert db.query(InterviewTranscript).count() == 1


def test_later_delivery_overwrites(db, alice, service, make_session):
    session = make_session(alice, conversation_id="c1")
    ingest = TranscriptIngest(db)
    ingest.ingest_transcript("c1", MESSAGES, None, service)
    db.commit()

    latest = ingest.ingest_transcript("c1", MESSAGES[:3], None, service)
    db.commit()

    assert db.query(InterviewTranscript).count() == 1
    assert latest.message_count == 3
    assert latest.user_message_count == 1
    assert session.questions_answered == 1
