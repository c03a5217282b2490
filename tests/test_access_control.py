import uuid

import pytest

from pocket_backend.app.errors import AuthorizationError, NotFoundError
from pocket_backend.app.schemas import Availability
from pocket_backend.app.services.access_control import (
    check_conversation_owner,
    load_session,
    visible_scores,
    visible_transcripts,
)
from pocket_backend.app.services.reconciliation import Reconciliation, get_session_detail
from pocket_backend.app.services.score_ingest import ScoreIngest
from pocket_backend.app.services.transcript_ingest import TranscriptIngest

MESSAGES = [{"role": "assistant", "content": "Q1"}, {"role": "user", "content": "A1"}]


@pytest.fixture
def populated(db, alice, bob, service, make_session):
    mine = make_session(alice, conversation_id="c-alice")
    theirs = make_session(bob, conversation_id="c-bob")
    for conversation_id in ("c-alice", "c-bob"):
        TranscriptIngest(db).ingest_transcript(conversation_id, MESSAGES, None, service)
        ScoreIngest(db).ingest_score(conversation_id, 80, 80, 80, {}, service)
    db.commit()
    return mine, theirs


def test_users_only_see_their_own_rows(db, alice, bob, populated):
    assert [t.conversation_id for t in visible_transcripts(db, alice).all()] == ["c-alice"]
    assert [s.conversation_id for s in visible_scores(db, bob).all()] == ["c-bob"]


def test_service_principal_cannot_read_user_data(db, service, populated):
    with pytest.raises(AuthorizationError):
        visible_transcripts(db, service)
    with pytest.raises(AuthorizationError):
        visible_scores(db, service)
    mine, _ = populated
    with pytest.raises(AuthorizationError):
        Reconciliation(db).get_session_detail(mine.id, service)


def test_load_session_ownership(db, alice, bob, service, populated):
    mine, _ = populated
    assert load_session(db, mine.id, alice) is mine
    assert load_session(db, mine.id, service) is mine
    with pytest.raises(AuthorizationError):
        load_session(db, mine.id, bob)
    with pytest.raises(NotFoundError):
        load_session(db, uuid.uuid4(), alice)


def test_check_conversation_owner(db, alice, populated):
    assert check_conversation_owner(db, "c-alice", alice).user_id == alice.user_id
    with pytest.raises(AuthorizationError):
        check_conversation_owner(db, "c-bob", alice)
    with pytest.raises(NotFoundError):
        check_conversation_owner(db, "c-nobody", alice)


def test_session_detail_available(db, alice, populated):
    mine, _ = populated
    detail = get_session_detail(db, mine.id, alice.user_id)

    assert detail.session.id == mine.id
    assert detail.transcript_status is Availability.AVAILABLE
    assert detail.transcript.message_count == 2
    assert detail.score_status is Availability.AVAILABLE
    assert detail.score.composite == 80


def test_session_detail_pending_before_ingest(db, alice, make_session):
    fresh = make_session(alice)
    detail = Reconciliation(db).get_session_detail(fresh.id, alice)
    assert detail.transcript_status is Availability.PENDING
    assert detail.transcript is None
    assert detail.score_status is Availability.PENDING
    assert detail.score is None


def test_score_without_transcript_is_reported_independently(db, alice, service, make_session):
    session = make_session(alice, conversation_id="c-early")
    ScoreIngest(db).ingest_score("c-early", 60, 70, 80, {}, service)
    db.commit()

    detail = Reconciliation(db).get_session_detail(session.id, alice)
    assert detail.transcript_status is Availability.PENDING
    assert detail.score_status is Availability.AVAILABLE
    assert detail.score.composite == 72


def test_session_detail_of_foreign_session(db, bob, populated):
    mine, _ = populated
    with pytest.raises(AuthorizationError):
        get_session_detail(db, mine.id, bob.user_id)


def test_get_transcript_and_score(db, alice, make_session, populated):
    rec = Reconciliation(db)
    assert rec.get_transcript("c-alice", alice).user_message_count == 1
    assert rec.get_score("c-alice", alice).composite == 80
    with pytest.raises(AuthorizationError):
        rec.get_score("c-bob", alice)

    make_session(alice, conversation_id="c-empty")
    with pytest.raises(NotFoundError):
        rec.get_transcript("c-empty", alice)
    assert [t.conversation_id for t in rec.list_transcripts(alice)] == ["c-alice"]


def test_transcript_analytics_counts_only_own_transcripts(db, alice, bob, service, make_session, populated):
    make_session(alice, conversation_id="c-alice-2")
    longer = MESSAGES + [{"role": "user", "content": "A2"}, {"role": "system", "content": "note"}]
    TranscriptIngest(db).ingest_transcript("c-alice-2", longer, None, service)
    db.commit()

    stats = Reconciliation(db).transcript_analytics(alice)

    assert stats.total_transcripts == 2
    assert stats.total_messages == 6
    assert stats.total_user_messages == 3
    assert stats.total_assistant_messages == 2
    assert stats.average_messages_per_session == 3
    assert stats.average_user_responses_per_session == 1
    assert stats.engagement_rate == pytest.approx(0.5)

    assert Reconciliation(db).transcript_analytics(bob).total_transcripts == 1
    with pytest.raises(AuthorizationError):
        Reconciliation(db).transcript_analytics(service)


def test_transcript_analytics_without_transcripts(db, alice):
    stats = Reconciliation(db).transcript_analytics(alice)
    assert stats.total_transcripts == 0
    assert stats.average_messages_per_session == 0
    assert stats.engagement_rate == 0.0
