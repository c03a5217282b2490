import uuid
from datetime import datetime, timedelta, timezone

import pytest

from pocket_backend.app.errors import (
    AuthorizationError,
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from pocket_backend.app.models import InterviewSession, InterviewTranscript, ScoreDetails, SessionStatus
from pocket_backend.app.services.score_ingest import ScoreIngest
from pocket_backend.app.services.session_repository import SessionRepository, elapsed_minutes
from pocket_backend.app.services.transcript_ingest import TranscriptIngest


def test_create_session_defaults(db, alice):
    session = SessionRepository(db).create_session(alice.user_id, "technical", "Backend prep", 30, alice)

    assert session.session_status == SessionStatus.CREATED.value
    assert session.conversation_id is None
    assert session.user_id == alice.user_id
    assert session.session_name == "Backend prep"
    assert session.questions_answered == 0
    assert session.actual_duration_minutes is None


def test_create_session_category_is_case_insensitive(db, alice):
    session = SessionRepository(db).create_session(alice.user_id, "Technical", "x", 15, alice)
    assert session.category == "technical"


def test_create_session_generates_name_when_blank(db, alice):
    session = SessionRepository(db).create_session(alice.user_id, "behavioral", "   ", 20, alice)
    assert session.session_name.startswith("Behavioral Practice ")
    # "<Category> Practice yyyy-mm-dd HH:MM"
    datetime.strptime(session.session_name[len("Behavioral Practice "):], "%Y-%m-%d %H:%M")


@pytest.mark.parametrize("category,duration", [("technical", 0), ("technical", -5), ("sales", 30), ("", 30)])
def test_create_session_rejects_bad_input(db, alice, category, duration):
    with pytest.raises(ValidationError):
        SessionRepository(db).create_session(alice.user_id, category, "x", duration, alice)


def test_create_session_for_another_user_is_denied(db, alice, bob):
    with pytest.raises(AuthorizationError):
        SessionRepository(db).create_session(bob.user_id, "technical", "x", 30, alice)


def test_service_principal_cannot_create_sessions(db, service):
    with pytest.raises(AuthorizationError):
        SessionRepository(db).create_session("user-alice", "technical", "x", 30, service)


def test_attach_conversation_id(db, alice, make_session):
    session = make_session(alice)
    repo = SessionRepository(db)

    repo.attach_conversation_id(session.id, "c1", alice)
    assert session.conversation_id == "c1"
    # повторная привязка того же id: no-op
    repo.attach_conversation_id(session.id, "c1", alice)
    assert repo.get_by_conversation_id("c1").id == session.id


def test_attach_conversation_id_conflicts(db, alice, make_session):
    first = make_session(alice, conversation_id="c1")
    second = make_session(alice)
    repo = SessionRepository(db)

    with pytest.raises(ConflictError):
        repo.attach_conversation_id(second.id, "c1", alice)
    with pytest.raises(ConflictError):
        repo.attach_conversation_id(first.id, "c2", alice)


def test_attach_conversation_id_rejects_foreign_session(db, alice, bob, make_session):
    session = make_session(alice)
    with pytest.raises(AuthorizationError):
        SessionRepository(db).attach_conversation_id(session.id, "c1", bob)


def test_transition_created_active_completed(db, alice, make_session):
    session = make_session(alice, conversation_id="c1")
    repo = SessionRepository(db)

    repo.transition_status(session.id, "active", alice)
    assert session.status is SessionStatus.ACTIVE
    assert session.started_timestamp is not None

    repo.transition_status(session.id, "completed", alice, actual_duration_minutes=27)
    assert session.status is SessionStatus.COMPLETED
    assert session.completed_timestamp is not None
    assert session.actual_duration_minutes == 27
    assert session.end_reason is None


def test_completed_duration_defaults_to_elapsed_minutes(db, alice, make_session):
    session = make_session(alice)
    repo = SessionRepository(db)
    repo.transition_status(session.id, "active", alice)
    session.started_timestamp = datetime.now(timezone.utc) - timedelta(minutes=12, seconds=5)

    repo.transition_status(session.id, SessionStatus.COMPLETED, alice)
    assert session.actual_duration_minutes == 12


def test_elapsed_minutes_rounds_and_handles_naive_datetimes():
    start = datetime(2025, 1, 1, 10, 0, 0)
    assert elapsed_minutes(start, datetime(2025, 1, 1, 10, 14, 30, tzinfo=timezone.utc)) == 15
    assert elapsed_minutes(start, datetime(2025, 1, 1, 10, 14, 29, tzinfo=timezone.utc)) == 14
    assert elapsed_minutes(start, datetime(2025, 1, 1, 9, 0, tzinfo=timezone.utc)) == 0


def test_forward_skip_to_cancelled_defaults_end_reason(db, alice, make_session):
    session = make_session(alice)
    SessionRepository(db).transition_status(session.id, "cancelled", alice)
    assert session.status is SessionStatus.CANCELLED
    assert session.end_reason == "cancelled"


def test_error_keeps_given_end_reason(db, alice, make_session):
    session = make_session(alice)
    repo = SessionRepository(db)
    repo.transition_status(session.id, "active", alice)
    repo.transition_status(session.id, "error", alice, end_reason="provider timeout")
    assert session.end_reason == "provider timeout"


@pytest.mark.parametrize("terminal", ["completed", "cancelled", "error"])
@pytest.mark.parametrize("target", ["created", "active", "completed", "cancelled", "error"])
def test_terminal_states_are_absorbing(db, alice, make_session, terminal, target):
    session = make_session(alice)
    repo = SessionRepository(db)
    repo.transition_status(session.id, terminal, alice)

    with pytest.raises(InvalidTransitionError):
        repo.transition_status(session.id, target, alice)
    assert session.session_status == terminal


def test_backward_and_same_status_moves_are_rejected(db, alice, make_session):
    session = make_session(alice)
    repo = SessionRepository(db)
    with pytest.raises(InvalidTransitionError):
        repo.transition_status(session.id, "created", alice)
    repo.transition_status(session.id, "active", alice)
    with pytest.raises(InvalidTransitionError):
        repo.transition_status(session.id, "created", alice)
    with pytest.raises(InvalidTransitionError):
        repo.transition_status(session.id, "active", alice)


def test_unknown_status_and_missing_session(db, alice, make_session):
    session = make_session(alice)
    repo = SessionRepository(db)
    with pytest.raises(ValidationError):
        repo.transition_status(session.id, "paused", alice)
    with pytest.raises(NotFoundError):
        repo.transition_status(uuid.uuid4(), "active", alice)


def test_list_sessions_filters_and_orders(db, alice, bob, make_session):
    older = make_session(alice, category="technical")
    newer = make_session(alice, category="behavioral")
    make_session(bob)
    older.created_at = datetime(2025, 1, 1, tzinfo=timezone.utc)
    newer.created_at = datetime(2025, 2, 1, tzinfo=timezone.utc)
    db.commit()

    repo = SessionRepository(db)
    assert [s.id for s in repo.list_sessions(alice.user_id, alice)] == [newer.id, older.id]
    assert [s.id for s in repo.list_sessions(alice.user_id, alice, newest_first=False)] == [older.id, newer.id]
    assert [s.id for s in repo.list_sessions(alice.user_id, alice, category="Technical")] == [older.id]

    with pytest.raises(AuthorizationError):
        repo.list_sessions(bob.user_id, alice)


def test_delete_session_cascades(db, alice, bob, service, make_session):
    session = make_session(alice, conversation_id="c1")
    TranscriptIngest(db).ingest_transcript("c1", [{"role": "user", "content": "hi"}], None, service)
    ScoreIngest(db).ingest_score("c1", 70, 80, 90, {}, service)
    db.commit()

    repo = SessionRepository(db)
    with pytest.raises(AuthorizationError):
        repo.delete_session(session.id, bob.user_id)

    repo.delete_session(session.id, alice.user_id)
    db.commit()

    assert db.query(InterviewSession).count() == 0
    assert db.query(InterviewTranscript).count() == 0
    assert db.query(ScoreDetails).count() == 0
