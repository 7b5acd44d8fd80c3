import pytest
from datetime import datetime, timedelta
from uuid import uuid4

from timeattack.models.interval import PausedInterval
from timeattack.models.records import SuspendedSession, TransitionRecord
from timeattack.models.session import Session, SessionTask
from timeattack.models.task_type import Deciding, Rest, Transitioning, Work
from timeattack.models.ticket import Ticket
from timeattack.services.database import (
    SESSIONS_KEY,
    SUSPENDED_SESSIONS_KEY,
    DatabaseManager,
    QueryError,
)

BASE = datetime(2024, 1, 3, 9, 0, 0)

def at(seconds):
    return BASE + timedelta(seconds=seconds)

@pytest.fixture
def memory_db():
    """In-memory database for tests that don't need a file"""
    db = DatabaseManager(":memory:")
    yield db
    db.close()

def mixed_session():
    session = Session(start_time=at(0))
    tasks = [
        SessionTask(session_id=session.id, type=Deciding(), start_time=at(0), end_time=at(30)),
        SessionTask(
            session_id=session.id,
            type=Work(ticket_id="T1"),
            start_time=at(30),
            end_time=at(600),
            paused_intervals=(PausedInterval(start=at(100), end=at(160)),),
            initial_remaining_time=900.0,
        ),
        SessionTask(session_id=session.id, type=Transitioning(from_ticket_id="T1"), start_time=at(600), end_time=at(620)),
        SessionTask(session_id=session.id, type=Transitioning(), start_time=at(620), end_time=at(640)),
        SessionTask(
            session_id=session.id,
            type=Rest(duration=300),
            start_time=at(640),
            paused_intervals=(PausedInterval(start=at(700)),),
        ),
    ]
    return session.with_tasks(tasks)

def test_sessions_survive_reload(db):
    """Sessions come back equal, including every task kind and open pauses"""
    session = mixed_session()
    db.save_sessions([session])

    loaded = db.load_sessions()
    assert loaded == [session]
    tasks = loaded[0].tasks
    assert tasks[1].initial_remaining_time == 900.0
    assert tasks[0].initial_remaining_time is None
    assert tasks[2].type == Transitioning(from_ticket_id="T1")
    assert tasks[3].type.from_ticket_id is None
    assert tasks[4].is_paused

def test_save_replaces_previous_snapshot(db):
    db.save_sessions([mixed_session()])
    db.save_sessions([])
    assert db.load_sessions() == []

def test_suspended_sessions_survive_reload(db):
    suspended = {
        "T1": SuspendedSession(ticket_id="T1", remaining_time=1380, suspended_at=at(480)),
    }
    db.save_suspended_sessions(suspended)
    assert db.load_suspended_sessions() == suspended

def test_transition_records_survive_reload(db):
    records = [
        TransitionRecord(date=at(10), duration=20, from_ticket_id="T1"),
        TransitionRecord(date=at(20), duration=10),
    ]
    db.save_transition_records(records)
    assert db.load_transition_records() == records

def test_missing_snapshots_load_empty(db):
    assert db.load_sessions() == []
    assert db.load_suspended_sessions() == {}
    assert db.load_transition_records() == []
    assert db.load_tickets() == []
    assert db.load_local_tasks() == []
    assert db.load_estimates() == {}

def test_undecodable_snapshot_falls_back_to_empty(db, caplog):
    """Data written by an older layout is dropped with a warning"""
    db._write(SESSIONS_KEY, b'[{"id": "not-a-uuid", "tasks": 3}]')
    db._write(SUSPENDED_SESSIONS_KEY, b"not json at all")

    assert db.load_sessions() == []
    assert db.load_suspended_sessions() == {}
    assert "could not be decoded" in caplog.text

def test_data_persists_across_managers(tmp_path):
    path = tmp_path / "shared.db"
    first = DatabaseManager(path)
    first.save_sessions([mixed_session()])

    second = DatabaseManager(path)
    assert len(second.load_sessions()) == 1

def test_memory_database_keeps_data_between_calls(memory_db):
    memory_db.save_sessions([mixed_session()])
    assert len(memory_db.load_sessions()) == 1

def test_closed_memory_database_reopens_empty(memory_db):
    memory_db.save_sessions([mixed_session()])
    memory_db.close()
    memory_db.initialize()
    assert memory_db.load_sessions() == []

def test_tickets_and_estimates(db):
    ticket = Ticket(id="abc", identifier="PRJ-1", title="Remote", state="Todo")
    db.save_tickets([ticket])
    db.save_estimate("abc", 1800)
    db.save_estimate("def", 600)
    db.save_estimate("abc", 1200)

    assert db.load_tickets() == [ticket]
    assert db.load_estimates() == {"abc": 1200, "def": 600}

def test_local_task_counter_increments(db):
    assert db.next_local_task_number() == 1
    assert db.next_local_task_number() == 2
    assert db.next_local_task_number() == 3

def test_database_stats(db):
    db.save_sessions([mixed_session()])
    db.save_transition_records([TransitionRecord(date=at(0), duration=5)])

    stats = db.get_database_stats()
    assert set(stats["snapshots"]) == {"sessions", "transition_records"}
    assert stats["snapshots"]["sessions"]["bytes"] > 0
    assert stats["counts"]["sessions"] == 1
    assert stats["counts"]["transition_records"] == 1
    assert stats["counts"]["local_tasks"] == 0
    assert stats["database_size_mb"] > 0

def test_write_failure_raises_query_error(memory_db):
    memory_db.get_connection().execute("DROP TABLE snapshots")
    with pytest.raises(QueryError):
        memory_db.save_sessions([])
