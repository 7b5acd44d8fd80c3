import pytest
from datetime import datetime, timedelta
from uuid import uuid4
from pydantic import TypeAdapter

from timeattack.models.interval import PausedInterval
from timeattack.models.session import Session, SessionTask
from timeattack.models.task_type import (
    Deciding,
    Rest,
    TaskType,
    Transitioning,
    Work,
    ticket_id_of,
)

NOW = datetime(2024, 1, 1, 12, 0, 0)

def ago(seconds):
    return NOW - timedelta(seconds=seconds)

def make_task(task_type, start, end=None, **kwargs):
    return SessionTask(session_id=uuid4(), type=task_type, start_time=start, end_time=end, **kwargs)

def test_session_is_active_without_end_time():
    assert Session().is_active
    assert not Session().with_end_time(NOW).is_active

def test_active_task_is_the_unfinished_one():
    """Test activeTask picks the task with no end time"""
    completed = make_task(Work(ticket_id="ticket-1"), ago(100), ago(50))
    active = make_task(Work(ticket_id="ticket-2"), ago(50))
    session = Session(tasks=(completed, active))
    assert session.active_task.id == active.id

def test_active_task_none_when_all_complete():
    session = Session(tasks=(make_task(Work(ticket_id="ticket-1"), ago(10), NOW),))
    assert session.active_task is None

def test_appending_task_returns_new_session():
    session = Session()
    task = SessionTask(session_id=session.id, type=Deciding())
    updated = session.appending_task(task)
    assert len(updated.tasks) == 1
    assert len(session.tasks) == 0

def test_updating_task_replaces_only_matching_task():
    first = make_task(Deciding(), ago(100), ago(80))
    second = make_task(Work(ticket_id="T1"), ago(80))
    third = make_task(Rest(duration=300), ago(10))
    session = Session(tasks=(first, second, third))

    closed = second.with_end_time(NOW)
    updated = session.updating_task(closed)

    assert [t.id for t in updated.tasks] == [first.id, second.id, third.id]
    assert updated.tasks[1].end_time == NOW
    assert updated.tasks[0] == first
    assert updated.tasks[2] == third
    assert session.tasks[1].end_time is None

def test_updating_unknown_task_returns_equal_session():
    session = Session(tasks=(make_task(Deciding(), ago(10)),))
    stranger = make_task(Deciding(), ago(5))
    assert session.updating_task(stranger) == session

def test_total_paused_time_with_no_pauses():
    task = make_task(Work(ticket_id="test"), ago(10))
    assert task.total_paused_time == 0

def test_total_paused_time_excludes_active_pause():
    task = make_task(
        Work(ticket_id="test"),
        ago(200),
        paused_intervals=(
            PausedInterval(start=ago(150), end=ago(120)),
            PausedInterval(start=ago(60)),
        ),
    )
    assert task.total_paused_time == 30
    assert task.is_paused

def test_actual_duration_subtracts_paused_time():
    task = make_task(
        Work(ticket_id="test"),
        ago(100),
        NOW,
        paused_intervals=(PausedInterval(start=ago(80), end=ago(50)),),
    )
    assert task.actual_duration() == 70

def test_actual_duration_of_active_task_uses_now():
    task = make_task(Work(ticket_id="test"), ago(100))
    assert task.actual_duration(now=NOW) == 100

def test_actual_duration_reports_clock_skew_unclamped():
    task = make_task(
        Work(ticket_id="test"),
        ago(100),
        NOW,
        paused_intervals=(PausedInterval(start=ago(300), end=NOW),),
    )
    assert task.actual_duration() == -200

def test_remaining_time_prefers_carried_budget():
    task = make_task(Work(ticket_id="T1"), ago(100), initial_remaining_time=600)
    assert task.remaining_time(estimate=1800, now=NOW) == 500

def test_remaining_time_falls_back_to_estimate():
    task = make_task(Work(ticket_id="T1"), ago(100))
    assert task.remaining_time(estimate=1800, now=NOW) == 1700
    assert task.remaining_time(now=NOW) is None

def test_is_paused_when_all_pauses_complete():
    task = make_task(
        Work(ticket_id="test"),
        ago(100),
        paused_intervals=(PausedInterval(start=ago(50), end=ago(40)),),
    )
    assert not task.is_paused

def test_with_copies_keep_identity_fields():
    task = make_task(Work(ticket_id="T1"), ago(100), initial_remaining_time=42.0)
    ended = task.with_end_time(NOW)
    assert ended.id == task.id
    assert ended.session_id == task.session_id
    assert ended.initial_remaining_time == 42.0
    assert task.end_time is None

def test_entities_are_frozen():
    task = make_task(Deciding(), ago(10))
    with pytest.raises(Exception):
        task.end_time = NOW

@pytest.mark.parametrize("task_type,flags,ticket", [
    (Work(ticket_id="T1"), (True, False, False, False), "T1"),
    (Rest(duration=300), (False, True, False, False), None),
    (Deciding(), (False, False, True, False), None),
    (Transitioning(from_ticket_id="old"), (False, False, False, True), None),
])
def test_task_type_predicates(task_type, flags, ticket):
    assert (
        task_type.is_work,
        task_type.is_rest,
        task_type.is_deciding,
        task_type.is_transitioning,
    ) == flags
    assert ticket_id_of(task_type) == ticket

def test_transitioning_without_source_ticket():
    task_type = Transitioning()
    assert task_type.from_ticket_id is None
    assert task_type.is_overhead

def test_display_names():
    assert Work(ticket_id="x").display_name == "Work"
    assert Rest(duration=1).display_name == "Rest"
    assert Deciding().display_name == "Deciding"
    assert Transitioning().display_name == "Transitioning"

def test_task_type_parses_by_kind():
    adapter = TypeAdapter(TaskType)
    assert adapter.validate_python({"kind": "rest", "duration": 300}) == Rest(duration=300)
    assert adapter.validate_python({"kind": "work", "ticket_id": "T9"}) == Work(ticket_id="T9")
