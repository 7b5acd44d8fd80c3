import pytest
from datetime import date

from timeattack.models.ticket import (
    DueDateStatus,
    JiraSource,
    LinearSource,
    LocalSource,
    LocalTaskState,
    Ticket,
    provider_name,
)

TODAY = date(2024, 1, 10)

def make_ticket(**kwargs):
    defaults = dict(id="t-1", identifier="LOCAL-1", title="Write report", state="Todo")
    defaults.update(kwargs)
    return Ticket(**defaults)

@pytest.mark.parametrize("due,kind,days,text", [
    (date(2024, 1, 8), "overdue", 2, "2 days overdue"),
    (date(2024, 1, 9), "overdue", 1, "1 day overdue"),
    (date(2024, 1, 10), "today", 0, "Due today"),
    (date(2024, 1, 11), "soon", 1, "Due tomorrow"),
    (date(2024, 1, 13), "soon", 3, "3 days left"),
    (date(2024, 1, 20), "normal", 10, "10 days left"),
])
def test_due_date_status(due, kind, days, text):
    status = make_ticket(due_date=due).due_date_status(TODAY)
    assert status.kind == kind
    assert status.days == days
    assert status.display_text == text

def test_no_due_date():
    status = make_ticket().due_date_status(TODAY)
    assert status == DueDateStatus(kind="none")
    assert status.display_text == ""

def test_display_estimate():
    assert make_ticket(local_estimate=5400).display_estimate == "1h 30m"
    assert make_ticket(local_estimate=1500).display_estimate == "25m"
    assert make_ticket(estimate_points=3).display_estimate == "3 pts"
    assert make_ticket().display_estimate == "No estimate"

def test_state_checks_use_configured_states():
    assert make_ticket(state="In Progress").is_started
    assert make_ticket(state="done").is_completed
    todo = make_ticket(state="Todo")
    assert not todo.is_started
    assert not todo.is_completed

def test_local_task_state_workflow():
    assert LocalTaskState.TODO.next() is LocalTaskState.IN_PROGRESS
    assert LocalTaskState.IN_PROGRESS.next() is LocalTaskState.DONE
    assert LocalTaskState.DONE.next() is LocalTaskState.DONE
    assert LocalTaskState.IN_PROGRESS.is_started
    assert LocalTaskState.DONE.is_completed

def test_all_tickets_flattens_children_depth_first():
    grandchild = make_ticket(id="c-1-1", identifier="LOCAL-4")
    child = make_ticket(id="c-1", identifier="LOCAL-2", children=[grandchild])
    sibling = make_ticket(id="c-2", identifier="LOCAL-3")
    parent = make_ticket(children=[child, sibling])
    assert [t.id for t in parent.all_tickets] == ["t-1", "c-1", "c-1-1", "c-2"]

def test_sources():
    assert make_ticket().is_local
    linear = make_ticket(source=LinearSource(issue_id="abc", url="https://linear.app/x"))
    assert not linear.is_local
    assert provider_name(LocalSource()) == "Local"
    assert provider_name(linear.source) == "Linear"
    assert provider_name(JiraSource(issue_key="PRJ-1", url="https://jira/x")) == "Jira"

def test_source_parses_from_dict():
    ticket = Ticket.model_validate({
        "id": "x", "identifier": "PRJ-7", "title": "t", "state": "Todo",
        "source": {"kind": "jira", "issue_key": "PRJ-7", "url": "https://jira/PRJ-7"},
    })
    assert isinstance(ticket.source, JiraSource)

def test_copies_do_not_mutate():
    ticket = make_ticket()
    updated = ticket.with_state("Done").with_local_estimate(600).with_notes("shipped")
    assert ticket.state == "Todo"
    assert ticket.local_estimate is None
    assert updated.state == "Done"
    assert updated.local_estimate == 600
    assert updated.notes == "shipped"
