import pytest
from datetime import date

from timeattack.models.ticket import LocalTaskState, TaskCreateRequest
from timeattack.services.errors import TaskNotFoundError, TaskSourceError
from timeattack.services.task_source import LocalTaskSource, TaskSource

@pytest.fixture
def source(db):
    return LocalTaskSource(db)

@pytest.mark.asyncio
async def test_create_task_numbers_sequentially(source):
    first = await source.create_task(TaskCreateRequest(title="First"))
    second = await source.create_task(TaskCreateRequest(title="Second", priority=2, due_date=date(2024, 2, 1)))

    assert first.identifier == "LOCAL-1"
    assert second.identifier == "LOCAL-2"
    assert second.state == LocalTaskState.TODO.value
    assert second.priority == 2
    assert second.is_local

    tasks = await source.fetch_tasks()
    assert [t.identifier for t in tasks] == ["LOCAL-2", "LOCAL-1"]

@pytest.mark.asyncio
async def test_numbering_continues_after_delete(source):
    first = await source.create_task(TaskCreateRequest(title="First"))
    await source.delete_task(first.id)
    second = await source.create_task(TaskCreateRequest(title="Second"))
    assert second.identifier == "LOCAL-2"
    assert [t.id for t in await source.fetch_tasks()] == [second.id]

@pytest.mark.asyncio
async def test_update_task_state(source):
    task = await source.create_task(TaskCreateRequest(title="Work"))
    updated = await source.update_task_state(task.id, "In Progress")
    assert updated.is_started
    assert source.find(task.id).state == "In Progress"

@pytest.mark.asyncio
async def test_update_notes_and_estimate(source):
    task = await source.create_task(TaskCreateRequest(title="Work"))
    await source.update_task_notes(task.id, "remember the edge cases")
    updated = await source.update_local_estimate(task.id, 1800)
    assert updated.notes == "remember the edge cases"
    assert updated.local_estimate == 1800

@pytest.mark.asyncio
async def test_unknown_task_raises(source):
    with pytest.raises(TaskNotFoundError):
        await source.update_task_state("missing", "Done")

@pytest.mark.asyncio
async def test_find_by_identifier(source):
    task = await source.create_task(TaskCreateRequest(title="Work"))
    assert source.find("LOCAL-1") == task
    assert source.find("LOCAL-99") is None

def test_create_request_requires_title():
    with pytest.raises(ValueError):
        TaskCreateRequest(title="")

@pytest.mark.asyncio
async def test_delete_unsupported_by_default():
    class ReadOnlySource(TaskSource):
        provider_type = "ReadOnly"

        async def fetch_tasks(self):
            return []

        async def create_task(self, request):
            raise TaskSourceError("read only")

        async def update_task_state(self, task_id, new_state):
            raise TaskSourceError("read only")

    with pytest.raises(TaskSourceError):
        await ReadOnlySource().delete_task("x")
