"""Tests for the in-memory state store."""
from __future__ import annotations

import asyncio

import pytest

from agentrunner.core.errors import InvalidStateError
from agentrunner.core.models import AgentState, AgentStatus, Task, TaskResult, TaskStatus
from agentrunner.store.memory import InMemoryStateStore


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


def _terminal(status: TaskStatus, **fields) -> Task:
    return Task(type="echo", status=status, **fields)


@pytest.mark.anyio
async def test_load_state_defaults_when_missing() -> None:
    store = InMemoryStateStore()
    state = await store.load_state("ghost")

    assert state.agent_id == "ghost"
    assert state.status is AgentStatus.STOPPED
    assert state.completed_tasks == []


@pytest.mark.anyio
async def test_save_state_overwrites_snapshot() -> None:
    store = InMemoryStateStore()
    state = AgentState(agent_id="a1", status=AgentStatus.RUNNING)
    state.completed_tasks.append(
        _terminal(TaskStatus.COMPLETED, result=TaskResult(data={"x": 1}, metadata={"api_calls": 2}))
    )
    await store.save_state("a1", state)

    # Later mutation of the live state does not leak into the snapshot.
    state.status = AgentStatus.PAUSED
    loaded = await store.load_state("a1")
    assert loaded.status is AgentStatus.RUNNING
    assert loaded.completed_tasks[0].result.data == {"x": 1}

    state.status = AgentStatus.STOPPED
    await store.save_state("a1", state)
    assert (await store.load_state("a1")).status is AgentStatus.STOPPED


@pytest.mark.anyio
async def test_record_task_outcome_splits_histories() -> None:
    store = InMemoryStateStore()
    done = _terminal(TaskStatus.COMPLETED)
    failed = _terminal(TaskStatus.FAILED, error="nope")
    await store.record_task_outcome("a1", done)
    await store.record_task_outcome("a1", failed)

    assert [task.id for task in await store.completed_tasks("a1")] == [done.id]
    assert [task.id for task in await store.failed_tasks("a1")] == [failed.id]
    history = await store.get_task_history("a1")
    assert [task.id for task in history] == [failed.id, done.id]
    assert [task.id for task in await store.get_task_history("a1", limit=1)] == [failed.id]


@pytest.mark.anyio
async def test_record_rejects_non_terminal_task() -> None:
    store = InMemoryStateStore()
    with pytest.raises(InvalidStateError):
        await store.record_task_outcome("a1", Task(type="echo"))


@pytest.mark.anyio
async def test_concurrent_appends_are_not_dropped() -> None:
    store = InMemoryStateStore()
    tasks = [_terminal(TaskStatus.COMPLETED) for _ in range(50)]

    await asyncio.gather(*(store.record_task_outcome("a1", task) for task in tasks))

    assert len(await store.completed_tasks("a1")) == 50


@pytest.mark.anyio
async def test_delete_state_forgets_agent() -> None:
    store = InMemoryStateStore()
    await store.save_state("a1", AgentState(agent_id="a1", status=AgentStatus.RUNNING))
    await store.record_task_outcome("a1", _terminal(TaskStatus.FAILED))

    await store.delete_state("a1")

    assert (await store.load_state("a1")).status is AgentStatus.STOPPED
    assert await store.get_task_history("a1") == []
