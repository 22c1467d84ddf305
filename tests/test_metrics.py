"""Tests for metrics derived from agent state."""
from __future__ import annotations

from datetime import timedelta

import pytest

from agentrunner.core.models import AgentState, AgentStatus, Task, TaskResult, TaskStatus, utcnow
from agentrunner.runner.metrics import compute_metrics


def _completed(duration_ms: float, metadata: dict) -> Task:
    started = utcnow()
    return Task(
        type="echo",
        status=TaskStatus.COMPLETED,
        result=TaskResult(data=None, metadata=metadata),
        started_at=started,
        completed_at=started + timedelta(milliseconds=duration_ms),
    )


def test_empty_state_has_zero_success_rate() -> None:
    metrics = compute_metrics(AgentState(agent_id="a1"))

    assert metrics.total_tasks == 0
    assert metrics.success_rate == 0.0
    assert metrics.average_execution_time_ms == 0.0
    assert metrics.uptime_ms == 0.0


def test_success_rate_counts_terminal_tasks_only() -> None:
    state = AgentState(agent_id="a1")
    state.completed_tasks = [_completed(100, {}), _completed(300, {})]
    state.failed_tasks = [Task(type="echo", status=TaskStatus.FAILED, error="x")]
    state.current_tasks = {0: Task(type="echo", status=TaskStatus.RUNNING)}

    metrics = compute_metrics(state, queued=4)

    assert metrics.completed_tasks == 2
    assert metrics.failed_tasks == 1
    assert metrics.queued_tasks == 4
    assert metrics.in_flight_tasks == 1
    assert metrics.total_tasks == 8
    assert metrics.success_rate == pytest.approx(2 / 3)
    assert metrics.average_execution_time_ms == pytest.approx(200)


def test_usage_is_summed_from_result_metadata() -> None:
    state = AgentState(agent_id="a1")
    state.completed_tasks = [
        _completed(10, {"tokens_used": 100, "api_calls": 1}),
        _completed(10, {"tokensUsed": 50, "apiCalls": 2}),
        _completed(10, {}),
    ]

    metrics = compute_metrics(state)

    assert metrics.tokens_used == 150
    assert metrics.api_calls == 3


def test_uptime_uses_now_while_running_and_last_run_when_stopped() -> None:
    start = utcnow()
    state = AgentState(agent_id="a1", status=AgentStatus.RUNNING, started_at=start)
    running = compute_metrics(state, now=start + timedelta(seconds=2))
    assert running.uptime_ms == pytest.approx(2000)

    state.status = AgentStatus.STOPPED
    state.stopped_at = start + timedelta(seconds=5)
    stopped = compute_metrics(state, now=start + timedelta(seconds=60))
    assert stopped.uptime_ms == pytest.approx(5000)
