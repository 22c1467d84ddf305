"""Aggregate metrics derived from an agent's run-state."""
from __future__ import annotations

from datetime import datetime
from typing import Any, Iterable, Mapping, Optional

from agentrunner.core.models import AgentMetrics, AgentState, AgentStatus, Task, utcnow


def _metadata_count(metadata: Mapping[str, Any], *keys: str) -> int:
    for key in keys:
        value = metadata.get(key)
        if value is not None:
            try:
                return int(value)
            except (TypeError, ValueError):
                return 0
    return 0


def _average_execution_ms(tasks: Iterable[Task]) -> float:
    durations = [task.execution_time_ms for task in tasks]
    durations = [duration for duration in durations if duration is not None]
    if not durations:
        return 0.0
    return sum(durations) / len(durations)


def _uptime_ms(state: AgentState, now: datetime) -> float:
    if state.started_at is None:
        return 0.0
    if state.status in (AgentStatus.RUNNING, AgentStatus.PAUSED):
        end = now
    elif state.stopped_at is not None and state.stopped_at >= state.started_at:
        end = state.stopped_at
    else:
        return 0.0
    return (end - state.started_at).total_seconds() * 1000


def compute_metrics(
    state: AgentState,
    *,
    queued: int = 0,
    now: Optional[datetime] = None,
) -> AgentMetrics:
    """Pure read over ``state``; ``queued`` is the queue depth when observable.

    ``success_rate`` only counts terminal tasks, so queued and in-flight work
    never drags it down.
    """
    completed = len(state.completed_tasks)
    failed = len(state.failed_tasks)
    in_flight = len(state.current_tasks)
    terminal = completed + failed

    tokens_used = 0
    api_calls = 0
    for task in state.completed_tasks:
        if task.result is None:
            continue
        tokens_used += _metadata_count(task.result.metadata, "tokens_used", "tokensUsed")
        api_calls += _metadata_count(task.result.metadata, "api_calls", "apiCalls")

    return AgentMetrics(
        total_tasks=terminal + queued + in_flight,
        completed_tasks=completed,
        failed_tasks=failed,
        queued_tasks=queued,
        in_flight_tasks=in_flight,
        success_rate=completed / terminal if terminal else 0.0,
        average_execution_time_ms=_average_execution_ms(state.completed_tasks),
        tokens_used=tokens_used,
        api_calls=api_calls,
        uptime_ms=_uptime_ms(state, now or utcnow()),
    )
