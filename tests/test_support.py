"""Tests for retry policy, event bus, settings and the agent manager."""
from __future__ import annotations

import pytest
import structlog

from agentrunner.config import Settings
from agentrunner.core.errors import AgentNotFoundError
from agentrunner.core.events import EventBus, EventKind, RunnerEvent
from agentrunner.core.log import configure_logging
from agentrunner.core.models import AgentConfig, AgentStatus
from agentrunner.orchestration.manager import AgentManager
from agentrunner.runner.retry import RetryPolicy
from agentrunner.runtime import build_registry
from agentrunner.store.memory import InMemoryStateStore


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


def test_retry_policy_defaults_to_immediate() -> None:
    policy = RetryPolicy.from_config(AgentConfig(name="a"))
    assert policy.immediate
    assert policy.delay_seconds(3) == 0.0


def test_retry_policy_backs_off_exponentially_with_cap() -> None:
    policy = RetryPolicy(base_delay_ms=100, max_delay_ms=350)
    assert [policy.delay_seconds(n) for n in (1, 2, 3, 4)] == [0.1, 0.2, 0.35, 0.35]


def test_settings_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("AGENT_MAX_CONCURRENT_TASKS", "8")
    monkeypatch.setenv("AGENT_RETRY_BACKOFF_MS", "250")
    monkeypatch.setenv("AGENT_LOG_LEVEL", "debug")
    monkeypatch.setenv("AGENT_LOG_JSON", "true")

    loaded = Settings.from_env()

    assert loaded.runner.max_concurrent_tasks == 8
    assert loaded.runner.retry_backoff_ms == 250
    assert loaded.runner.retry_attempts == 3
    assert loaded.log_level == "DEBUG"
    assert loaded.log_json is True


@pytest.mark.parametrize("level", ["bogus", "verbose", ""])
def test_configure_logging_falls_back_to_info_for_unknown_levels(
    level: str, capsys: pytest.CaptureFixture[str]
) -> None:
    configure_logging(level)
    try:
        logger = structlog.get_logger("level-check")
        logger.debug("hidden_event")
        logger.info("shown_event")
    finally:
        structlog.reset_defaults()

    out = capsys.readouterr().out
    assert "shown_event" in out
    assert "hidden_event" not in out


@pytest.mark.anyio
async def test_event_bus_fans_out_and_unsubscribes() -> None:
    bus = EventBus()
    event = RunnerEvent(kind=EventKind.STARTED, agent_id="a1")

    async with bus.subscribe() as first, bus.subscribe() as second:
        assert bus.subscriber_count == 2
        bus.publish(event)
        assert first.get_nowait() is event
        assert second.get_nowait() is event

    assert bus.subscriber_count == 0
    bus.publish(event)


@pytest.mark.anyio
async def test_manager_creates_and_terminates_agents() -> None:
    manager = AgentManager(registry=build_registry(), store=InMemoryStateStore())

    runner = await manager.create_agent(AgentConfig(name="one"), autostart=True)
    idle = await manager.create_agent(AgentConfig(name="two"))

    assert runner.status is AgentStatus.RUNNING
    assert idle.status is AgentStatus.STOPPED
    assert manager.get_runner(runner.agent_id) is runner
    assert {r.agent_id for r in manager.list_runners()} == {runner.agent_id, idle.agent_id}

    with pytest.raises(ValueError):
        await manager.create_agent(AgentConfig(name="dup", agent_id=runner.agent_id))

    await manager.terminate_agent(runner.agent_id)
    assert runner.status is AgentStatus.STOPPED
    with pytest.raises(AgentNotFoundError):
        manager.get_runner(runner.agent_id)

    await manager.terminate_all()
    assert list(manager.list_runners()) == []
