"""CLI demonstration of a runner processing, retrying and failing tasks."""
from __future__ import annotations

import asyncio
from typing import Any

from agentrunner.config import settings
from agentrunner.core.events import EventKind
from agentrunner.core.log import configure_logging
from agentrunner.core.models import AgentConfig, TaskSpec
from agentrunner.runner.agent_runner import AgentRunner
from agentrunner.skills.base import FunctionSkill
from agentrunner.skills.echo import EchoSkill
from agentrunner.skills.registry import SkillRegistry
from agentrunner.store.memory import InMemoryStateStore


async def _flaky(payload: Any) -> dict:
    raise RuntimeError(f"upstream rejected {payload!r}")


async def main() -> None:
    configure_logging(settings.log_level, json_output=settings.log_json)

    registry = SkillRegistry()
    registry.register_skill("echo", EchoSkill(delay=0.1))
    registry.register_skill("flaky", FunctionSkill(_flaky, description="Always fails"))

    runner = AgentRunner(
        AgentConfig(name="demo", max_concurrent_tasks=2, retry_attempts=2, timeout_ms=2000),
        registry=registry,
        store=InMemoryStateStore(),
    )

    await runner.add_task(TaskSpec(type="echo", payload={"content": "low"}, priority=1))
    await runner.add_task(TaskSpec(type="echo", payload={"content": "high"}, priority=5))
    await runner.add_task(TaskSpec(type="flaky", payload={"content": "boom"}))

    async with runner.events.subscribe() as inbox:
        await runner.start()
        terminal = 0
        while terminal < 3:
            event = await asyncio.wait_for(inbox.get(), timeout=5)
            print(f"[{event.kind.value}] task={event.task_id} {event.detail}")
            if event.kind in (EventKind.TASK_COMPLETED, EventKind.TASK_FAILED):
                terminal += 1

    await runner.stop()
    metrics = await runner.get_metrics()
    print(f"Metrics: {metrics.to_dict()}")


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
