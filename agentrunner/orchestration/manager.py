"""Manager responsible for provisioning and supervising agent runners."""
from __future__ import annotations

import asyncio
from typing import Callable, Dict, Iterable

import structlog

from agentrunner.core.errors import AgentNotFoundError
from agentrunner.core.models import AgentConfig
from agentrunner.queue.base import TaskQueue
from agentrunner.queue.memory import InMemoryTaskQueue
from agentrunner.runner.agent_runner import AgentRunner
from agentrunner.skills.registry import SkillRegistry
from agentrunner.store.base import StateStore


class AgentManager:
    """Coordinate runner lifecycles over a shared skill registry and state store."""

    def __init__(
        self,
        *,
        registry: SkillRegistry,
        store: StateStore,
        queue_factory: Callable[[AgentConfig], TaskQueue] = lambda _config: InMemoryTaskQueue(),
    ) -> None:
        self._registry = registry
        self._store = store
        self._queue_factory = queue_factory
        self._runners: Dict[str, AgentRunner] = {}
        self._lock = asyncio.Lock()
        self._log = structlog.get_logger("agent_manager")

    @property
    def registry(self) -> SkillRegistry:
        return self._registry

    async def create_agent(self, config: AgentConfig, *, autostart: bool = False) -> AgentRunner:
        """Create a runner for ``config`` and optionally start it."""
        runner = AgentRunner(
            config,
            registry=self._registry,
            store=self._store,
            queue=self._queue_factory(config),
        )
        async with self._lock:
            if config.agent_id in self._runners:
                raise ValueError(f"Agent '{config.agent_id}' already exists")
            self._runners[config.agent_id] = runner
        self._log.info("agent_created", agent_id=config.agent_id, name=config.name)
        if autostart:
            await runner.start()
        return runner

    async def terminate_agent(self, agent_id: str) -> None:
        """Stop and remove a runner; unknown ids are ignored."""
        async with self._lock:
            runner = self._runners.pop(agent_id, None)
        if runner is None:
            return
        await runner.stop()
        self._log.info("agent_terminated", agent_id=agent_id)

    async def terminate_all(self) -> None:
        """Shutdown every runner currently managed."""
        async with self._lock:
            runners = list(self._runners.values())
            self._runners.clear()
        results = await asyncio.gather(*(runner.stop() for runner in runners), return_exceptions=True)
        for runner, result in zip(runners, results):
            if isinstance(result, BaseException):
                self._log.error("agent_stop_failed", agent_id=runner.agent_id, error=str(result))

    def get_runner(self, agent_id: str) -> AgentRunner:
        runner = self._runners.get(agent_id)
        if runner is None:
            raise AgentNotFoundError(agent_id)
        return runner

    def list_runners(self) -> Iterable[AgentRunner]:
        return list(self._runners.values())
