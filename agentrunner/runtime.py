"""Application runtime composition helpers."""
from __future__ import annotations

from functools import lru_cache

from agentrunner.config import settings
from agentrunner.core.models import AgentConfig
from agentrunner.orchestration.manager import AgentManager
from agentrunner.skills.echo import EchoSkill
from agentrunner.skills.registry import SkillRegistry
from agentrunner.store.base import StateStore
from agentrunner.store.memory import InMemoryStateStore


def build_registry() -> SkillRegistry:
    registry = SkillRegistry()
    registry.register_skill("echo", EchoSkill())
    return registry


@lru_cache
def get_registry() -> SkillRegistry:
    return build_registry()


@lru_cache
def get_store() -> StateStore:
    return InMemoryStateStore()


@lru_cache
def get_manager() -> AgentManager:
    return AgentManager(registry=get_registry(), store=get_store())


def default_agent_config(name: str, **overrides) -> AgentConfig:
    return AgentConfig.from_settings(name, settings.runner, **overrides)
