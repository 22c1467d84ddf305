"""Tests for the skill registry and skill result handling."""
from __future__ import annotations

from typing import Any

import pytest

from agentrunner.core.errors import DuplicateSkillError, SkillNotFoundError
from agentrunner.core.models import TaskResult
from agentrunner.skills.base import FunctionSkill, SkillFailure, normalize_result
from agentrunner.skills.echo import EchoSkill
from agentrunner.skills.registry import SkillRegistry


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


def test_register_and_lookup() -> None:
    registry = SkillRegistry()
    skill = EchoSkill()
    registry.register_skill("echo", skill)

    assert registry.get_skill("echo") is skill
    assert "echo" in registry
    assert registry.skill_types() == ["echo"]
    assert len(registry) == 1


def test_duplicate_registration_fails() -> None:
    registry = SkillRegistry()
    registry.register_skill("echo", EchoSkill())

    with pytest.raises(DuplicateSkillError):
        registry.register_skill("echo", EchoSkill())


def test_missing_skill_raises_typed_error() -> None:
    registry = SkillRegistry()

    with pytest.raises(SkillNotFoundError) as excinfo:
        registry.get_skill("nope")
    assert excinfo.value.task_type == "nope"
    assert str(excinfo.value) == "No skill registered for task type 'nope'"
    # Still a KeyError for mapping-style callers.
    assert isinstance(excinfo.value, KeyError)


@pytest.mark.anyio
async def test_function_skill_wraps_coroutine() -> None:
    async def shout(payload: Any) -> dict:
        return {"data": str(payload).upper(), "metadata": {"api_calls": 1}}

    skill = FunctionSkill(shout, description="Upper-case the payload")
    assert skill.name == "shout"
    assert await skill.execute("hi") == {"data": "HI", "metadata": {"api_calls": 1}}


@pytest.mark.anyio
async def test_echo_skill_returns_payload() -> None:
    result = await EchoSkill().execute({"x": 1})
    assert result["data"] == {"x": 1}


def test_normalize_result_shapes() -> None:
    existing = TaskResult(data=1)
    assert normalize_result(existing) is existing

    mapped = normalize_result({"data": {"a": 1}, "metadata": {"tokens_used": 5}})
    assert mapped.data == {"a": 1}
    assert mapped.metadata == {"tokens_used": 5}

    assert normalize_result("plain").data == "plain"
    assert normalize_result({"data": None}).metadata == {}

    with pytest.raises(SkillFailure, match="rate limited"):
        normalize_result({"success": False, "error": "rate limited"})
