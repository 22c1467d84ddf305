"""Simple skill used by the demo and the default runtime."""
from __future__ import annotations

import asyncio
from typing import Any, Dict

from agentrunner.skills.base import Skill


class EchoSkill(Skill):
    """Skill that returns its payload unchanged after an optional simulated delay."""

    name = "echo"
    description = "Return the task payload as the result data"

    def __init__(self, delay: float = 0.0) -> None:
        self._delay = delay

    async def execute(self, payload: Any) -> Dict[str, Any]:
        delay = self._delay
        if isinstance(payload, dict) and "delay" in payload:
            delay = float(payload["delay"])
        if delay > 0:
            await asyncio.sleep(delay)  # Simulate work
        return {"data": payload, "metadata": {"api_calls": 0, "tokens_used": 0}}
