"""Registry mapping task types to the skills that execute them."""
from __future__ import annotations

from typing import Dict, List

from agentrunner.core.errors import DuplicateSkillError, SkillNotFoundError
from agentrunner.skills.base import Skill


class SkillRegistry:
    """Registry maintaining skill implementations by task type."""

    def __init__(self) -> None:
        self._skills: Dict[str, Skill] = {}

    def register_skill(self, task_type: str, skill: Skill) -> None:
        if not task_type:
            raise ValueError("task_type must be a non-empty string")
        if task_type in self._skills:
            raise DuplicateSkillError(task_type)
        self._skills[task_type] = skill

    def get_skill(self, task_type: str) -> Skill:
        if task_type not in self._skills:
            raise SkillNotFoundError(task_type)
        return self._skills[task_type]

    def skill_types(self) -> List[str]:
        return sorted(self._skills)

    def list_skills(self) -> Dict[str, Skill]:
        return dict(self._skills)

    def __contains__(self, task_type: object) -> bool:
        return task_type in self._skills

    def __len__(self) -> int:
        return len(self._skills)
