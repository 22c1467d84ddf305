"""Core data models shared across runner components."""
from __future__ import annotations

import uuid
from dataclasses import asdict, dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum, auto
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from agentrunner.core.errors import InvalidStateError

if TYPE_CHECKING:
    from agentrunner.config import RunnerDefaults


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_task_id() -> str:
    return uuid.uuid4().hex


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _parse(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


class AgentStatus(Enum):
    """Lifecycle states of an agent runner."""

    STOPPED = auto()
    RUNNING = auto()
    PAUSED = auto()


class TaskStatus(Enum):
    """Lifecycle states of a single task."""

    PENDING = auto()
    RUNNING = auto()
    RETRYING = auto()
    COMPLETED = auto()
    FAILED = auto()

    @property
    def is_terminal(self) -> bool:
        return self in (TaskStatus.COMPLETED, TaskStatus.FAILED)


_TASK_TRANSITIONS = {
    TaskStatus.PENDING: {TaskStatus.RUNNING},
    TaskStatus.RUNNING: {TaskStatus.COMPLETED, TaskStatus.FAILED, TaskStatus.RETRYING},
    TaskStatus.RETRYING: {TaskStatus.PENDING},
    TaskStatus.COMPLETED: set(),
    TaskStatus.FAILED: set(),
}


@dataclass(frozen=True, slots=True)
class AgentConfig:
    """Immutable configuration of one agent instance."""

    name: str
    agent_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    max_concurrent_tasks: int = 5
    retry_attempts: int = 3
    timeout_ms: int = 300_000
    retry_backoff_ms: int = 0
    retry_backoff_max_ms: int = 30_000
    description: str = ""
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.max_concurrent_tasks <= 0:
            raise ValueError("max_concurrent_tasks must be greater than 0")
        if self.retry_attempts < 0:
            raise ValueError("retry_attempts must not be negative")
        if self.timeout_ms <= 0:
            raise ValueError("timeout_ms must be greater than 0")
        if self.retry_backoff_ms < 0 or self.retry_backoff_max_ms < 0:
            raise ValueError("retry backoff values must not be negative")

    @classmethod
    def from_settings(cls, name: str, defaults: RunnerDefaults, **overrides: Any) -> AgentConfig:
        """Build a config from runner defaults, letting explicit overrides win."""
        values: Dict[str, Any] = {
            "max_concurrent_tasks": defaults.max_concurrent_tasks,
            "retry_attempts": defaults.retry_attempts,
            "timeout_ms": defaults.timeout_ms,
            "retry_backoff_ms": defaults.retry_backoff_ms,
            "retry_backoff_max_ms": defaults.retry_backoff_max_ms,
        }
        values.update({key: value for key, value in overrides.items() if value is not None})
        return cls(name=name, **values)


@dataclass(slots=True)
class TaskSpec:
    """Caller-supplied description of work to enqueue."""

    type: str
    payload: Any = field(default_factory=dict)
    priority: int = 0
    max_retries: Optional[int] = None
    timeout_ms: Optional[int] = None


@dataclass(slots=True)
class TaskResult:
    """Outcome of a successful skill execution."""

    data: Any = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    execution_time_ms: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        # Shallow: skill data may hold objects that cannot be deep-copied.
        return {
            "data": self.data,
            "metadata": dict(self.metadata),
            "execution_time_ms": self.execution_time_ms,
        }


@dataclass(slots=True)
class Task:
    """A unit of work dispatched to the skill registered for ``type``."""

    type: str
    payload: Any = field(default_factory=dict)
    id: str = field(default_factory=new_task_id)
    priority: int = 0
    status: TaskStatus = TaskStatus.PENDING
    retry_count: int = 0
    max_retries: int = 0
    timeout_ms: Optional[int] = None
    result: Optional[TaskResult] = None
    error: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def can_retry(self) -> bool:
        return self.retry_count < self.max_retries

    @property
    def execution_time_ms(self) -> Optional[float]:
        if self.started_at is None or self.completed_at is None:
            return None
        return (self.completed_at - self.started_at).total_seconds() * 1000

    def transition(self, status: TaskStatus) -> None:
        """Move to ``status``, rejecting moves the task lifecycle does not allow."""
        if status not in _TASK_TRANSITIONS[self.status]:
            raise InvalidStateError(
                f"Task '{self.id}' cannot move from {self.status.name} to {status.name}"
            )
        self.status = status

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "payload": self.payload,
            "priority": self.priority,
            "status": self.status.name,
            "retry_count": self.retry_count,
            "max_retries": self.max_retries,
            "timeout_ms": self.timeout_ms,
            "result": self.result.to_dict() if self.result is not None else None,
            "error": self.error,
            "created_at": _iso(self.created_at),
            "started_at": _iso(self.started_at),
            "completed_at": _iso(self.completed_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Task:
        result = data.get("result")
        return cls(
            id=data["id"],
            type=data["type"],
            payload=data.get("payload"),
            priority=data.get("priority", 0),
            status=TaskStatus[data.get("status", "PENDING")],
            retry_count=data.get("retry_count", 0),
            max_retries=data.get("max_retries", 0),
            timeout_ms=data.get("timeout_ms"),
            result=TaskResult(**result) if result is not None else None,
            error=data.get("error"),
            created_at=_parse(data.get("created_at")) or utcnow(),
            started_at=_parse(data.get("started_at")),
            completed_at=_parse(data.get("completed_at")),
        )


@dataclass(slots=True)
class AgentState:
    """Mutable run-state owned by a single ``AgentRunner``."""

    agent_id: str
    status: AgentStatus = AgentStatus.STOPPED
    completed_tasks: List[Task] = field(default_factory=list)
    failed_tasks: List[Task] = field(default_factory=list)
    # Worker slot index -> task being executed in that slot.
    current_tasks: Dict[int, Task] = field(default_factory=dict)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    started_at: Optional[datetime] = None
    stopped_at: Optional[datetime] = None

    def touch(self) -> None:
        self.updated_at = utcnow()

    def snapshot(self) -> AgentState:
        """Return a copy detached from the runner's live lists and tasks."""
        return replace(
            self,
            completed_tasks=[replace(task) for task in self.completed_tasks],
            failed_tasks=[replace(task) for task in self.failed_tasks],
            current_tasks={slot: replace(task) for slot, task in self.current_tasks.items()},
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "agent_id": self.agent_id,
            "status": self.status.name,
            "completed_tasks": [task.to_dict() for task in self.completed_tasks],
            "failed_tasks": [task.to_dict() for task in self.failed_tasks],
            "current_tasks": {str(slot): task.to_dict() for slot, task in self.current_tasks.items()},
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
            "started_at": _iso(self.started_at),
            "stopped_at": _iso(self.stopped_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> AgentState:
        return cls(
            agent_id=data["agent_id"],
            status=AgentStatus[data.get("status", "STOPPED")],
            completed_tasks=[Task.from_dict(item) for item in data.get("completed_tasks", [])],
            failed_tasks=[Task.from_dict(item) for item in data.get("failed_tasks", [])],
            current_tasks={
                int(slot): Task.from_dict(item)
                for slot, item in data.get("current_tasks", {}).items()
            },
            created_at=_parse(data.get("created_at")) or utcnow(),
            updated_at=_parse(data.get("updated_at")) or utcnow(),
            started_at=_parse(data.get("started_at")),
            stopped_at=_parse(data.get("stopped_at")),
        )


@dataclass(frozen=True, slots=True)
class AgentMetrics:
    """Read-only aggregate view derived from an ``AgentState``."""

    total_tasks: int
    completed_tasks: int
    failed_tasks: int
    queued_tasks: int
    in_flight_tasks: int
    success_rate: float
    average_execution_time_ms: float
    tokens_used: int
    api_calls: int
    uptime_ms: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
