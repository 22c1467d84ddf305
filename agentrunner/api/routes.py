"""HTTP API exposing agent runner controls."""
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from agentrunner.core.errors import AgentNotFoundError, AlreadyRunningError, InvalidStateError
from agentrunner.core.models import AgentMetrics, AgentState, Task, TaskSpec
from agentrunner.orchestration.manager import AgentManager
from agentrunner.runner.agent_runner import AgentRunner
from agentrunner.runtime import default_agent_config, get_manager

router = APIRouter(prefix="/agents", tags=["agents"])
skills_router = APIRouter(prefix="/skills", tags=["skills"])


class AgentCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, description="Display name of the agent")
    description: str = ""
    max_concurrent_tasks: Optional[int] = Field(None, gt=0)
    retry_attempts: Optional[int] = Field(None, ge=0)
    timeout_ms: Optional[int] = Field(None, gt=0)
    retry_backoff_ms: Optional[int] = Field(None, ge=0)
    metadata: Dict[str, Any] = Field(default_factory=dict)
    autostart: bool = True


class TaskCreateRequest(BaseModel):
    type: str = Field(..., min_length=1, description="Registered skill task type")
    payload: Any = Field(default_factory=dict)
    priority: int = 0
    max_retries: Optional[int] = Field(None, ge=0)
    timeout_ms: Optional[int] = Field(None, gt=0)


class TaskCreatedResponse(BaseModel):
    agent_id: str
    task_id: str


class TaskResponse(BaseModel):
    id: str
    type: str
    status: str
    priority: int
    retry_count: int
    max_retries: int
    result: Optional[Any] = None
    error: Optional[str] = None
    created_at: datetime
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @classmethod
    def from_task(cls, task: Task) -> "TaskResponse":
        return cls(
            id=task.id,
            type=task.type,
            status=task.status.name,
            priority=task.priority,
            retry_count=task.retry_count,
            max_retries=task.max_retries,
            result=task.result.data if task.result is not None else None,
            error=task.error,
            created_at=task.created_at,
            started_at=task.started_at,
            completed_at=task.completed_at,
        )


class AgentResponse(BaseModel):
    agent_id: str
    name: str
    status: str
    max_concurrent_tasks: int
    in_flight: List[TaskResponse]
    completed_count: int
    failed_count: int
    started_at: Optional[datetime]
    stopped_at: Optional[datetime]

    @classmethod
    def from_runner(cls, runner: AgentRunner) -> "AgentResponse":
        state: AgentState = runner.get_state()
        return cls(
            agent_id=runner.agent_id,
            name=runner.config.name,
            status=state.status.name,
            max_concurrent_tasks=runner.config.max_concurrent_tasks,
            in_flight=[TaskResponse.from_task(task) for task in state.current_tasks.values()],
            completed_count=len(state.completed_tasks),
            failed_count=len(state.failed_tasks),
            started_at=state.started_at,
            stopped_at=state.stopped_at,
        )


class MetricsResponse(BaseModel):
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

    @classmethod
    def from_metrics(cls, metrics: AgentMetrics) -> "MetricsResponse":
        return cls(**metrics.to_dict())


class SkillResponse(BaseModel):
    type: str
    name: str
    description: str


def _get_runner(agent_id: str, manager: AgentManager) -> AgentRunner:
    try:
        return manager.get_runner(agent_id)
    except AgentNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc


async def _transition(runner: AgentRunner, action: str) -> AgentResponse:
    try:
        await getattr(runner, action)()
    except (AlreadyRunningError, InvalidStateError) as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    return AgentResponse.from_runner(runner)


@router.post("", response_model=AgentResponse, status_code=status.HTTP_201_CREATED)
async def create_agent(
    request: AgentCreateRequest,
    manager: AgentManager = Depends(get_manager),
) -> AgentResponse:
    try:
        config = default_agent_config(
            request.name,
            description=request.description,
            max_concurrent_tasks=request.max_concurrent_tasks,
            retry_attempts=request.retry_attempts,
            timeout_ms=request.timeout_ms,
            retry_backoff_ms=request.retry_backoff_ms,
            metadata=request.metadata,
        )
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    runner = await manager.create_agent(config, autostart=request.autostart)
    return AgentResponse.from_runner(runner)


@router.get("", response_model=List[AgentResponse])
async def list_agents(manager: AgentManager = Depends(get_manager)) -> List[AgentResponse]:
    return [AgentResponse.from_runner(runner) for runner in manager.list_runners()]


@router.get("/{agent_id}", response_model=AgentResponse)
async def get_agent(agent_id: str, manager: AgentManager = Depends(get_manager)) -> AgentResponse:
    return AgentResponse.from_runner(_get_runner(agent_id, manager))


@router.delete("/{agent_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_agent(agent_id: str, manager: AgentManager = Depends(get_manager)) -> None:
    await manager.terminate_agent(agent_id)


@router.post("/{agent_id}/start", response_model=AgentResponse)
async def start_agent(agent_id: str, manager: AgentManager = Depends(get_manager)) -> AgentResponse:
    return await _transition(_get_runner(agent_id, manager), "start")


@router.post("/{agent_id}/pause", response_model=AgentResponse)
async def pause_agent(agent_id: str, manager: AgentManager = Depends(get_manager)) -> AgentResponse:
    return await _transition(_get_runner(agent_id, manager), "pause")


@router.post("/{agent_id}/resume", response_model=AgentResponse)
async def resume_agent(agent_id: str, manager: AgentManager = Depends(get_manager)) -> AgentResponse:
    return await _transition(_get_runner(agent_id, manager), "resume")


@router.post("/{agent_id}/stop", response_model=AgentResponse)
async def stop_agent(agent_id: str, manager: AgentManager = Depends(get_manager)) -> AgentResponse:
    return await _transition(_get_runner(agent_id, manager), "stop")


@router.post(
    "/{agent_id}/tasks",
    response_model=TaskCreatedResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def add_task(
    agent_id: str,
    request: TaskCreateRequest,
    manager: AgentManager = Depends(get_manager),
) -> TaskCreatedResponse:
    runner = _get_runner(agent_id, manager)
    if request.type not in runner.registry:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"No skill registered for task type '{request.type}'",
        )
    task_id = await runner.add_task(
        TaskSpec(
            type=request.type,
            payload=request.payload,
            priority=request.priority,
            max_retries=request.max_retries,
            timeout_ms=request.timeout_ms,
        )
    )
    return TaskCreatedResponse(agent_id=agent_id, task_id=task_id)


@router.get("/{agent_id}/tasks", response_model=Dict[str, List[TaskResponse]])
async def list_tasks(
    agent_id: str,
    manager: AgentManager = Depends(get_manager),
) -> Dict[str, List[TaskResponse]]:
    runner = _get_runner(agent_id, manager)
    state = runner.get_state()
    return {
        "pending": [TaskResponse.from_task(task) for task in await runner.pending_tasks()],
        "running": [TaskResponse.from_task(task) for task in state.current_tasks.values()],
        "completed": [TaskResponse.from_task(task) for task in state.completed_tasks],
        "failed": [TaskResponse.from_task(task) for task in state.failed_tasks],
    }


@router.get("/{agent_id}/metrics", response_model=MetricsResponse)
async def get_metrics(agent_id: str, manager: AgentManager = Depends(get_manager)) -> MetricsResponse:
    runner = _get_runner(agent_id, manager)
    return MetricsResponse.from_metrics(await runner.get_metrics())


@skills_router.get("", response_model=List[SkillResponse])
async def list_skills(manager: AgentManager = Depends(get_manager)) -> List[SkillResponse]:
    return [
        SkillResponse(type=task_type, name=skill.name, description=skill.description)
        for task_type, skill in sorted(manager.registry.list_skills().items())
    ]
