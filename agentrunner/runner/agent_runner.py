"""Agent runner: lifecycle state machine plus bounded-concurrency task dispatch."""
from __future__ import annotations

import asyncio
import time
from dataclasses import replace
from typing import Any, Dict, List, Optional, Tuple

import structlog

from agentrunner.core.errors import (
    AlreadyRunningError,
    InvalidStateError,
    SkillNotFoundError,
    TaskExecutionError,
)
from agentrunner.core.events import EventBus, EventKind, RunnerEvent
from agentrunner.core.models import (
    AgentConfig,
    AgentMetrics,
    AgentState,
    AgentStatus,
    Task,
    TaskResult,
    TaskSpec,
    TaskStatus,
    utcnow,
)
from agentrunner.queue.base import TaskQueue
from agentrunner.queue.memory import InMemoryTaskQueue
from agentrunner.runner.metrics import compute_metrics
from agentrunner.runner.retry import RetryPolicy
from agentrunner.skills.base import normalize_result
from agentrunner.skills.registry import SkillRegistry
from agentrunner.store.base import StateStore

# Pause after a queue backend error before the dispatcher polls it again.
_QUEUE_ERROR_BACKOFF = 1.0


class AgentRunner:
    """Pull tasks from a queue and execute them through registered skills.

    One dispatcher coroutine fills at most ``max_concurrent_tasks`` worker
    slots. It sleeps on an event that is set whenever a task is queued, a slot
    frees up, or the lifecycle changes, so it never busy-polls.
    """

    def __init__(
        self,
        config: AgentConfig,
        *,
        registry: SkillRegistry,
        store: StateStore,
        queue: Optional[TaskQueue] = None,
        events: Optional[EventBus] = None,
    ) -> None:
        self.config = config
        self._registry = registry
        self._store = store
        self._queue = queue if queue is not None else InMemoryTaskQueue()
        self._events = events if events is not None else EventBus()
        self._retry_policy = RetryPolicy.from_config(config)
        self._state = AgentState(agent_id=config.agent_id)
        self._dispatcher: Optional[asyncio.Task[None]] = None
        # Worker slot index -> asyncio task executing that slot.
        self._workers: Dict[int, asyncio.Task[None]] = {}
        # Task id -> (timer, task) for retries waiting out their backoff.
        self._backoff: Dict[str, Tuple[asyncio.Task[None], Task]] = {}
        self._wakeup = asyncio.Event()
        self._stop_lock = asyncio.Lock()
        self._stopping = False
        self._log = structlog.get_logger("agent_runner").bind(agent_id=config.agent_id)

    @property
    def agent_id(self) -> str:
        return self.config.agent_id

    @property
    def status(self) -> AgentStatus:
        return self._state.status

    @property
    def events(self) -> EventBus:
        return self._events

    @property
    def registry(self) -> SkillRegistry:
        return self._registry

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Transition to RUNNING and launch the dispatch loop."""
        if self._state.status in (AgentStatus.RUNNING, AgentStatus.PAUSED):
            raise AlreadyRunningError(self.agent_id, self._state.status.name)

        now = utcnow()
        self._stopping = False
        self._state.status = AgentStatus.RUNNING
        self._state.started_at = now
        self._state.stopped_at = None
        self._state.touch()
        self._dispatcher = asyncio.create_task(
            self._dispatch_loop(), name=f"agent-dispatch-{self.agent_id}"
        )
        self._log.info("agent_started", max_concurrent_tasks=self.config.max_concurrent_tasks)
        self._publish(EventKind.STARTED)
        await self._persist()

    async def pause(self) -> None:
        """Stop pulling new tasks; in-flight tasks keep running."""
        if self._state.status is not AgentStatus.RUNNING or self._stopping:
            raise InvalidStateError(
                f"Agent '{self.agent_id}' can only be paused while running "
                f"(status: {self._state.status.name})"
            )
        self._state.status = AgentStatus.PAUSED
        self._state.touch()
        self._log.info("agent_paused", in_flight=len(self._workers))
        self._publish(EventKind.PAUSED)
        await self._persist()

    async def resume(self) -> None:
        """Resume pulling tasks after a pause."""
        if self._state.status is not AgentStatus.PAUSED or self._stopping:
            raise InvalidStateError(
                f"Agent '{self.agent_id}' can only be resumed while paused "
                f"(status: {self._state.status.name})"
            )
        self._state.status = AgentStatus.RUNNING
        self._state.touch()
        self._wakeup.set()
        self._log.info("agent_resumed")
        self._publish(EventKind.RESUMED)
        await self._persist()

    async def stop(self, *, cancel_in_flight: bool = False) -> None:
        """Drain in-flight tasks and transition to STOPPED.

        The default is a graceful drain bounded by each task's timeout. With
        ``cancel_in_flight`` the running skill calls are cancelled instead and
        recorded as FAILED; any side effects they already made are left as-is.

        A drained attempt that fails with retries left is not lost: it goes
        back into the queue as PENDING, as do retries still waiting out their
        backoff, and runs on the next ``start()``.
        Calling this while already stopped is a no-op.
        """
        async with self._stop_lock:
            if self._state.status is AgentStatus.STOPPED:
                return
            await self._shutdown(cancel_in_flight)

    async def restore(self) -> None:
        """Reload history from the store and requeue tasks orphaned mid-flight.

        Tasks recorded in a worker slot of the saved snapshot were dequeued but
        never reached a terminal state; they are queued again as PENDING.
        """
        if self._state.status is not AgentStatus.STOPPED:
            raise InvalidStateError(f"Agent '{self.agent_id}' must be stopped to restore state")
        saved = await self._store.load_state(self.agent_id)
        self._state.completed_tasks = list(saved.completed_tasks)
        self._state.failed_tasks = list(saved.failed_tasks)
        self._state.created_at = saved.created_at
        self._state.started_at = saved.started_at
        self._state.stopped_at = saved.stopped_at
        for task in saved.current_tasks.values():
            orphan = replace(task, status=TaskStatus.PENDING, started_at=None, completed_at=None)
            await self._queue.enqueue(orphan)
            self._log.warning("orphaned_task_requeued", task_id=orphan.id, task_type=orphan.type)
        self._state.touch()
        await self._persist()

    # ------------------------------------------------------------------
    # Tasks and queries
    # ------------------------------------------------------------------

    async def add_task(self, spec: TaskSpec) -> str:
        """Queue a task and return its id without waiting for execution."""
        if spec.max_retries is not None and spec.max_retries < 0:
            raise ValueError("max_retries must not be negative")
        if spec.timeout_ms is not None and spec.timeout_ms <= 0:
            raise ValueError("timeout_ms must be greater than 0")

        task = Task(
            type=spec.type,
            payload=spec.payload,
            priority=spec.priority,
            max_retries=self.config.retry_attempts if spec.max_retries is None else spec.max_retries,
            timeout_ms=spec.timeout_ms,
        )
        await self._queue.enqueue(task)
        self._wakeup.set()
        self._log.info("task_queued", task_id=task.id, task_type=task.type, priority=task.priority)
        self._publish(EventKind.TASK_QUEUED, task)
        return task.id

    async def remove_task(self, task_id: str) -> bool:
        """Drop a task that is still waiting in the queue."""
        removed = await self._queue.remove(task_id)
        if removed:
            self._log.info("task_removed", task_id=task_id)
        return removed

    async def pending_tasks(self) -> List[Task]:
        return [replace(task) for task in await self._queue.snapshot()]

    def get_state(self) -> AgentState:
        """Return a detached snapshot of the run-state."""
        return self._state.snapshot()

    async def get_metrics(self) -> AgentMetrics:
        queued = await self._queue.size()
        return compute_metrics(self._state, queued=queued + len(self._backoff))

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    async def _dispatch_loop(self) -> None:
        while not self._stopping:
            self._wakeup.clear()
            if (
                self._state.status is AgentStatus.RUNNING
                and len(self._workers) < self.config.max_concurrent_tasks
            ):
                try:
                    task = await self._queue.dequeue()
                except Exception:
                    self._log.exception("queue_dequeue_failed")
                    await asyncio.sleep(_QUEUE_ERROR_BACKOFF)
                    continue
                if task is not None:
                    self._launch(task)
                    continue
            await self._wakeup.wait()

    def _launch(self, task: Task) -> None:
        if task.status is not TaskStatus.PENDING:
            self._log.warning("task_skipped", task_id=task.id, status=task.status.name)
            return

        slot = next(
            index for index in range(self.config.max_concurrent_tasks) if index not in self._workers
        )
        task.transition(TaskStatus.RUNNING)
        task.started_at = utcnow()
        task.completed_at = None
        self._state.current_tasks[slot] = task
        self._state.touch()
        self._workers[slot] = asyncio.create_task(
            self._run_slot(slot, task), name=f"agent-{self.agent_id}-slot-{slot}"
        )

    async def _run_slot(self, slot: int, task: Task) -> None:
        try:
            await self._execute(task)
        except asyncio.CancelledError:
            if task.status is TaskStatus.RUNNING:
                await self._fail(task, "Task cancelled by hard stop before completion")
            raise
        except Exception as exc:
            self._log.exception("worker_error", task_id=task.id, task_type=task.type)
            if task.status is TaskStatus.RUNNING:
                await self._fail(task, f"Worker error: {exc!r}")
        finally:
            self._state.current_tasks.pop(slot, None)
            self._workers.pop(slot, None)
            self._state.touch()
            self._wakeup.set()

    async def _execute(self, task: Task) -> None:
        self._log.info(
            "task_started", task_id=task.id, task_type=task.type, retry_count=task.retry_count
        )
        self._publish(EventKind.TASK_STARTED, task)
        await self._persist()

        try:
            skill = self._registry.get_skill(task.type)
        except SkillNotFoundError as exc:
            # Configuration error: never retried.
            await self._fail(task, str(exc))
            return

        timeout_ms = task.timeout_ms or self.config.timeout_ms
        started = time.perf_counter()
        try:
            raw = await asyncio.wait_for(skill.execute(task.payload), timeout=timeout_ms / 1000)
            result = normalize_result(raw)
        except asyncio.TimeoutError:
            error = TaskExecutionError(
                task.id, f"Task timed out after {timeout_ms} ms", timed_out=True
            )
        except Exception as exc:
            error = TaskExecutionError(task.id, str(exc) or exc.__class__.__name__)
        else:
            result.execution_time_ms = (time.perf_counter() - started) * 1000
            await self._complete(task, result)
            return

        await self._handle_failure(task, error)

    async def _complete(self, task: Task, result: TaskResult) -> None:
        task.transition(TaskStatus.COMPLETED)
        task.result = result
        task.error = None
        task.completed_at = utcnow()
        self._state.completed_tasks.append(task)
        self._state.touch()
        self._log.info(
            "task_completed",
            task_id=task.id,
            task_type=task.type,
            execution_time_ms=round(result.execution_time_ms, 2),
        )
        self._publish(EventKind.TASK_COMPLETED, task)
        await self._record(task)

    async def _handle_failure(self, task: Task, error: TaskExecutionError) -> None:
        if not task.can_retry:
            await self._fail(task, str(error), timed_out=error.timed_out)
            return

        task.retry_count += 1
        task.transition(TaskStatus.RETRYING)
        delay = self._retry_policy.delay_seconds(task.retry_count)
        self._log.warning(
            "task_retrying",
            task_id=task.id,
            task_type=task.type,
            retry_count=task.retry_count,
            max_retries=task.max_retries,
            delay_seconds=delay,
            timed_out=error.timed_out,
            error=str(error),
        )
        self._publish(
            EventKind.TASK_RETRYING,
            task,
            error=str(error),
            delay_seconds=delay,
            timed_out=error.timed_out,
        )
        if delay <= 0:
            await self._requeue(task)
            return
        timer = asyncio.create_task(self._requeue_after(task, delay))
        self._backoff[task.id] = (timer, task)

    async def _fail(self, task: Task, message: str, *, timed_out: bool = False) -> None:
        task.transition(TaskStatus.FAILED)
        task.error = message
        task.completed_at = utcnow()
        self._state.failed_tasks.append(task)
        self._state.touch()
        self._log.error(
            "task_failed",
            task_id=task.id,
            task_type=task.type,
            retry_count=task.retry_count,
            timed_out=timed_out,
            error=message,
        )
        self._publish(EventKind.TASK_FAILED, task, error=message, timed_out=timed_out)
        await self._record(task)

    async def _requeue_after(self, task: Task, delay: float) -> None:
        await asyncio.sleep(delay)
        await self._requeue(task)

    async def _requeue(self, task: Task) -> None:
        self._backoff.pop(task.id, None)
        if task.status is not TaskStatus.RETRYING:
            return
        task.transition(TaskStatus.PENDING)
        await self._queue.enqueue(task)
        self._wakeup.set()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _shutdown(self, cancel_in_flight: bool) -> None:
        self._stopping = True
        self._wakeup.set()
        if self._dispatcher is not None:
            await self._dispatcher
            self._dispatcher = None

        in_flight = list(self._workers.values())
        self._log.info("agent_stopping", in_flight=len(in_flight), cancel_in_flight=cancel_in_flight)
        if cancel_in_flight:
            for worker in in_flight:
                worker.cancel()
        if in_flight:
            await asyncio.gather(*in_flight, return_exceptions=True)

        await self._flush_backoff()

        self._state.status = AgentStatus.STOPPED
        self._state.stopped_at = utcnow()
        self._state.touch()
        self._stopping = False
        self._log.info(
            "agent_stopped",
            completed=len(self._state.completed_tasks),
            failed=len(self._state.failed_tasks),
        )
        self._publish(EventKind.STOPPED)
        await self._persist()

    async def _flush_backoff(self) -> None:
        """Move retries still waiting out their backoff straight into the queue."""
        pending = list(self._backoff.values())
        for timer, _ in pending:
            timer.cancel()
        await asyncio.gather(*(timer for timer, _ in pending), return_exceptions=True)
        for _, task in pending:
            await self._requeue(task)

    async def _record(self, task: Task) -> None:
        try:
            await self._store.record_task_outcome(self.agent_id, task)
        except Exception:
            # Run-state stays authoritative while the store is unavailable.
            self._log.exception("task_outcome_record_failed", task_id=task.id, status=task.status.name)
        await self._persist()

    async def _persist(self) -> None:
        try:
            await self._store.save_state(self.agent_id, self._state)
        except Exception:
            self._log.exception("state_save_failed", status=self._state.status.name)

    def _publish(self, kind: EventKind, task: Optional[Task] = None, **detail: Any) -> None:
        if task is not None:
            detail.setdefault("status", task.status.name)
            detail.setdefault("task_type", task.type)
        self._events.publish(
            RunnerEvent(
                kind=kind,
                agent_id=self.agent_id,
                task_id=task.id if task is not None else None,
                detail=detail,
            )
        )
