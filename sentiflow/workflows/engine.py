"""Workflow execution engine.

Runs workflow definitions as independent background executions.
``WorkflowEngine.start`` registers an execution and schedules it on the
running event loop, returning a handle before the first state runs;
the caller never waits on any capability.

Architecture:
  - WorkflowEngine: starts, tracks and drives executions
  - Execution: status, current document and append-only history of one run
  - ExecutionHandle: the immutable view returned to whoever started a run
  - State semantics: ``build_task_request``, ``merge_task_result``,
    ``apply_pass`` and ``choose_next`` are pure functions over documents

Within an execution states run strictly one after another.  Across
executions nothing mutable is shared apart from the engine's own
bookkeeping; definitions and task handlers are read-only.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections import OrderedDict
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from functools import partial
from typing import Any, Optional

from sentiflow.capabilities import CapabilityError, CapabilityUnavailableError, TaskHandler
from sentiflow.config.settings import Settings
from sentiflow.workflows.document import Document, DocumentPathError, freeze, merge, thaw
from sentiflow.workflows.errors import (
    CapabilityInvocationError,
    CapabilityTimeoutError,
    RoutingError,
    StartExecutionError,
    StepExecutionError,
    StepOutputError,
)
from sentiflow.workflows.retry import RetryPolicy
from sentiflow.workflows.schema import ChoiceState, PassState, State, TaskState, WorkflowDef

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Execution state
# ---------------------------------------------------------------------------


class ExecutionStatus(str, Enum):
    RUNNING = "RUNNING"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"


class EventType(str, Enum):
    EXECUTION_STARTED = "ExecutionStarted"
    STATE_ENTERED = "StateEntered"
    STATE_EXITED = "StateExited"
    TASK_RETRIED = "TaskRetried"
    TASK_FAILED = "TaskFailed"
    EXECUTION_SUCCEEDED = "ExecutionSucceeded"
    EXECUTION_FAILED = "ExecutionFailed"


@dataclass(frozen=True)
class ExecutionEvent:
    """One entry in an execution's history."""
    id: int
    type: EventType
    timestamp: datetime
    state: str = ""
    detail: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ExecutionHandle:
    """What the starter of an execution gets back."""
    execution_arn: str
    start_date: datetime


@dataclass
class Execution:
    """Tracks the full state of one workflow execution.

    Owned and mutated by the engine only.
    """
    execution_arn: str
    workflow_name: str
    input: Document
    document: Document
    current_state: str
    status: ExecutionStatus = ExecutionStatus.RUNNING
    started_at: datetime = field(default_factory=_now)
    stopped_at: Optional[datetime] = None
    error: str = ""
    cause: str = ""
    output: Optional[Document] = None
    history: list[ExecutionEvent] = field(default_factory=list)
    _done: asyncio.Event = field(default_factory=asyncio.Event, repr=False)

    @property
    def handle(self) -> ExecutionHandle:
        return ExecutionHandle(self.execution_arn, self.started_at)

    @property
    def done(self) -> bool:
        return self.status != ExecutionStatus.RUNNING

    @property
    def visited_states(self) -> list[str]:
        """States entered so far, in order."""
        return [e.state for e in self.history if e.type == EventType.STATE_ENTERED]

    def record(self, event_type: EventType, state: str = "", **detail: Any) -> ExecutionEvent:
        event = ExecutionEvent(
            id=len(self.history) + 1,
            type=event_type,
            timestamp=_now(),
            state=state,
            detail=detail,
        )
        self.history.append(event)
        logger.debug(
            "Execution %s: %s %s %s", self.execution_arn, event_type.value, state, detail or "",
        )
        return event

    def succeed(self) -> None:
        self.status = ExecutionStatus.SUCCEEDED
        self.output = self.document
        self.stopped_at = _now()
        self.record(EventType.EXECUTION_SUCCEEDED, self.current_state)
        self._done.set()

    def fail(self, error: str, cause: str) -> None:
        self.status = ExecutionStatus.FAILED
        self.error = error
        self.cause = cause
        self.stopped_at = _now()
        self.record(EventType.EXECUTION_FAILED, self.current_state, error=error, cause=cause)
        self._done.set()

    async def wait(self) -> None:
        await self._done.wait()

    def summary(self) -> dict[str, Any]:
        return {
            "executionArn": self.execution_arn,
            "workflow": self.workflow_name,
            "status": self.status.value,
            "currentState": self.current_state,
            "startDate": self.started_at.isoformat(),
            "stopDate": self.stopped_at.isoformat() if self.stopped_at else None,
            "error": self.error,
            "cause": self.cause,
        }

    def to_dict(self) -> dict[str, Any]:
        """Serialize for logging and inspection."""
        return {
            **self.summary(),
            "input": thaw(self.input),
            "output": thaw(self.output) if self.output is not None else None,
            "history": [
                {
                    "id": e.id,
                    "type": e.type.value,
                    "timestamp": e.timestamp.isoformat(),
                    "state": e.state,
                    "detail": dict(e.detail),
                }
                for e in self.history
            ],
        }


# ---------------------------------------------------------------------------
# State semantics
# ---------------------------------------------------------------------------


def build_task_request(state: TaskState, document: Document) -> dict[str, Any]:
    """Derive a Task's capability request from the document."""
    try:
        return dict(state.build_request(document))
    except DocumentPathError as exc:
        raise StepOutputError(state.name, f"cannot build request: {exc}") from exc


def merge_task_result(state: TaskState, document: Document, response: Mapping[str, Any]) -> Document:
    """Merge a capability response at the Task's result key, or replace the document."""
    if state.result_key is None:
        return freeze(response)
    return merge(document, state.result_key, response)


def apply_pass(state: PassState, document: Document) -> Document:
    """Apply a Pass projection, producing a new document."""
    try:
        return freeze(state.project(document))
    except DocumentPathError as exc:
        raise StepOutputError(state.name, f"cannot project document: {exc}") from exc


def choose_next(state: ChoiceState, document: Document) -> str:
    """First rule whose predicate holds wins; then the default; else RoutingError."""
    for rule in state.rules:
        try:
            matched = rule.predicate(document)
        except DocumentPathError as exc:
            raise StepOutputError(state.name, f"cannot evaluate rule: {exc}") from exc
        if matched:
            return rule.next
    if state.default is not None:
        return state.default
    raise RoutingError(state.name, "no choice rule matched and no default is defined")


# ---------------------------------------------------------------------------
# Workflow engine
# ---------------------------------------------------------------------------


class WorkflowEngine:
    """Starts and drives workflow executions.

    Parameters
    ----------
    handlers:
        Task handlers by capability name.
    retry_policy:
        Applied to transient capability failures (unavailable, timeout).
    task_timeout:
        Per-call timeout in seconds; ``None`` disables it.
    max_concurrent_executions:
        ``start`` refuses new executions beyond this many running ones.
    max_retained_executions:
        Finished executions kept for inspection; oldest are dropped first.
    """

    def __init__(
        self,
        handlers: Mapping[str, TaskHandler],
        *,
        retry_policy: RetryPolicy | None = None,
        task_timeout: float | None = 30.0,
        max_concurrent_executions: int = 1000,
        max_retained_executions: int = 10_000,
        arn_prefix: str = "arn:sentiflow:states:local:execution",
    ) -> None:
        self._handlers = dict(handlers)
        self._retry = retry_policy or RetryPolicy()
        self._task_timeout = task_timeout
        self._max_concurrent = max_concurrent_executions
        self._max_retained = max_retained_executions
        self._arn_prefix = arn_prefix
        self._executions: OrderedDict[str, Execution] = OrderedDict()
        self._tasks: dict[str, asyncio.Task] = {}
        self._closed = False

    @classmethod
    def from_settings(cls, handlers: Mapping[str, TaskHandler], settings: Settings) -> "WorkflowEngine":
        return cls(
            handlers,
            retry_policy=RetryPolicy(
                max_attempts=settings.RETRY_MAX_ATTEMPTS,
                interval_seconds=settings.RETRY_INTERVAL_SECONDS,
                backoff_rate=settings.RETRY_BACKOFF_RATE,
                max_interval_seconds=settings.RETRY_MAX_INTERVAL_SECONDS,
            ),
            task_timeout=settings.TASK_TIMEOUT_SECONDS or None,
            max_concurrent_executions=settings.MAX_CONCURRENT_EXECUTIONS,
            arn_prefix=settings.EXECUTION_ARN_PREFIX,
        )

    @property
    def running_count(self) -> int:
        return len(self._tasks)

    # --- Starting ---

    def start(
        self,
        definition: WorkflowDef,
        input: Mapping[str, Any],
        name: str | None = None,
    ) -> ExecutionHandle:
        """Register a new execution and schedule it; never waits for it.

        Raises ``StartExecutionError`` when the engine cannot accept it.
        """
        if self._closed:
            raise StartExecutionError("Engine is shutting down")
        if len(self._tasks) >= self._max_concurrent:
            raise StartExecutionError(
                f"Execution limit reached ({self._max_concurrent} running)"
            )
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError as exc:
            raise StartExecutionError("No running event loop to schedule execution") from exc

        arn = f"{self._arn_prefix}:{definition.name}:{name or uuid.uuid4()}"
        if arn in self._executions:
            raise StartExecutionError(f"Execution already exists: {arn}")

        document = freeze(input)
        execution = Execution(
            execution_arn=arn,
            workflow_name=definition.name,
            input=document,
            document=document,
            current_state=definition.start_at,
        )
        execution.record(EventType.EXECUTION_STARTED, input=thaw(document))
        self._executions[arn] = execution
        self._prune()

        task = loop.create_task(self._drive(execution, definition), name=arn)
        task.add_done_callback(partial(self._release, execution))
        self._tasks[arn] = task

        logger.info("Started execution %s of '%s'", arn, definition.name)
        return execution.handle

    def _release(self, execution: Execution, task: asyncio.Task) -> None:
        # A task cancelled before its first step never enters _drive.
        if not execution.done:
            execution.fail("States.Runtime", "cancelled")
        self._tasks.pop(execution.execution_arn, None)

    def _prune(self) -> None:
        """Drop the oldest finished executions beyond the retention limit."""
        excess = len(self._executions) - self._max_retained
        if excess <= 0:
            return
        for arn in [a for a, e in self._executions.items() if e.done][:excess]:
            del self._executions[arn]

    # --- Observation ---

    def get(self, execution_arn: str) -> Execution | None:
        return self._executions.get(execution_arn)

    def list_executions(self, status: ExecutionStatus | None = None) -> list[Execution]:
        return [
            e for e in self._executions.values()
            if status is None or e.status == status
        ]

    async def wait(self, execution_arn: str, timeout: float | None = None) -> Execution:
        """Wait for an execution to reach a terminal status."""
        execution = self._executions.get(execution_arn)
        if execution is None:
            raise KeyError(execution_arn)
        await asyncio.wait_for(execution.wait(), timeout)
        return execution

    async def run(
        self,
        definition: WorkflowDef,
        input: Mapping[str, Any],
        timeout: float | None = None,
    ) -> Execution:
        """Start an execution and wait for it to finish."""
        handle = self.start(definition, input)
        return await self.wait(handle.execution_arn, timeout)

    async def shutdown(self) -> None:
        """Refuse new executions and let the running ones finish."""
        self._closed = True
        pending = list(self._tasks.values())
        if pending:
            logger.info("Waiting for %d running executions", len(pending))
            await asyncio.gather(*pending, return_exceptions=True)

    # --- Driving ---

    async def _drive(self, execution: Execution, definition: WorkflowDef) -> None:
        """Advance an execution state by state until it stops."""
        try:
            await self._advance(execution, definition)
        except asyncio.CancelledError:
            execution.fail("States.Runtime", "cancelled")
            logger.warning("Execution %s cancelled", execution.execution_arn)
            raise
        finally:
            # Release the slot before any waiter on this execution resumes.
            self._tasks.pop(execution.execution_arn, None)

    async def _advance(self, execution: Execution, definition: WorkflowDef) -> None:
        state_name: str | None = definition.start_at
        try:
            while state_name is not None:
                state = definition.states[state_name]
                execution.current_state = state_name
                execution.record(EventType.STATE_ENTERED, state_name, state_type=state.type)
                next_name = await self._step(execution, state)
                execution.record(EventType.STATE_EXITED, state_name)
                state_name = next_name

        except StepExecutionError as exc:
            execution.fail(exc.error_code, str(exc))
            logger.warning(
                "Execution %s failed in state '%s': %s",
                execution.execution_arn, exc.state, exc.message,
            )
            return

        except Exception as exc:
            logger.exception("Execution %s crashed", execution.execution_arn)
            execution.fail("States.Runtime", f"{exc.__class__.__name__}: {exc}")
            return

        execution.succeed()
        logger.info(
            "Execution %s succeeded after %d states",
            execution.execution_arn, len(execution.visited_states),
        )

    async def _step(self, execution: Execution, state: State) -> str | None:
        """Run one state; returns the name of the next one or None at the end."""
        if isinstance(state, TaskState):
            request = build_task_request(state, execution.document)
            response = await self._invoke(execution, state, request)
            execution.document = merge_task_result(state, execution.document, response)
            return state.next

        if isinstance(state, PassState):
            execution.document = apply_pass(state, execution.document)
            return state.next

        return choose_next(state, execution.document)

    async def _invoke(
        self,
        execution: Execution,
        state: TaskState,
        request: dict[str, Any],
    ) -> Mapping[str, Any]:
        """Call a capability with timeout and bounded retry on transient errors."""
        handler = self._handlers.get(state.capability)
        if handler is None:
            raise CapabilityInvocationError(
                state.name, f"no handler registered for capability '{state.capability}'"
            )

        attempts = self._retry.max_attempts
        for attempt in range(1, attempts + 1):
            try:
                if self._task_timeout is not None:
                    response = await asyncio.wait_for(handler(request), self._task_timeout)
                else:
                    response = await handler(request)

            except asyncio.TimeoutError:
                failure: CapabilityInvocationError = CapabilityTimeoutError(
                    state.name, f"timed out after {self._task_timeout}s"
                )
            except CapabilityUnavailableError as exc:
                failure = CapabilityInvocationError(state.name, str(exc))
            except CapabilityError as exc:
                execution.record(EventType.TASK_FAILED, state.name, attempt=attempt, cause=str(exc))
                raise CapabilityInvocationError(state.name, str(exc)) from exc
            except Exception as exc:
                execution.record(EventType.TASK_FAILED, state.name, attempt=attempt, cause=str(exc))
                logger.exception("Capability '%s' raised unexpectedly", state.capability)
                raise CapabilityInvocationError(
                    state.name, f"{exc.__class__.__name__}: {exc}"
                ) from exc

            else:
                if not isinstance(response, Mapping):
                    raise CapabilityInvocationError(
                        state.name,
                        f"capability returned {type(response).__name__}, expected object",
                    )
                return response

            execution.record(
                EventType.TASK_FAILED, state.name, attempt=attempt, cause=failure.message,
            )
            if attempt == attempts:
                raise failure

            delay = await self._retry.sleep(attempt)
            execution.record(EventType.TASK_RETRIED, state.name, attempt=attempt + 1, delay=delay)
            logger.info(
                "Retrying '%s' for %s (attempt %d/%d) after %.2fs: %s",
                state.name, execution.execution_arn, attempt + 1, attempts, delay, failure.message,
            )

        raise CapabilityInvocationError(state.name, "retry policy allows no attempts")
