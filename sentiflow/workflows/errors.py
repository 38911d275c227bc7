"""Workflow error taxonomy.

Boundary errors (``WorkflowDefinitionError``, ``StartExecutionError``)
are raised synchronously to the caller.  ``StepExecutionError`` and its
subclasses terminate a single running execution and are recorded on it;
they never propagate back to whoever started the execution.
"""

from __future__ import annotations


class WorkflowError(Exception):
    """Base class for all workflow errors."""


class WorkflowDefinitionError(WorkflowError):
    """Raised when a workflow graph fails validation."""

    def __init__(self, errors: list[str]) -> None:
        self.errors = list(errors)
        super().__init__("Invalid workflow definition: " + "; ".join(self.errors))


class StartExecutionError(WorkflowError):
    """Raised when the engine cannot accept a new execution."""


class StepExecutionError(WorkflowError):
    """A state failed while an execution was running."""

    error_code = "States.Runtime"

    def __init__(self, state: str, message: str) -> None:
        self.state = state
        self.message = message
        super().__init__(f"{state}: {message}")


class CapabilityInvocationError(StepExecutionError):
    """The external capability behind a Task state failed."""

    error_code = "States.TaskFailed"


class CapabilityTimeoutError(CapabilityInvocationError):
    """A capability call exceeded the per-call timeout."""

    error_code = "States.Timeout"


class StepOutputError(StepExecutionError):
    """A projection or predicate could not read the data it expects."""

    error_code = "States.Runtime"


class RoutingError(StepExecutionError):
    """No Choice rule matched and the state has no default."""

    error_code = "States.NoChoiceMatched"
