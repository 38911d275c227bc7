"""Workflow engine for sentiflow.

A workflow is a validated graph of Task, Pass and Choice states run
asynchronously by ``WorkflowEngine``.

Usage::

    from sentiflow.capabilities import create_capabilities, task_handlers
    from sentiflow.workflows import WorkflowEngine, build_sentiment_workflow

    engine = WorkflowEngine(task_handlers(create_capabilities(settings)))
    definition = build_sentiment_workflow(target_language="pt")

    handle = engine.start(definition, {"txt": "I love this"})
    execution = await engine.wait(handle.execution_arn)
"""

from sentiflow.workflows.schema import (
    ChoiceRule,
    ChoiceState,
    Not,
    PassState,
    StringEquals,
    TaskState,
    WorkflowDef,
)
from sentiflow.workflows.engine import (
    Execution,
    ExecutionHandle,
    ExecutionStatus,
    WorkflowEngine,
)
from sentiflow.workflows.errors import (
    CapabilityInvocationError,
    RoutingError,
    StartExecutionError,
    StepExecutionError,
    StepOutputError,
    WorkflowDefinitionError,
)
from sentiflow.workflows.retry import RetryPolicy
from sentiflow.workflows.sentiment import build_sentiment_workflow

__all__ = [
    "ChoiceRule",
    "ChoiceState",
    "Not",
    "PassState",
    "StringEquals",
    "TaskState",
    "WorkflowDef",
    "Execution",
    "ExecutionHandle",
    "ExecutionStatus",
    "WorkflowEngine",
    "CapabilityInvocationError",
    "RoutingError",
    "StartExecutionError",
    "StepExecutionError",
    "StepOutputError",
    "WorkflowDefinitionError",
    "RetryPolicy",
    "build_sentiment_workflow",
]
