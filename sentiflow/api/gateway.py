"""Request gateway — validates input and starts sentiment executions.

The gateway is the synchronous half of the service: it checks the
payload, asks the engine to start an execution and reports whether that
worked.  It never waits for the execution or looks at its result.
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import BaseModel, ConfigDict, StrictStr, ValidationError

from sentiflow.api.responses import StartError, StartOutcome, StartSuccess
from sentiflow.workflows import StartExecutionError, WorkflowDef, WorkflowEngine

logger = logging.getLogger(__name__)


class SentimentRequest(BaseModel):
    """Body of ``POST /sentiment``."""
    model_config = ConfigDict(extra="ignore")

    txt: StrictStr


def describe_validation_error(exc: ValidationError) -> str:
    """Human-readable summary naming each offending field."""
    problems = []
    for err in exc.errors():
        loc = ".".join(str(part) for part in err.get("loc", ())) or "body"
        problems.append(f"'{loc}': {err.get('msg', 'invalid')}")
    return "Invalid request body: " + "; ".join(problems)


class RequestGateway:
    """Starts one execution of ``definition`` per valid request."""

    def __init__(self, engine: WorkflowEngine, definition: WorkflowDef) -> None:
        self._engine = engine
        self._definition = definition

    @property
    def definition(self) -> WorkflowDef:
        return self._definition

    def start(self, payload: Any, request_id: str) -> StartOutcome:
        """Validate ``payload`` and start an execution for it."""
        try:
            req = SentimentRequest.model_validate(payload)
        except ValidationError as exc:
            message = describe_validation_error(exc)
            logger.info("Request %s rejected: %s", request_id, message)
            return StartError(request_id=request_id, message=message)

        try:
            handle = self._engine.start(self._definition, {"txt": req.txt})
        except StartExecutionError as exc:
            logger.warning("Request %s: execution not started: %s", request_id, exc)
            return StartError(request_id=request_id, message=f"Execution not started: {exc}")

        logger.info("Request %s started %s", request_id, handle.execution_arn)
        return StartSuccess(
            request_id=request_id,
            execution_arn=handle.execution_arn,
            start_date=handle.start_date,
        )
