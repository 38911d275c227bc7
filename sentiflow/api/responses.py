"""Mapping of execution start outcomes to HTTP responses.

The gateway only ever reports whether an execution *started*.  Success
carries the execution handle, failure carries a message; both carry the
request id so callers can correlate with server logs.

Success maps to ``200`` and failure to ``500``.  The upstream gateway
template this service replaces forced status ``500`` on both branches,
which made every accepted request look like a server error; here the
override applies to the error branch only.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Union

from pydantic import BaseModel, Field

SUCCESS_STATUS = 200
ERROR_STATUS = 500


@dataclass(frozen=True)
class StartSuccess:
    request_id: str
    execution_arn: str
    start_date: datetime


@dataclass(frozen=True)
class StartError:
    request_id: str
    message: str


StartOutcome = Union[StartSuccess, StartError]


@dataclass(frozen=True)
class MappedResponse:
    status_code: int
    body: dict[str, Any]


def map_start_outcome(outcome: StartOutcome) -> MappedResponse:
    """Translate a start outcome into status code and JSON body."""
    if isinstance(outcome, StartSuccess):
        return MappedResponse(
            status_code=SUCCESS_STATUS,
            body={
                "requestId": outcome.request_id,
                "executionArn": outcome.execution_arn,
                "startDate": outcome.start_date.isoformat(),
            },
        )
    return MappedResponse(
        status_code=ERROR_STATUS,
        body={
            "requestId": outcome.request_id,
            "message": outcome.message,
        },
    )


# ---------------------------------------------------------------------------
# OpenAPI models
# ---------------------------------------------------------------------------


class StartExecutionResponse(BaseModel):
    """Execution accepted."""
    requestId: str
    executionArn: str
    startDate: str = Field(..., description="ISO-8601 UTC start timestamp")


class ErrorResponse(BaseModel):
    """Request rejected or execution could not be started."""
    requestId: str
    message: str
