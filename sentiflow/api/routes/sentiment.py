"""Sentiment API — start a sentiment analysis execution over HTTP.

Endpoints:
    POST /sentiment    Start an execution for {"txt": "..."}

The response only says whether the execution started.  The execution
itself runs in the background on the engine; its result is not
reported here.
"""

from __future__ import annotations

import json
import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from sentiflow.api.gateway import RequestGateway, SentimentRequest
from sentiflow.api.responses import (
    ErrorResponse,
    StartError,
    StartExecutionResponse,
    map_start_outcome,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["sentiment"])


@router.post(
    "/sentiment",
    responses={
        200: {"model": StartExecutionResponse},
        500: {"model": ErrorResponse},
    },
    openapi_extra={
        "requestBody": {
            "required": True,
            "content": {
                "application/json": {"schema": SentimentRequest.model_json_schema()},
            },
        },
    },
)
async def start_sentiment(request: Request) -> JSONResponse:
    """Validate the body and start an execution; never waits for its result."""
    request_id: str = request.state.request_id
    gateway: RequestGateway = request.app.state.gateway

    raw = await request.body()
    try:
        payload = json.loads(raw) if raw else None
    except (ValueError, RecursionError):
        outcome = StartError(request_id=request_id, message="Request body is not valid JSON")
    else:
        outcome = gateway.start(payload, request_id)

    mapped = map_start_outcome(outcome)
    return JSONResponse(status_code=mapped.status_code, content=mapped.body)
