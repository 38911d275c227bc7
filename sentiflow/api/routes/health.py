"""Liveness endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Request

from sentiflow import __version__

router = APIRouter(tags=["health"])


@router.get("/health")
async def health(request: Request) -> dict:
    engine = request.app.state.engine
    return {
        "status": "ok",
        "version": __version__,
        "running_executions": engine.running_count,
    }
