"""Liveness and readiness probes.

Readiness means the engine can decide eligibility: the versioned store
round-trips a record and the catalog holds at least one scheme.  The
reasoning collaborator is reported but optional, since relevance falls
back to a local strategy without it.
"""

from __future__ import annotations

import time

import structlog
from fastapi import APIRouter, Request
from pydantic import BaseModel

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

router = APIRouter(prefix="/health", tags=["health"])

_PROBE_TTL_SECONDS = 10


class LivenessResponse(BaseModel):
    status: str
    version: str
    uptime_seconds: float
    schemes_loaded: int


class ReadinessResponse(BaseModel):
    status: str
    checks: dict[str, str]


class _Probe(BaseModel):
    value: str
    version: int = 0


async def _probe_store(request: Request) -> str:
    store = getattr(request.app.state, "store", None)
    if store is None:
        return "not_configured"
    probes = store.scoped("health:")
    key = f"probe-{time.monotonic_ns()}"
    try:
        await probes.create(key, _Probe(value="ok"), ttl_seconds=_PROBE_TTL_SECONDS)
        probe = await probes.get(key, _Probe)
        await probes.delete(key)
    except Exception as exc:
        logger.warning("health.store_probe_failed", error=str(exc))
        return f"error: {exc!s}"
    return "ok" if probe is not None and probe.value == "ok" else "degraded"


@router.get("", response_model=LivenessResponse)
async def liveness(request: Request) -> LivenessResponse:
    """Process is up; downstream dependencies are not touched."""
    started: float = getattr(request.app.state, "start_time", time.time())
    catalog = getattr(request.app.state, "catalog", None)
    return LivenessResponse(
        status="healthy",
        version=request.app.version,
        uptime_seconds=round(time.time() - started, 2),
        schemes_loaded=len(catalog) if catalog is not None else 0,
    )


@router.get("/ready", response_model=ReadinessResponse)
async def readiness(request: Request) -> ReadinessResponse:
    state = request.app.state
    checks = {"store": await _probe_store(request)}

    catalog = getattr(state, "catalog", None)
    checks["catalog"] = f"ok ({len(catalog)} schemes)" if catalog else "no_data"
    checks["orchestrator"] = (
        "ok" if getattr(state, "orchestrator", None) is not None else "not_initialised"
    )
    checks["reasoning"] = (
        "configured" if getattr(state, "reasoning", None) is not None else "fallback_only"
    )

    required = (checks["store"], checks["catalog"], checks["orchestrator"])
    status = "ready" if all(c == "ok" or c.startswith("ok ") for c in required) else "degraded"
    logger.info("health.readiness_checked", status=status, checks=checks)
    return ReadinessResponse(status=status, checks=checks)
