"""
Sportsblock API - System Routes

Liveness and readiness probes. Mounted at the root, outside /api/v1.
"""

from __future__ import annotations

import time
from typing import Any

import structlog
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from sportsblock.api.dependencies import HiveClientDep, SettingsDep
from sportsblock.hive.client import HiveClient
from sportsblock.models.base import CheckStatus, HealthStatus, to_iso, utc_now

logger = structlog.get_logger(__name__)

router = APIRouter()


def _check(status: CheckStatus, message: str, latency_ms: float | None = None) -> dict[str, Any]:
    result: dict[str, Any] = {"status": status.value, "message": message}
    if latency_ms is not None:
        result["latency"] = round(latency_ms, 2)
    return result


async def check_store(request: Request) -> dict[str, Any]:
    container = getattr(request.app.state, "sportsblock", None)
    db_client = getattr(container, "db_client", None)
    if db_client is None or not db_client.is_connected:
        return _check(CheckStatus.WARN, "Database not connected")

    start = time.perf_counter()
    health = await db_client.health_check()
    latency = (time.perf_counter() - start) * 1000
    if health.get("status") == "healthy":
        return _check(CheckStatus.PASS, "Database connected", latency)
    return _check(CheckStatus.FAIL, health.get("error") or "Database check failed", latency)


async def check_hive(hive: HiveClient) -> dict[str, Any]:
    """Pass as soon as one configured node answers."""
    start = time.perf_counter()
    for node in hive.ordered_nodes():
        if await hive.check_node(node):
            latency = (time.perf_counter() - start) * 1000
            return _check(CheckStatus.PASS, f"Hive API reachable ({node})", latency)
    latency = (time.perf_counter() - start) * 1000
    return _check(CheckStatus.FAIL, "No Hive API node reachable", latency)


@router.get("/health", include_in_schema=False)
async def health(request: Request, hive: HiveClientDep, settings: SettingsDep) -> JSONResponse:
    """
    Overall health plus per-component checks.

    Hive being unreachable is unhealthy (503); any other failure or
    warning only degrades the service.
    """
    checks = {
        "service": _check(CheckStatus.PASS, "Service is running"),
        "store": await check_store(request),
        "hive": await check_hive(hive),
    }

    statuses = {c["status"] for c in checks.values()}
    if checks["hive"]["status"] == CheckStatus.FAIL.value:
        overall = HealthStatus.UNHEALTHY
    elif statuses & {CheckStatus.FAIL.value, CheckStatus.WARN.value}:
        overall = HealthStatus.DEGRADED
    else:
        overall = HealthStatus.HEALTHY

    container = getattr(request.app.state, "sportsblock", None)
    started_at = getattr(container, "started_at", None)
    uptime = (utc_now() - started_at).total_seconds() if started_at else 0.0

    if overall is not HealthStatus.HEALTHY:
        logger.warning("health_check_not_healthy", status=overall.value, checks=checks)

    return JSONResponse(
        status_code=503 if overall is HealthStatus.UNHEALTHY else 200,
        content={
            "status": overall.value,
            "timestamp": to_iso(utc_now()),
            "version": settings.app_version,
            "checks": checks,
            "uptime": round(uptime, 3),
        },
    )


@router.get("/ready", include_in_schema=False)
async def ready(request: Request) -> JSONResponse:
    container = getattr(request.app.state, "sportsblock", None)
    db_client = getattr(container, "db_client", None)
    if not getattr(container, "is_ready", False) or db_client is None or not db_client.is_connected:
        return JSONResponse(
            status_code=503,
            content={"status": "not_ready", "database": "disconnected"},
            headers={"Retry-After": "5"},
        )
    return JSONResponse(content={"status": "ready", "database": "connected"})
