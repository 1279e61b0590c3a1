"""Liveness and readiness endpoints for the storefront collaborators."""

import time
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from pydantic import BaseModel


class DependencyStatus(str, Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


# Worse statuses rank higher; the service reports its worst collaborator.
_SEVERITY = {DependencyStatus.HEALTHY: 0, DependencyStatus.DEGRADED: 1, DependencyStatus.UNHEALTHY: 2}

Check = Callable[[], Awaitable["DependencyCheck"]]


class DependencyCheck(BaseModel):
    """One collaborator check: store, payment processor or SMS provider."""

    name: str
    status: DependencyStatus
    message: Optional[str] = None
    latency_ms: Optional[float] = None


class HealthChecker:
    def __init__(self, service_name: str, version: str = "0.1.0"):
        self.service_name = service_name
        self.version = version
        self._checks: List[Tuple[str, Check]] = []

    def add_check(self, name: str, check: Check) -> None:
        self._checks.append((name, check))

    async def _run(self, name: str, check: Check) -> DependencyCheck:
        started = time.perf_counter()
        try:
            result = await check()
        except Exception as e:
            # A raising check reports unhealthy.
            result = DependencyCheck(name=name, status=DependencyStatus.UNHEALTHY, message=str(e))
        if result.latency_ms is None:
            result.latency_ms = round((time.perf_counter() - started) * 1000, 1)
        return result

    async def check_dependencies(self) -> List[DependencyCheck]:
        return [await self._run(name, check) for name, check in self._checks]

    async def readiness(self) -> Dict[str, Any]:
        """Overall status is the worst collaborator status; `ok` is false only when one is unhealthy."""
        dependencies = await self.check_dependencies()
        overall = max(
            (d.status for d in dependencies),
            key=_SEVERITY.__getitem__,
            default=DependencyStatus.HEALTHY,
        )
        return {
            "ok": overall != DependencyStatus.UNHEALTHY,
            "status": overall.value,
            "service": self.service_name,
            "version": self.version,
            "dependencies": [d.model_dump(mode="json") for d in dependencies],
        }


def health_router(health_checker: HealthChecker) -> APIRouter:
    """`/health` answers while the process is up; `/ready` checks every collaborator."""
    router = APIRouter(tags=["Health"])

    @router.get("/health")
    async def health():
        return {
            "ok": True,
            "status": DependencyStatus.HEALTHY.value,
            "service": health_checker.service_name,
            "version": health_checker.version,
        }

    @router.get("/ready")
    async def ready():
        body = await health_checker.readiness()
        return JSONResponse(status_code=200 if body["ok"] else 503, content=body)

    return router
