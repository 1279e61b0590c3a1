"""Tests for the readiness roll-up."""

import pytest

from packages.shared.monitoring import DependencyCheck, DependencyStatus, HealthChecker


def fixed_status_check(status):
    async def check():
        return DependencyCheck(name=status.value, status=status)

    return check


@pytest.mark.asyncio
async def test_degraded_collaborator_keeps_service_ready():
    checker = HealthChecker("storefront-service")
    checker.add_check("store", fixed_status_check(DependencyStatus.HEALTHY))
    checker.add_check("sms", fixed_status_check(DependencyStatus.DEGRADED))

    body = await checker.readiness()

    assert body["ok"] is True
    assert body["status"] == "degraded"
    assert all(d["latency_ms"] is not None for d in body["dependencies"])


@pytest.mark.asyncio
async def test_raising_check_is_unhealthy():
    async def broken():
        raise RuntimeError("store timed out")

    checker = HealthChecker("storefront-service")
    checker.add_check("store", broken)

    body = await checker.readiness()

    assert body["ok"] is False
    assert body["dependencies"][0] == {
        "name": "store",
        "status": "unhealthy",
        "message": "store timed out",
        "latency_ms": body["dependencies"][0]["latency_ms"],
    }


@pytest.mark.asyncio
async def test_no_checks_is_healthy():
    body = await HealthChecker("storefront-service").readiness()
    assert body["status"] == "healthy" and body["ok"] is True
