"""Storefront Service - delivery slots, checkout, routing and operator tools."""

import sys
from pathlib import Path

_root = Path(__file__).resolve().parents[2]
_svc = Path(__file__).resolve().parent
sys.path.insert(0, str(_root))
sys.path.insert(0, str(_svc))

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response

from packages.shared.errors import StorefrontError
from packages.shared.errors.middleware import (
    request_id_middleware,
    storefront_exception_handler,
    request_validation_handler,
    generic_exception_handler,
)
from packages.shared.monitoring import (
    DependencyCheck,
    DependencyStatus,
    HealthChecker,
    configure_logging,
    health_router,
)

from config import settings
from dependencies import get_delivery_config, get_record_store
from api.availability import router as availability_router
from api.admin_slots import router as admin_slots_router
from api.orders import router as orders_router
from api.schedule import router as schedule_router
from api.checkout import router as checkout_router
from api.notify import router as notify_router
from api.engagement import router as engagement_router
from api.diagnostics import router as diagnostics_router
from webhooks.stripe_webhook import router as stripe_webhook_router

configure_logging("storefront-service", settings.log_level, settings.log_json)

app = FastAPI(
    title="Storefront Service",
    description="Muffin delivery storefront: slot availability, checkout and routing",
    version="0.1.0",
)

# Middleware
app.middleware("http")(request_id_middleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def options_no_content(request: Request, call_next):
    """Answer every OPTIONS with 204 and permissive CORS headers, preflight or not."""
    if request.method == "OPTIONS":
        return Response(
            status_code=204,
            headers={
                "Access-Control-Allow-Origin": "*",
                "Access-Control-Allow-Methods": "GET,POST,OPTIONS",
                "Access-Control-Allow-Headers": "Content-Type, Authorization, X-Admin-Token",
            },
        )
    return await call_next(request)


# Exception handlers
app.add_exception_handler(StorefrontError, storefront_exception_handler)
app.add_exception_handler(RequestValidationError, request_validation_handler)
app.add_exception_handler(Exception, generic_exception_handler)

# API routes
app.include_router(availability_router)
app.include_router(admin_slots_router)
app.include_router(orders_router)
app.include_router(schedule_router)
app.include_router(checkout_router)
app.include_router(notify_router)
app.include_router(engagement_router)
app.include_router(diagnostics_router)
app.include_router(stripe_webhook_router)

# Health checks
health_checker = HealthChecker("storefront-service", "0.1.0")


async def check_record_store() -> DependencyCheck:
    """One-record read against the Orders table."""
    store = get_record_store()
    if not store.configured:
        return DependencyCheck(
            name="record_store",
            status=DependencyStatus.DEGRADED,
            message="Not configured (AIRTABLE_API_KEY, AIRTABLE_BASE_ID); serving default capacity",
        )
    try:
        await store.list_records(get_delivery_config().tables.orders, max_records=1, page_size=1)
    except StorefrontError as e:
        return DependencyCheck(name="record_store", status=DependencyStatus.UNHEALTHY, message=e.message)
    return DependencyCheck(name="record_store", status=DependencyStatus.HEALTHY, message="Connected")


async def check_payments() -> DependencyCheck:
    if not settings.stripe_configured:
        return DependencyCheck(
            name="payments",
            status=DependencyStatus.UNHEALTHY,
            message="Stripe not configured (STRIPE_SECRET_KEY)",
        )
    return DependencyCheck(name="payments", status=DependencyStatus.HEALTHY, message="Configured")


async def check_sms() -> DependencyCheck:
    if not settings.twilio_configured:
        return DependencyCheck(
            name="sms",
            status=DependencyStatus.DEGRADED,
            message="Twilio not configured; notifications fall back to clipboard",
        )
    return DependencyCheck(name="sms", status=DependencyStatus.HEALTHY, message="Configured")


health_checker.add_check("record_store", check_record_store)
health_checker.add_check("payments", check_payments)
health_checker.add_check("sms", check_sms)
app.include_router(health_router(health_checker))


@app.get("/")
async def root():
    """Service info."""
    return {
        "service": "storefront-service",
        "version": "0.1.0",
        "endpoints": {
            "slot_availability": "GET /api/slot-availability?date=YYYY-MM-DD[&detailed=1]",
            "create_checkout_session": "POST /api/create-checkout-session",
            "stripe_webhook": "POST /api/stripe-webhook",
            "session_summary": "GET /api/session-summary?session_id=",
            "session_details": "GET /api/session-details?session_id= (admin)",
            "slots_admin_hold": "POST /api/slots-admin-hold (admin)",
            "slots_capacity_set": "POST /api/slots-capacity-set (admin)",
            "drivers_capacity_set": "POST /api/drivers-capacity-set (admin)",
            "orders_feed": "GET /api/orders-feed (admin)",
            "orders_update_status": "POST /api/orders-update-status (admin)",
            "schedule_today": "POST /api/schedule-today[?date=&stop=] (admin)",
            "notify_customer": "POST /api/notify-customer (admin)",
            "vote_flavor": "POST /api/vote-flavor",
            "notify_merch": "POST /api/notify-merch",
            "env_check": "GET /api/env-check",
        },
    }

