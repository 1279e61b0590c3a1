"""Configuration presence check. Reports which settings are set, never their values."""

from fastapi import APIRouter

from config import settings
from packages.shared.utils import ok_response

router = APIRouter(prefix="/api", tags=["Diagnostics"])


@router.get("/env-check")
async def env_check():
    return ok_response(
        stripe={
            "STRIPE_SECRET_KEY": bool(settings.stripe_secret_key),
            "STRIPE_WEBHOOK_SECRET": bool(settings.stripe_webhook_secret),
        },
        airtable={
            "AIRTABLE_API_KEY": bool(settings.airtable_api_key),
            "AIRTABLE_BASE_ID": bool(settings.airtable_base_id),
            "AIRTABLE_TABLE_NAME": settings.table_orders,
            "AIRTABLE_TABLE_SLOTS": settings.table_slots,
        },
        twilio={
            "TWILIO_ACCOUNT_SID": bool(settings.twilio_account_sid),
            "TWILIO_AUTH_TOKEN": bool(settings.twilio_auth_token),
            "TWILIO_FROM_NUMBER": bool(settings.twilio_from_number),
        },
        admin={"ADMIN_API_TOKEN": bool(settings.admin_tokens)},
        extra={"SLOT_CAPACITY_DEFAULT": settings.slot_capacity_default},
    )
