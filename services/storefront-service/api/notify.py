"""Send one SMS to a customer from the operator console."""

from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from auth import require_admin
from dependencies import get_sms_sender
from packages.delivery.notifications import SmsDeliveryError, TwilioSmsSender, sms_fallback, to_e164
from packages.shared.errors import ValidationError
from packages.shared.utils import ok_response

router = APIRouter(prefix="/api", tags=["Notifications"], dependencies=[Depends(require_admin)])


class NotifyBody(BaseModel):
    to: Optional[str] = None
    message: Optional[str] = None
    token: Optional[str] = None


@router.post("/notify-customer")
async def notify_customer(
    body: NotifyBody,
    sms: Optional[TwilioSmsSender] = Depends(get_sms_sender),
):
    """
    Text a customer. Without Twilio credentials the 400 `twilio_unavailable`
    answer carries clipboard text and an sms: link for the console to fall back on.
    """
    if not body.to or not body.message:
        raise ValidationError("to and message are required", code="missing_fields")
    e164 = to_e164(body.to)
    if not e164:
        raise ValidationError("to is not a valid US phone number", code="invalid_phone")

    if sms is None:
        return JSONResponse(
            status_code=400,
            content={
                "ok": False,
                "error": "twilio_unavailable",
                "hint": "Clipboard + sms: fallback will be used on the client.",
                **sms_fallback(e164, body.message),
            },
        )

    try:
        receipt = await sms.send(e164, body.message)
    except SmsDeliveryError as e:
        return JSONResponse(
            status_code=400,
            content={"ok": False, "error": e.code, "detail": e.message},
        )
    return ok_response(sid=receipt.sid, status=receipt.status)
