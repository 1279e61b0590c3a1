"""Outbound SMS through Twilio."""

import logging
import re
from dataclasses import dataclass
from typing import Optional
from urllib.parse import quote

import requests
from twilio.base.exceptions import TwilioException, TwilioRestException
from twilio.rest import Client as TwilioClient

logger = logging.getLogger(__name__)

_NON_DIGITS = re.compile(r"\D+")
_NON_PHONE = re.compile(r"[^\d+]")


class SmsDeliveryError(Exception):
    """Provider refused or failed to send a message."""

    def __init__(self, message: str, code: str = "twilio_error", status: Optional[int] = None):
        self.message = message
        self.code = code
        self.status = status
        super().__init__(message)


@dataclass
class SmsReceipt:
    sid: Optional[str]
    status: str = "queued"


def to_e164(raw: Optional[str]) -> Optional[str]:
    """
    Normalize a US phone number to E.164.

    10 digits -> +1XXXXXXXXXX, 11 digits starting with 1 -> +1..., an
    already +-prefixed number is kept; anything else is None.
    """
    text = str(raw or "").strip()
    digits = _NON_DIGITS.sub("", text)
    if len(digits) == 10:
        return f"+1{digits}"
    if len(digits) == 11 and digits.startswith("1"):
        return f"+{digits}"
    if text.startswith("+") and digits:
        return f"+{digits}"
    return None


def to_e164_maybe(raw: Optional[str]) -> str:
    """Best-effort normalization for stored order phones: keep what we cannot improve."""
    if not raw:
        return ""
    cleaned = _NON_PHONE.sub("", str(raw))
    if cleaned.startswith("+"):
        return cleaned
    if len(cleaned) == 10:
        return f"+1{cleaned}"
    return cleaned


def sms_fallback(e164: str, message: str) -> dict:
    """Clipboard text and sms: link a client can use when the provider is unavailable."""
    return {
        "clipboard": f"{e164}\n\n{message}",
        "sms_url": f"sms:{quote(e164, safe='')}?&body={quote(message, safe='')}",
    }


class TwilioSmsSender:
    """Send text messages from one configured number."""

    def __init__(self, account_sid: str, auth_token: str, from_number: str):
        self.from_number = from_number
        self._client = TwilioClient(account_sid, auth_token)

    async def send(self, to: str, body: str) -> SmsReceipt:
        try:
            message = self._client.messages.create(to=to, from_=self.from_number, body=body[:1600])
        except TwilioRestException as e:
            code = f"twilio_{e.code}" if e.code else "twilio_error"
            raise SmsDeliveryError(e.msg or str(e), code=code, status=e.status) from e
        except TwilioException as e:
            raise SmsDeliveryError(str(e)) from e
        except requests.exceptions.RequestException as e:
            logger.warning("SMS transport to %s failed: %s", to[-4:].rjust(len(to), "*"), e)
            raise SmsDeliveryError(f"SMS provider unreachable: {e}", code="twilio_error") from e
        logger.info("SMS queued to %s (%s)", to[-4:].rjust(len(to), "*"), message.sid)
        return SmsReceipt(sid=message.sid, status=message.status or "queued")
