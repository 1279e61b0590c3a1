"""Low-stakes visitor signals (flavor votes, merch waitlist) and where they go."""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import httpx

from packages.shared.errors import ValidationError

from .record_store import RecordStoreClient
from .records import to_iso, utc_now

logger = logging.getLogger(__name__)

FLAVOR_MAX = 80
_EMAIL = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

WEBHOOK = "webhook"
STORE = "store"
LOG = "log"


@dataclass
class Signal:
    type: str
    value_field: str
    value: str
    ua: str = ""
    ip: str = ""
    ts: str = field(default_factory=lambda: to_iso(utc_now()))

    def payload(self) -> Dict[str, Any]:
        return {"type": self.type, self.value_field: self.value, "ua": self.ua, "ip": self.ip, "ts": self.ts}


def flavor_vote(flavor: Optional[str], ua: str = "", ip: str = "") -> Signal:
    value = str(flavor or "").strip()
    if not value:
        raise ValidationError("Flavor is required", code="missing_fields")
    return Signal("flavor_vote", "flavor", value[:FLAVOR_MAX], ua=ua, ip=ip)


def merch_signup(email: Optional[str], ua: str = "", ip: str = "") -> Signal:
    value = str(email or "").strip()
    if not _EMAIL.match(value):
        raise ValidationError("Valid email required", code="invalid_email")
    return Signal("merch_waitlist", "email", value, ua=ua, ip=ip)


def store_fields(signal: Signal) -> Dict[str, Any]:
    if signal.type == "flavor_vote":
        return {"Flavor": signal.value, "Created": signal.ts, "Source": "website"}
    return {"Email": signal.value, "Source": "website", "Created": signal.ts}


async def deliver(
    signal: Signal,
    webhook_url: str = "",
    store: Optional[RecordStoreClient] = None,
    table: str = "",
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> str:
    """Send to the webhook if set, else the store table if configured, else the log. Returns the sink used."""
    if webhook_url:
        try:
            async with httpx.AsyncClient(timeout=10.0, transport=transport) as client:
                r = await client.post(webhook_url, json=signal.payload())
            if not r.is_success:
                logger.error("%s webhook answered %s", signal.type, r.status_code)
        except httpx.HTTPError as e:
            logger.error("%s webhook failed: %s", signal.type, e)
        return WEBHOOK

    if store is not None and store.configured and table:
        result = await store.create_records(table, [store_fields(signal)])
        if result.failed:
            logger.error("%s not stored: %s", signal.type, result.failed[0].detail[:200])
        return STORE

    logger.info("%s: %s", signal.type, signal.payload())
    return LOG
