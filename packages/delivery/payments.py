"""
Stripe Checkout adapter and the mapping from a completed session to an Order.

Stripe objects are converted to plain dicts at this boundary so the rest of
the code never touches the SDK's object model.
"""

import json
import logging
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Sequence

import stripe

from packages.shared.errors import ConfigurationError, UpstreamError, ValidationError

from .notifications import to_e164_maybe
from .records import OrderStatus, to_iso, utc_now

logger = logging.getLogger(__name__)

NOTES_MAX = 1000
NOTES_FIELD = "order_notes"


def as_plain(obj: Any) -> Dict[str, Any]:
    """StripeObject (or anything JSON-serializable by str()) to a plain dict."""
    if obj is None:
        return {}
    if isinstance(obj, dict) and not isinstance(obj, stripe.StripeObject):
        return obj
    return json.loads(str(obj))


def _metadata(session: Mapping[str, Any]) -> Dict[str, Any]:
    return dict(session.get("metadata") or {})


def shipping_details(session: Mapping[str, Any]) -> Dict[str, Any]:
    # Newer API versions nest shipping under collected_information.
    details = session.get("shipping_details")
    if not details:
        details = (session.get("collected_information") or {}).get("shipping_details")
    return dict(details or {})


def compact_address(details: Mapping[str, Any]) -> str:
    address = details.get("address") or {}
    parts = [address.get(k) for k in ("line1", "line2", "city", "state", "postal_code", "country")]
    return ", ".join(str(p) for p in parts if p)


def custom_field_text(session: Mapping[str, Any], key: str) -> str:
    for cf in session.get("custom_fields") or []:
        if cf.get("key") == key and cf.get("type") == "text":
            value = (cf.get("text") or {}).get("value")
            if isinstance(value, str):
                return value
    return ""


def combined_notes(session: Mapping[str, Any]) -> str:
    parts = [
        str(_metadata(session).get(NOTES_FIELD) or "").strip(),
        custom_field_text(session, NOTES_FIELD).strip(),
    ]
    return " | ".join(p for p in parts if p)[:NOTES_MAX]


def customer_name(session: Mapping[str, Any]) -> str:
    details = session.get("customer_details") or {}
    return details.get("name") or shipping_details(session).get("name") or ""


def line_items(session: Mapping[str, Any]) -> List[Dict[str, Any]]:
    return list((session.get("line_items") or {}).get("data") or [])


def _item_name(item: Mapping[str, Any]) -> str:
    return item.get("description") or (item.get("price") or {}).get("nickname") or "Item"


def items_text(session: Mapping[str, Any]) -> str:
    return ", ".join(f"{_item_name(li)} x{li.get('quantity') or 1}" for li in line_items(session))


def amount(cents: Optional[int]) -> float:
    return (cents or 0) / 100


def order_fields(session: Mapping[str, Any], now: Optional[datetime] = None) -> Dict[str, Any]:
    """Full Order field set for a completed checkout session."""
    meta = _metadata(session)
    customer = session.get("customer_details") or {}
    fields: Dict[str, Any] = {
        "delivery_date": meta.get("deliveryDate") or "",
        "preferred_window": meta.get("timeWindow") or "",
        "status": OrderStatus.UNASSIGNED.value,
        "delivery_time": "",
        "route_position": None,
        "customer_name": customer_name(session),
        "email": customer.get("email") or "",
        "phone": to_e164_maybe(customer.get("phone") or ""),
        "address": compact_address(shipping_details(session)),
        "items": items_text(session),
        "total": amount(session.get("amount_total")),
        "stripe_session_id": session.get("id") or "",
        "created": to_iso(now or utc_now()),
    }
    notes = combined_notes(session)
    if notes:
        fields["notes"] = notes
    return fields


def minimal_order_fields(full: Mapping[str, Any]) -> Dict[str, Any]:
    """Fallback field set for bases whose select/currency columns reject the full set."""
    keys = ["customer_name", "email", "phone", "address", "items", "stripe_session_id", "created"]
    fields = {k: full.get(k) for k in keys}
    for optional in ("delivery_date", "preferred_window", "notes"):
        if full.get(optional):
            fields[optional] = full[optional]
    return fields


def session_summary(session: Mapping[str, Any]) -> Dict[str, Any]:
    """Customer-safe projection for the thank-you page."""
    meta = _metadata(session)
    customer = session.get("customer_details") or {}
    currency = session.get("currency") or "usd"
    items = []
    for li in line_items(session):
        unit = (li.get("price") or {}).get("unit_amount")
        items.append({
            "name": _item_name(li),
            "quantity": li.get("quantity") or 1,
            "amount_each": unit / 100 if isinstance(unit, (int, float)) else None,
            "currency": currency,
        })
    return {
        "id": session.get("id"),
        "status": session.get("status"),
        "amount_total": amount(session.get("amount_total")),
        "currency": currency,
        "delivery_date": meta.get("deliveryDate") or "",
        "preferred_window": meta.get("timeWindow") or "",
        "notes": combined_notes(session),
        "customer": {
            "name": customer_name(session),
            "email": customer.get("email") or "",
            "phone": customer.get("phone") or "",
        },
        "address": compact_address(shipping_details(session)),
        "items": items,
    }


def session_details(session: Mapping[str, Any]) -> Dict[str, Any]:
    """Operator view: raw line items with subtotals in cents."""
    return {
        "id": session.get("id"),
        "amount_total": session.get("amount_total"),
        "items": [
            {
                "id": li.get("id"),
                "description": _item_name(li),
                "quantity": li.get("quantity") or 1,
                "unit_amount": li.get("amount_subtotal"),
            }
            for li in line_items(session)
        ],
    }


class StripePayments:
    """Checkout sessions and webhook verification for one Stripe account."""

    def __init__(self, secret_key: str, webhook_secret: str = ""):
        self.secret_key = secret_key or ""
        self.webhook_secret = webhook_secret or ""

    @property
    def configured(self) -> bool:
        return bool(self.secret_key)

    def ensure_configured(self) -> None:
        if not self.configured:
            raise ConfigurationError("Stripe not configured (STRIPE_SECRET_KEY)", code="stripe_config")
        stripe.api_key = self.secret_key

    async def create_checkout_session(
        self,
        items: Sequence[Mapping[str, Any]],
        success_url: str,
        cancel_url: str,
        metadata: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        """Create a payment-mode Checkout Session. Returns {id, url}."""
        self.ensure_configured()
        try:
            session = stripe.checkout.Session.create(
                mode="payment",
                line_items=[{"price": i["price"], "quantity": i["quantity"]} for i in items],
                shipping_address_collection={"allowed_countries": ["US"]},
                phone_number_collection={"enabled": True},
                success_url=success_url,
                cancel_url=cancel_url,
                metadata=metadata or {},
            )
        except stripe.StripeError as e:
            logger.error("Stripe checkout create failed: %s", e)
            raise UpstreamError(e.user_message or str(e), code="stripe_error", status_code=e.http_status) from e
        return {"id": session.id, "url": session.url}

    async def retrieve_session(self, session_id: str) -> Dict[str, Any]:
        """Checkout Session with line items expanded, as a plain dict."""
        self.ensure_configured()
        try:
            session = stripe.checkout.Session.retrieve(session_id, expand=["line_items"])
        except stripe.StripeError as e:
            logger.warning("Stripe session retrieve failed for %s: %s", session_id, e)
            raise UpstreamError(
                e.user_message or str(e),
                code="stripe_error",
                status_code=e.http_status,
            ) from e
        return as_plain(session)

    def verify_event(self, payload: bytes, signature: str) -> Dict[str, Any]:
        """Check the Stripe-Signature header and return the event as a dict."""
        if not self.webhook_secret:
            raise ConfigurationError(
                "STRIPE_WEBHOOK_SECRET not configured",
                code="stripe_webhook_config",
            )
        try:
            text = payload.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ValidationError(f"Invalid payload: {e}", code="invalid_payload") from e
        try:
            stripe.WebhookSignature.verify_header(text, signature or "", self.webhook_secret)
        except stripe.SignatureVerificationError as e:
            raise ValidationError(f"Invalid signature: {e}", code="invalid_signature") from e
        try:
            return json.loads(text)
        except ValueError as e:
            raise ValidationError(f"Invalid payload: {e}", code="invalid_payload") from e
