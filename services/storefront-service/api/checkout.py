"""Checkout endpoints: create a Stripe Checkout Session and read it back."""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, Field

from auth import require_admin
from dependencies import get_checkout_ledger, get_payments
from packages.delivery.checkout import CheckoutLedger
from packages.delivery.payments import NOTES_MAX, StripePayments, session_details, session_summary
from packages.shared.errors import ValidationError
from packages.shared.utils import ok_response

router = APIRouter(prefix="/api", tags=["Checkout"])


class CheckoutItem(BaseModel):
    price: Optional[str] = None
    quantity: Any = 1


class CheckoutSessionBody(BaseModel):
    items: Optional[List[CheckoutItem]] = None
    delivery_date: Optional[str] = Field(None, alias="deliveryDate")
    time_window: Optional[str] = Field(None, alias="timeWindow")
    order_notes: Optional[str] = Field(None, alias="orderNotes")
    success_url: Optional[str] = None
    cancel_url: Optional[str] = None

    model_config = {"populate_by_name": True}


def line_items(items: Optional[List[CheckoutItem]]) -> List[Dict[str, Any]]:
    if not items:
        raise ValidationError("No items provided.", code="no_items")
    out = []
    for item in items:
        if not item.price:
            raise ValidationError("Every item needs a price id", code="invalid_price")
        try:
            quantity = int(item.quantity)
        except (TypeError, ValueError):
            raise ValidationError("quantity must be a positive integer", code="invalid_request")
        if quantity < 1:
            raise ValidationError("quantity must be a positive integer", code="invalid_request")
        out.append({"price": item.price, "quantity": quantity})
    return out


def base_url(request: Request) -> str:
    proto = request.headers.get("x-forwarded-proto") or "https"
    host = request.headers.get("x-forwarded-host") or request.headers.get("host") or "localhost"
    return f"{proto}://{host}"


@router.post("/create-checkout-session")
async def create_checkout_session(
    body: CheckoutSessionBody,
    request: Request,
    payments: StripePayments = Depends(get_payments),
    ledger: CheckoutLedger = Depends(get_checkout_ledger),
):
    """
    Create a Checkout Session for the cart. When a delivery date and window
    are given, one capacity unit is reserved first (409 window_full if none left).
    """
    items = line_items(body.items)
    payments.ensure_configured()
    metadata: Dict[str, str] = {}
    if body.delivery_date or body.time_window:
        reservation = await ledger.reserve(body.delivery_date, body.time_window)
        if reservation:
            metadata.update(reservation)
        else:
            metadata.update({
                "deliveryDate": body.delivery_date or "",
                "timeWindow": body.time_window or "",
            })
    notes = (body.order_notes or "").strip()[:NOTES_MAX]
    if notes:
        metadata["order_notes"] = notes

    root = base_url(request)
    session = await payments.create_checkout_session(
        items,
        success_url=body.success_url or f"{root}/index.html?checkout=success",
        cancel_url=body.cancel_url or f"{root}/index.html?checkout=cancel",
        metadata=metadata,
    )
    return ok_response(id=session["id"], url=session["url"])


@router.get("/session-summary")
async def get_session_summary(
    session_id: Optional[str] = Query(None),
    payments: StripePayments = Depends(get_payments),
):
    """Customer-safe session projection for the thank-you page."""
    if not session_id:
        raise ValidationError("session_id is required", code="missing_session_id")
    session = await payments.retrieve_session(session_id)
    return ok_response(**session_summary(session))


@router.get("/session-details", dependencies=[Depends(require_admin)])
async def get_session_details(
    session_id: Optional[str] = Query(None),
    payments: StripePayments = Depends(get_payments),
):
    """Line items of a session for the operator console."""
    if not session_id:
        raise ValidationError("session_id is required", code="missing_session_id")
    session = await payments.retrieve_session(session_id)
    return ok_response(**session_details(session))
