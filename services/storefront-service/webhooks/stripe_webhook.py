"""Stripe webhook handler - checkout.session.completed/expired."""

import logging

from fastapi import APIRouter, Depends, Request

from dependencies import get_checkout_ledger, get_payments
from packages.delivery.checkout import CheckoutLedger
from packages.delivery.payments import StripePayments
from packages.shared.errors import StorefrontError
from packages.shared.monitoring import log_with_context

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Webhooks"])


@router.post("/stripe-webhook")
async def stripe_webhook(
    request: Request,
    payments: StripePayments = Depends(get_payments),
    ledger: CheckoutLedger = Depends(get_checkout_ledger),
):
    """
    Verify the signature, then record the order (completed) or release the
    reservation (expired). Once verified the answer is always 200 so Stripe
    does not redeliver on our own store failures.
    """
    payload = await request.body()
    event = payments.verify_event(payload, request.headers.get("stripe-signature", ""))

    event_type = event.get("type")
    try:
        outcome = await ledger.handle_event(event, payments)
        log_with_context(
            logger, logging.INFO, f"Webhook {event_type}: {outcome}",
            event_id=event.get("id"), outcome=outcome,
        )
    except StorefrontError as e:
        logger.error("Webhook %s handling failed: %s (%s)", event_type, e.message, e.code)
    return {"received": True}
