"""FastAPI dependencies wiring Settings into the delivery components."""

from typing import Optional

from fastapi import Depends

from config import settings
from packages.delivery.capacity import CapacityResolver
from packages.delivery.checkout import CheckoutLedger
from packages.delivery.config import DeliveryConfig
from packages.delivery.notifications import TwilioSmsSender
from packages.delivery.order_status import OrderStatusMutator
from packages.delivery.payments import StripePayments
from packages.delivery.record_store import RecordStoreClient
from packages.delivery.routing import RouteAssignmentEngine
from packages.delivery.slot_admin import SlotAdmin

_delivery_config = settings.delivery_config()


def get_delivery_config() -> DeliveryConfig:
    return _delivery_config


def get_record_store() -> RecordStoreClient:
    return RecordStoreClient(
        api_key=settings.airtable_api_key,
        base_id=settings.airtable_base_id,
        api_url=settings.airtable_api_url,
    )


def get_payments() -> StripePayments:
    return StripePayments(settings.stripe_secret_key, settings.stripe_webhook_secret)


def get_sms_sender() -> Optional[TwilioSmsSender]:
    """None when Twilio is not configured."""
    if not settings.twilio_configured:
        return None
    return TwilioSmsSender(
        settings.twilio_account_sid,
        settings.twilio_auth_token,
        settings.twilio_from_number,
    )


def get_capacity_resolver(
    store: RecordStoreClient = Depends(get_record_store),
    config: DeliveryConfig = Depends(get_delivery_config),
) -> CapacityResolver:
    return CapacityResolver(store, config)


def get_slot_admin(
    store: RecordStoreClient = Depends(get_record_store),
    config: DeliveryConfig = Depends(get_delivery_config),
) -> SlotAdmin:
    return SlotAdmin(store, config)


def get_route_engine(
    store: RecordStoreClient = Depends(get_record_store),
    config: DeliveryConfig = Depends(get_delivery_config),
    sms: Optional[TwilioSmsSender] = Depends(get_sms_sender),
) -> RouteAssignmentEngine:
    return RouteAssignmentEngine(store, config, sms=sms)


def get_order_mutator(
    store: RecordStoreClient = Depends(get_record_store),
    config: DeliveryConfig = Depends(get_delivery_config),
) -> OrderStatusMutator:
    return OrderStatusMutator(store, config)


def get_checkout_ledger(
    store: RecordStoreClient = Depends(get_record_store),
    config: DeliveryConfig = Depends(get_delivery_config),
    capacity: CapacityResolver = Depends(get_capacity_resolver),
) -> CheckoutLedger:
    return CheckoutLedger(store, config, capacity)
