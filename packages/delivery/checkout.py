"""
Checkout lifecycle against the store: slot reservations before payment and
order creation when the payment processor reports the session outcome.
"""

import logging
import uuid
from typing import Any, Dict, Mapping, Optional

from packages.shared.errors import ConflictError

from . import formulas as f
from .capacity import CapacityResolver
from .config import DeliveryConfig
from .payments import StripePayments, minimal_order_fields, order_fields
from .record_store import RecordStoreClient
from .records import Order, Record, Slot, SlotStatus, to_iso, utc_now
from .slot_admin import require_date, require_window

logger = logging.getLogger(__name__)

SESSION_COMPLETED = "checkout.session.completed"
SESSION_EXPIRED = "checkout.session.expired"


class CheckoutLedger:
    def __init__(
        self,
        store: RecordStoreClient,
        config: DeliveryConfig,
        capacity: CapacityResolver,
    ):
        self.store = store
        self.config = config
        self.capacity = capacity

    async def reserve(self, date: Any, window: Any) -> Optional[Dict[str, str]]:
        """
        Hold one unit for (date, window) while the customer pays.

        Returns the session metadata for the reservation, or None when the
        store is not configured (the offline storefront takes orders without
        holds). Raises ConflictError `window_full` when nothing is left.
        """
        date = require_date(date)
        window = require_window(window, self.config.windows)
        if not self.store.configured:
            return None

        availability = await self.capacity.window_availability(date, window)
        if availability.available < 1:
            raise ConflictError(
                f"{window} on {date} is full",
                code="window_full",
                details={"date": date, "window": window},
            )

        reservation_id = str(uuid.uuid4())
        result = await self.store.create_records(
            self.config.tables.slots,
            [{
                "Date": date,
                "Window": window,
                "Status": SlotStatus.PENDING.value,
                "Items": 1,
                "ReservationId": reservation_id,
                "Updated": to_iso(utc_now()),
            }],
        )
        result.raise_for_failures("airtable_create_failed")
        logger.info("Reserved %s %s (%s)", date, window, reservation_id)
        return {"deliveryDate": date, "timeWindow": window, "reservationId": reservation_id}

    async def handle_event(self, event: Mapping[str, Any], payments: StripePayments) -> str:
        """Apply one verified webhook event; returns a short description of what was done."""
        event_type = event.get("type") or ""
        session = ((event.get("data") or {}).get("object")) or {}
        session_id = session.get("id") or ""
        reservation_id = (session.get("metadata") or {}).get("reservationId") or ""

        if event_type in (SESSION_COMPLETED, SESSION_EXPIRED) and not self.store.configured:
            logger.warning("Webhook %s for %s not recorded: store not configured", event_type, session_id)
            return "store_not_configured"
        if event_type == SESSION_COMPLETED:
            full = await payments.retrieve_session(session_id)
            created = await self.record_order(full)
            await self.mark_reservation(reservation_id, SlotStatus.CONFIRMED, session_id)
            return "order_created" if created else "order_exists"
        if event_type == SESSION_EXPIRED:
            await self.mark_reservation(reservation_id, SlotStatus.EXPIRED, session_id)
            return "reservation_expired"
        logger.debug("Ignoring webhook event %s", event_type)
        return "ignored"

    async def record_order(self, session: Mapping[str, Any]) -> Optional[Record]:
        """Create the Order row for a paid session; None when one already exists."""
        table = self.config.tables.orders
        session_id = session.get("id") or ""
        if session_id:
            rows = await self.store.list_records(table, formula=f.eq("stripe_session_id", session_id))
            if any(Order.from_record(r).stripe_session_id == session_id for r in rows):
                logger.info("Order for session %s already recorded", session_id)
                return None

        full = order_fields(session)
        result = await self.store.create_records(table, [full])
        if result.failed and result.failed[0].status_code == 422:
            logger.warning("Order create rejected (422) for %s; retrying with minimal fields", session_id)
            result = await self.store.create_records(table, [minimal_order_fields(full)])
        result.raise_for_failures("airtable_create_failed")
        record = result.succeeded[0] if result.succeeded else None
        logger.info("Order %s created for session %s", record.id if record else "?", session_id)
        return record

    async def mark_reservation(self, reservation_id: str, status: SlotStatus, session_id: str) -> int:
        if not reservation_id:
            return 0
        table = self.config.tables.slots
        rows = await self.store.list_records(table, formula=f.eq("ReservationId", reservation_id))
        slots = [s for s in (Slot.from_record(r) for r in rows) if s.reservation_id == reservation_id]
        if not slots:
            logger.warning("No slot for reservation %s", reservation_id)
            return 0
        result = await self.store.update_records(
            table,
            [(slots[0].id, {"Status": status.value, "SessionId": session_id, "Updated": to_iso(utc_now())})],
        )
        result.raise_for_failures("airtable_update_failed")
        return len(result.succeeded)
