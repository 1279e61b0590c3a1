"""
Operator edits to a single order, mirrored onto its Slot rows.

An order is addressed by record id, by payment-session id, or both (the id
wins and the session id must agree with the stored one). Slot rows are
joined on their SessionId field; that join may find zero or many rows and
the fan-out is best-effort.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from packages.shared.errors import ConflictError, NotFoundError, ValidationError

from . import formulas as f
from .config import DeliveryConfig
from .record_store import RecordStoreClient
from .records import OPERATOR_SETTABLE_STATUSES, Order, Slot, as_int, to_iso, utc_now

logger = logging.getLogger(__name__)

_SETTABLE = {s.value for s in OPERATOR_SETTABLE_STATUSES}


@dataclass
class OrderUpdate:
    id: Optional[str] = None
    session_id: Optional[str] = None
    status: Optional[str] = None
    delivery_time: Optional[str] = None
    route_position: Optional[Any] = None


@dataclass
class OrderUpdateResult:
    updated_id: str
    session_id: str = ""
    status: Optional[str] = None
    slots_found: int = 0
    slots_updated: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "updated": self.updated_id,
            "session_id": self.session_id or None,
            "status": self.status,
            "slots_found": self.slots_found,
            "slots_updated": self.slots_updated,
        }


def normalize_operator_status(raw: Optional[str]) -> Optional[str]:
    """Lower-case and trim; reject anything outside confirmed/canceled/pending."""
    if raw is None or str(raw).strip() == "":
        return None
    status = str(raw).strip().lower()
    if status not in _SETTABLE:
        raise ValidationError(
            f"status must be one of {sorted(_SETTABLE)}",
            code="invalid_status",
            details={"status": status},
        )
    return status


def build_order_fields(update: OrderUpdate, status: Optional[str]) -> Dict[str, Any]:
    fields: Dict[str, Any] = {}
    if status:
        fields["status"] = status
    if isinstance(update.delivery_time, str):
        fields["delivery_time"] = update.delivery_time
    if update.route_position is not None:
        position = as_int(update.route_position, None)
        if position is None or position < 1:
            raise ValidationError("route_position must be an integer >= 1", code="invalid_route_position")
        fields["route_position"] = position
    return fields


class OrderStatusMutator:
    def __init__(self, store: RecordStoreClient, config: DeliveryConfig):
        self.store = store
        self.config = config

    async def update_order(self, update: OrderUpdate) -> OrderUpdateResult:
        record_id = (update.id or "").strip()
        session_id = (update.session_id or "").strip()
        if not record_id and not session_id:
            raise ValidationError("id or sessionId is required", code="missing_id")

        status = normalize_operator_status(update.status)
        fields = build_order_fields(update, status)
        if not fields:
            raise ValidationError(
                "Nothing to update: pass status, delivery_time or route_position",
                code="nothing_to_update",
            )

        order = await self._resolve_order(record_id, session_id)
        session_id = session_id or order.stripe_session_id

        result = await self.store.update_records(self.config.tables.orders, [(order.id, fields)])
        result.raise_for_failures("airtable_update_failed")
        updated_id = result.succeeded[0].id if result.succeeded else order.id
        logger.info("Order %s updated: %s", updated_id, sorted(fields))

        out = OrderUpdateResult(updated_id=updated_id, session_id=session_id, status=status)
        if status and session_id:
            out.slots_found, out.slots_updated = await self._mirror_slots(session_id, status)
        return out

    async def _resolve_order(self, record_id: str, session_id: str) -> Order:
        table = self.config.tables.orders
        if record_id:
            record = await self.store.get_record(table, record_id)
            if record is None:
                raise NotFoundError(f"Order {record_id} not found", code="order_not_found")
            order = Order.from_record(record)
            if session_id and order.stripe_session_id and order.stripe_session_id != session_id:
                raise ConflictError(
                    "sessionId does not match the order's stored session",
                    code="session_mismatch",
                )
            return order

        rows = await self.store.list_records(table, formula=f.eq("stripe_session_id", session_id))
        matches = [Order.from_record(r) for r in rows]
        matches = [o for o in matches if o.stripe_session_id == session_id]
        if not matches:
            raise NotFoundError(f"No order for session {session_id}", code="order_not_found")
        if len(matches) > 1:
            raise ConflictError(
                f"{len(matches)} orders share session {session_id}; update by id",
                code="ambiguous_session",
                details={"ids": [o.id for o in matches]},
            )
        return matches[0]

    async def _mirror_slots(self, session_id: str, status: str) -> tuple:
        table = self.config.tables.slots
        rows = await self.store.list_records(table, formula=f.eq("SessionId", session_id))
        slots = [s for s in (Slot.from_record(r) for r in rows) if s.session_id == session_id]
        if not slots:
            return 0, 0
        now = to_iso(utc_now())
        result = await self.store.update_records(
            table,
            [(s.id, {"Status": status, "Updated": now}) for s in slots],
        )
        if result.failed:
            logger.warning(
                "Slot mirror for session %s: %d of %d updated",
                session_id, len(result.succeeded), len(slots),
            )
        return len(slots), len(result.succeeded)
