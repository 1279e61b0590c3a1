"""
Entities kept in the external tabular store.

Each table is a mapping of record id to a field mapping. The dataclasses here
read those field mappings tolerantly (missing, blank or mistyped cells fall
back to defaults) and know how to write themselves back.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, FrozenSet, Optional


class OrderStatus(str, Enum):
    """Every status an Order row may carry."""

    UNASSIGNED = "unassigned"
    SCHEDULED = "scheduled"
    CONFIRMED = "confirmed"
    CANCELED = "canceled"
    PENDING = "pending"


# Statuses an operator may set through the order status mutator.
OPERATOR_SETTABLE_STATUSES: FrozenSet[OrderStatus] = frozenset(
    {OrderStatus.CONFIRMED, OrderStatus.CANCELED, OrderStatus.PENDING}
)


class SlotStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELED = "canceled"
    EXPIRED = "expired"


ADMIN_HOLD_NOTE = "admin_hold"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_iso(ts: datetime) -> str:
    """UTC ISO-8601 with millisecond precision and a Z suffix."""
    ts = ts.astimezone(timezone.utc)
    return ts.strftime("%Y-%m-%dT%H:%M:%S.") + f"{ts.microsecond // 1000:03d}Z"


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO timestamp cell; naive values are treated as UTC."""
    if not value:
        return None
    if isinstance(value, datetime):
        ts = value
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            ts = datetime.fromisoformat(text)
        except ValueError:
            return None
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


def as_int(value: Any, default: Optional[int] = 0) -> Optional[int]:
    """Numeric cell to int; blanks and junk give `default`."""
    if value is None or value == "" or isinstance(value, bool):
        return default
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return default


def as_text(value: Any) -> str:
    return str(value).strip() if value is not None else ""


@dataclass
class Record:
    """One row as returned by the store."""

    id: str
    fields: Dict[str, Any] = field(default_factory=dict)
    created_time: Optional[str] = None

    @classmethod
    def from_api(cls, raw: Dict[str, Any]) -> "Record":
        return cls(
            id=str(raw.get("id", "")),
            fields=dict(raw.get("fields") or {}),
            created_time=raw.get("createdTime"),
        )


@dataclass
class Order:
    """Customer order. `stripe_session_id` links it to Slot rows; that link may be stale or absent."""

    id: str
    delivery_date: str = ""
    preferred_window: str = ""
    status: str = ""
    delivery_time: str = ""
    route_position: Optional[int] = None
    customer_name: str = ""
    email: str = ""
    phone: str = ""
    address: str = ""
    notes: str = ""
    items: str = ""
    total: Optional[float] = None
    stripe_session_id: str = ""
    created: str = ""
    driver: str = ""

    @classmethod
    def from_record(cls, record: Record) -> "Order":
        f = record.fields
        total = f.get("total")
        try:
            total = float(total) if total is not None and total != "" else None
        except (TypeError, ValueError):
            total = None
        return cls(
            id=record.id,
            delivery_date=as_text(f.get("delivery_date")),
            preferred_window=as_text(f.get("preferred_window")),
            status=as_text(f.get("status")).lower(),
            delivery_time=as_text(f.get("delivery_time")),
            route_position=as_int(f.get("route_position"), None),
            customer_name=as_text(f.get("customer_name")),
            email=as_text(f.get("email")),
            phone=as_text(f.get("phone")),
            address=as_text(f.get("address")),
            notes=as_text(f.get("notes")),
            items=as_text(f.get("items")),
            total=total,
            stripe_session_id=as_text(f.get("stripe_session_id")),
            created=as_text(f.get("created") or f.get("created_at") or record.created_time),
            driver=as_text(f.get("driver") or f.get("Driver")),
        )

    @property
    def first_name(self) -> str:
        return self.customer_name.split(" ")[0] if self.customer_name else ""

    def summary(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "delivery_date": self.delivery_date,
            "preferred_window": self.preferred_window,
            "status": self.status,
            "delivery_time": self.delivery_time,
            "route_position": self.route_position,
            "customer_name": self.customer_name,
            "email": self.email,
            "phone": self.phone,
            "address": self.address,
            "notes": self.notes,
            "total": self.total,
            "items": self.items,
            "stripe_session_id": self.stripe_session_id,
            "created": self.created,
            "driver": self.driver,
        }


@dataclass
class Slot:
    """Capacity ledger row: `items` units consumed against a (date, window)."""

    id: str
    date: str = ""
    window: str = ""
    status: str = ""
    items: int = 0
    driver: str = ""
    admin_hold: bool = False
    session_id: str = ""
    reservation_id: str = ""
    updated: Optional[datetime] = None
    note: str = ""

    @classmethod
    def from_record(cls, record: Record) -> "Slot":
        f = record.fields
        note = as_text(f.get("Note"))
        return cls(
            id=record.id,
            date=as_text(f.get("Date")),
            window=as_text(f.get("Window")),
            status=as_text(f.get("Status")).lower(),
            items=as_int(f.get("Items"), 0) or 0,
            driver=as_text(f.get("Driver")),
            admin_hold=bool(f.get("AdminHold")) or note == ADMIN_HOLD_NOTE,
            session_id=as_text(f.get("SessionId")),
            reservation_id=as_text(f.get("ReservationId")),
            updated=parse_timestamp(f.get("Updated")),
            note=note,
        )

    def is_fresh_pending(self, now: datetime, fresh_minutes: int) -> bool:
        if self.status != SlotStatus.PENDING.value or self.updated is None:
            return False
        return self.updated >= now - timedelta(minutes=fresh_minutes)

    def occupies(self, now: datetime, fresh_minutes: int) -> bool:
        """Confirmed, fresh pending, or admin-held rows consume capacity."""
        return (
            self.status == SlotStatus.CONFIRMED.value
            or self.is_fresh_pending(now, fresh_minutes)
            or self.admin_hold
        )


@dataclass
class DriverCap:
    id: str
    date: str = ""
    window: str = ""
    driver: str = ""
    capacity: Optional[int] = None

    @classmethod
    def from_record(cls, record: Record) -> "DriverCap":
        f = record.fields
        return cls(
            id=record.id,
            date=as_text(f.get("Date")),
            window=as_text(f.get("Window")),
            driver=as_text(f.get("Driver")),
            capacity=as_int(f.get("Capacity"), 0),
        )


@dataclass
class SlotCap:
    id: str
    date: str = ""
    window: str = ""
    capacity: Optional[int] = None

    @classmethod
    def from_record(cls, record: Record) -> "SlotCap":
        f = record.fields
        return cls(
            id=record.id,
            date=as_text(f.get("Date")),
            window=as_text(f.get("Window")),
            capacity=as_int(f.get("Capacity"), None),
        )
