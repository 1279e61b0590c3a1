"""Delivery configuration passed explicitly into every domain component."""

from dataclasses import dataclass, field
from typing import Tuple

DEFAULT_WINDOWS: Tuple[str, ...] = ("6:00–7:00 AM", "7:00–8:00 AM", "8:00–9:00 AM")


@dataclass(frozen=True)
class StoreTables:
    """Table names in the hosted spreadsheet base."""

    orders: str = "Orders"
    slots: str = "Slots"
    slot_caps: str = "SlotCaps"
    driver_caps: str = "DriverCaps"
    votes: str = ""
    merch: str = ""


@dataclass(frozen=True)
class DeliveryConfig:
    """Process-wide delivery settings, built once from the service Settings."""

    windows: Tuple[str, ...] = DEFAULT_WINDOWS
    default_capacity: int = 5
    pending_fresh_minutes: int = 60
    stop_minutes: int = 12
    timezone: str = "America/New_York"
    shop_name: str = "Sean’s Muffins"
    tables: StoreTables = field(default_factory=StoreTables)
