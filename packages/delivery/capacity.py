"""
Delivery-window capacity and availability.

For a (date, window) the total capacity is the sum of DriverCap rows when any
exist, else the SlotCap override, else the configured default. Occupancy is
the item count of Slot rows that are confirmed, pending and updated within
the freshness window, or admin-held. Admin-held units never count against an
individual driver.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from . import formulas as f
from .config import DeliveryConfig
from .record_store import RecordStoreClient
from .records import ADMIN_HOLD_NOTE, DriverCap, Order, Slot, SlotCap, SlotStatus, to_iso, utc_now
from .windows import normalize_dash, same_window, unique_windows

logger = logging.getLogger(__name__)


@dataclass
class DriverAvailability:
    capacity: int = 0
    current: int = 0
    has_cap: bool = False

    @property
    def available(self) -> int:
        return max(0, self.capacity - self.current)

    def to_dict(self) -> Dict[str, int]:
        return {"capacity": self.capacity, "current": self.current, "available": self.available}


@dataclass
class WindowAvailability:
    window: str
    capacity: int
    current: int = 0
    drivers: Optional[Dict[str, DriverAvailability]] = None

    @property
    def available(self) -> int:
        return max(0, self.capacity - self.current)

    @property
    def sold_out(self) -> bool:
        return self.available <= 0

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "capacity": self.capacity,
            "current": self.current,
            "available": self.available,
            "sold_out": self.sold_out,
        }
        if self.drivers is not None:
            out["drivers"] = {name: d.to_dict() for name, d in self.drivers.items()}
        return out


@dataclass
class DriverSuggestions:
    drivers: List[str] = field(default_factory=list)
    by_order: Dict[str, str] = field(default_factory=dict)


def pick_driver(
    caps: Dict[str, int],
    usage: Dict[str, int],
    units_needed: int = 1,
) -> Optional[str]:
    """Least-loaded driver whose remaining capacity covers `units_needed`; first wins ties."""
    best, best_load = None, None
    for driver, cap in caps.items():
        load = usage.get(driver, 0)
        if cap - load >= units_needed and (best_load is None or load < best_load):
            best, best_load = driver, load
    return best


class CapacityResolver:
    """Computes availability per window from DriverCaps, SlotCaps and Slots."""

    def __init__(
        self,
        store: RecordStoreClient,
        config: DeliveryConfig,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.config = config
        self.clock = clock

    async def availability(
        self,
        date: str,
        windows: Optional[Sequence[str]] = None,
        detailed: bool = False,
    ) -> Dict[str, WindowAvailability]:
        """Availability keyed by window label, in the order the labels were given."""
        labels = unique_windows(windows if windows is not None else self.config.windows)
        if not self.store.configured:
            default = self.config.default_capacity
            return {
                w: WindowAvailability(w, capacity=default, current=0, drivers={} if detailed else None)
                for w in labels
            }
        now = self.clock()
        results = await asyncio.gather(
            *(self._resolve_window(date, w, now, detailed) for w in labels)
        )
        return {w.window: w for w in results}

    async def window_availability(self, date: str, window: str, detailed: bool = False) -> WindowAvailability:
        result = await self.availability(date, [window], detailed=detailed)
        return result[window]

    async def driver_breakdown(self, date: str, window: str) -> Dict[str, DriverAvailability]:
        if not self.store.configured:
            return {}
        now = self.clock()
        caps, slots = await asyncio.gather(
            self._driver_caps(date, window),
            self._occupying_slots(date, window, now),
        )
        return self._per_driver(caps, slots)

    async def suggest_drivers(self, date: str, orders: Sequence[Order]) -> DriverSuggestions:
        """
        Suggest a driver for each order that has none, one unit per order.

        Nothing is written; suggestions simulate load window by window.
        """
        if not self.store.configured:
            return DriverSuggestions()
        windows = unique_windows(o.preferred_window for o in orders if o.preferred_window)
        breakdowns = await asyncio.gather(*(self.driver_breakdown(date, w) for w in windows))

        all_drivers = set()
        by_order: Dict[str, str] = {}
        for window, breakdown in zip(windows, breakdowns):
            caps = {name: d.capacity for name, d in breakdown.items() if d.has_cap}
            usage = {name: d.current for name, d in breakdown.items()}
            all_drivers.update(caps)
            for order in orders:
                if order.driver or not same_window(order.preferred_window, window):
                    continue
                pick = pick_driver(caps, usage, 1)
                if pick:
                    by_order[order.id] = pick
                    usage[pick] = usage.get(pick, 0) + 1
        return DriverSuggestions(drivers=sorted(all_drivers), by_order=by_order)

    async def _resolve_window(
        self,
        date: str,
        window: str,
        now: datetime,
        detailed: bool,
    ) -> WindowAvailability:
        caps, slots = await asyncio.gather(
            self._driver_caps(date, window),
            self._occupying_slots(date, window, now),
        )
        if caps:
            capacity = sum(c.capacity or 0 for c in caps)
        else:
            override = await self._slot_cap(date, window)
            capacity = override.capacity if override is not None else self.config.default_capacity

        current = sum(s.items for s in slots)
        result = WindowAvailability(window, capacity=capacity, current=current)
        if detailed:
            result.drivers = self._per_driver(caps, slots)
        logger.debug(
            "Window %s %s: capacity=%d current=%d (driver caps=%d, slots=%d)",
            date, window, capacity, current, len(caps), len(slots),
        )
        return result

    @staticmethod
    def _per_driver(caps: Sequence[DriverCap], slots: Sequence[Slot]) -> Dict[str, DriverAvailability]:
        out: Dict[str, DriverAvailability] = {}
        for cap in caps:
            if not cap.driver:
                continue
            entry = out.setdefault(cap.driver, DriverAvailability())
            entry.capacity += cap.capacity or 0
            entry.has_cap = True
        for slot in slots:
            if slot.admin_hold or not slot.driver:
                continue
            out.setdefault(slot.driver, DriverAvailability()).current += slot.items
        return out

    def _window_filter(self, date: str, window: str) -> Tuple[str, str]:
        return f.eq("Date", date), f.window_eq("Window", window)

    async def _driver_caps(self, date: str, window: str) -> List[DriverCap]:
        rows = await self.store.list_records(
            self.config.tables.driver_caps,
            formula=f.and_(*self._window_filter(date, window)),
        )
        caps = [DriverCap.from_record(r) for r in rows]
        return [c for c in caps if c.date == date and same_window(c.window, window)]

    async def _slot_cap(self, date: str, window: str) -> Optional[SlotCap]:
        rows = await self.store.list_records(
            self.config.tables.slot_caps,
            formula=f.and_(*self._window_filter(date, window)),
        )
        for row in rows:
            cap = SlotCap.from_record(row)
            if cap.date == date and same_window(cap.window, window) and cap.capacity is not None:
                return cap
        return None

    async def _occupying_slots(self, date: str, window: str, now: datetime) -> List[Slot]:
        fresh = self.config.pending_fresh_minutes
        since = to_iso(now - timedelta(minutes=fresh))
        formula = f.and_(
            *self._window_filter(date, window),
            f.or_(
                f.eq("Status", SlotStatus.CONFIRMED.value),
                f.and_(f.eq("Status", SlotStatus.PENDING.value), f.on_or_after("Updated", since)),
                f.truthy("AdminHold"),
                f.eq("Note", ADMIN_HOLD_NOTE),
            ),
        )
        rows = await self.store.list_records(self.config.tables.slots, formula=formula)
        slots = [Slot.from_record(r) for r in rows]
        return [
            s for s in slots
            if s.date == date and normalize_dash(s.window) == normalize_dash(window) and s.occupies(now, fresh)
        ]
