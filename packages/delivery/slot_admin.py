"""Operator capacity tools: admin holds, SlotCap overrides and DriverCap rows."""

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from packages.shared.errors import ValidationError

from . import formulas as f
from .config import DeliveryConfig
from .record_store import RecordStoreClient
from .records import ADMIN_HOLD_NOTE, DriverCap, Slot, SlotCap, SlotStatus, as_int, to_iso, utc_now
from .windows import canonical_window, is_iso_date, normalize_dash, same_window, strip_availability_suffix

logger = logging.getLogger(__name__)

HOLD = "hold"
RELEASE = "release"


def require_date(value: Any) -> str:
    date = str(value or "").strip()
    if not is_iso_date(date):
        raise ValidationError("date must be YYYY-MM-DD", code="invalid_date")
    return date


def require_window(value: Any, known: Sequence[str]) -> str:
    window = canonical_window(value, known)
    if window is None:
        raise ValidationError(
            f"window must be one of {list(known)}",
            code="invalid_window",
            details={"window": str(value or "")},
        )
    return window


def parse_capacity(value: Any) -> Optional[int]:
    """None removes an override; anything else must be a non-negative integer."""
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValidationError("capacity must be a number >= 0", code="invalid_capacity")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError("capacity must be a number >= 0", code="invalid_capacity")
    if not math.isfinite(number) or number < 0:
        raise ValidationError("capacity must be a number >= 0", code="invalid_capacity")
    return int(number)


@dataclass
class HoldResult:
    action: str
    requested: int
    created: int = 0
    deleted: int = 0
    failed: int = 0

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"action": self.action, "requested": self.requested}
        if self.action == HOLD:
            out["created"] = self.created
        else:
            out["deleted"] = self.deleted
        if self.failed:
            out["failed"] = self.failed
        return out


@dataclass
class SlotCapChange:
    date: str
    window: str
    capacity: Optional[int]
    created: bool = False
    updated: bool = False
    removed: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": self.date,
            "window": self.window,
            "capacity": self.capacity,
            "created": self.created,
            "updated": self.updated,
            "removed": self.removed,
        }


@dataclass
class DriverCapsResult:
    date: str
    created: List[Dict[str, Any]] = field(default_factory=list)
    updated: List[Dict[str, Any]] = field(default_factory=list)
    skipped: int = 0
    failed: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": self.date,
            "created": self.created,
            "updated": self.updated,
            "skipped": self.skipped,
            "failed": self.failed,
        }


class SlotAdmin:
    def __init__(self, store: RecordStoreClient, config: DeliveryConfig):
        self.store = store
        self.config = config

    async def admin_hold(self, date: Any, window: Any, qty: Any = 1, action: Any = HOLD) -> HoldResult:
        """Reserve (`hold`) or free (`release`) `qty` capacity units with no customer order."""
        date = require_date(date)
        window = require_window(window, self.config.windows)
        action = str(action or HOLD).strip().lower()
        if action not in (HOLD, RELEASE):
            raise ValidationError("action must be 'hold' or 'release'", code="invalid_action")
        count = max(1, as_int(qty, 1) or 1)

        table = self.config.tables.slots
        if action == HOLD:
            now = to_iso(utc_now())
            rows = [
                {
                    "Date": date,
                    "Window": window,
                    "Status": SlotStatus.CONFIRMED.value,
                    "Items": 1,
                    "AdminHold": True,
                    "Note": ADMIN_HOLD_NOTE,
                    "Updated": now,
                }
                for _ in range(count)
            ]
            result = await self.store.create_records(table, rows)
            if not result.succeeded:
                result.raise_for_failures("airtable_create_failed")
            logger.info("Admin hold %s %s: %d unit(s)", date, window, len(result.succeeded))
            return HoldResult(HOLD, count, created=len(result.succeeded), failed=result.failed_count)

        holds = await self._admin_holds(date, window)
        ids = [s.id for s in holds[:count]]
        if not ids:
            return HoldResult(RELEASE, count)
        result = await self.store.delete_records(table, ids)
        if not result.succeeded:
            result.raise_for_failures("airtable_delete_failed")
        logger.info("Admin hold release %s %s: %d unit(s)", date, window, len(result.succeeded))
        return HoldResult(RELEASE, count, deleted=len(result.succeeded), failed=result.failed_count)

    async def set_slot_capacity(self, date: Any, window: Any, capacity: Any) -> SlotCapChange:
        """Upsert the SlotCap override for (date, window); `capacity=None` deletes it."""
        date = require_date(date)
        window = require_window(strip_availability_suffix(str(window or "")), self.config.windows)
        cap = parse_capacity(capacity)

        table = self.config.tables.slot_caps
        existing = await self._slot_caps(date, window)
        change = SlotCapChange(date=date, window=window, capacity=cap)

        if cap is None:
            if existing:
                result = await self.store.delete_records(table, [c.id for c in existing])
                result.raise_for_failures("airtable_delete_failed")
                change.removed = True
            return change

        if existing:
            result = await self.store.update_records(table, [(existing[0].id, {"Capacity": cap})])
            result.raise_for_failures("airtable_update_failed")
            change.updated = True
            if len(existing) > 1:
                logger.warning("%d SlotCap rows for %s %s; updated the first", len(existing), date, window)
        else:
            result = await self.store.create_records(
                table, [{"Date": date, "Window": window, "Capacity": cap}]
            )
            result.raise_for_failures("airtable_create_failed")
            change.created = True
        return change

    async def set_driver_caps(self, date: Any, caps: Any) -> DriverCapsResult:
        """Bulk upsert one DriverCap row per (date, window, driver)."""
        date = require_date(date)
        if not isinstance(caps, list) or not caps:
            raise ValidationError("caps must be a non-empty list", code="empty_caps")

        out = DriverCapsResult(date=date)
        wanted: Dict[Tuple[str, str], Dict[str, Any]] = {}
        for row in caps:
            row = row if isinstance(row, dict) else {}
            driver = str(row.get("driver") or "").strip()
            label = strip_availability_suffix(str(row.get("window") or ""))
            if not driver or not label:
                out.skipped += 1
                continue
            window = canonical_window(label, self.config.windows) or label
            capacity = max(0, as_int(row.get("capacity"), 0) or 0)
            wanted[(normalize_dash(window), driver)] = {
                "Date": date, "Window": window, "Driver": driver, "Capacity": capacity,
            }

        table = self.config.tables.driver_caps
        existing = {
            (normalize_dash(c.window), c.driver): c for c in await self._driver_caps_for(date)
        }

        updates: List[Tuple[str, Dict[str, Any]]] = []
        creates: List[Dict[str, Any]] = []
        for key, fields in wanted.items():
            current = existing.get(key)
            if current is not None:
                updates.append((current.id, fields))
            else:
                creates.append(fields)

        if updates:
            result = await self.store.update_records(table, updates)
            out.updated = [_cap_summary(r.fields) for r in result.succeeded]
            out.failed += result.failed_count
        if creates:
            result = await self.store.create_records(table, creates)
            out.created = [_cap_summary(r.fields) for r in result.succeeded]
            out.failed += result.failed_count
        logger.info(
            "DriverCaps %s: %d created, %d updated, %d skipped, %d failed",
            date, len(out.created), len(out.updated), out.skipped, out.failed,
        )
        return out

    async def _admin_holds(self, date: str, window: str) -> List[Slot]:
        rows = await self.store.list_records(
            self.config.tables.slots,
            formula=f.and_(
                f.eq("Date", date),
                f.window_eq("Window", window),
                f.or_(f.truthy("AdminHold"), f.eq("Note", ADMIN_HOLD_NOTE)),
            ),
        )
        slots = [Slot.from_record(r) for r in rows]
        return [s for s in slots if s.admin_hold and s.date == date and same_window(s.window, window)]

    async def _slot_caps(self, date: str, window: str) -> List[SlotCap]:
        rows = await self.store.list_records(
            self.config.tables.slot_caps,
            formula=f.and_(f.eq("Date", date), f.window_eq("Window", window)),
        )
        caps = [SlotCap.from_record(r) for r in rows]
        return [c for c in caps if c.date == date and same_window(c.window, window)]

    async def _driver_caps_for(self, date: str) -> List[DriverCap]:
        rows = await self.store.list_records(self.config.tables.driver_caps, formula=f.eq("Date", date))
        caps = [DriverCap.from_record(r) for r in rows]
        return [c for c in caps if c.date == date]


def _cap_summary(fields: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "driver": fields.get("Driver"),
        "window": fields.get("Window"),
        "capacity": as_int(fields.get("Capacity"), 0),
    }
