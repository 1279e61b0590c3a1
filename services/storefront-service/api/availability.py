"""Public slot availability."""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from dependencies import get_capacity_resolver
from packages.delivery.capacity import CapacityResolver
from packages.delivery.slot_admin import require_date
from packages.shared.utils import ok_response

router = APIRouter(prefix="/api", tags=["Availability"])


@router.get("/slot-availability")
async def slot_availability(
    date: Optional[str] = Query(None, description="YYYY-MM-DD"),
    detailed: Optional[str] = Query(None, description="1 for per-driver breakdown"),
    resolver: CapacityResolver = Depends(get_capacity_resolver),
):
    """Capacity, current, available and sold_out per configured window."""
    day = require_date(date)
    want_drivers = (detailed or "").strip().lower() in ("1", "true", "yes")
    windows = await resolver.availability(day, detailed=want_drivers)
    return ok_response(
        date=day,
        windows={label: w.to_dict() for label, w in windows.items()},
    )
