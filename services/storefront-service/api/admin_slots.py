"""Operator capacity endpoints: admin holds, SlotCap overrides, DriverCaps."""

from typing import Any, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from auth import require_admin
from dependencies import get_slot_admin
from packages.delivery.slot_admin import SlotAdmin
from packages.shared.utils import ok_response

router = APIRouter(prefix="/api", tags=["Capacity admin"], dependencies=[Depends(require_admin)])


class AdminHoldBody(BaseModel):
    date: Optional[str] = None
    window: Optional[str] = None
    qty: Any = 1
    action: str = "hold"
    token: Optional[str] = None


class SlotCapacityBody(BaseModel):
    date: Optional[str] = None
    window: Optional[str] = None
    capacity: Any = None
    token: Optional[str] = None


class DriverCapsBody(BaseModel):
    date: Optional[str] = None
    caps: Optional[List[Any]] = None
    token: Optional[str] = None


@router.post("/slots-admin-hold")
async def slots_admin_hold(body: AdminHoldBody, admin: SlotAdmin = Depends(get_slot_admin)):
    """Create or release `qty` admin-held units for a date/window."""
    result = await admin.admin_hold(body.date, body.window, body.qty, body.action)
    return ok_response(**result.to_dict())


@router.post("/slots-capacity-set")
async def slots_capacity_set(body: SlotCapacityBody, admin: SlotAdmin = Depends(get_slot_admin)):
    """Upsert the SlotCap override; `capacity: null` removes it."""
    change = await admin.set_slot_capacity(body.date, body.window, body.capacity)
    return ok_response(**change.to_dict())


@router.post("/drivers-capacity-set")
async def drivers_capacity_set(body: DriverCapsBody, admin: SlotAdmin = Depends(get_slot_admin)):
    """Bulk upsert DriverCap rows for one date."""
    result = await admin.set_driver_caps(body.date, body.caps)
    return ok_response(**result.to_dict())
