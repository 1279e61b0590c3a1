"""
Route assignment trigger, called by an external scheduler or an operator.

Admin-only on GET and POST: a cron caller must send
`Authorization: Bearer <ADMIN_API_TOKEN>` (or X-Admin-Token).
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from auth import require_admin
from config import settings
from dependencies import get_route_engine
from packages.delivery.routing import RouteAssignmentEngine
from packages.delivery.slot_admin import require_date
from packages.shared.errors import ValidationError
from packages.shared.utils import ok_response

router = APIRouter(prefix="/api", tags=["Routing"], dependencies=[Depends(require_admin)])


def parse_stop(raw: Optional[str]) -> Optional[int]:
    if raw is None or raw.strip() == "":
        return None
    try:
        stop = int(raw)
    except ValueError:
        raise ValidationError("stop must be a positive integer", code="invalid_stop")
    if stop <= 0:
        raise ValidationError("stop must be a positive integer", code="invalid_stop")
    return stop


@router.api_route("/schedule-today", methods=["GET", "POST"])
async def schedule_today(
    date: Optional[str] = Query(None, description="YYYY-MM-DD, default today in shop timezone"),
    stop: Optional[str] = Query(None, description="Minutes per stop"),
    engine: RouteAssignmentEngine = Depends(get_route_engine),
):
    """Sort the day's unassigned orders into a route, write ETAs and text customers."""
    day = require_date(date) if date else settings.today().isoformat()
    result = await engine.schedule_day(day, parse_stop(stop))
    return ok_response(**result.to_dict())
