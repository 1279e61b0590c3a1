"""Operator order endpoints: daily feed and status updates."""

from typing import Any, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from auth import require_admin
from config import settings
from dependencies import (
    get_capacity_resolver,
    get_delivery_config,
    get_order_mutator,
    get_record_store,
)
from packages.delivery.capacity import CapacityResolver
from packages.delivery.config import DeliveryConfig
from packages.delivery.order_status import OrderStatusMutator, OrderUpdate
from packages.delivery.orders_feed import orders_feed
from packages.delivery.record_store import RecordStoreClient
from packages.delivery.slot_admin import require_date
from packages.shared.utils import ok_response

router = APIRouter(prefix="/api", tags=["Orders"], dependencies=[Depends(require_admin)])


class UpdateStatusBody(BaseModel):
    id: Optional[str] = None
    session_id: Optional[str] = Field(None, alias="sessionId")
    status: Optional[str] = None
    delivery_time: Optional[str] = None
    route_position: Any = None
    token: Optional[str] = None

    model_config = {"populate_by_name": True}


@router.get("/orders-feed")
async def get_orders_feed(
    date: Optional[str] = Query(None, description="YYYY-MM-DD, default today in shop timezone"),
    status: Optional[str] = Query(None),
    store: RecordStoreClient = Depends(get_record_store),
    config: DeliveryConfig = Depends(get_delivery_config),
    capacity: CapacityResolver = Depends(get_capacity_resolver),
):
    """Orders for a day sorted by window then creation, with suggested drivers."""
    day = require_date(date) if date else settings.today().isoformat()
    feed = await orders_feed(store, config, capacity, day, status)
    return ok_response(**feed)


@router.post("/orders-update-status")
async def orders_update_status(
    body: UpdateStatusBody,
    mutator: OrderStatusMutator = Depends(get_order_mutator),
):
    """Patch one order by id or session id and mirror the status onto its slots."""
    result = await mutator.update_order(
        OrderUpdate(
            id=body.id,
            session_id=body.session_id,
            status=body.status,
            delivery_time=body.delivery_time,
            route_position=body.route_position,
        )
    )
    return ok_response(**result.to_dict())
