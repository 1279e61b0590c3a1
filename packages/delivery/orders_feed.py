"""Operator order feed for one delivery day, with driver suggestions."""

from typing import Any, Dict, List, Optional

from . import formulas as f
from .capacity import CapacityResolver
from .config import DeliveryConfig
from .record_store import RecordStoreClient
from .records import Order
from .windows import window_start_minutes


def feed_sort_key(order: Order):
    return (window_start_minutes(order.preferred_window), order.created)


async def orders_feed(
    store: RecordStoreClient,
    config: DeliveryConfig,
    capacity: CapacityResolver,
    date: str,
    status: Optional[str] = None,
) -> Dict[str, Any]:
    """Orders for `date` (optionally one status) sorted by window start, then created."""
    status = (status or "").strip().lower() or None
    rows = await store.list_records(
        config.tables.orders,
        formula=f.and_(f.eq("delivery_date", date), f.eq("status", status) if status else None),
    )
    orders: List[Order] = [
        o for o in (Order.from_record(r) for r in rows)
        if o.delivery_date == date and (status is None or o.status == status)
    ]
    orders.sort(key=feed_sort_key)

    suggestions = await capacity.suggest_drivers(date, orders)
    summaries = []
    for order in orders:
        summary = order.summary()
        summary["suggested_driver"] = "" if order.driver else suggestions.by_order.get(order.id, "")
        summaries.append(summary)
    return {
        "date": date,
        "count": len(summaries),
        "orders": summaries,
        "drivers": suggestions.drivers,
    }
