"""
Route assignment for one delivery day.

Unassigned orders are sorted by the start of their requested window and
given sequential route positions and ETAs `stop_minutes` apart, starting
from the earliest requested start (never later than 8:00 AM). The write-back
is all-or-nothing per call: the first rejected batch aborts the operation.
SMS sends afterwards are best-effort.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol, Sequence

from packages.shared.errors import ValidationError
from packages.shared.monitoring import log_with_context

from . import formulas as f
from .config import DeliveryConfig
from .notifications import SmsDeliveryError, SmsReceipt
from .record_store import RecordStoreClient
from .records import Order, OrderStatus
from .windows import ROUTE_START_CAP_MINUTES, format_clock, window_start_minutes

logger = logging.getLogger(__name__)


class SmsSender(Protocol):
    async def send(self, to: str, body: str) -> SmsReceipt: ...


@dataclass
class RouteStop:
    order: Order
    start_minutes: int
    route_position: int = 0
    eta_minutes: int = 0

    @property
    def delivery_time(self) -> str:
        return format_clock(self.eta_minutes)

    def patch_fields(self) -> Dict[str, Any]:
        return {
            "status": OrderStatus.SCHEDULED.value,
            "route_position": self.route_position,
            "delivery_time": self.delivery_time,
        }


@dataclass
class ScheduleResult:
    date: str
    scheduled: int = 0
    notifications_sent: int = 0
    stops: List[RouteStop] = field(default_factory=list)

    @property
    def message(self) -> Optional[str]:
        if not self.scheduled:
            return f"No unassigned orders for {self.date}."
        return None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "date": self.date,
            "scheduled": self.scheduled,
            "notifications_sent": self.notifications_sent,
        }
        if self.message:
            out["message"] = self.message
        else:
            out["stops"] = [
                {
                    "id": s.order.id,
                    "route_position": s.route_position,
                    "delivery_time": s.delivery_time,
                    "preferred_window": s.order.preferred_window,
                }
                for s in self.stops
            ]
        return out


def plan_route(orders: Sequence[Order], stop_minutes: int) -> List[RouteStop]:
    """Sort by requested window start (stable) and assign positions and ETAs."""
    stops = [RouteStop(order=o, start_minutes=window_start_minutes(o.preferred_window)) for o in orders]
    if not stops:
        return []
    stops.sort(key=lambda s: s.start_minutes)
    current = min(min(s.start_minutes for s in stops), ROUTE_START_CAP_MINUTES)
    for position, stop in enumerate(stops, start=1):
        stop.route_position = position
        stop.eta_minutes = current
        current += stop_minutes
    return stops


class RouteAssignmentEngine:
    def __init__(
        self,
        store: RecordStoreClient,
        config: DeliveryConfig,
        sms: Optional[SmsSender] = None,
    ):
        self.store = store
        self.config = config
        self.sms = sms

    async def unassigned_orders(self, date: str) -> List[Order]:
        rows = await self.store.list_records(
            self.config.tables.orders,
            formula=f.and_(f.eq("delivery_date", date), f.eq("status", OrderStatus.UNASSIGNED.value)),
        )
        orders = [Order.from_record(r) for r in rows]
        return [o for o in orders if o.delivery_date == date and o.status == OrderStatus.UNASSIGNED.value]

    async def schedule_day(self, date: str, stop_minutes: Optional[int] = None) -> ScheduleResult:
        stop = self.config.stop_minutes if stop_minutes is None else stop_minutes
        if stop <= 0:
            raise ValidationError("stop must be a positive number of minutes", code="invalid_stop")

        orders = await self.unassigned_orders(date)
        if not orders:
            logger.info("No unassigned orders for %s", date)
            return ScheduleResult(date=date)

        stops = plan_route(orders, stop)
        await self.store.update_records(
            self.config.tables.orders,
            [(s.order.id, s.patch_fields()) for s in stops],
            stop_on_error=True,
        )
        log_with_context(
            logger, logging.INFO, f"Scheduled {len(stops)} orders for {date}",
            date=date, stop_minutes=stop, first_eta=stops[0].delivery_time,
        )

        sent = await self._notify(date, stops) if self.sms else 0
        return ScheduleResult(date=date, scheduled=len(stops), notifications_sent=sent, stops=stops)

    def message_for(self, stop: RouteStop, date: str) -> str:
        first = stop.order.first_name or "there"
        return (
            f"Hi {first}, {self.config.shop_name} here! Your delivery is scheduled for "
            f"~{stop.delivery_time} on {date}. Reply STOP to opt out."
        )

    async def _notify(self, date: str, stops: Sequence[RouteStop]) -> int:
        sent = 0
        for stop in stops:
            phone = stop.order.phone
            if not phone:
                continue
            try:
                await self.sms.send(phone, self.message_for(stop, date))
                sent += 1
            except SmsDeliveryError as e:
                logger.warning("SMS to order %s failed: %s (%s)", stop.order.id, e.message, e.code)
        return sent
