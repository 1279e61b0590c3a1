"""Delivery-slot capacity, routing and order bookkeeping for the storefront."""

from .capacity import CapacityResolver, DriverAvailability, WindowAvailability
from .checkout import CheckoutLedger
from .config import DEFAULT_WINDOWS, DeliveryConfig, StoreTables
from .order_status import OrderStatusMutator, OrderUpdate, OrderUpdateResult
from .record_store import BatchResult, RecordStoreClient
from .records import Order, OrderStatus, Slot, SlotStatus
from .routing import RouteAssignmentEngine, ScheduleResult, plan_route
from .slot_admin import SlotAdmin

__all__ = [
    "CapacityResolver",
    "DriverAvailability",
    "WindowAvailability",
    "CheckoutLedger",
    "DEFAULT_WINDOWS",
    "DeliveryConfig",
    "StoreTables",
    "OrderStatusMutator",
    "OrderUpdate",
    "OrderUpdateResult",
    "BatchResult",
    "RecordStoreClient",
    "Order",
    "OrderStatus",
    "Slot",
    "SlotStatus",
    "RouteAssignmentEngine",
    "ScheduleResult",
    "plan_route",
    "SlotAdmin",
]
