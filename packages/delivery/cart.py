"""
Client-side cart: items, local persistence, cross-cart sync, and the
capacity-requirement policy used when checking a window before checkout.
"""

import json
import logging
import secrets
from dataclasses import asdict, dataclass, field
from datetime import date, datetime, time, timedelta
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

CART_KEY = "sm_cart_v1"
ORDER_CUTOFF = time(20, 30)
BOOKING_HORIZON_DAYS = 14


@dataclass
class CartItem:
    price: str
    name: str = "Muffin Box"
    quantity: int = 1

    @classmethod
    def sanitize(cls, raw: Any) -> Optional["CartItem"]:
        """Coerce a stored item; quantity is forced to >= 1, items without a price are dropped."""
        if not isinstance(raw, dict) or not raw.get("price"):
            return None
        try:
            quantity = int(raw.get("quantity", 1))
        except (TypeError, ValueError):
            quantity = 1
        return cls(
            price=str(raw["price"]),
            name=str(raw.get("name") or "Muffin Box"),
            quantity=max(1, quantity),
        )


@dataclass
class Cart:
    items: List[CartItem] = field(default_factory=list)

    @classmethod
    def from_list(cls, raw: Any) -> "Cart":
        items = [CartItem.sanitize(r) for r in (raw if isinstance(raw, list) else [])]
        return cls([i for i in items if i is not None])

    def to_list(self) -> List[Dict[str, Any]]:
        return [asdict(i) for i in self.items]

    @property
    def total_quantity(self) -> int:
        return sum(i.quantity for i in self.items)

    def add(self, price: str, name: str = "Muffin Box", quantity: int = 1) -> None:
        for item in self.items:
            if item.price == price:
                item.quantity += max(1, quantity)
                return
        self.items.append(CartItem(price=price, name=name, quantity=max(1, quantity)))

    def set_quantity(self, price: str, quantity: int) -> None:
        """Quantity 0 or less removes the item."""
        if quantity <= 0:
            self.remove(price)
            return
        for item in self.items:
            if item.price == price:
                item.quantity = quantity

    def remove(self, price: str) -> None:
        self.items = [i for i in self.items if i.price != price]

    def clear(self) -> None:
        self.items = []

    def line_items(self) -> List[Dict[str, Any]]:
        return [{"price": i.price, "quantity": i.quantity} for i in self.items]


class CartStore:
    """Key/value JSON file standing in for browser local storage."""

    def __init__(self, path: Path, key: str = CART_KEY):
        self.path = Path(path)
        self.key = key

    def _read_all(self) -> Dict[str, Any]:
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as e:
            logger.warning("Cart storage %s unreadable: %s", self.path, e)
            return {}
        return data if isinstance(data, dict) else {}

    def load(self) -> Cart:
        return Cart.from_list(self._read_all().get(self.key))

    def save(self, cart: Cart) -> None:
        data = self._read_all()
        data[self.key] = cart.to_list()
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data), encoding="utf-8")


class CartChannel:
    """In-process broadcast channel; every subscriber sees every message, including its own."""

    def __init__(self, name: str = "sm_cart"):
        self.name = name
        self._subscribers: List[Callable[[Dict[str, Any]], None]] = []

    def subscribe(self, callback: Callable[[Dict[str, Any]], None]) -> None:
        self._subscribers.append(callback)

    def unsubscribe(self, callback: Callable[[Dict[str, Any]], None]) -> None:
        self._subscribers = [s for s in self._subscribers if s is not callback]

    def post(self, message: Dict[str, Any]) -> None:
        for callback in list(self._subscribers):
            callback(message)


class SyncedCart:
    """
    A cart bound to persistent storage and a broadcast channel.

    Every save is persisted and broadcast tagged with this cart's client id;
    messages carrying our own id are ignored so sibling carts never echo.
    """

    def __init__(self, store: CartStore, channel: Optional[CartChannel] = None):
        self.store = store
        self.channel = channel
        self.client_id = secrets.token_hex(6)
        self.cart = store.load()
        self._listeners: List[Callable[[Cart], None]] = []
        if channel is not None:
            channel.subscribe(self._on_message)

    def on_change(self, listener: Callable[[Cart], None]) -> None:
        self._listeners.append(listener)

    def save(self) -> None:
        self.cart = Cart.from_list(self.cart.to_list())
        self.store.save(self.cart)
        if self.channel is not None:
            self.channel.post({"type": "cart", "from": self.client_id, "cart": self.cart.to_list()})
        self._changed()

    def close(self) -> None:
        if self.channel is not None:
            self.channel.unsubscribe(self._on_message)

    def _on_message(self, message: Dict[str, Any]) -> None:
        if not message or message.get("from") == self.client_id or message.get("type") != "cart":
            return
        self.cart = Cart.from_list(message.get("cart"))
        self._changed()

    def _changed(self) -> None:
        for listener in self._listeners:
            listener(self.cart)


class CapacityRequirement(str, Enum):
    """How many capacity units a checkout needs."""

    PER_ORDER = "per_order"
    PER_ITEM = "per_item"


def required_units(cart: Cart, policy: CapacityRequirement = CapacityRequirement.PER_ORDER) -> int:
    if policy == CapacityRequirement.PER_ITEM:
        return cart.total_quantity or 1
    return 1


def default_delivery_date(now: Optional[datetime] = None) -> date:
    """Tomorrow, or the day after once it is 8:30 PM or later."""
    now = now or datetime.now()
    days = 2 if now.time() >= ORDER_CUTOFF else 1
    return now.date() + timedelta(days=days)


def max_delivery_date(today: Optional[date] = None) -> date:
    return (today or date.today()) + timedelta(days=BOOKING_HORIZON_DAYS)


def within_horizon(day: date, today: Optional[date] = None) -> bool:
    today = today or date.today()
    return today < day <= max_delivery_date(today)