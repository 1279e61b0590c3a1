"""
Storefront client: reads availability, labels window choices, preflights
capacity and submits checkout.

Availability is advisory here. The server re-checks capacity when it creates
the checkout session, so a passing preflight can still end in `window_full`.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence

import httpx

from .cart import Cart, CapacityRequirement, required_units
from .windows import normalize_dash, strip_availability_suffix

logger = logging.getLogger(__name__)

CHECKOUT_ERROR_MESSAGES: Dict[str, str] = {
    "window_full": "That delivery window is full. Please pick another window.",
    "capacity_full": "That delivery window is full. Please pick another window.",
    "driver_full": "All drivers are booked for that window. Please pick another window.",
    "invalid_window": "Please choose a delivery window.",
    "invalid_date": "Please choose a valid delivery date.",
    "missing_fields": "Please refresh and try again.",
    "invalid_request": "Please refresh and try again.",
    "no_items": "Your cart is empty.",
    "invalid_price": "That item is unavailable. Please refresh and try again.",
    "stripe_config": "Payment system is being configured. Please try again shortly.",
    "stripe_error": "Payment processor error. Please try again.",
    "airtable_create_failed": "Could not hold your delivery slot. Please try again in 30 seconds.",
}
DEFAULT_CHECKOUT_MESSAGE = "Checkout failed. Please try again."

# Error codes after which availability should be fetched again.
REFRESH_AVAILABILITY_CODES = frozenset({"window_full", "capacity_full", "airtable_create_failed"})


def checkout_error_message(code: Optional[str]) -> str:
    return CHECKOUT_ERROR_MESSAGES.get(code or "", DEFAULT_CHECKOUT_MESSAGE)


def _available(entry: Mapping[str, Any]) -> int:
    raw = entry.get("available")
    if raw is None:
        try:
            raw = float(entry.get("capacity") or 0) - float(entry.get("current") or 0)
        except (TypeError, ValueError):
            raw = 0
    try:
        value = int(float(raw))
    except (TypeError, ValueError):
        value = 0
    return max(0, value)


def normalize_availability(payload: Optional[Mapping[str, Any]]) -> Dict[str, int]:
    """
    Available units keyed by dash-normalized window label.

    Accepts `{"windows": {label: {...}}}` and `{"windows": [{"window"|"label"|"name": ...}]}`.
    """
    out: Dict[str, int] = {}
    windows = (payload or {}).get("windows")
    if isinstance(windows, list):
        for entry in windows:
            if not isinstance(entry, dict):
                continue
            label = entry.get("window") or entry.get("label") or entry.get("name")
            if label:
                out[normalize_dash(label)] = _available(entry)
    elif isinstance(windows, dict):
        for label, entry in windows.items():
            out[normalize_dash(label)] = _available(entry if isinstance(entry, dict) else {})
    return out


@dataclass
class WindowOption:
    window: str
    label: str
    available: Optional[int]
    enabled: bool


def label_windows(windows: Sequence[str], availability: Mapping[str, int], need: int = 1) -> List[WindowOption]:
    """Picker entries: "<window> — N left", "— Full" when below `need`, "— N/A" when unknown."""
    options = []
    for raw in windows:
        base = strip_availability_suffix(raw)
        available = availability.get(normalize_dash(base))
        if available is None:
            options.append(WindowOption(base, f"{base} — N/A", None, False))
        elif available < need:
            options.append(WindowOption(base, f"{base} — Full", available, False))
        else:
            options.append(WindowOption(base, f"{base} — {available} left", available, True))
    return options


def any_window_open(availability: Mapping[str, int], need: int = 1) -> bool:
    return any(v >= need for v in availability.values())


@dataclass
class CheckoutOutcome:
    ok: bool
    url: Optional[str] = None
    error: Optional[str] = None
    message: Optional[str] = None

    @property
    def refresh_availability(self) -> bool:
        return bool(self.error) and self.error in REFRESH_AVAILABILITY_CODES


class StorefrontClient:
    """HTTP client for the storefront's public endpoints."""

    def __init__(
        self,
        base_url: str = "",
        policy: CapacityRequirement = CapacityRequirement.PER_ORDER,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or "").rstrip("/")
        self.policy = policy
        self.timeout = timeout
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout, transport=self._transport)

    async def fetch_availability(self, date: str) -> Dict[str, int]:
        async with self._client() as client:
            r = await client.get("/api/slot-availability", params={"date": date}, headers={"Cache-Control": "no-store"})
            r.raise_for_status()
            return normalize_availability(r.json())

    async def window_options(self, date: str, windows: Sequence[str], cart: Cart) -> List[WindowOption]:
        availability = await self.fetch_availability(date)
        return label_windows(windows, availability, required_units(cart, self.policy))

    async def preflight(self, date: str, window: str, cart: Cart) -> bool:
        """Re-check the chosen window right before checkout; any fetch error fails closed."""
        try:
            availability = await self.fetch_availability(date)
        except httpx.HTTPError as e:
            logger.warning("Availability preflight failed: %s", e)
            return False
        key = normalize_dash(strip_availability_suffix(window))
        return availability.get(key, 0) >= required_units(cart, self.policy)

    async def create_checkout(
        self,
        cart: Cart,
        date: str,
        window: str,
        notes: str = "",
    ) -> CheckoutOutcome:
        if not cart.items:
            return CheckoutOutcome(False, error="no_items", message=checkout_error_message("no_items"))
        if not await self.preflight(date, window, cart):
            return CheckoutOutcome(False, error="window_full", message=checkout_error_message("window_full"))

        payload = {
            "items": cart.line_items(),
            "deliveryDate": date,
            "timeWindow": strip_availability_suffix(window),
            "orderNotes": notes.strip(),
        }
        async with self._client() as client:
            r = await client.post("/api/create-checkout-session", json=payload)
        if not r.is_success:
            try:
                code = r.json().get("error") or "checkout_failed"
            except ValueError:
                code = "checkout_failed"
            return CheckoutOutcome(False, error=code, message=checkout_error_message(code))
        cart.clear()
        return CheckoutOutcome(True, url=r.json().get("url"))
