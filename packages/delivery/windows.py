"""
Delivery window labels.

Labels such as "7:00–8:00 AM" are the capacity-bucketing key. The same window
may be written with an en dash, an em dash or a hyphen; every equality check
goes through normalize_dash first.
"""

import re
from datetime import date
from typing import Iterable, List, Optional, Sequence, Tuple

from .config import DEFAULT_WINDOWS

EN_DASH = "–"
EM_DASH = "—"

DEFAULT_START_MINUTES = 9 * 60
ROUTE_START_CAP_MINUTES = 8 * 60

_DASHES = re.compile(f"[{EN_DASH}{EM_DASH}]")
_START_TIME = re.compile(r"(\d{1,2})(?::(\d{2}))?\s*(AM|PM)", re.IGNORECASE)
_AVAILABILITY_SUFFIX = re.compile(rf"\s+{EM_DASH}.*$")
_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def normalize_dash(label: Optional[str]) -> str:
    """Replace en/em dashes with a hyphen and trim."""
    return _DASHES.sub("-", str(label or "")).strip()


def same_window(a: Optional[str], b: Optional[str]) -> bool:
    return normalize_dash(a) == normalize_dash(b)


def dash_variants(label: str) -> List[str]:
    """All spellings of a label that normalize to the same window, hyphen first."""
    base = normalize_dash(label)
    variants = [base]
    for dash in (EN_DASH, EM_DASH):
        v = base.replace("-", dash)
        if v not in variants:
            variants.append(v)
    return variants


def strip_availability_suffix(label: Optional[str]) -> str:
    """Drop a UI suffix like "6:00–7:00 AM — 3 left"."""
    return _AVAILABILITY_SUFFIX.sub("", str(label or "")).strip()


def parse_window_list(raw: Optional[str]) -> Tuple[str, ...]:
    """Split a pipe- or comma-separated list; empty input yields the three default windows."""
    text = (raw or "").strip()
    if not text:
        return DEFAULT_WINDOWS
    sep = "|" if "|" in text else ","
    labels = tuple(part.strip() for part in text.split(sep) if part.strip())
    return labels or DEFAULT_WINDOWS


def canonical_window(label: Optional[str], known: Sequence[str]) -> Optional[str]:
    """Return the configured label matching `label` (dash-insensitive), or None."""
    key = normalize_dash(strip_availability_suffix(label))
    if not key:
        return None
    for candidate in known:
        if normalize_dash(candidate) == key:
            return candidate
    return None


def window_start_minutes(label: Optional[str], default: int = DEFAULT_START_MINUTES) -> int:
    """
    Minutes since midnight of the first "H[:MM] AM|PM" in the label.

    Labels without a recognizable time fall back to `default` (9:00 AM).
    """
    m = _START_TIME.search(str(label or ""))
    if not m:
        return default
    hour = int(m.group(1))
    minute = int(m.group(2)) if m.group(2) else 0
    meridiem = m.group(3).upper()
    if meridiem == "PM" and hour != 12:
        hour += 12
    if meridiem == "AM" and hour == 12:
        hour = 0
    return hour * 60 + minute


def format_clock(minutes: int) -> str:
    """Format minutes since midnight as "H:MM AM|PM" (no leading zero on the hour)."""
    hour = (minutes // 60) % 24
    minute = minutes % 60
    meridiem = "PM" if hour >= 12 else "AM"
    hour12 = hour % 12 or 12
    return f"{hour12}:{minute:02d} {meridiem}"


def is_iso_date(value: Optional[str]) -> bool:
    """True for a real calendar date written YYYY-MM-DD."""
    text = str(value or "").strip()
    if not _ISO_DATE.match(text):
        return False
    try:
        date.fromisoformat(text)
    except ValueError:
        return False
    return True


def unique_windows(labels: Iterable[str]) -> List[str]:
    """De-duplicate labels by normalized form, keeping the first spelling seen."""
    seen = set()
    out = []
    for label in labels:
        key = normalize_dash(label)
        if key and key not in seen:
            seen.add(key)
            out.append(label)
    return out
