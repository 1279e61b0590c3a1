"""Filter-formula builders for the hosted spreadsheet's list API."""

from typing import Iterable, Optional

from .windows import dash_variants


def quote(value: object) -> str:
    """Single-quoted formula string literal."""
    text = str(value if value is not None else "")
    text = text.replace("\\", "\\\\").replace("'", "\\'")
    return f"'{text}'"


def field_ref(name: str) -> str:
    return "{" + name + "}"


def eq(field: str, value: object) -> str:
    return f"{field_ref(field)}={quote(value)}"


def and_(*parts: Optional[str]) -> str:
    items = [p for p in parts if p]
    if len(items) == 1:
        return items[0]
    return f"AND({','.join(items)})"


def or_(*parts: Optional[str]) -> str:
    items = [p for p in parts if p]
    if len(items) == 1:
        return items[0]
    return f"OR({','.join(items)})"


def not_(part: str) -> str:
    return f"NOT({part})"


def truthy(field: str) -> str:
    return f"{field_ref(field)}=1"


def on_or_after(field: str, iso_timestamp: str) -> str:
    """Date-time field is at or after the timestamp."""
    return not_(f"IS_BEFORE({field_ref(field)},{quote(iso_timestamp)})")


def window_eq(field: str, label: str) -> str:
    """Match a window label under any of its dash spellings."""
    return or_(*(eq(field, v) for v in dash_variants(label)))


def any_of(field: str, values: Iterable[object]) -> str:
    return or_(*(eq(field, v) for v in values))
