"""Success envelope shared by storefront endpoints."""

from typing import Any, Dict


def ok_response(**data: Any) -> Dict[str, Any]:
    """Build `{"ok": true, ...}`; keys in `data` are emitted in call order."""
    payload: Dict[str, Any] = {"ok": True}
    payload.update(data)
    return payload
