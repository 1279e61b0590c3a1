"""Admin token check for operator endpoints."""

import hmac
import json
import logging

from fastapi import Request

from config import settings
from packages.shared.errors import UnauthorizedError

logger = logging.getLogger(__name__)


async def admin_token_from_request(request: Request) -> str:
    """Bearer header, then X-Admin-Token, then ?token=, then a JSON body `token` field."""
    auth = (request.headers.get("authorization") or "").strip()
    if auth.lower().startswith("bearer "):
        return auth[7:].strip()
    header = (request.headers.get("x-admin-token") or "").strip()
    if header:
        return header
    query = (request.query_params.get("token") or "").strip()
    if query:
        return query
    if request.method in ("POST", "PUT", "PATCH"):
        raw = await request.body()
        if raw:
            try:
                body = json.loads(raw)
            except ValueError:
                return ""
            if isinstance(body, dict) and body.get("token"):
                return str(body["token"]).strip()
    return ""


def token_matches(candidate: str) -> bool:
    """Constant-time match against every configured token; no configured token rejects everything."""
    if not candidate:
        return False
    return any(
        hmac.compare_digest(candidate.encode(), token.encode())
        for token in settings.admin_tokens
    )


async def require_admin(request: Request) -> None:
    if not settings.admin_tokens:
        logger.warning("Admin call to %s rejected: ADMIN_API_TOKEN not configured", request.url.path)
        raise UnauthorizedError()
    if not token_matches(await admin_token_from_request(request)):
        raise UnauthorizedError()
