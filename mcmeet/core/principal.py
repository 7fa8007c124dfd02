"""Authenticated principal resolution.

Sessions are owned by the upstream identity layer; by the time a request
reaches this service the authenticated user id (if any) travels in a trusted
header (``X-User-Id`` by default, see ``APP_PRINCIPAL_HEADER``).

Anonymous requests are allowed through here: rate limiting must still count
them, so routes that need a user call ``require_principal`` explicitly.
"""

from __future__ import annotations

import hashlib
import logging

from fastapi import Request

from mcmeet.core.config import settings_for
from mcmeet.core.errors import AuthenticationAppError

logger = logging.getLogger(__name__)


def hash_identifier(value: str) -> str:
    """Short, stable digest for correlating identifiers in logs."""
    return hashlib.sha256(value.encode()).hexdigest()[:16]


def get_principal_id(request: Request) -> str | None:
    """Return the authenticated user id for the request, or None.

    Blank header values are treated as absent.
    """
    raw = request.headers.get(settings_for(request).app.principal_header)
    if raw is None:
        return None
    principal_id = raw.strip()
    return principal_id or None


def require_principal(request: Request) -> str:
    """Ensure a request is authenticated.

    Args:
        request: Incoming request.

    Returns:
        The principal id.

    Raises:
        AuthenticationAppError: If the request is anonymous.
    """
    principal_id = get_principal_id(request)
    if principal_id:
        return principal_id

    header = settings_for(request).app.principal_header
    logger.info("auth.missing_principal", extra={"principal_header": header})
    raise AuthenticationAppError(
        code="unauthorized",
        message="Please sign in to use this endpoint",
        details={"hint": f"Requests must carry the {header} header"},
    )
