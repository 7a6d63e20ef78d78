"""
Admin secret check for the write endpoints.

The secret may arrive as an `x-admin-secret` header, an
`Authorization: Bearer <token>` header, or a `secret` query parameter.
"""
from __future__ import annotations

import hmac
from typing import Optional

from fastapi import Depends, Request

from shared.config import Settings
from shared.errors import AdminUnauthorized
from shared.utils.logging import get_logger

from api.dependencies import get_app_settings

logger = get_logger(__name__)

ADMIN_HEADER = "x-admin-secret"


def extract_admin_secret(request: Request) -> Optional[str]:
    """Pull the presented secret from header, bearer token or query string."""
    header = request.headers.get(ADMIN_HEADER)
    if header:
        return header
    authorization = request.headers.get("authorization", "")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() == "bearer" and token.strip():
        return token.strip()
    return request.query_params.get("secret") or None


async def require_admin(
    request: Request,
    settings: Settings = Depends(get_app_settings),
) -> None:
    """
    FastAPI dependency guarding admin routes.

    Raises:
        AdminUnauthorized: Secret missing, wrong, or no secret configured.
    """
    expected = settings.admin_secret
    presented = extract_admin_secret(request)
    if not expected:
        logger.info("admin_rejected", path=request.url.path, reason="not_configured")
        raise AdminUnauthorized("Admin endpoint is disabled: no secret configured")
    if presented is None or not hmac.compare_digest(presented.encode(), expected.encode()):
        logger.info("admin_rejected", path=request.url.path, reason="bad_secret")
        raise AdminUnauthorized("Invalid or missing admin secret")
