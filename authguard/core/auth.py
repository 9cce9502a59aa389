"""API key guard for administrative endpoints.

Rate limit administration (statistics, manual blocks, resets) is protected by
an API key. Keys are validated against the comma-separated ``APP_API_KEYS``
setting; the guard can be switched off with ``APP_API_KEY_REQUIRED=false``.
The login endpoints themselves are public.
"""

from __future__ import annotations

import hmac
import logging
from typing import Annotated

from fastapi import Header

from authguard.core.config import settings
from authguard.core.errors import AuthenticationAppError
from authguard.core.logging import hash_identifier

logger = logging.getLogger(__name__)


def parse_api_keys(keys_string: str | None) -> set[str]:
    """Parse comma-separated API keys into a set.

    Examples:
        >>> sorted(parse_api_keys("key1, key2 , key3 "))
        ['key1', 'key2', 'key3']
        >>> parse_api_keys(None)
        set()
    """
    if not keys_string:
        return set()
    return {key.strip() for key in keys_string.split(",") if key.strip()}


def validate_api_key(provided_key: str | None) -> None:
    """Validate ``provided_key`` against the configured keys.

    Pure validation logic without FastAPI dependencies for easy testing.

    Raises:
        AuthenticationAppError: If the key is missing or invalid, or if
            authentication is required but no keys are configured.
    """
    if not settings.app.api_key_required:
        return

    valid_keys = parse_api_keys(settings.app.api_keys)
    if not valid_keys:
        logger.error("auth.api_keys_not_configured")
        raise AuthenticationAppError(
            code="api_keys_not_configured",
            message="API key authentication is enabled but no valid keys are configured",
            details={"hint": "Set APP_API_KEYS or disable auth with APP_API_KEY_REQUIRED=false"},
        )

    if not provided_key:
        logger.warning("auth.missing_key")
        raise AuthenticationAppError(
            code="missing_api_key",
            message="Missing API key. Provide X-API-Key header.",
        )

    if not any(hmac.compare_digest(provided_key, key) for key in valid_keys):
        logger.warning(
            "auth.invalid_key",
            extra={"api_key_hash": hash_identifier(provided_key)},
        )
        raise AuthenticationAppError(
            code="invalid_api_key",
            message="Invalid or missing API key",
        )


async def verify_api_key(
    x_api_key: Annotated[str | None, Header(alias="X-API-Key")] = None,
) -> None:
    """FastAPI dependency for API key authentication.

    Usage:
        @router.get("/admin/thing", dependencies=[Depends(verify_api_key)])

    Raises:
        AuthenticationAppError: Rendered as 403 by the global handlers.
    """
    if not settings.app.api_key_required:
        logger.debug("auth.skipped", extra={"reason": "auth_required_false"})
        return

    validate_api_key(x_api_key)
    logger.debug("auth.success", extra={"api_key_hash": hash_identifier(x_api_key or "")})
