"""
Admin key verification for configuration updates.

The server may hold a shared admin secret (MESSAGEAPI_ADMIN_KEY). When it
does, every POST /v1/config must carry the same value in its ``key`` field.
The check runs on the raw body before any other field is parsed.
"""

import hmac
import logging
from typing import Any, Optional

from messageapi.errors import AuthError

logger = logging.getLogger(__name__)


def verify_admin_key(provided: Optional[Any], expected: str) -> None:
    """
    Check the ``key`` supplied with a configuration update.

    Args:
        provided: The ``key`` value from the request body (may be missing or
            of the wrong type).
        expected: The server-held admin key. Empty means no key is required.

    Raises:
        AuthError: 401 if a key is required but missing, 403 if it does not
            match.
    """
    if not expected:
        return

    if provided is None or provided == "":
        raise AuthError("Admin key required", status_code=401)

    if not isinstance(provided, str) or not hmac.compare_digest(
        provided.encode("utf-8"), expected.encode("utf-8")
    ):
        logger.warning("Rejected configuration update with an invalid admin key")
        raise AuthError("Invalid admin key", status_code=403)
