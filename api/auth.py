"""Shared-secret bearer authentication for write routes."""
import logging
import secrets
from typing import Mapping, Optional

logger = logging.getLogger(__name__)

BEARER_PREFIX = 'Bearer '


def get_header(headers: Optional[Mapping[str, str]], name: str) -> Optional[str]:
    """Case-insensitive header lookup (API Gateway v2 lowercases names, v1 does not)."""
    wanted = name.lower()
    for key, value in (headers or {}).items():
        if key.lower() == wanted:
            return value
    return None


def is_authorized(headers: Optional[Mapping[str, str]], secret: str) -> bool:
    """
    Check the Authorization header against ``Bearer <secret>``.

    An unset secret rejects every request.
    """
    if not secret:
        logger.error("CRON_SECRET is not configured; refusing authenticated request")
        return False

    authorization = get_header(headers, 'Authorization')
    if not authorization:
        return False

    expected = BEARER_PREFIX + secret
    if not secrets.compare_digest(authorization.encode('utf-8'), expected.encode('utf-8')):
        logger.warning("Invalid bearer credential attempted")
        return False
    return True
