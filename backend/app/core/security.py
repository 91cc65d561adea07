"""
Bearer token handling.

Callers present a JWT issued by the hosted auth provider and signed with the
shared secret. The ``sub`` claim identifies the owner of all synced data.
"""

import logging
from typing import Any, Dict, Optional

import jwt
from jwt.exceptions import InvalidTokenError

from app.core.config import get_settings

logger = logging.getLogger(__name__)

settings = get_settings()


def decode_access_token(token: str) -> Optional[Dict[str, Any]]:
    """
    Decode and verify a JWT access token.

    Args:
        token: JWT token to decode

    Returns:
        Decoded claims or None if the token is invalid
    """
    options = {} if settings.security.audience else {"verify_aud": False}
    try:
        payload = jwt.decode(
            token,
            settings.security.secret_key,
            algorithms=[settings.security.algorithm],
            audience=settings.security.audience,
            options=options,
        )
        return dict(payload)
    except InvalidTokenError as e:
        logger.debug(f"Rejected bearer token: {e}")
        return None


def get_owner_id(token: str) -> Optional[str]:
    """Owner id (``sub`` claim) of a valid token, else None."""
    payload = decode_access_token(token)
    if not payload:
        return None
    subject = payload.get("sub")
    return str(subject) if subject else None
