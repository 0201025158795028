"""Form nonces.

A nonce is a short-lived signed token binding a form submission to one
action and one user. Pages hand them out with the form; POST handlers
verify them before touching the database.
"""

from datetime import timedelta

from jose import JWTError, jwt

from libs.common.config import get_settings
from libs.common.datetime_utils import utc_now
from libs.common.logging import get_logger

logger = get_logger(__name__)


def create_nonce(action: str, user_id: str) -> str:
    settings = get_settings()
    expires = utc_now() + timedelta(seconds=settings.NONCE_TTL_SECONDS)
    claims = {"act": action, "sub": user_id, "exp": int(expires.timestamp())}
    return jwt.encode(claims, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def verify_nonce(token: str, action: str, user_id: str) -> bool:
    """True when ``token`` was issued for ``action`` to ``user_id`` and has not expired."""
    if not token:
        return False
    settings = get_settings()
    try:
        claims = jwt.decode(
            token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM]
        )
    except JWTError:
        logger.warning("Rejected nonce for %s: bad signature or expired", action)
        return False
    return claims.get("act") == action and claims.get("sub") == user_id
