"""Single-operator password login and signed session cookies"""
import hmac
import logging
import os
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from fastapi import HTTPException, Request, status

from .config.settings import AUTH_CONFIG
from .errors import AuthConfigurationError
from .utils import sha256

logger = logging.getLogger(__name__)


def _secrets():
    password = os.getenv(AUTH_CONFIG["password_env"])
    secret = os.getenv(AUTH_CONFIG["secret_env"])
    return password, secret


def verify_password(candidate: str) -> bool:
    """Compare a submitted password with APP_PASSWORD in constant time

    Raises:
        AuthConfigurationError: If APP_PASSWORD or AUTH_SECRET is not set
    """
    password, secret = _secrets()
    if not password or not secret:
        raise AuthConfigurationError()
    return hmac.compare_digest(sha256(candidate + secret), sha256(password + secret))


def create_session_token(user_id: str, now: Optional[datetime] = None) -> str:
    """Signed session token for the operator, valid for seven days"""
    _, secret = _secrets()
    if not secret:
        raise AuthConfigurationError()
    now = now or datetime.now(timezone.utc)
    payload = {
        "sub": user_id,
        "iat": now,
        "exp": now + timedelta(seconds=AUTH_CONFIG["max_age_seconds"]),
    }
    return jwt.encode(payload, secret, algorithm=AUTH_CONFIG["algorithm"])


def decode_session_token(token: Optional[str]) -> Optional[str]:
    """Return the user ID from a session token, or None if it is missing, tampered or expired"""
    _, secret = _secrets()
    if not token or not secret:
        return None
    try:
        payload = jwt.decode(token, secret, algorithms=[AUTH_CONFIG["algorithm"]])
    except jwt.ExpiredSignatureError:
        logger.info("Session expired")
        return None
    except jwt.InvalidTokenError as e:
        logger.warning(f"Invalid session token: {e}")
        return None
    return payload.get("sub")


def require_session(request: Request) -> str:
    """FastAPI dependency: the signed-in user's ID

    Raises:
        HTTPException: 401 when the session cookie is missing or invalid
    """
    user_id = decode_session_token(request.cookies.get(AUTH_CONFIG["cookie_name"]))
    if not user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    return user_id
