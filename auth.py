# auth.py
"""Bearer-token authentication.

Tokens are HS256 JWTs carrying ``userId`` and ``exp``. Routes that need a
signed-in user depend on ``require_user``, which also loads the profile so
handlers always see current subscription state.
"""

import re
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from errors import AuthError
from schemas import UserProfile

security = HTTPBearer(scheme_name="StyleAI JWT", auto_error=False)

_DURATION = re.compile(r"^(\d+)\s*([smhd]?)$")
_UNITS = {"": "seconds", "s": "seconds", "m": "minutes", "h": "hours", "d": "days"}


def parse_expires(value: str) -> timedelta:
    """Parse lifetimes like ``7d``, ``12h``, ``30m`` or a number of seconds."""
    match = _DURATION.match(value.strip().lower())
    if not match:
        raise ValueError(f"Unsupported token lifetime: {value!r}")
    amount, unit = match.groups()
    return timedelta(**{_UNITS[unit]: int(amount)})


def create_token(user_id: str, secret: str, expires_in: str = "7d",
                 now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    payload = {"userId": user_id, "iat": now, "exp": now + parse_expires(expires_in)}
    return jwt.encode(payload, secret, algorithm="HS256")


def decode_token(token: str, secret: str) -> str:
    """Return the user id stored in the token."""
    try:
        payload = jwt.decode(token, secret, algorithms=["HS256"], options={"require": ["exp", "userId"]})
    except jwt.ExpiredSignatureError:
        raise AuthError("Token expired")
    except jwt.InvalidTokenError:
        raise AuthError("Invalid token")
    return payload["userId"]


def require_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> UserProfile:
    if not credentials or not credentials.credentials:
        raise AuthError("Access token required")
    services = request.app.state.services
    user_id = decode_token(credentials.credentials, services.settings.jwt_secret)
    user = services.users.store.get(user_id)
    if user is None:
        raise AuthError("Invalid token")
    return user
