# errors.py
"""Error taxonomy shared by the stores, services and HTTP layer."""

from typing import Any, Dict, Optional


class StyleError(Exception):
    """Base error carrying the HTTP status it should be rendered with."""

    status_code = 500

    def __init__(self, message: str, status_code: Optional[int] = None, **extra: Any):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.extra: Dict[str, Any] = extra

    def to_dict(self) -> Dict[str, Any]:
        body = {"error": self.message}
        body.update(self.extra)
        return body


class ValidationFailed(StyleError):
    status_code = 400


class AuthError(StyleError):
    status_code = 401


class Forbidden(StyleError):
    status_code = 403


class SubscriptionRequired(Forbidden):
    def __init__(self, message: str, reason: str = "limit_exceeded"):
        super().__init__(message, reason=reason, subscriptionRequired=True)


class NotFound(StyleError):
    status_code = 404


class Conflict(StyleError):
    status_code = 409


class UploadError(StyleError):
    status_code = 400

    def __init__(self, message: str, code: str, status_code: Optional[int] = None, **extra: Any):
        super().__init__(message, status_code=status_code, code=code, **extra)
        self.code = code


class EngineError(StyleError):
    """Internal failure of the outfit engine; never rendered directly."""


class StylistError(StyleError):
    """The language model call failed or returned something unusable."""

    status_code = 502
