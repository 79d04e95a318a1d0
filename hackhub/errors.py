# errors.py
"""Domain error taxonomy shared by the services and the database facade.

Every error carries a human readable ``message`` plus structured ``details``
so the calling layer can render the right state without re-deriving it
(for example ``AlreadyInvited(..., already_invited=True, status="pending")``).
"""
from typing import Any


class HackhubError(Exception):
    code: str = "error"

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details: dict[str, Any] = details

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.code, "message": self.message, **self.details}

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r}, details={self.details!r})"


class NotFound(HackhubError, LookupError):
    code = "not_found"


class Forbidden(HackhubError):
    code = "forbidden"


class Conflict(HackhubError):
    code = "conflict"


class AlreadyInvited(Conflict):
    code = "already_invited"


class ValidationError(HackhubError, ValueError):
    code = "validation_error"


class BadRequest(HackhubError):
    code = "bad_request"


__all__ = [
    "HackhubError",
    "NotFound",
    "Forbidden",
    "Conflict",
    "AlreadyInvited",
    "ValidationError",
    "BadRequest",
]
