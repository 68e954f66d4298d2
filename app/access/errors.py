"""
Typed errors raised by the access-control core.

Callers branch on the exception type (or its `kind`), never on the message.
Messages still carry the familiar substrings ("Memorial not found",
"ownership", "email") because they are shown to users as-is.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    NOT_FOUND = "not_found"
    PERMISSION_DENIED = "permission_denied"
    VALIDATION = "validation"
    INTERNAL = "internal"


class AccessError(Exception):
    """Base class for every error the access core raises on purpose."""

    kind: ErrorKind = ErrorKind.INTERNAL
    status_code: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, object]:
        return {"error": self.message, "kind": self.kind.value}


class NotFound(AccessError):
    """Memorial (or access request) missing or soft-deleted."""

    kind = ErrorKind.NOT_FOUND
    status_code = 404


class PermissionDenied(AccessError):
    """Caller lacks the rights for the operation (usually: not the owner)."""

    kind = ErrorKind.PERMISSION_DENIED
    status_code = 403


class AccessRequired(PermissionDenied):
    """
    Private memorial the viewer cannot see yet.

    Rendered with the viewer's current request status so a client can show
    "request pending" instead of a bare 403.
    """

    def __init__(self, request_status: str | None, message: str = "This memorial is private") -> None:
        super().__init__(message)
        self.request_status = request_status

    def to_dict(self) -> dict[str, object]:
        payload = super().to_dict()
        payload["requires_access"] = True
        payload["request_status"] = self.request_status
        return payload


class ValidationError(AccessError):
    """Required input missing or malformed."""

    kind = ErrorKind.VALIDATION
    status_code = 400


class InvalidTransition(ValidationError):
    """Access request status change not allowed by the lifecycle."""

    status_code = 409
