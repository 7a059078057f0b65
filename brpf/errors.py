"""Structured domain errors and their HTTP mapping."""
from __future__ import annotations

from typing import Any, Mapping


class BRPFError(RuntimeError):
    """Base class for domain errors carrying a stable code and a user message."""

    __slots__ = ("code", "message", "details")
    status_code = 500

    def __init__(self, *, code: str, message: str, details: Mapping[str, Any] | None = None) -> None:
        self.code = code
        self.message = message
        self.details = details
        super().__init__(f"[{self.code}] {self.message}")


class NotFoundError(BRPFError):
    status_code = 404

    def __init__(self, message: str, *, details: Mapping[str, Any] | None = None):
        super().__init__(code="NOT_FOUND", message=message, details=details)


class ConflictError(BRPFError):
    status_code = 400

    def __init__(self, message: str, *, details: Mapping[str, Any] | None = None):
        super().__init__(code="CONFLICT", message=message, details=details)


class ValidationError(BRPFError):
    status_code = 400

    def __init__(self, message: str, *, details: Mapping[str, Any] | None = None):
        super().__init__(code="VALIDATION", message=message, details=details)


class AuthenticationError(BRPFError):
    status_code = 401

    def __init__(self, message: str, *, details: Mapping[str, Any] | None = None):
        super().__init__(code="AUTH", message=message, details=details)


class ForbiddenError(BRPFError):
    status_code = 403

    def __init__(self, message: str, *, details: Mapping[str, Any] | None = None):
        super().__init__(code="FORBIDDEN", message=message, details=details)


def error_payload(error: BRPFError) -> dict[str, object]:
    payload: dict[str, object] = {"error": error.message}
    if error.details:
        payload["details"] = dict(error.details)
    return payload


__all__ = [
    "AuthenticationError",
    "BRPFError",
    "ConflictError",
    "ForbiddenError",
    "NotFoundError",
    "ValidationError",
    "error_payload",
]
