# onetimelink/core/exceptions.py
from __future__ import annotations

"""
onetimelink — Application Exceptions
====================================
A small, consistent layer on top of FastAPI/Starlette's `HTTPException` that
lets us attach structured metadata and render the problem+json body used by
`onetimelink.core.exception_handlers`.

Key ideas
---------
- One base `AppException` that carries a short `message` and optional `details`.
- Issuance failures inherit from it and set their status and message.
- Client-facing messages stay short; context (emails, causes) goes to logs.

Usage
-----
    raise NotFoundException(details={"field": "email"})
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException, status

__all__ = [
    "AppException",
    "ValidationException",
    "NotFoundException",
    "AlreadyIssuedException",
    "InfrastructureException",
    "RouteNotFoundException",
]


# ──────────────────────────────────────────────────────────────
# 📦 Core: AppException
# ──────────────────────────────────────────────────────────────
class AppException(HTTPException):
    """Base application-level exception with optional metadata.

    Attributes
    -----------
    status_code : int
        HTTP status code.
    message : str
        Human-readable error message (serialized as `detail` as well).
    details : Any
        Machine-readable details (e.g., the offending field).
    """

    default_status: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = "Internal server error"

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        status_code: Optional[int] = None,
        details: Optional[Any] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> None:
        status_code = int(status_code or self.default_status)
        message = message or self.default_message
        super().__init__(status_code=status_code, detail=message, headers=headers)
        self.message: str = message
        self.details: Optional[Any] = details

    # ── [Helper] Canonical body used by handlers ───────────────────────────
    def to_problem(self, *, instance: str = "", request_id: Optional[str] = None) -> Dict[str, Any]:
        """Return a dict matching our problem+json shape."""
        title = self.__class__.__name__.replace("Exception", "").strip() or "Error"
        body: Dict[str, Any] = {
            "type": "about:blank",
            "title": title,
            "detail": self.message,
            "status": self.status_code,
            "instance": instance,
            "request_id": request_id or "N/A",
        }
        if self.details is not None:
            body["details"] = self.details
        return body


# ──────────────────────────────────────────────────────────────
# 🚫 Client errors (issuance policy)
# ──────────────────────────────────────────────────────────────
class ValidationException(AppException):
    """Missing or malformed input (e.g., empty email)."""

    default_status = status.HTTP_400_BAD_REQUEST
    default_message = "Email is required"


class NotFoundException(AppException):
    """No access record matches the supplied email.

    Reported as 400 rather than 404 so that unknown emails look like any other
    invalid request.
    """

    default_status = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid email"


class AlreadyIssuedException(AppException):
    """The access link for this email has already been issued."""

    default_status = status.HTTP_400_BAD_REQUEST
    default_message = "Access link already issued"


class RouteNotFoundException(AppException):
    default_status = status.HTTP_404_NOT_FOUND
    default_message = "Route does not exist"


# ──────────────────────────────────────────────────────────────
# 💥 Server errors
# ──────────────────────────────────────────────────────────────
class InfrastructureException(AppException):
    """Record store or URL signer unavailable/failed. Details stay in logs."""

    default_status = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Internal server error"
