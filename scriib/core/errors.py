"""
Error taxonomy shared by the API and the worker.

Domain code raises these; the API renders them through a single exception
handler (api/main.py) and workers log them via task_failed.
"""
from __future__ import annotations

from typing import Any, Optional


class ScriibError(Exception):
    status_code = 500
    public_message = "Internal server error"

    def __init__(self, message: str | None = None, *, details: Any = None):
        super().__init__(message or self.public_message)
        self.message = message or self.public_message
        self.details = details


class ValidationError(ScriibError):
    status_code = 400
    public_message = "Invalid request"


class AuthenticationError(ScriibError):
    status_code = 401
    public_message = "Unauthorized - Please log in"


class PermissionDenied(ScriibError):
    status_code = 403
    public_message = "Forbidden"


class NotFound(ScriibError):
    status_code = 404
    public_message = "Not found"


class Conflict(ScriibError):
    status_code = 409
    public_message = "Conflict"


class IntegrationError(ScriibError):
    """
    Failure talking to a third-party API.

    kind is one of: network (connection/timeout), http (non-2xx),
    payload (2xx with a body we could not use).
    """
    status_code = 500
    public_message = "Upstream service error"
    service = "integration"

    def __init__(
        self,
        message: str,
        *,
        kind: str = "http",
        status_code: Optional[int] = None,
        payload: Any = None,
    ):
        super().__init__(message, details=payload)
        self.kind = kind
        self.upstream_status = status_code
        self.payload = payload

    def __str__(self) -> str:
        if self.upstream_status:
            return f"{self.service} {self.kind} error ({self.upstream_status}): {self.message}"
        return f"{self.service} {self.kind} error: {self.message}"
