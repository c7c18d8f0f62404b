"""Domain errors shared by the services and the HTTP layer.

Every error carries a machine readable ``code`` and a human readable
``message``; the app-level exception handler turns them into the same
``{"detail": {"error": {...}}}`` envelope the routes use for ``HTTPException``.
"""

from __future__ import annotations

from typing import Any


class LyraError(Exception):
    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context = context

    def to_payload(self) -> dict[str, Any]:
        error: dict[str, Any] = {"code": self.code, "message": self.message}
        error.update({k: v for k, v in self.context.items() if v is not None})
        return {"error": error}


class AuthenticationRequired(LyraError):
    status_code = 401
    code = "AUTHENTICATION_REQUIRED"

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message)


class InvalidInput(LyraError):
    status_code = 400
    code = "INVALID_INPUT"

    def __init__(self, message: str, fields: list[str] | None = None):
        super().__init__(message, fields=fields)
        self.fields = fields or []

    @classmethod
    def missing(cls, fields: list[str]) -> "InvalidInput":
        return cls(f"Missing required fields: {', '.join(fields)}", fields=fields)


class RecordNotFound(LyraError):
    status_code = 404
    code = "NOT_FOUND"


class PrincipalNotFound(RecordNotFound):
    code = "PRINCIPAL_NOT_FOUND"

    def __init__(self, user_id: Any):
        super().__init__(f"User with id {user_id} not found")
        self.user_id = user_id


class DuplicateRecord(LyraError):
    status_code = 409
    code = "DUPLICATE_RECORD"


class GenerationFailed(LyraError):
    status_code = 500
    code = "GENERATION_FAILED"


class BillingUnavailable(LyraError):
    status_code = 500
    code = "BILLING_UNAVAILABLE"


class ExportFailed(LyraError):
    status_code = 502
    code = "EXPORT_FAILED"
