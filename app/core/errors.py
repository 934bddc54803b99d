"""
Application error taxonomy.

Every error carries the HTTP status it maps to; the API layer renders them
through a single exception handler registered in ``app.main``.
"""
from typing import Optional


class AppError(Exception):
    """Base error type."""

    status_code = 500
    kind = "internal"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"detail": self.message, "error": self.kind}


class ValidationError(AppError):
    """Caller-fixable input problem; nothing was mutated."""

    status_code = 400
    kind = "validation"


class NotFoundError(AppError):
    status_code = 404
    kind = "not_found"


class ConflictError(AppError):
    """Duplicate production deployment, hostname collision, last deployment delete."""

    status_code = 409
    kind = "conflict"


class ExternalError(AppError):
    """Provider or resolver failure, annotated with the saga step that hit it."""

    status_code = 502
    kind = "external"

    def __init__(self, message: str, step: Optional[str] = None) -> None:
        super().__init__(message)
        self.step = step

    def to_dict(self) -> dict:
        body = super().to_dict()
        if self.step:
            body["step"] = self.step
        return body


class StorageError(AppError):
    """Fatal for the current operation; never retried automatically."""

    status_code = 500
    kind = "storage"
