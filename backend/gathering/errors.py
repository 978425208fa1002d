"""Service-layer errors with stable codes.

Services raise these directly (they are ``HTTPException`` subclasses), so the
HTTP surface renders them as ``{"detail": {"code": ..., "message": ...}}``
without a custom handler.
"""
from fastapi import HTTPException, status


class ServiceError(HTTPException):
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, code: str, message: str):
        super().__init__(
            status_code=self.status_code,
            detail={"code": code, "message": message},
        )
        self.code = code
        self.message = message

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"


class ValidationError(ServiceError):
    """Malformed or missing input."""

    status_code = status.HTTP_400_BAD_REQUEST


class Forbidden(ServiceError):
    status_code = status.HTTP_403_FORBIDDEN


class NotFound(ServiceError):
    status_code = status.HTTP_404_NOT_FOUND


class StateConflict(ServiceError):
    """Illegal transition, capacity exhausted, duplicate waitlist join."""

    status_code = status.HTTP_409_CONFLICT
