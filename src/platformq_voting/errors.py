"""
Error taxonomy for vote admission.

Every rejection raised by the voting core is a ServiceError subclass carrying a
machine-readable error code and the HTTP status a hosting API should answer
with. Callers branch on the exception type (or error_code), never on message
text.
"""

import logging
import uuid
from typing import Any, Optional

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class ErrorCode:
    """Error codes surfaced by the voting core"""
    VALIDATION_ERROR = "VALIDATION_ERROR"
    AUTHORIZATION_ERROR = "AUTHORIZATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    DEPENDENCY_ERROR = "DEPENDENCY_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class ServiceError(Exception):
    """Base exception for voting core errors"""

    def __init__(self,
                 message: str,
                 error_code: str = ErrorCode.INTERNAL_ERROR,
                 status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        super().__init__(message)


class ValidationError(ServiceError):
    """Malformed message, payload or choice"""
    def __init__(self, message: str):
        super().__init__(
            message=message,
            error_code=ErrorCode.VALIDATION_ERROR,
            status_code=status.HTTP_400_BAD_REQUEST
        )


class AuthorizationError(ServiceError):
    """Failed authentication, ineligibility, threshold or liveness check"""
    def __init__(self, message: str = "Insufficient permissions"):
        super().__init__(
            message=message,
            error_code=ErrorCode.AUTHORIZATION_ERROR,
            status_code=status.HTTP_403_FORBIDDEN
        )


class NotFoundError(ServiceError):
    """Resource not found error"""
    def __init__(self, resource: str, identifier: Any):
        super().__init__(
            message=f"{resource} with identifier '{identifier}' not found",
            error_code=ErrorCode.NOT_FOUND,
            status_code=status.HTTP_404_NOT_FOUND
        )


class ConflictError(ServiceError):
    """Resource conflict error"""
    def __init__(self, message: str):
        super().__init__(
            message=message,
            error_code=ErrorCode.CONFLICT,
            status_code=status.HTTP_409_CONFLICT
        )


class DependencyError(ServiceError):
    """External collaborator failed or timed out"""
    def __init__(self, service: str, message: str):
        self.service = service
        super().__init__(
            message=f"Dependency error from {service}: {message}",
            error_code=ErrorCode.DEPENDENCY_ERROR,
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE
        )


class InternalError(ServiceError):
    """Invariant violation inside the voting core"""
    def __init__(self, message: str):
        super().__init__(
            message=message,
            error_code=ErrorCode.INTERNAL_ERROR,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR
        )


class UniqueConstraintViolation(Exception):
    """Raised by the persistence layer when an insert hits a uniqueness constraint"""
    pass


class RejectionBody(BaseModel):
    """JSON body a hosting API returns for a rejected vote operation"""
    error_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    status_code: int
    error_code: str
    message: str
    path: str
    service: str
    # Collaborator that failed, for DEPENDENCY_ERROR rejections
    dependency: Optional[str] = None

    @classmethod
    def from_error(cls, exc: ServiceError, path: str, service_name: str) -> "RejectionBody":
        return cls(
            status_code=exc.status_code,
            error_code=exc.error_code,
            message=exc.message,
            path=path,
            service=service_name,
            dependency=getattr(exc, "service", None),
        )


def add_error_handlers(app: FastAPI, service_name: str):
    """Answer voting core rejections with their status code and a RejectionBody"""

    @app.exception_handler(ServiceError)
    async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
        body = RejectionBody.from_error(exc, request.url.path, service_name)

        # Collaborator and invariant failures are ours; everything else is the caller's
        log = logger.error if exc.status_code >= 500 else logger.warning
        log(f"Rejected {request.method} {body.path} [{body.error_id}]: {exc.error_code} - {exc.message}")

        return JSONResponse(status_code=exc.status_code, content=body.model_dump(mode="json"))
