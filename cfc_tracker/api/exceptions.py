"""
Custom exceptions for the REST API and their mapping from domain errors
"""
import logging
from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from ..core.errors import AuthError, InternalError, NotFoundError, TrackerError, ValidationError

logger = logging.getLogger(__name__)


class TrackerAPIException(HTTPException):
    """Base exception for the tracker API"""

    def __init__(
        self,
        status_code: int,
        detail: str,
        headers: Optional[Dict[str, str]] = None,
        error_code: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None
    ):
        super().__init__(status_code=status_code, detail=detail, headers=headers)
        self.error_code = error_code
        self.extra = extra or {}


class ResourceNotFoundError(TrackerAPIException):
    """Referenced module / competence / domain / user not found"""

    def __init__(self, entity: str, entity_id: str):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"{entity.capitalize()} '{entity_id}' not found",
            error_code=f"{entity.upper()}_NOT_FOUND",
            extra={f"{entity}_id": entity_id}
        )


class InvalidInputError(TrackerAPIException):
    """Value out of bounds or malformed input"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=message,
            error_code="VALIDATION_ERROR",
            extra=details or {}
        )


class DatabaseOperationError(TrackerAPIException):
    """Storage failure; the client only gets a generic message"""

    def __init__(self, operation: str):
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Internal server error",
            error_code="DATABASE_ERROR",
            extra={"operation": operation}
        )


class AuthenticationError(TrackerAPIException):
    """No authenticated caller"""

    def __init__(self, detail: str = "Not authenticated"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            error_code="AUTHENTICATION_FAILED",
            headers={"WWW-Authenticate": "Bearer"}
        )


def to_api_exception(error: TrackerError) -> TrackerAPIException:
    """Translate a domain error into its HTTP counterpart"""
    if isinstance(error, AuthError):
        return AuthenticationError()
    if isinstance(error, NotFoundError):
        return ResourceNotFoundError(error.entity, error.entity_id)
    if isinstance(error, ValidationError):
        return InvalidInputError(error.message, details=error.extra)
    if isinstance(error, InternalError):
        return DatabaseOperationError(error.operation)
    return DatabaseOperationError("unexpected")


def _error_body(exc: TrackerAPIException) -> Dict[str, Any]:
    return {"error": exc.detail, "error_code": exc.error_code, "extra": exc.extra}


async def tracker_api_exception_handler(request: Request, exc: TrackerAPIException) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=_error_body(exc), headers=exc.headers)


async def tracker_error_handler(request: Request, exc: TrackerError) -> JSONResponse:
    api_exc = to_api_exception(exc)
    if api_exc.status_code >= 500:
        logger.error(
            f"Request failed: {exc.message}",
            extra={"path": request.url.path, "extra": exc.extra},
            exc_info=exc,
        )
    return await tracker_api_exception_handler(request, api_exc)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    api_exc = InvalidInputError("Invalid request data", details={"errors": jsonable_encoder(exc.errors())})
    return JSONResponse(status_code=api_exc.status_code, content=_error_body(api_exc))


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    # Never leak internals to the client; the traceback goes to the log
    logger.error(f"Unhandled error on {request.url.path}: {exc}", exc_info=True)
    api_exc = DatabaseOperationError("unexpected")
    return JSONResponse(status_code=api_exc.status_code, content=_error_body(api_exc))


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(TrackerAPIException, tracker_api_exception_handler)
    app.add_exception_handler(TrackerError, tracker_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
