"""
Unified error handling
Standard error response format and the FastAPI exception handlers

Main features:
- one response shape for every failure
- error code to HTTP status mapping in a single table
- unexpected errors logged with their traceback
"""

import logging
from typing import Any, Dict, Optional

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .exceptions import BaseApplicationError, PersistenceError

logger = logging.getLogger(__name__)


class ErrorResponse:
    """Standard error response"""

    def __init__(self, error_code: str, message: str,
                 details: Optional[Dict[str, Any]] = None,
                 http_status: int = 400,
                 extra: Optional[Dict[str, Any]] = None):
        self.error_code = error_code
        self.message = message
        self.details = details or {}
        self.http_status = http_status
        self.extra = extra or {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": False,
            **self.extra,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
        }

    def to_json_response(self) -> JSONResponse:
        return JSONResponse(
            status_code=self.http_status,
            content=self.to_dict()
        )


class ErrorHandler:
    """Global error handler"""

    ERROR_CODE_STATUS_MAP = {
        "VALIDATION_ERROR": 400,
        "PERMISSION_DENIED": 403,
        "RESOURCE_NOT_FOUND": 404,
        "DUPLICATE_RESOURCE": 409,
        "BOUNDS_EXCEEDED": 422,
        "INTERNAL_ERROR": 500,

        # configuration persistence
        "CONFIG_NOT_FOUND": 404,
        "PERSISTENCE_ERROR": 500,
        "DATABASE_ERROR": 500,
        "REMOTE_CONFIG_ERROR": 502,
        "SNAPSHOT_UNAVAILABLE": 503,
        "CONFIG_NOT_PERSISTED": 503,

        # checkout
        "ORDER_STATE_INVALID": 409,
    }

    @classmethod
    def handle_application_error(cls, error: BaseApplicationError) -> ErrorResponse:
        """Application error"""
        http_status = cls.ERROR_CODE_STATUS_MAP.get(error.error_code, 400)
        extra = {"persisted": False} if isinstance(error, PersistenceError) else None
        if http_status >= 500:
            logger.error("%s: %s", error.error_code, error.message)

        return ErrorResponse(
            error_code=error.error_code,
            message=error.message,
            details=error.details,
            http_status=http_status,
            extra=extra,
        )

    @classmethod
    def handle_http_exception(cls, error: HTTPException) -> ErrorResponse:
        return ErrorResponse(
            error_code="HTTP_ERROR",
            message=str(error.detail),
            details={"status_code": error.status_code},
            http_status=error.status_code
        )

    @classmethod
    def handle_validation_error(cls, error: RequestValidationError) -> ErrorResponse:
        """Request body or parameter validation failure"""
        errors = [
            {"loc": [str(part) for part in err.get("loc", ())], "msg": err.get("msg", "")}
            for err in error.errors()
        ]
        return ErrorResponse(
            error_code="VALIDATION_ERROR",
            message="Invalid request",
            details={"errors": errors},
            http_status=cls.ERROR_CODE_STATUS_MAP["VALIDATION_ERROR"]
        )

    @classmethod
    def handle_unknown_error(cls, error: Exception) -> ErrorResponse:
        """Unexpected error"""
        logger.exception("Unhandled error: %s", error)
        return ErrorResponse(
            error_code="INTERNAL_ERROR",
            message=str(error) or "Internal server error",
            details={"error_type": type(error).__name__},
            http_status=500
        )


async def application_error_handler(request: Request, exc: BaseApplicationError) -> JSONResponse:
    return ErrorHandler.handle_application_error(exc).to_json_response()


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    return ErrorHandler.handle_http_exception(exc).to_json_response()


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return ErrorHandler.handle_validation_error(exc).to_json_response()


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    return ErrorHandler.handle_unknown_error(exc).to_json_response()

