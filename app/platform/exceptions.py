import logging
from typing import Any, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.platform.logger import get_logger, log_event
from app.platform.response import api_response
from app.platform.utils.request_id import get_request_id

logger = get_logger(__name__)


class AppError(Exception):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = "Internal server error"

    def __init__(self, message: Optional[str] = None, *, request_id: Optional[str] = None):
        self.message = message or self.default_message
        self.request_id = request_id
        super().__init__(self.message)

    def response_fields(self) -> dict[str, Any]:
        fields: dict[str, Any] = {"error": self.message}
        if self.request_id:
            fields["request_id"] = self.request_id
        return fields


class ValidationError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Email is required"


class ConflictError(AppError):
    status_code = status.HTTP_409_CONFLICT
    default_message = "You're already on the waitlist!"


class RateLimitError(AppError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    default_message = "Too many requests!"

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        limit: int = 0,
        remaining: int = 0,
        retry_after: int = 0,
        request_id: Optional[str] = None,
    ):
        super().__init__(message, request_id=request_id)
        self.limit = limit
        self.remaining = remaining
        self.retry_after = retry_after


class DeliveryError(AppError):
    default_message = "Failed to send email"


class InternalError(AppError):
    default_message = "Failed to save to Notion"

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        details: Optional[str] = None,
        request_id: Optional[str] = None,
    ):
        super().__init__(message, request_id=request_id)
        self.details = details

    def response_fields(self) -> dict[str, Any]:
        fields = super().response_fields()
        fields["success"] = False
        if self.details is not None:
            fields["details"] = self.details
        return fields


def add_exception_handlers(app: FastAPI):
    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        fields = exc.response_fields()
        fields.setdefault("request_id", get_request_id(request))
        response = api_response(message=exc.message, status_code=exc.status_code, **fields)
        if isinstance(exc, RateLimitError):
            response.headers["Retry-After"] = str(exc.retry_after)
            response.headers["X-RateLimit-Limit"] = str(exc.limit)
            response.headers["X-RateLimit-Remaining"] = str(exc.remaining)
        return response

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        message = str(exc.detail) or "Error"
        return api_response(message=message, status_code=exc.status_code, error=message)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        errors = [
            {"loc": list(err.get("loc", ())), "msg": err.get("msg"), "type": err.get("type")}
            for err in exc.errors()
        ]
        missing_email = any("email" in err["loc"] for err in errors)
        message = "Email is required" if missing_email else "Validation failed"
        return api_response(
            message=message,
            status_code=status.HTTP_400_BAD_REQUEST,
            data={"errors": errors},
            error=message,
            request_id=get_request_id(request),
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        request_id = get_request_id(request)
        log_event(logger, logging.ERROR, "app", "Unhandled exception", error=exc, requestId=request_id, path=request.url.path)
        return api_response(
            message="Internal server error",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            error="Internal server error",
            request_id=request_id,
        )
