import logging
import time

from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded

from carmarket.middleware.rate_limit import rate_limit_exceeded_counter
from carmarket.services.exceptions import (
    AuthenticationError,
    BusinessRuleError,
    DuplicateEmailError,
    DuplicateFavoriteError,
    ImageValidationError,
    MarketplaceError,
    NotFoundError,
    PermissionDeniedError,
)

logger = logging.getLogger(__name__)

PUBLIC_API_PREFIX = "/api/public"

STATUS_BY_ERROR = {
    NotFoundError: status.HTTP_404_NOT_FOUND,
    DuplicateEmailError: status.HTTP_400_BAD_REQUEST,
    DuplicateFavoriteError: status.HTTP_400_BAD_REQUEST,
    BusinessRuleError: status.HTTP_400_BAD_REQUEST,
    ImageValidationError: status.HTTP_400_BAD_REQUEST,
    AuthenticationError: status.HTTP_401_UNAUTHORIZED,
    PermissionDeniedError: status.HTTP_403_FORBIDDEN,
}

ERROR_CODE_BY_STATUS = {
    status.HTTP_400_BAD_REQUEST: "BAD_REQUEST",
    status.HTTP_401_UNAUTHORIZED: "UNAUTHORIZED",
    status.HTTP_403_FORBIDDEN: "FORBIDDEN",
    status.HTTP_404_NOT_FOUND: "NOT_FOUND",
    status.HTTP_429_TOO_MANY_REQUESTS: "RATE_LIMITED",
    status.HTTP_500_INTERNAL_SERVER_ERROR: "INTERNAL_ERROR",
}


def now_millis() -> int:
    return int(time.time() * 1000)


class ValidationError(HTTPException):
    def __init__(self, message: str, field: str = None):
        detail = {"error": "validation_error", "message": message}
        if field:
            detail["field"] = field
        super().__init__(status_code=400, detail=detail)


def error_response(request: Request, status_code: int, message: str, error_code: str = None, **extra) -> JSONResponse:
    """Builds the error envelope used by the router that served the request."""
    if request.url.path.startswith(PUBLIC_API_PREFIX):
        content = {
            "success": False,
            "message": message,
            "data": extra or None,
            "error_code": error_code or ERROR_CODE_BY_STATUS.get(status_code, "ERROR"),
        }
    else:
        content = {"error": message, "timestamp": now_millis(), **extra}
    return JSONResponse(status_code=status_code, content=content)


async def marketplace_exception_handler(request: Request, exc: MarketplaceError):
    status_code = next(
        (code for error_type, code in STATUS_BY_ERROR.items() if isinstance(exc, error_type)),
        status.HTTP_400_BAD_REQUEST,
    )
    error_code = getattr(exc, "error_code", None)
    return error_response(request, status_code, exc.message, error_code)


async def validation_exception_handler(request: Request, exc: ValidationError):
    fields = {exc.detail["field"]: exc.detail["message"]} if exc.detail.get("field") else {}
    return error_response(
        request,
        status.HTTP_400_BAD_REQUEST,
        exc.detail.get("message", "Validation error"),
        "VALIDATION_ERROR",
        fields=fields,
    )


async def request_validation_exception_handler(request: Request, exc: RequestValidationError):
    fields = {}
    for err in exc.errors():
        # Drop the "body"/"query"/"path" location prefix
        location = [str(part) for part in err.get("loc", ())[1:]]
        fields[".".join(location) or "request"] = err.get("msg", "Invalid value")
    return error_response(
        request,
        status.HTTP_400_BAD_REQUEST,
        "Validation failed",
        "VALIDATION_ERROR",
        fields=fields,
    )


async def http_exception_handler(request: Request, exc: HTTPException):
    message = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    response = error_response(request, exc.status_code, message)
    if exc.headers:
        response.headers.update(exc.headers)
    return response


async def rate_limit_exception_handler(request: Request, exc: RateLimitExceeded):
    rate_limit_exceeded_counter.labels(endpoint=request.url.path).inc()
    return error_response(
        request,
        status.HTTP_429_TOO_MANY_REQUESTS,
        f"Rate limit exceeded: {exc.detail}. Please try again later.",
        "RATE_LIMITED",
    )


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return error_response(request, status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")
