from fastapi import Request
from starlette.exceptions import HTTPException as StarletteHTTPException
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
import logging

logger = logging.getLogger("uvicorn.error")


class CustomHTTPException(Exception):
    """A custom HTTPException that we can use for additional context."""
    def __init__(self, status_code: int, detail: str, error_code: str = None, headers: dict = None):
        self.status_code = status_code
        self.detail = detail
        self.error_code = error_code
        self.headers = headers
        super().__init__(detail)


class AbelanaError(CustomHTTPException):
    """Base class for errors raised by the graph, engagement and timeline services."""
    status_code = 500
    error_code = "internal_error"

    def __init__(self, detail: str):
        super().__init__(
            status_code=type(self).status_code,
            detail=detail,
            error_code=type(self).error_code,
        )


class NotFound(AbelanaError):
    """A user or photo the operation depends on does not exist."""
    status_code = 404
    error_code = "not_found"


class MalformedInput(AbelanaError):
    """Bad cursor, photo id or e-mail segment. Never mutates state."""
    status_code = 400
    error_code = "malformed_input"


class TransactionConflict(AbelanaError):
    """Concurrent writers collided and retries were exhausted. Safe to retry."""
    status_code = 409
    error_code = "transaction_conflict"


class AlreadyExists(AbelanaError):
    status_code = 409
    error_code = "already_exists"


class StoreUnavailable(AbelanaError):
    status_code = 503
    error_code = "store_unavailable"


class PermissionDenied(AbelanaError):
    status_code = 403
    error_code = "permission_denied"


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handle validation errors and return a structured JSON response."""
    logger.error(f"Validation error on {request.url}: {exc.errors()}")

    errors = exc.errors()
    # Sanitize un-serializable objects in ctx
    for error in errors:
        ctx = error.get("ctx")
        if ctx and isinstance(ctx.get("error"), Exception):
            ctx["error"] = str(ctx["error"])

    return JSONResponse(
        status_code=422,
        content={
            "detail": errors,
            "message": "Validation failed. Please check your request data.",
        },
    )


async def http_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Render service errors and HTTP errors as {"detail", "error_code"}."""
    if isinstance(exc, CustomHTTPException):
        if exc.status_code >= 500:
            logger.error(f"{type(exc).__name__} on {request.url}: {exc.detail}")
        else:
            logger.warning(f"{type(exc).__name__} on {request.url}: {exc.detail}")
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail, "error_code": exc.error_code},
            headers=exc.headers or {},
        )
    if isinstance(exc, StarletteHTTPException):
        logger.error(f"HTTP error on {request.url}: {exc.detail}")
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail},
            headers=exc.headers or {},
        )

    logger.error(f"Unexpected error on {request.url}: {str(exc)}")
    return JSONResponse(
        status_code=500,
        content={"detail": "An unexpected error occurred"},
    )
