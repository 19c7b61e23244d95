"""Exception handlers rendering the error envelope, and the endpoint guard."""
import functools
import logging
from uuid import UUID

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from twilsta.core.exceptions import AppError
from twilsta.schemas.common import ErrorResponse

logger = logging.getLogger(__name__)

_LOCATION_PREFIXES = {"body", "query", "path", "form", "header", "cookie"}
_HTTP_CODES = {
    400: "BAD_REQUEST",
    401: "NOT_AUTHENTICATED",
    403: "ACCESS_DENIED",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    409: "CONFLICT",
    413: "PAYLOAD_TOO_LARGE",
    429: "RATE_LIMIT_EXCEEDED",
}


def error_response(
    status_code: int,
    code: str,
    message: str,
    *,
    details=None,
    headers: dict[str, str] | None = None,
    retry_after: int | None = None,
) -> JSONResponse:
    body = ErrorResponse(error=code, message=message, details=details, retry_after=retry_after)
    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(body, exclude_none=True),
        headers=headers,
    )


def _merge_rate_limit(request: Request, headers: dict[str, str] | None) -> dict[str, str] | None:
    """Carry X-RateLimit-* headers set by the rate_limit dependency onto error responses."""
    quota = getattr(request.state, "rate_limit_headers", None)
    if not quota:
        return headers
    return {**quota, **(headers or {})}


def _field_name(loc) -> str:
    parts = [str(p) for p in loc if p not in _LOCATION_PREFIXES]
    return ".".join(parts) or "request"


def _plain(value):
    return value if isinstance(value, (str, int, float, bool)) else None


def validation_details(errors) -> list[dict]:
    return [
        {"field": _field_name(err.get("loc", ())), "message": err.get("msg", "Invalid value"), "value": _plain(err.get("input"))}
        for err in errors
    ]


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    return error_response(
        exc.status_code,
        exc.code,
        exc.message,
        details=exc.details,
        headers=_merge_rate_limit(request, exc.headers),
        retry_after=exc.retry_after,
    )


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return error_response(
        400,
        "VALIDATION_ERROR",
        "Validation failed",
        details=validation_details(exc.errors()),
        headers=_merge_rate_limit(request, None),
    )


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    code = _HTTP_CODES.get(exc.status_code, "HTTP_ERROR")
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    return error_response(exc.status_code, code, message, headers=_merge_rate_limit(request, getattr(exc, "headers", None)))


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled_error method=%s path=%s", request.method, request.url.path)
    return error_response(500, "INTERNAL_SERVER_ERROR", "Internal server error")


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)


def guarded(action: str, error_code: str, message: str):
    """Turn unexpected endpoint failures into a 500 with an action-specific code.

    AppError and HTTPException pass through untouched. Anything else is logged
    with the acting user and the resource ids found in the endpoint arguments.
    """

    def decorator(func):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            try:
                return await func(*args, **kwargs)
            except (AppError, StarletteHTTPException):
                raise
            except Exception:
                user = kwargs.get("current_user")
                ids = {k: str(v) for k, v in kwargs.items() if isinstance(v, UUID)}
                logger.exception(
                    "%s_failed user_id=%s ids=%s",
                    action,
                    getattr(user, "id", None),
                    ids,
                )
                raise AppError(500, error_code, message)

        return wrapper

    return decorator
