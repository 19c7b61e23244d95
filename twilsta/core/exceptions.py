"""Application errors rendered into the JSON error envelope."""
from typing import Any


class AppError(Exception):
    """An error with an HTTP status, a machine-readable code and a message."""

    def __init__(
        self,
        status_code: int,
        code: str,
        message: str,
        *,
        details: Any = None,
        headers: dict[str, str] | None = None,
        retry_after: int | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.code = code
        self.message = message
        self.details = details
        self.headers = headers
        self.retry_after = retry_after


def not_found(resource: str) -> AppError:
    code = resource.upper().replace(" ", "_") + "_NOT_FOUND"
    return AppError(404, code, f"{resource.capitalize()} not found")


def access_denied(message: str = "You do not have permission to perform this action") -> AppError:
    return AppError(403, "ACCESS_DENIED", message)


def bad_request(code: str, message: str) -> AppError:
    return AppError(400, code, message)


def unauthorized(code: str, message: str) -> AppError:
    return AppError(401, code, message, headers={"WWW-Authenticate": "Bearer"})
