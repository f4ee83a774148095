"""
Gateway error taxonomy.

Every resource handler reports a rejected request by raising one of these.
The gateway turns them into the uniform JSON envelope:

    {"success": false, "error": "<message>", ...extra}
"""
from http import HTTPStatus
from typing import Any, Dict, Optional


class GatewayError(Exception):
    """Base class for errors that map onto an HTTP response."""

    status_code: int = HTTPStatus.INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        extra: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.extra = extra or {}
        self.headers = headers or {}

    def to_body(self) -> Dict[str, Any]:
        """Render the error envelope."""
        return {"success": False, "error": self.message, **self.extra}


class BadRequest(GatewayError):
    status_code = HTTPStatus.BAD_REQUEST


class Unauthorized(GatewayError):
    status_code = HTTPStatus.UNAUTHORIZED


class Forbidden(GatewayError):
    status_code = HTTPStatus.FORBIDDEN


class NotFound(GatewayError):
    status_code = HTTPStatus.NOT_FOUND


class MethodNotAllowed(GatewayError):
    status_code = HTTPStatus.METHOD_NOT_ALLOWED


class TooManyRequests(GatewayError):
    status_code = HTTPStatus.TOO_MANY_REQUESTS


class InternalError(GatewayError):
    status_code = HTTPStatus.INTERNAL_SERVER_ERROR


# Body returned for anything that escapes the handlers.
INTERNAL_ERROR_BODY = {"success": False, "error": "Internal server error"}
