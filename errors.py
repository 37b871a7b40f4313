import logging
import traceback
from typing import List, Optional

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from config import is_development
from schemas import ErrorResponse

logger = logging.getLogger(__name__)


class APIError(Exception):
    """Base for errors that map straight onto an HTTP status and the error envelope."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    message = "Server Error"

    def __init__(self, message: Optional[str] = None, errors: Optional[List[dict]] = None):
        super().__init__(message or self.message)
        self.message = message or self.message
        self.errors = errors


class ValidationFailed(APIError):
    status_code = status.HTTP_400_BAD_REQUEST
    message = "Validation failed"


class AuthenticationError(APIError):
    status_code = status.HTTP_401_UNAUTHORIZED
    message = "Not authorized to access this route. Please login."


class PermissionDenied(APIError):
    status_code = status.HTTP_403_FORBIDDEN
    message = "Not authorized to access this resource"


class NotFound(APIError):
    status_code = status.HTTP_404_NOT_FOUND
    message = "Resource not found"


class Conflict(APIError):
    status_code = status.HTTP_400_BAD_REQUEST
    message = "Resource already exists"


def error_response(status_code: int, message: str, errors=None, headers=None, stack=None) -> JSONResponse:
    body = ErrorResponse(message=message, errors=errors or None, stack=stack)
    return JSONResponse(status_code=status_code, content=jsonable_encoder(body, exclude_none=True), headers=headers)


def _field_name(loc) -> str:
    # ("body", "amount") -> "amount"; ("query", "startDate") -> "startDate"
    parts = [str(p) for p in loc if p not in ("body", "query", "path", "header")]
    return ".".join(parts) if parts else "unknown"


def _error_message(err: dict) -> str:
    if err.get("type") == "value_error" and err.get("ctx", {}).get("error"):
        return str(err["ctx"]["error"])
    return err.get("msg", "Invalid value")


def validation_errors(exc: RequestValidationError) -> List[dict]:
    return [{"field": _field_name(e.get("loc", ())), "message": _error_message(e)} for e in exc.errors()]


async def api_error_handler(request: Request, exc: APIError):
    if exc.status_code in (status.HTTP_401_UNAUTHORIZED, status.HTTP_403_FORBIDDEN):
        logger.warning("%s %s -> %s: %s", request.method, request.url.path, exc.status_code, exc.message)
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == status.HTTP_401_UNAUTHORIZED else None
    return error_response(exc.status_code, exc.message, errors=exc.errors, headers=headers)


async def request_validation_handler(request: Request, exc: RequestValidationError):
    return error_response(status.HTTP_400_BAD_REQUEST, "Validation failed", errors=validation_errors(exc))


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == status.HTTP_404_NOT_FOUND and exc.detail == "Not Found":
        message = "Route not found"
    else:
        message = str(exc.detail)
    return error_response(exc.status_code, message, headers=getattr(exc, "headers", None))


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    stack = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__)) if is_development() else None
    return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Server Error", stack=stack)


def register_exception_handlers(app: FastAPI):
    app.add_exception_handler(APIError, api_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
