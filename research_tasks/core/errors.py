"""Error taxonomy and the handlers that render it as JSON."""

import logging
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from research_tasks.config import get_settings

logger = logging.getLogger(__name__)


class ServiceError(Exception):
    """Base for every error the API reports on purpose."""

    code = "INTERNAL_ERROR"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        *,
        code: Optional[str] = None,
        status_code: Optional[int] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        if status_code is not None:
            self.status_code = status_code
        self.headers = headers or {}


class Unauthenticated(ServiceError):
    code = "UNAUTHENTICATED"
    status_code = status.HTTP_401_UNAUTHORIZED

    def __init__(self, message: str = "Could not validate credentials"):
        super().__init__(message, headers={"WWW-Authenticate": "Bearer"})


class Forbidden(ServiceError):
    code = "FORBIDDEN"
    status_code = status.HTTP_403_FORBIDDEN


class NotFound(ServiceError):
    code = "NOT_FOUND"
    status_code = status.HTTP_404_NOT_FOUND


class InvalidInput(ServiceError):
    code = "INVALID_INPUT"
    status_code = status.HTTP_400_BAD_REQUEST


class InvalidStatus(InvalidInput):
    code = "INVALID_STATUS"


class Conflict(ServiceError):
    # Duplicate keys / already-that-role are reported as 400 on the public surface;
    # lost compare-and-set races use 409.
    code = "CONFLICT"
    status_code = status.HTTP_400_BAD_REQUEST


class Upstream(ServiceError):
    code = "UPSTREAM_ERROR"
    status_code = status.HTTP_502_BAD_GATEWAY

    @classmethod
    def timeout(cls, what: str, retry_after: int = 5) -> "Upstream":
        return cls(
            f"{what} timed out, please retry",
            code="UPSTREAM_TIMEOUT",
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            headers={"Retry-After": str(retry_after)},
        )


def _body(code: str, message: str, detail: Any = None) -> Dict[str, Any]:
    body: Dict[str, Any] = {"error": code, "message": message}
    if detail is not None:
        body["detail"] = detail
    return body


async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.warning(
            "%s %s failed: %s (%s)", request.method, request.url.path, exc.code, exc.message
        )
    return JSONResponse(
        status_code=exc.status_code,
        content=_body(exc.code, exc.message),
        headers=exc.headers or None,
    )


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path"))
    message = f"{field}: {first.get('msg')}" if field else str(first.get("msg", "Invalid request"))
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=_body(InvalidInput.code, message, jsonable_errors(errors)),
    )


def jsonable_errors(errors):
    # ctx may hold exception instances which are not JSON serialisable
    return [{k: v for k, v in err.items() if k in ("loc", "msg", "type")} for err in errors]


_HTTP_ERROR_CODES = {
    status.HTTP_404_NOT_FOUND: NotFound.code,
    status.HTTP_405_METHOD_NOT_ALLOWED: "METHOD_NOT_ALLOWED",
}


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Router-level errors (unknown path, wrong method) in the same envelope."""
    return JSONResponse(
        status_code=exc.status_code,
        content=_body(_HTTP_ERROR_CODES.get(exc.status_code, "HTTP_ERROR"), str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    message = "Something went wrong"
    detail = None
    settings = getattr(request.app.state, "settings", None) or get_settings()
    if settings.is_development:
        detail = f"{type(exc).__name__}: {exc}"
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_body(ServiceError.code, message, detail),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ServiceError, service_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
