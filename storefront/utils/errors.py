# storefront/utils/errors.py
import logging
from typing import Dict, List, Optional

import pydantic
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from storefront.config import settings
from storefront.utils.api import rate_limit_headers

logger = logging.getLogger(__name__)


class StorefrontError(Exception):
    """Base class for errors that map onto a JSON error response.

    `message` is safe to show to shoppers. `detail` is for the server log and
    is echoed in the response only in development, and only for error types
    that set `expose_detail_in_development`.
    """

    status_code = 500
    message = "Internal Server Error"
    expose_detail_in_development = False

    def __init__(self, message: Optional[str] = None, *, detail: Optional[str] = None):
        super().__init__(message or self.message)
        self.message = message or self.message
        self.detail = detail

    def to_body(self) -> dict:
        body = {"message": self.message}
        if self.expose_detail_in_development and settings.is_development and self.detail:
            body["error"] = self.detail
        return body


class ValidationError(StorefrontError):
    status_code = 400
    message = "Invalid input"

    def __init__(self, errors: Dict[str, List[str]], message: Optional[str] = None):
        super().__init__(message)
        self.errors = errors

    def to_body(self) -> dict:
        return {"message": self.message, "errors": self.errors}


class NotFoundError(StorefrontError):
    status_code = 404
    message = "Not found"


class ProductNotFoundError(NotFoundError):
    # Reported as the generic verification failure so ids cannot be enumerated
    status_code = 500
    message = "Failed to verify product information"


class UpstreamUnavailableError(StorefrontError):
    status_code = 500
    message = "Failed to verify product information"
    expose_detail_in_development = True


class RateLimitedError(StorefrontError):
    status_code = 429
    message = "Too many requests. Please try again later."

    def __init__(self, retry_after: int):
        super().__init__()
        self.retry_after = retry_after

    def to_body(self) -> dict:
        return {"message": self.message, "retryAfter": self.retry_after}


class ForbiddenError(StorefrontError):
    status_code = 403
    message = "Forbidden"


def field_errors(exc: pydantic.ValidationError) -> Dict[str, List[str]]:
    # Group messages by top-level field: {"items": ["Cart cannot be empty"]}
    errors: Dict[str, List[str]] = {}
    for err in exc.errors():
        loc = err.get("loc") or ()
        field = str(loc[0]) if loc else "body"
        errors.setdefault(field, []).append(err["msg"])
    return errors


async def storefront_error_handler(request: Request, exc: StorefrontError):
    if exc.status_code >= 500:
        logger.error("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc.detail or exc.message)
    headers = rate_limit_headers(request)
    if isinstance(exc, RateLimitedError):
        headers["Retry-After"] = str(exc.retry_after)
    return JSONResponse(status_code=exc.status_code, content=exc.to_body(), headers=headers)


async def http_error_handler(request: Request, exc: StarletteHTTPException):
    headers = dict(exc.headers or {})
    headers.update(rate_limit_headers(request))
    return JSONResponse(status_code=exc.status_code, content={"message": exc.detail}, headers=headers)


# Last resort for bugs: keeps 500s in the same JSON shape as every other error
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={"message": "Internal Server Error"},
        headers=rate_limit_headers(request),
    )


def register_error_handlers(app: FastAPI):
    app.add_exception_handler(StorefrontError, storefront_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
