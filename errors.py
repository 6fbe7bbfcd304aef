"""
Exceptions and global exception handlers.

Domain errors map to one HTTP status each; request validation failures
become a 400 with a field-level ``errors`` array; anything else is logged
and answered with a generic 500.
"""
import logging
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class BlogApiError(Exception):
    """Base exception for the Blog API."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "BLOG_API_ERROR"

    def __init__(self, message: str, code: Optional[str] = None, headers: Optional[Dict[str, str]] = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        self.headers = headers

    def to_dict(self) -> Dict[str, Any]:
        return {"detail": self.message, "code": self.code}


class BadRequestError(BlogApiError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "BAD_REQUEST"


class ConflictError(BadRequestError):
    """Raised when a unique field (email, username, slug) is already taken."""

    code = "CONFLICT"


class AuthenticationError(BlogApiError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "UNAUTHORIZED"

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message, code=code, headers={"WWW-Authenticate": "Bearer"})


class ForbiddenError(BlogApiError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "FORBIDDEN"


class NotFoundError(BlogApiError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "NOT_FOUND"


def register_error_handlers(app: FastAPI) -> None:
    """Register all global error handlers on the FastAPI app."""

    @app.exception_handler(BlogApiError)
    async def blog_api_error_handler(request: Request, exc: BlogApiError):
        logger.warning("%s on %s: %s", exc.code, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=exc.headers)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        errors = format_validation_errors(exc.errors())
        logger.info("Validation failed on %s: %s", request.url.path, errors)
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"detail": "Validation failed", "errors": errors},
        )

    @app.exception_handler(Exception)
    async def generic_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "An unexpected error occurred", "code": "INTERNAL_ERROR"},
        )


def format_validation_errors(raw_errors: List[Dict[str, Any]]) -> List[Dict[str, str]]:
    """Flatten pydantic errors into ``{field, message, type}`` entries.

    Messages raised from our own validators are passed through verbatim,
    without pydantic's "Value error, " prefix.
    """
    formatted = []
    for err in raw_errors:
        loc = list(err.get("loc", ()))
        if len(loc) > 1 and loc[0] in ("body", "query", "path"):
            loc = loc[1:]
        ctx_error = (err.get("ctx") or {}).get("error")
        message = str(ctx_error) if isinstance(ctx_error, ValueError) else err.get("msg", "Invalid value")
        formatted.append({
            "field": ".".join(str(part) for part in loc),
            "message": message,
            "type": err.get("type", "value_error"),
        })
    return formatted
