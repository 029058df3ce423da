"""
Error handling middleware that converts exceptions to HTTP responses.
"""
from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from app.core.exceptions import VidShareException, UnauthorizedException
from app.models.schemas import ErrorResponse
import logging

logger = logging.getLogger(__name__)


def error_response(status_code: int, message: str, detail: list = None, headers: dict = None) -> JSONResponse:
    """JSON error body shared by the middleware and the validation handler."""
    body = ErrorResponse(error=message, status_code=status_code, detail=detail)
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(exclude_none=True),
        headers=headers,
    )


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Middleware to convert exceptions to appropriate HTTP responses."""

    async def dispatch(self, request: Request, call_next):
        """Process each request and handle exceptions."""
        try:
            return await call_next(request)

        except VidShareException as e:
            log = logger.warning if e.status_code < 500 else logger.error
            log(
                f"Application error: {e.message}",
                extra={
                    "context": {
                        "status_code": e.status_code,
                        "path": request.url.path,
                        "method": request.method,
                    }
                }
            )
            headers = {"WWW-Authenticate": "Bearer"} if isinstance(e, UnauthorizedException) else None
            return error_response(e.status_code, e.message, headers=headers)

        except Exception as e:
            logger.error(
                f"Unexpected error: {str(e)}",
                exc_info=True,
                extra={
                    "context": {
                        "path": request.url.path,
                        "method": request.method,
                    }
                }
            )
            return error_response(500, "Internal server error")


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed query/body/form input is a 400, like every other validation failure."""
    errors = [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg"), "type": err.get("type")}
        for err in exc.errors()
    ]
    logger.warning(
        f"Request validation failed: {request.method} {request.url.path}",
        extra={"context": {"errors": errors}}
    )
    return error_response(400, "Validation error: invalid request parameters", detail=errors)
