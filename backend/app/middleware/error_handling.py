"""
Error Handling Middleware

Turns exceptions raised anywhere below the router into one JSON error shape:

    {"error": <code>, "message": ..., "error_id": ..., "details": ..., "timestamp": ...}

Services raise ServiceError subclasses; each carries its HTTP status and a
stable error code the UI can switch on. Anything else becomes a sanitized
500. Every error is logged with a short correlation id (error_id) that is
also returned to the caller.

Error codes:
    validation_error (422), invalid_action (422), empty_unit (422),
    unsupported_exercise_type (422), invalid_payload (422),
    not_found (404), session_not_found (404), unknown_card (404),
    forbidden (403), session_not_active (409)

Usage:
    from app.middleware import setup_error_handling
    from app.middleware.error_handling import SessionNotActiveError

    setup_error_handling(app, debug=settings.DEBUG)

    raise SessionNotActiveError(f"Session {session_id} is COMPLETED")

The middleware wraps call_next() in try/except, so exceptions from
dependencies, routes and services all reach it. HTTPException is re-raised
for FastAPI's own handler. Exceptions raised after a streaming body has
started cannot be caught here.
"""

import logging
import traceback
from datetime import datetime, timezone
from typing import Any, Optional
from uuid import uuid4

from fastapi import FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)


# =============================================================================
# Service Errors
# =============================================================================


class ServiceError(Exception):
    """
    Base class for errors a service reports to the caller.

    Subclasses set status_code and error_code; details is an optional dict
    of identifiers that help the caller act on the error.
    """

    status_code: int = 500
    error_code: str = "service_error"

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        error_code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        if status_code:
            self.status_code = status_code
        if error_code:
            self.error_code = error_code
        self.details = details


class ValidationError(ServiceError):
    """Input failed validation."""

    status_code = 422
    error_code = "validation_error"


class NotFoundError(ServiceError):
    status_code = 404
    error_code = "not_found"


class AuthorizationError(ServiceError):
    """
    The teacher may not act on this student or session.

    Also raised when the student is paused, completed or archived.
    """

    status_code = 403
    error_code = "forbidden"


class SessionNotFoundError(NotFoundError):
    error_code = "session_not_found"


class SessionNotActiveError(ServiceError):
    """An action was sent to a session that is no longer IN_PROGRESS."""

    status_code = 409
    error_code = "session_not_active"


class EmptyUnitError(ValidationError):
    """A session was started on a unit without items."""

    error_code = "empty_unit"


class UnsupportedExerciseTypeError(ValidationError):
    """No handler is registered for the exercise type."""

    error_code = "unsupported_exercise_type"


class InvalidActionError(ValidationError):
    """
    The current exercise cannot take this action.

    The action is unknown to the exercise, arrives in the wrong stage, or
    carries data that fails validation.
    """

    error_code = "invalid_action"


class UnknownCardError(NotFoundError):
    """A review targets a card that has no card state for the student."""

    error_code = "unknown_card"


class InvalidPayloadError(ValidationError):
    """
    A job payload does not match its job type's schema.

    The worker records it on the job as FAILED; it never reaches a request.
    """

    error_code = "invalid_payload"


# =============================================================================
# Response Helpers
# =============================================================================


def new_error_id() -> str:
    return str(uuid4())[:8]


def create_error_response(
    error_code: str,
    message: str,
    status_code: int = 500,
    details: Optional[dict[str, Any]] = None,
    error_id: Optional[str] = None,
) -> JSONResponse:
    """
    Build a response in the standard error shape.

    Args:
        error_code: Stable machine-readable code
        message: Human-readable message
        status_code: HTTP status code
        details: Extra context for the caller
        error_id: Correlation id; a new one is generated when omitted
    """
    return JSONResponse(
        status_code=status_code,
        content={
            "error": error_code,
            "message": message,
            "error_id": error_id or new_error_id(),
            "details": details,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
    )


# =============================================================================
# Middleware
# =============================================================================


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """
    Catches exceptions from the app and renders them as error responses.

    In debug mode unexpected errors include the exception and traceback;
    otherwise only the correlation id is returned.
    """

    def __init__(self, app, debug: bool = False):
        super().__init__(app)
        self.debug = debug

    async def dispatch(self, request: Request, call_next):
        error_id = new_error_id()

        try:
            return await call_next(request)

        except HTTPException:
            raise

        except ServiceError as e:
            level = logging.ERROR if e.status_code >= 500 else logging.WARNING
            logger.log(
                level,
                f"[{error_id}] {request.method} {request.url.path} -> "
                f"{e.status_code} {e.error_code}: {e.message}",
            )
            return create_error_response(
                error_code=e.error_code,
                message=e.message,
                status_code=e.status_code,
                details=e.details,
                error_id=error_id,
            )

        except Exception as e:
            trace = traceback.format_exc()
            logger.error(
                f"[{error_id}] {request.method} {request.url.path} -> "
                f"unhandled {type(e).__name__}: {e}\n{trace}"
            )

            details = None
            if self.debug:
                details = {"exception": type(e).__name__, "message": str(e), "traceback": trace}

            return create_error_response(
                error_code="internal_server_error",
                message="An unexpected error occurred",
                status_code=500,
                details=details,
                error_id=error_id,
            )


async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Render request body/query validation failures in the standard error format."""
    return create_error_response(
        error_code="validation_error",
        message="Request validation failed",
        status_code=422,
        details={"errors": jsonable_encoder(exc.errors())},
    )


def setup_error_handling(app: FastAPI, debug: bool = False) -> None:
    """
    Install the error middleware and the request validation handler.

    Args:
        app: FastAPI application instance
        debug: Include exception details in 500 responses
    """
    app.add_middleware(ErrorHandlingMiddleware, debug=debug)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    logger.info(f"Error handling middleware enabled (debug={debug})")
