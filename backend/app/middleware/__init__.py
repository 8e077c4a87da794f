"""
Middleware Package

Provides FastAPI middleware for:
- Error handling (ServiceError hierarchy → structured JSON responses)

Usage:
    from app.middleware import setup_error_handling

    setup_error_handling(app, debug=settings.DEBUG)
"""

from app.middleware.error_handling import (
    ErrorHandlingMiddleware,
    ServiceError,
    setup_error_handling,
)

__all__ = [
    "ErrorHandlingMiddleware",
    "ServiceError",
    "setup_error_handling",
]
