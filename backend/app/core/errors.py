"""
Error types and FastAPI exception handlers

Services raise APIError subclasses; the handlers below turn them into the
JSON shape the frontend expects: {"success": false, "error": "...", "details": {...}}
"""
import logging
from typing import Any, Dict, Optional, Union

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class APIError(Exception):
    """Base exception for API errors"""

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class ResourceNotFoundError(APIError):
    """Raised when a row is missing or not owned by the caller"""

    def __init__(self, resource: str, resource_id: Union[int, str, None] = None):
        message = f"{resource} not found"
        super().__init__(
            message=message,
            status_code=status.HTTP_404_NOT_FOUND,
            details={"resource": resource, "id": resource_id} if resource_id is not None else {},
        )


class InvalidRequestError(APIError):
    """Raised for requests that fail business validation"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, status_code=status.HTTP_400_BAD_REQUEST, details=details)


class CredentialsNotConfiguredError(APIError):
    """Raised when the profile lacks the vendor keys a flow needs"""

    def __init__(self, message: str, hint: Optional[str] = None):
        super().__init__(
            message=message,
            status_code=status.HTTP_400_BAD_REQUEST,
            details={"message": hint} if hint else None,
        )


class VendorAuthError(APIError):
    """Raised when a vendor rejects the client-credentials exchange"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, status_code=status.HTTP_401_UNAUTHORIZED, details=details)


class VendorUnavailableError(APIError):
    """Raised when a vendor API cannot be reached"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, status_code=status.HTTP_503_SERVICE_UNAVAILABLE, details=details)


def setup_error_handlers(app: FastAPI) -> None:
    """Register JSON handlers for APIError and unexpected exceptions"""

    @app.exception_handler(APIError)
    async def api_error_handler(request: Request, exc: APIError):
        logger.warning(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.message}")
        content: Dict[str, Any] = {"success": False, "error": exc.message}
        if exc.details:
            content["details"] = exc.details
        return JSONResponse(status_code=exc.status_code, content=content)

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"success": False, "error": "Internal server error"},
        )
