"""
Custom exception classes and error handling.

This module provides custom exceptions and utilities for consistent
error handling across the application.
"""
import logging
from typing import Any, Dict, Optional
from fastapi import Request, status
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class CallInterceptException(Exception):
    """Base exception for all call-intercept errors."""

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class ConfigurationError(CallInterceptException):
    """Raised when a required setting is missing."""

    def __init__(self, setting: str, details: Optional[Dict[str, Any]] = None):
        message = f"Missing required configuration: {setting}"
        super().__init__(message, status.HTTP_500_INTERNAL_SERVER_ERROR, details)
        self.setting = setting


class CredentialError(CallInterceptException):
    """Raised when a bearer token could not be issued."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status.HTTP_502_BAD_GATEWAY, details)


class UpstreamTimeoutError(CallInterceptException):
    """Raised when an outbound call exceeds its timeout."""

    def __init__(self, target: str, timeout: float, details: Optional[Dict[str, Any]] = None):
        message = f"Timed out after {timeout}s calling {target}"
        super().__init__(message, status.HTTP_504_GATEWAY_TIMEOUT, details)
        self.target = target
        self.timeout = timeout


class UpstreamError(CallInterceptException):
    """Raised when an upstream API answers with a non-success status."""

    def __init__(
        self,
        message: str,
        upstream_status: Optional[int] = None,
        upstream_reason: str = "",
        upstream_body: str = "",
    ):
        details = {
            "upstream_status": upstream_status,
            "upstream_reason": upstream_reason,
            "upstream_body": upstream_body,
        }
        super().__init__(message, status.HTTP_502_BAD_GATEWAY, details)
        self.upstream_status = upstream_status
        self.upstream_reason = upstream_reason
        self.upstream_body = upstream_body


class SubscriptionError(UpstreamError):
    """Raised when the upstream provider rejects a subscription."""


class MediaFetchError(UpstreamError):
    """Raised when call media could not be retrieved."""


class TranscriptionError(UpstreamError):
    """Raised when the transcription collaborator fails."""


class MalformedNotification(CallInterceptException):
    """Raised when a notification payload cannot be used."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status.HTTP_400_BAD_REQUEST, details)


class ClientStateMismatch(MalformedNotification):
    """Raised when a notification's clientState does not match its subscription."""

    def __init__(self, subscription_id: Optional[str], reason: str = "clientState mismatch"):
        message = f"Untrusted notification for subscription {subscription_id}: {reason}"
        super().__init__(message, {"subscription_id": subscription_id})
        self.subscription_id = subscription_id


# =============================================================================
# Exception Handlers
# =============================================================================

async def call_intercept_exception_handler(request: Request, exc: CallInterceptException) -> JSONResponse:
    """Handle CallInterceptException instances."""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": exc.message,
            "details": exc.details
        }
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle uncaught exceptions."""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "Internal server error",
            "details": {"message": str(exc)}
        }
    )


def register_exception_handlers(app):
    """
    Register all custom exception handlers with the FastAPI app.

    Call this during app initialization:
        from src.exceptions import register_exception_handlers
        register_exception_handlers(app)
    """
    app.add_exception_handler(CallInterceptException, call_intercept_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)
