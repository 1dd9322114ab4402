"""Custom exceptions, provider error classification and FastAPI error handlers."""

import asyncio
from enum import Enum
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from draftwise.core.logging import get_logger

logger = get_logger(__name__)


class ErrorCode(str, Enum):
    INVALID_API_KEY = "INVALID_API_KEY"
    API_KEY_EXPIRED = "API_KEY_EXPIRED"
    RATE_LIMITED = "RATE_LIMITED"
    NETWORK_ERROR = "NETWORK_ERROR"
    TIMEOUT = "TIMEOUT"
    INVALID_INPUT = "INVALID_INPUT"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
    QUOTA_EXCEEDED = "QUOTA_EXCEEDED"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    CONTENT_BLOCKED = "CONTENT_BLOCKED"
    SESSION_EXPIRED = "SESSION_EXPIRED"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


_USER_MESSAGES: Dict[ErrorCode, str] = {
    ErrorCode.INVALID_API_KEY: "Your API key is invalid. Please check and try again.",
    ErrorCode.API_KEY_EXPIRED: "Your API key has expired. Please update it.",
    ErrorCode.RATE_LIMITED: "Too many requests. Please wait a moment and try again.",
    ErrorCode.NETWORK_ERROR: "Network connection failed. Please check your internet connection.",
    ErrorCode.TIMEOUT: "Request timed out. Please try again.",
    ErrorCode.INVALID_INPUT: "Please check your input and try again.",
    ErrorCode.SERVICE_UNAVAILABLE: "Service is temporarily unavailable. Please try again later.",
    ErrorCode.QUOTA_EXCEEDED: "API quota exceeded. Please try again later or upgrade your plan.",
    ErrorCode.PERMISSION_DENIED: "Permission denied. Please ensure your API key has the necessary permissions.",
    ErrorCode.CONTENT_BLOCKED: "Content violates safety policies. Please modify your content and try again.",
    ErrorCode.SESSION_EXPIRED: "Your session expired. Please enter your API key again.",
}


def _message_from_text(message: str) -> str:
    lowered = message.lower()
    if "api key" in lowered:
        return "There's an issue with your API key. Please check it and try again."
    if "network" in lowered or "connection" in lowered:
        return "Connection failed. Please check your internet connection and try again."
    if "timeout" in lowered or "timed out" in lowered:
        return "Request timed out. Please try again."
    if "rate limit" in lowered:
        return "Too many requests. Please wait a moment and try again."
    return "Something went wrong. Please try again."


class AppError(Exception):
    """Base exception carrying an HTTP status and a user-facing message."""

    def __init__(
        self,
        message: str,
        user_message: Optional[str] = None,
        code: ErrorCode = ErrorCode.UNKNOWN_ERROR,
        status_code: int = 500,
        retryable: bool = False,
    ):
        super().__init__(message)
        self.code = code
        self.status_code = status_code
        self.retryable = retryable
        self.user_message = (
            user_message or _USER_MESSAGES.get(code) or _message_from_text(message)
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": False,
            "error": self.user_message,
            "code": self.code.value,
            "retryable": self.retryable,
        }


class ApiKeyFormatError(AppError):
    def __init__(self, reason: str = "Invalid API key format"):
        super().__init__(reason, reason, ErrorCode.INVALID_API_KEY, status_code=400)


class InvalidInputError(AppError):
    def __init__(self, message: str):
        super().__init__(message, message, ErrorCode.INVALID_INPUT, status_code=400)


class ProviderError(AppError):
    """Raised by the LLM layer; `provider` names the backend that failed."""

    def __init__(
        self,
        message: str,
        provider: str = "gemini",
        status: Optional[int] = None,
    ):
        super().__init__(message, status_code=502)
        self.provider = provider
        self.status = status


class RateLimitExceededError(AppError):
    def __init__(self, retry_after: int):
        super().__init__(
            "Rate limit exceeded",
            f"Rate limit exceeded. Please wait {retry_after} seconds before making another request.",
            ErrorCode.RATE_LIMITED,
            status_code=429,
            retryable=True,
        )
        self.retry_after = retry_after


def classify_provider_error(exc: BaseException) -> AppError:
    """Map a provider failure onto an `AppError` with status and code."""
    if isinstance(exc, AppError) and not isinstance(exc, ProviderError):
        return exc

    status = None
    attrs = ("status",) if isinstance(exc, AppError) else ("status", "code", "status_code")
    for attr in attrs:
        value = getattr(exc, attr, None)
        if isinstance(value, int) and not isinstance(value, bool):
            status = value
            break
    text = str(exc)
    lowered = text.lower()

    if isinstance(exc, (asyncio.TimeoutError, TimeoutError)) or "timeout" in lowered or "timed out" in lowered:
        return AppError(
            text or "timeout",
            "Request timed out. Please try again with a shorter prompt.",
            ErrorCode.TIMEOUT,
            status_code=408,
            retryable=True,
        )
    if "api_key_invalid" in lowered or "invalid api key" in lowered or "api key not valid" in lowered or status == 401:
        return AppError(
            text,
            "Invalid API key. Please check your Google Gemini API key.",
            ErrorCode.INVALID_API_KEY,
            status_code=401,
        )
    if "permission_denied" in lowered or "permission denied" in lowered or status == 403:
        return AppError(text, code=ErrorCode.PERMISSION_DENIED, status_code=403)
    if (
        "quota" in lowered
        or "rate limit" in lowered
        or "resource_exhausted" in lowered
        or "too many requests" in lowered
        or status == 429
    ):
        return AppError(
            text,
            "API quota exceeded. Please check your usage limits or try again later.",
            ErrorCode.QUOTA_EXCEEDED,
            status_code=429,
            retryable=True,
        )
    if "safety" in lowered or "content policy" in lowered or "blocked" in lowered or "recitation" in lowered:
        return AppError(text, text, ErrorCode.CONTENT_BLOCKED, status_code=400)
    if "context_length" in lowered or "token limit" in lowered or "too long" in lowered:
        return AppError(
            text,
            "Input is too long. Please shorten your content and try again.",
            ErrorCode.INVALID_INPUT,
            status_code=400,
        )
    if "unavailable" in lowered or (status is not None and status >= 500):
        return AppError(
            text,
            "The AI service is temporarily unavailable. Please try again shortly.",
            ErrorCode.SERVICE_UNAVAILABLE,
            status_code=503,
            retryable=True,
        )
    if "connection" in lowered or "network" in lowered:
        return AppError(text, code=ErrorCode.NETWORK_ERROR, status_code=503, retryable=True)
    return AppError(
        text or type(exc).__name__,
        "Failed to process request. Please try again.",
        ErrorCode.UNKNOWN_ERROR,
        status_code=500,
    )


def is_credential_error(error: AppError) -> bool:
    return error.code in (ErrorCode.INVALID_API_KEY, ErrorCode.PERMISSION_DENIED)


def recovery_actions(code: ErrorCode) -> List[Dict[str, Any]]:
    """Suggested next steps for the UI, primary action first."""
    if code in (ErrorCode.INVALID_API_KEY, ErrorCode.API_KEY_EXPIRED, ErrorCode.SESSION_EXPIRED):
        return [
            {"label": "Update API Key", "action": "update_api_key", "primary": True},
            {"label": "Get API Key Help", "action": "api_key_help", "primary": False},
        ]
    if code in (ErrorCode.RATE_LIMITED, ErrorCode.QUOTA_EXCEEDED):
        return [
            {"label": "Try Again", "action": "retry", "primary": True},
            {"label": "Wait 1 Minute", "action": "wait", "primary": False},
        ]
    if code is ErrorCode.NETWORK_ERROR:
        return [
            {"label": "Try Again", "action": "retry", "primary": True},
            {"label": "Check Connection", "action": "check_connection", "primary": False},
        ]
    if code is ErrorCode.TIMEOUT:
        return [
            {"label": "Try Again", "action": "retry", "primary": True},
            {"label": "Reduce Content", "action": "reduce_content", "primary": False},
        ]
    if code in (ErrorCode.INVALID_INPUT, ErrorCode.CONTENT_BLOCKED):
        return [
            {"label": "Fix Input", "action": "fix_input", "primary": True},
            {"label": "Get Help", "action": "get_help", "primary": False},
        ]
    return [
        {"label": "Try Again", "action": "retry", "primary": True},
        {"label": "Refresh Page", "action": "refresh", "primary": False},
    ]


def register_error_handlers(app: FastAPI) -> None:
    """Register centralized exception handlers on the FastAPI app."""

    @app.exception_handler(AppError)
    async def handle_app_error(_request: Request, exc: AppError):
        headers = None
        if isinstance(exc, RateLimitExceededError):
            headers = {"Retry-After": str(exc.retry_after)}
        return JSONResponse(exc.to_dict(), status_code=exc.status_code, headers=headers)

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(_request: Request, exc: RequestValidationError):
        errors = exc.errors()
        first = errors[0] if errors else {}
        field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
        message = f"{field}: {first.get('msg', 'invalid value')}" if field else "Invalid request body"
        return JSONResponse(
            InvalidInputError(message).to_dict(),
            status_code=400,
        )

    @app.exception_handler(Exception)
    async def handle_unexpected(_request: Request, exc: Exception):
        logger.exception(f"Unhandled error: {exc}")
        return JSONResponse(
            {"success": False, "error": "Internal server error. Please try again later."},
            status_code=500,
        )
