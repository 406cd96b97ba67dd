"""Application exception classes and handlers."""

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from agentchat.schemas.response_schema import error_response


class AppException(Exception):
    """Base application exception."""

    def __init__(self, message: str, code: str, status_code: int = 400) -> None:
        self.message = message
        self.code = code
        self.status_code = status_code
        super().__init__(message)


# --- Validation (400) ---


class InvalidFunctionError(AppException):
    """Business function definition is missing a name or handler."""

    def __init__(self, message: str = "Invalid business function") -> None:
        super().__init__(message=message, code="INVALID_FUNCTION", status_code=400)


class InvalidMessageError(AppException):
    """Chat message violates role/content rules."""

    def __init__(self, message: str = "Invalid chat message") -> None:
        super().__init__(message=message, code="INVALID_MESSAGE", status_code=400)


class InvalidSessionError(AppException):
    """Chat session attributes are invalid."""

    def __init__(self, message: str = "Invalid chat session") -> None:
        super().__init__(message=message, code="INVALID_SESSION", status_code=400)


# --- Not Found (404) ---


class SessionNotFoundError(AppException):
    """Chat session not found."""

    def __init__(self, session_id: str | None = None) -> None:
        message = "Session not found"
        if session_id:
            message = f"Session not found: {session_id}"
        super().__init__(
            message=message,
            code="SESSION_NOT_FOUND",
            status_code=404,
        )


class MessageNotFoundError(AppException):
    """Chat message not found."""

    def __init__(self, message_id: str | None = None) -> None:
        message = "Message not found"
        if message_id:
            message = f"Message not found: {message_id}"
        super().__init__(
            message=message,
            code="MESSAGE_NOT_FOUND",
            status_code=404,
        )


# --- Conflict (409) ---


class SessionNotInteractiveError(AppException):
    """Session status does not accept new messages."""

    def __init__(self, session_id: str, status: str) -> None:
        super().__init__(
            message=f"Session {session_id} is {status} and does not accept messages",
            code="SESSION_NOT_INTERACTIVE",
            status_code=409,
        )


class IllegalTransitionError(AppException):
    """Requested session status change is not allowed."""

    def __init__(self, current: str, target: str) -> None:
        self.current = current
        self.target = target
        super().__init__(
            message=f"Cannot change session status from {current} to {target}",
            code="ILLEGAL_TRANSITION",
            status_code=409,
        )


class TurnInProgressError(AppException):
    """Another turn is already running for the session."""

    def __init__(self, session_id: str) -> None:
        super().__init__(
            message=f"A turn is already in progress for session {session_id}",
            code="TURN_IN_PROGRESS",
            status_code=409,
        )


# --- Provider (503/504, retryable) ---


class ProviderError(AppException):
    """Base error raised at the AI provider boundary."""

    retryable: bool = False


class ProviderUnavailableError(ProviderError):
    """AI provider call failed."""

    retryable = True

    def __init__(self, message: str = "AI provider is unavailable") -> None:
        super().__init__(message=message, code="PROVIDER_UNAVAILABLE", status_code=503)


class ProviderTimeoutError(ProviderError):
    """AI provider call exceeded its timeout."""

    retryable = True

    def __init__(self, timeout_seconds: float) -> None:
        super().__init__(
            message=f"AI provider did not respond within {timeout_seconds:g}s",
            code="PROVIDER_TIMEOUT",
            status_code=504,
        )


# --- Exception Handlers ---


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Central exception handler for AppException."""
    return JSONResponse(
        status_code=exc.status_code,
        content=error_response(exc.status_code, exc.message, exc.code),
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Render request validation errors in the unified error shape."""
    errors = exc.errors()
    message = "Invalid request"
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ()))
        message = f"{location}: {first.get('msg', 'invalid value')}"
    return JSONResponse(
        status_code=422,
        content=error_response(422, message, "VALIDATION_ERROR"),
    )
