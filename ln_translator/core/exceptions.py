"""
Exception hierarchy for the translation pipeline.

Archive errors are fatal to the open/build/save operation that raised them.
Backend errors are split into connection problems (reported, nothing changes),
transient unavailability (retried) and hard failures (abort the session).
Content-quality problems are not exceptions; they are recorded on the page.
"""

from typing import Optional, Dict, Any


class TranslatorError(Exception):
    """Base exception for all translator errors.

    Attributes:
        message: Human-readable error message
        context: Additional context about the error
        recoverable: Whether the error can potentially be recovered from
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        recoverable: bool = False
    ):
        super().__init__(message)
        self.message = message
        self.context = context or {}
        self.recoverable = recoverable

    def __str__(self) -> str:
        base = f"{self.__class__.__name__}: {self.message}"
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            base += f" (context: {context_str})"
        return base


# ============================================================================
# Archive / file errors
# ============================================================================

class DocumentError(TranslatorError):
    """Raised when an EPUB archive cannot be opened or is malformed."""

    def __init__(
        self,
        message: str,
        source: Optional[str] = None,
        original_error: Optional[Exception] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        ctx = context or {}
        if source:
            ctx['source'] = source
        if original_error:
            ctx['original_error'] = str(original_error)
        super().__init__(message, ctx, recoverable=False)
        self.original_error = original_error


class BuildError(TranslatorError):
    """Raised when rebuilding an EPUB archive fails."""

    def __init__(
        self,
        message: str,
        original_error: Optional[Exception] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        ctx = context or {}
        if original_error:
            ctx['original_error'] = str(original_error)
        super().__init__(message, ctx, recoverable=False)
        self.original_error = original_error


class FileReadError(TranslatorError):
    """Raised when reading an input file or folder fails."""
    pass


class FileWriteError(TranslatorError):
    """Raised when writing an output file fails."""
    pass


class SessionBusyError(TranslatorError):
    """Raised when a run is requested while the session still has tasks in flight."""

    def __init__(self, message: str, pending: Optional[int] = None,
                 context: Optional[Dict[str, Any]] = None):
        ctx = context or {}
        if pending is not None:
            ctx['pending'] = pending
        super().__init__(message, ctx, recoverable=False)
        self.pending = pending


# ============================================================================
# Backend errors
# ============================================================================

class BackendError(TranslatorError):
    """Base exception for translation backend errors."""
    pass


class BackendConnectionError(BackendError):
    """Raised when no backend is connected or no model is selected.

    The operation is refused before any state changes.
    """

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message, context, recoverable=False)


class BackendUnavailableError(BackendError):
    """Raised when the backend is temporarily unavailable (HTTP 503).

    This is recoverable by waiting and retrying the same request.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        ctx = context or {}
        if status_code is not None:
            ctx['status_code'] = status_code
        super().__init__(message, ctx, recoverable=True)
        self.status_code = status_code


class BackendResponseError(BackendError):
    """Raised for any other backend failure (HTTP error, broken stream, bad payload)."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        ctx = context or {}
        if status_code is not None:
            ctx['status_code'] = status_code
        super().__init__(message, ctx, recoverable=False)
        self.status_code = status_code


# ============================================================================
# Retry exhaustion
# ============================================================================

class RetryExhaustedError(TranslatorError):
    """Raised when all retry attempts have been exhausted.

    Attributes:
        original_error: The original error that triggered retries
        attempts: Number of attempts made
    """

    def __init__(
        self,
        message: str,
        original_error: Optional[Exception] = None,
        attempts: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        ctx = context or {}
        if original_error:
            ctx['original_error'] = str(original_error)
            ctx['original_error_type'] = type(original_error).__name__
        if attempts is not None:
            ctx['attempts'] = attempts
        super().__init__(message, ctx, recoverable=False)
        self.original_error = original_error
        self.attempts = attempts
