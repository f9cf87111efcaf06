import asyncio
from enum import Enum
from functools import wraps
from typing import Any, Callable, Coroutine, Optional

from loguru import logger

# --- Error and severity classes ---

class ErrorSeverity(str, Enum):
    """How bad an error is for the running session."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    FATAL = "fatal"

class VocalFlowError(Exception):
    """Base class for every error raised by the interview tool."""
    def __init__(self, message, severity=ErrorSeverity.MEDIUM, recoverable=False, recovery_suggestion=""):
        super().__init__(message)
        self.severity = severity
        self.recoverable = recoverable
        self.recovery_suggestion = recovery_suggestion

    def __str__(self):
        return f"[{self.severity.value.upper()}] {super().__str__()}"

class FlowValidationError(VocalFlowError):
    """A flow (or a question being added to it) breaks the save rules."""
    def __init__(self, message, recovery_suggestion=""):
        super().__init__(message, severity=ErrorSeverity.LOW, recoverable=True,
                         recovery_suggestion=recovery_suggestion)

class DeviceError(VocalFlowError):
    """Camera or microphone could not be opened."""
    def __init__(self, message, recovery_suggestion="Check camera/microphone permissions and connections."):
        super().__init__(message, severity=ErrorSeverity.HIGH, recoverable=True,
                         recovery_suggestion=recovery_suggestion)

class InvalidStateError(VocalFlowError):
    """An operation was called in a state that does not allow it."""
    def __init__(self, message):
        super().__init__(message, severity=ErrorSeverity.MEDIUM, recoverable=True)

class AnalysisError(VocalFlowError):
    """The remote analysis call failed. Never leaves the analyzer client."""

class SubmissionError(VocalFlowError):
    """The webhook did not accept the results."""
    def __init__(self, message, status: Optional[int] = None):
        super().__init__(message, severity=ErrorSeverity.LOW, recoverable=True)
        self.status = status

# --- Decorators ---

def timeout_handler(seconds: Optional[float], message: str, error_cls=VocalFlowError):
    """Force a coroutine to finish within `seconds` (None disables the limit)."""
    def decorator(func: Callable[..., Coroutine]) -> Callable[..., Coroutine]:
        @wraps(func)
        async def wrapper(*args, **kwargs):
            if not seconds:
                return await func(*args, **kwargs)
            try:
                return await asyncio.wait_for(func(*args, **kwargs), timeout=seconds)
            except asyncio.TimeoutError:
                raise error_cls(f"{message} ({seconds}s timeout)")
        return wrapper
    return decorator

def safe_async_call(fallback_value: Any = None, fallback_factory: Optional[Callable[[], Any]] = None):
    """
    Turn any exception of the wrapped coroutine into a fallback value.

    `fallback_factory` wins over `fallback_value` and is called on every
    failure, so mutable fallbacks are never shared between callers.
    """
    def decorator(func: Callable[..., Coroutine]) -> Callable[..., Coroutine]:
        @wraps(func)
        async def wrapper(*args, **kwargs):
            try:
                return await func(*args, **kwargs)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Safe call failed ({func.__name__}): {e}")
                return fallback_factory() if fallback_factory else fallback_value
        return wrapper
    return decorator
