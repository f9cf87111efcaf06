from .logger import setup_logging
from .error_handlers import (
    ErrorSeverity,
    VocalFlowError,
    FlowValidationError,
    DeviceError,
    InvalidStateError,
    AnalysisError,
    SubmissionError,
    timeout_handler,
    safe_async_call
)

__all__ = [
    # logger.py
    'setup_logging',

    # error_handlers.py
    'ErrorSeverity',
    'VocalFlowError',
    'FlowValidationError',
    'DeviceError',
    'InvalidStateError',
    'AnalysisError',
    'SubmissionError',
    'timeout_handler',
    'safe_async_call',
]
