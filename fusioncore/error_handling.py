"""Standardized error handling patterns for the fusion pipeline."""

import functools
from typing import Any, Callable, Dict, Optional

import structlog

logger = structlog.get_logger(__name__)


class FusionError(Exception):
    """Base exception for all fusion-specific errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.context = context or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for logging."""
        return {
            "error_type": self.__class__.__name__,
            "error_message": self.message,
            "error_code": self.error_code,
            "context": self.context,
        }


class ExtractionError(FusionError):
    """Structured data could not be recovered from model output."""

    def __init__(
        self,
        message: str,
        stage: str,
        excerpt: str = "",
        extraction_type: str = "unknown",
        context: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, error_code="extraction_failed", context=context)
        self.stage = stage
        self.excerpt = excerpt
        self.extraction_type = extraction_type

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update(
            stage=self.stage,
            excerpt=self.excerpt,
            extraction_type=self.extraction_type,
        )
        return data


class ConfigurationError(FusionError):
    """Error from configuration validation and setup issues."""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, error_code="invalid_configuration", context=context)
        self.config_key = config_key


def handle_errors(
    event: str,
    default_return: Any = None,
    context: Optional[Dict[str, Any]] = None
):
    """Decorator that turns any exception into a logged default result.

    Args:
        event: Event name logged when the wrapped function fails
        default_return: Value returned instead of raising
        context: Additional context to include with the log entry

    Returns:
        Decorated function
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except Exception as e:
                logger.error(
                    event,
                    error=str(e),
                    error_type=type(e).__name__,
                    function=func.__name__,
                    exc_info=True,
                    **(context or {})
                )
                return default_return() if callable(default_return) else default_return

        return wrapper
    return decorator
