"""
Centralized logging and error classification for streamtranslate.

This module provides the structlog setup plus decorators and helpers that
standardize how translation and recognition operations are logged.

Features:
- Structured logging with contextual information
- Error classification into the package's error categories
- Operation timing for decorated coroutines and context blocks
"""

from __future__ import annotations

import functools
import logging
import sys
import time
from collections.abc import Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any, ParamSpec, TypeVar

import httpx
import structlog
from pydantic import ValidationError

from streamtranslate.exceptions import (
    ConfigurationError,
    TransportError,
    UpstreamError,
)

P = ParamSpec("P")
T = TypeVar("T")
AsyncCallable = Callable[P, Awaitable[T]]


def configure_logging(level: str = "INFO", json_output: bool = False) -> None:
    """Configure stdlib logging and structlog processors."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(message)s",
        stream=sys.stderr,
        force=True,
    )
    renderer = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())
    )
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


logger = structlog.get_logger(__name__)


class ErrorHandler:
    """Maps exceptions to stable category names for structured logs."""

    @staticmethod
    def classify_error(error: Exception) -> str:
        """
        Classify an error into a logging category.

        Args:
            error: The exception to classify

        Returns:
            One of the category names used in ``error_category`` log fields
        """
        if isinstance(error, ConfigurationError):
            return "configuration_error"
        if isinstance(error, UpstreamError | httpx.HTTPStatusError):
            return "upstream_error"
        if isinstance(error, TimeoutError | httpx.TimeoutException):
            return "timeout_error"
        if isinstance(error, TransportError | httpx.TransportError | ConnectionError):
            return "transport_error"
        if isinstance(error, ValidationError):
            return "validation_error"
        if isinstance(error, ValueError | TypeError):
            return "parameter_error"
        return "unknown_error"

    @staticmethod
    def describe(error: Exception) -> dict[str, Any]:
        """Log fields describing ``error``."""
        fields: dict[str, Any] = {
            "error_type": type(error).__name__,
            "error_category": ErrorHandler.classify_error(error),
            "error_message": str(error),
        }
        status_code = getattr(error, "status_code", None)
        if status_code is not None:
            fields["status_code"] = status_code
        return fields


def log_operation(
    operation: str,
    *,
    log_timing: bool = True,
    context: dict[str, Any] | None = None,
) -> Callable[[AsyncCallable[P, T]], AsyncCallable[P, T]]:
    """
    Decorator for logging async operations with structured context.

    Args:
        operation: Description of the operation being performed
        log_timing: Whether to log execution timing
        context: Additional context to include in logs

    Returns:
        Decorated function with logging
    """
    def decorator(func: AsyncCallable[P, T]) -> AsyncCallable[P, T]:
        @functools.wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            operation_logger = logger.bind(
                operation=operation,
                function=func.__name__,
                **(context or {}),
            )
            operation_logger.debug("Operation started")
            start_time = time.perf_counter() if log_timing else None

            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                error_log_data = ErrorHandler.describe(e)
                if start_time is not None:
                    error_log_data["duration_ms"] = _elapsed_ms(start_time)
                operation_logger.error("Operation failed", **error_log_data)
                raise

            end_log_data: dict[str, Any] = {}
            if start_time is not None:
                end_log_data["duration_ms"] = _elapsed_ms(start_time)
            operation_logger.info("Operation completed", **end_log_data)
            return result

        return wrapper
    return decorator


@asynccontextmanager
async def operation_context(
    operation: str,
    *,
    context: dict[str, Any] | None = None,
    log_timing: bool = True,
):
    """
    Async context manager for operation logging.

    Yields:
        Bound logger for the operation
    """
    operation_logger = logger.bind(operation=operation, **(context or {}))
    operation_logger.debug("Operation started")
    start_time = time.perf_counter() if log_timing else None

    try:
        yield operation_logger
    except Exception as e:
        error_log_data = ErrorHandler.describe(e)
        if start_time is not None:
            error_log_data["duration_ms"] = _elapsed_ms(start_time)
        operation_logger.error("Operation failed", **error_log_data)
        raise

    log_data: dict[str, Any] = {}
    if start_time is not None:
        log_data["duration_ms"] = _elapsed_ms(start_time)
    operation_logger.info("Operation completed", **log_data)


def _elapsed_ms(start_time: float) -> float:
    return round((time.perf_counter() - start_time) * 1000, 2)
