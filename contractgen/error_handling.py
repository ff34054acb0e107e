"""Error taxonomy and error handling decorators for the contract pipeline.

Provides the exception hierarchy used across stages plus decorators that
convert foreign exceptions into domain errors or degrade gracefully.
Both decorators accept plain functions and coroutine functions.
"""

import inspect
from functools import wraps
from typing import Any, Callable, Optional, Type

from loguru import logger


# Custom Exception Classes

class ContractGenError(Exception):
    """Base exception for all contract generation errors."""
    pass


class LeadNotFoundError(ContractGenError):
    """Raised when the requested lead does not exist."""
    pass


class ContractNotFoundError(ContractGenError):
    """Raised when a stored contract cannot be found."""
    pass


class AssemblyError(ContractGenError):
    """Raised when overrides are malformed or contract data cannot be assembled."""
    pass


class RenderError(ContractGenError):
    """Raised when the browser fails to produce a PDF."""
    pass


class StorageError(ContractGenError):
    """Raised when rendered bytes cannot be uploaded to object storage."""
    pass


class ReviewServiceError(ContractGenError):
    """Raised when the text-generation service fails or times out."""
    pass


class PersistenceError(ContractGenError):
    """Raised when a contract or review row cannot be written."""
    pass


class InvalidTransitionError(ContractGenError):
    """Raised when a contract status change is not allowed."""
    pass


class ConfigurationError(ContractGenError):
    """Raised when required configuration is missing or invalid."""
    pass


def _log_failure(level: str, message: str, error: Exception) -> None:
    logger.log(level, message, error=str(error), error_type=type(error).__name__)


def handle_errors(
    error_type: Type[ContractGenError],
    default_return: Any = None,
    reraise: bool = True
) -> Callable:
    """Decorator converting unexpected exceptions into a domain error type.

    Domain errors pass through untouched. Anything else is logged and
    either re-raised as ``error_type`` or replaced by ``default_return``.

    Args:
        error_type: Domain exception type to raise
        default_return: Value returned when not reraising
        reraise: Whether to raise ``error_type`` after logging

    Returns:
        Decorated function with error handling
    """
    def convert(func: Callable, e: Exception) -> Any:
        _log_failure("ERROR", f"Error in {func.__name__}", e)
        if reraise:
            raise error_type(f"Error in {func.__name__}: {e}") from e
        return default_return

    def decorator(func: Callable) -> Callable:
        if inspect.iscoroutinefunction(func):
            @wraps(func)
            async def async_wrapper(*args, **kwargs) -> Any:
                try:
                    return await func(*args, **kwargs)
                except ContractGenError:
                    raise
                except Exception as e:
                    return convert(func, e)
            return async_wrapper

        @wraps(func)
        def wrapper(*args, **kwargs) -> Any:
            try:
                return func(*args, **kwargs)
            except ContractGenError:
                raise
            except Exception as e:
                return convert(func, e)
        return wrapper
    return decorator


def graceful_degradation(fallback_func: Optional[Callable] = None) -> Callable:
    """Decorator for best-effort operations.

    On failure the error is logged as a warning and ``fallback_func`` is
    called with the same arguments; without a fallback ``None`` is returned.
    Task cancellation is never intercepted.

    Args:
        fallback_func: Optional fallback called with the original arguments

    Returns:
        Decorated function with graceful degradation
    """
    def decorator(func: Callable) -> Callable:
        if inspect.iscoroutinefunction(func):
            @wraps(func)
            async def async_wrapper(*args, **kwargs) -> Any:
                try:
                    return await func(*args, **kwargs)
                except Exception as e:
                    _log_failure("WARNING", f"{func.__name__} failed, degrading gracefully", e)
                    if fallback_func is None:
                        return None
                    result = fallback_func(*args, **kwargs)
                    if inspect.isawaitable(result):
                        result = await result
                    return result
            return async_wrapper

        @wraps(func)
        def wrapper(*args, **kwargs) -> Any:
            try:
                return func(*args, **kwargs)
            except Exception as e:
                _log_failure("WARNING", f"{func.__name__} failed, degrading gracefully", e)
                if fallback_func is None:
                    return None
                return fallback_func(*args, **kwargs)
        return wrapper
    return decorator
