"""Logging configuration using Loguru.

Console output plus rotated text, JSON, per-stage and error-only files.
Pipeline code binds ``lead_id`` and ``stage_name`` so every line written
during a generation run can be traced back to its request.
"""

import inspect
import sys
import time
from functools import wraps
from pathlib import Path
from typing import Any, Callable, Optional

from loguru import logger


# Remove default handler
logger.remove()

_CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | <level>{message}</level>"
)
_FILE_FORMAT = "{time} | {level} | {name}:{function}:{line} | {message}"


def _stage_format(record) -> str:
    lead_id = record["extra"].get("lead_id", "-")
    stage_name = record["extra"].get("stage_name", "-")
    return f"{record['time']} | {record['level'].name} | {lead_id} | {stage_name} | {record['message']}\n"


def setup_logging(
    log_dir: str = "logs",
    level: str = "INFO",
    rotation: str = "50 MB",
    retention: str = "30 days",
    compression: str = "zip",
    console: bool = True
) -> None:
    """Configure Loguru sinks for the contract generator.

    Args:
        log_dir: Directory for log files
        level: Minimum log level
        rotation: When to rotate log files
        retention: How long to keep old logs
        compression: Compression format for rotated logs
        console: Whether to also log to stderr
    """
    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)
    logger.remove()

    if console:
        logger.add(sys.stderr, format=_CONSOLE_FORMAT, level=level, colorize=True)

    file_options = dict(rotation=rotation, retention=retention, compression=compression)

    logger.add(
        log_path / "contract_generator_{time}.log",
        format=_FILE_FORMAT,
        level=level,
        **file_options
    )
    logger.add(
        log_path / "contract_generator_json_{time}.log",
        level=level,
        serialize=True,
        **file_options
    )
    logger.add(
        log_path / "pipeline_stages_{time}.log",
        format=_stage_format,
        level="INFO",
        filter=lambda record: "stage_name" in record["extra"],
        **file_options
    )
    logger.add(
        log_path / "errors_{time}.log",
        format=_FILE_FORMAT,
        level="ERROR",
        **file_options
    )

    logger.info("Logging system initialized", log_dir=log_dir, level=level)


def get_request_logger(lead_id: str, stage_name: Optional[str] = None):
    """Get a logger bound to a lead and optionally a pipeline stage."""
    context = {"lead_id": lead_id}
    if stage_name:
        context["stage_name"] = stage_name
    return logger.bind(**context)


def log_stage_execution(stage_name: str) -> Callable:
    """Decorator logging start, completion and failure of a pipeline stage.

    The lead id is taken from the ``lead_id`` or ``lead`` keyword argument
    when present.

    Args:
        stage_name: Name of the stage being executed

    Returns:
        Decorated function with logging
    """
    def decorator(func: Callable) -> Callable:
        def started(kwargs):
            lead_id = kwargs.get("lead_id") or getattr(kwargs.get("lead"), "id", None) or "unknown"
            stage_logger = get_request_logger(lead_id, stage_name)
            stage_logger.debug(f"Starting {stage_name}", function=func.__name__)
            return stage_logger, time.perf_counter()

        def failed(stage_logger, e: Exception):
            stage_logger.error(
                f"{stage_name} failed",
                function=func.__name__,
                error=str(e),
                error_type=type(e).__name__
            )

        def finished(stage_logger, start_time):
            stage_logger.debug(
                f"{stage_name} completed",
                function=func.__name__,
                duration_seconds=round(time.perf_counter() - start_time, 3)
            )

        if inspect.iscoroutinefunction(func):
            @wraps(func)
            async def async_wrapper(*args, **kwargs) -> Any:
                stage_logger, start_time = started(kwargs)
                try:
                    result = await func(*args, **kwargs)
                except Exception as e:
                    failed(stage_logger, e)
                    raise
                finished(stage_logger, start_time)
                return result
            return async_wrapper

        @wraps(func)
        def wrapper(*args, **kwargs) -> Any:
            stage_logger, start_time = started(kwargs)
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                failed(stage_logger, e)
                raise
            finished(stage_logger, start_time)
            return result
        return wrapper
    return decorator
