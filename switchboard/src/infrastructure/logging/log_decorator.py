"""
Command logging decorator.

Logs start, duration and failure of user-facing commands. Failures are
logged with traceback and re-raised unchanged for the caller to display.
"""

import functools
import inspect
import logging
import time

from ...domain.errors import NotFoundError, SwitchboardError

logger = logging.getLogger("switchboard.commands")


def _log_failure(name: str, started: float, error: BaseException) -> None:
    duration_ms = round((time.perf_counter() - started) * 1000, 2)
    extra = {"command": name, "duration_ms": duration_ms}
    if isinstance(error, NotFoundError):
        logger.warning(f"Command {name} failed: {error}", extra=extra)
    elif isinstance(error, SwitchboardError):
        logger.error(f"Command {name} failed: {error}", extra=extra)
    else:
        logger.error(f"Command {name} raised unexpected error: {error}", exc_info=True, extra=extra)


def _log_success(name: str, started: float) -> None:
    duration_ms = round((time.perf_counter() - started) * 1000, 2)
    logger.debug(f"Command {name} completed in {duration_ms}ms",
                 extra={"command": name, "duration_ms": duration_ms})


def log_command(func):
    """Wrap a sync or async command with start/finish/failure logging."""
    name = func.__name__

    if inspect.iscoroutinefunction(func):
        @functools.wraps(func)
        async def async_wrapper(*args, **kwargs):
            logger.debug(f"Command {name} started")
            started = time.perf_counter()
            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                _log_failure(name, started, e)
                raise
            _log_success(name, started)
            return result
        return async_wrapper

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        logger.debug(f"Command {name} started")
        started = time.perf_counter()
        try:
            result = func(*args, **kwargs)
        except Exception as e:
            _log_failure(name, started, e)
            raise
        _log_success(name, started)
        return result
    return wrapper
