"""Logging setup and performance timing for pvectl.

The CLI layer calls setup_logging() once. Library modules only ever use
``logging.getLogger(__name__)``; timings of editor sessions, task waits and
other slow steps go to the separate ``pvectl.perf`` logger.

Environment Variables:
    PVECTL_LOG_LEVEL: console level, DEBUG/INFO/WARNING/ERROR (default: INFO)
    PVECTL_LOG_FILE: main log file (default: ~/.pvectl/pvectl.log)
    PVECTL_LOG_MAX_SIZE: rotate after this many MB (default: 10)
    PVECTL_LOG_BACKUPS: rotated files kept (default: 5)

Example:
    async with timed_section("migrate", resource="vm/100", target="pve2"):
        await repo.migrate(...)
"""
import asyncio
import functools
import logging
import os
import time
from contextlib import asynccontextmanager
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Callable, Optional

perf_logger = logging.getLogger("pvectl.perf")

_DATEFMT = "%Y-%m-%d %H:%M:%S"
_MAIN_FORMAT = "%(asctime)s.%(msecs)03d | %(name)-30s | %(levelname)-7s | %(message)s"
_PERF_FORMAT = "%(asctime)s.%(msecs)03d | PERF | %(message)s"


def get_log_level() -> int:
    name = os.environ.get("PVECTL_LOG_LEVEL", "INFO").upper()
    return getattr(logging, name, logging.INFO)


def get_log_file() -> Path:
    fallback = Path.home() / ".pvectl" / "pvectl.log"
    return Path(os.environ.get("PVECTL_LOG_FILE", str(fallback)))


def _rotating_handler(path: Path, fmt: str) -> RotatingFileHandler:
    max_mb = int(os.environ.get("PVECTL_LOG_MAX_SIZE", "10"))
    handler = RotatingFileHandler(
        path,
        maxBytes=max_mb * 1024 * 1024,
        backupCount=int(os.environ.get("PVECTL_LOG_BACKUPS", "5")),
        encoding="utf-8",
    )
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(fmt, datefmt=_DATEFMT))
    return handler


def setup_logging() -> None:
    """Attach console, rotating file and perf handlers.

    The console honours PVECTL_LOG_LEVEL; the main file always records DEBUG.
    Perf lines are written next to the main file in ``pvectl-perf.log`` and do
    not propagate to the root logger.
    """
    level = get_log_level()
    log_file = get_log_file()
    log_file.parent.mkdir(parents=True, exist_ok=True)

    console = logging.StreamHandler()
    console.setLevel(level)
    console.setFormatter(logging.Formatter(_MAIN_FORMAT, datefmt=_DATEFMT))
    main_file = _rotating_handler(log_file, _MAIN_FORMAT)

    for name in ("pvectl", "pvectl_core"):
        target = logging.getLogger(name)
        target.setLevel(logging.DEBUG)
        target.addHandler(console)
        target.addHandler(main_file)

    perf_logger.setLevel(logging.DEBUG)
    perf_logger.addHandler(_rotating_handler(log_file.parent / "pvectl-perf.log", _PERF_FORMAT))
    perf_logger.propagate = False

    logging.getLogger("pvectl").info(
        f"Logging initialized: level={logging.getLevelName(level)}, file={log_file}"
    )


def _log_elapsed(operation: str, resource: Optional[str], started: float,
                 error: Optional[BaseException] = None, extra: Optional[dict] = None) -> None:
    elapsed_ms = (time.perf_counter() - started) * 1000
    outcome = "OK" if error is None else f"FAIL: {error}"
    line = f"{operation:20s} | {resource or 'N/A':15s} | {elapsed_ms:8.2f}ms | {outcome}"
    if extra:
        line += " | " + " | ".join(f"{k}={v}" for k, v in extra.items())
    if error is None:
        perf_logger.info(line)
    else:
        perf_logger.warning(line)


def timed(operation: str, resource: Optional[str] = None):
    """Decorator recording how long a function or coroutine took.

    Example:
        @timed("editor_session")
        def edit(self, text):
            ...
    """
    def decorator(func: Callable) -> Callable:
        if asyncio.iscoroutinefunction(func):
            @functools.wraps(func)
            async def run_async(*args, **kwargs):
                started = time.perf_counter()
                try:
                    result = await func(*args, **kwargs)
                except Exception as e:
                    _log_elapsed(operation, resource, started, e)
                    raise
                _log_elapsed(operation, resource, started)
                return result
            return run_async

        @functools.wraps(func)
        def run(*args, **kwargs):
            started = time.perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                _log_elapsed(operation, resource, started, e)
                raise
            _log_elapsed(operation, resource, started)
            return result
        return run

    return decorator


@asynccontextmanager
async def timed_section(operation: str, resource: Optional[str] = None, **extra):
    """Time the body of an ``async with`` block; keyword extras are appended."""
    started = time.perf_counter()
    try:
        yield
    except Exception as e:
        _log_elapsed(operation, resource, started, e, extra)
        raise
    _log_elapsed(operation, resource, started, extra=extra)
