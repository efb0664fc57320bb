"""Logging configuration for netreconcile.

Provides:
- File-based application logging with rotation
- Console output for real-time debugging
- Performance timing helpers for connect/commit round-trips
- The NETCONF operational log: every command, raw reply and warning/error
  of a session, one timestamped line each, appended to a caller-chosen file

Environment Variables:
    NETRECONCILE_LOG_LEVEL: DEBUG, INFO, WARNING, ERROR (default: INFO)
    NETRECONCILE_LOG_FILE: Path to log file (default: ~/.netreconcile/netreconcile.log)
    NETRECONCILE_LOG_MAX_SIZE: Max log file size in MB (default: 10)
    NETRECONCILE_LOG_BACKUPS: Number of backup files to keep (default: 5)

Usage:
    from netreconcile.utils.logging_config import setup_logging, timed_section

    setup_logging()  # Call once at startup

    async with timed_section("commit", device_id="edge-fw"):
        ...
"""
import logging
import os
import time
from contextlib import asynccontextmanager
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

# Performance logger - separate from main logger for easy filtering
perf_logger = logging.getLogger("netreconcile.perf")

NETCONF_LOG_FORMAT = "%(asctime)s %(message)s"


def get_log_level() -> int:
    """Get log level from environment."""
    level_str = os.environ.get("NETRECONCILE_LOG_LEVEL", "INFO").upper()
    return getattr(logging, level_str, logging.INFO)


def get_log_file() -> Path:
    """Get log file path from environment."""
    default_path = Path.home() / ".netreconcile" / "netreconcile.log"
    path_str = os.environ.get("NETRECONCILE_LOG_FILE", str(default_path))
    return Path(path_str)


def setup_logging() -> None:
    """Configure logging for the application.

    Sets up:
    - Console handler (INFO+ by default, respects NETRECONCILE_LOG_LEVEL)
    - File handler with rotation (DEBUG level - captures everything)
    - Performance logger for timing metrics
    """
    log_level = get_log_level()
    log_file = get_log_file()
    max_size_mb = int(os.environ.get("NETRECONCILE_LOG_MAX_SIZE", "10"))
    backup_count = int(os.environ.get("NETRECONCILE_LOG_BACKUPS", "5"))

    log_file.parent.mkdir(parents=True, exist_ok=True)

    main_format = logging.Formatter(
        "%(asctime)s.%(msecs)03d | %(name)-32s | %(levelname)-7s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )
    perf_format = logging.Formatter(
        "%(asctime)s.%(msecs)03d | PERF | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )

    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_handler.setFormatter(main_format)

    file_handler = RotatingFileHandler(
        log_file,
        maxBytes=max_size_mb * 1024 * 1024,
        backupCount=backup_count,
        encoding="utf-8"
    )
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(main_format)

    perf_log_file = log_file.parent / "netreconcile-perf.log"
    perf_handler = RotatingFileHandler(
        perf_log_file,
        maxBytes=max_size_mb * 1024 * 1024,
        backupCount=backup_count,
        encoding="utf-8"
    )
    perf_handler.setLevel(logging.DEBUG)
    perf_handler.setFormatter(perf_format)

    root_logger = logging.getLogger("netreconcile")
    root_logger.setLevel(logging.DEBUG)  # Capture all, handlers filter
    root_logger.addHandler(console_handler)
    root_logger.addHandler(file_handler)

    # perf records also reach the main handlers through propagation
    perf_logger.setLevel(logging.DEBUG)
    perf_logger.addHandler(perf_handler)

    root_logger.info(f"Logging initialized: level={logging.getLevelName(log_level)}, file={log_file}")
    perf_logger.info(f"Performance logging to: {perf_log_file}")


def netconf_logger(path: Optional[str], name: str = "default") -> logging.Logger:
    """Return the operational log for one device.

    Lines are appended to ``path`` as ``<timestamp> <message>``. The logger
    does not propagate, so the operational log never leaks into the
    application log. An empty path gives a logger with only a NullHandler:
    logging is disabled, which is not an error.
    """
    log = logging.getLogger(f"netreconcile.netconf.{name}")
    log.propagate = False
    log.setLevel(logging.DEBUG)
    for handler in list(log.handlers):
        log.removeHandler(handler)
        handler.close()

    if not path:
        log.addHandler(logging.NullHandler())
        return log

    log_path = Path(path).expanduser()
    log_path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(log_path, mode="a", encoding="utf-8")
    handler.setFormatter(logging.Formatter(NETCONF_LOG_FORMAT))
    log.addHandler(handler)
    return log


@asynccontextmanager
async def timed_section(operation: str, device_id: Optional[str] = None, **extra):
    """Async context manager for timing code sections.

    Args:
        operation: Name of the operation
        device_id: Device identifier
        **extra: Additional context to log

    Usage:
        async with timed_section("commit", device_id="edge-fw", entity="web"):
            await session.commit(...)
    """
    start = time.perf_counter()
    extra_str = " | ".join(f"{k}={v}" for k, v in extra.items()) if extra else ""

    try:
        yield
        elapsed = (time.perf_counter() - start) * 1000
        msg = f"{operation:20s} | {device_id or 'N/A':15s} | {elapsed:8.2f}ms | OK"
        if extra_str:
            msg += f" | {extra_str}"
        perf_logger.info(msg)
    except Exception as e:
        elapsed = (time.perf_counter() - start) * 1000
        msg = f"{operation:20s} | {device_id or 'N/A':15s} | {elapsed:8.2f}ms | FAIL: {e}"
        if extra_str:
            msg += f" | {extra_str}"
        perf_logger.warning(msg)
        raise
