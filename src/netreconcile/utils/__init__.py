"""Utility modules for connection retries and logging."""
from .connection import call_with_retry, RETRYABLE_EXCEPTIONS
from .logging_config import (
    setup_logging,
    netconf_logger,
    timed_section,
    perf_logger,
)

__all__ = [
    "call_with_retry",
    "RETRYABLE_EXCEPTIONS",
    "setup_logging",
    "netconf_logger",
    "timed_section",
    "perf_logger",
]
