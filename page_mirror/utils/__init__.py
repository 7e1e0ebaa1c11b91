"""
Utility modules for the page mirror.

Contains logging, URL and path handling utilities, and constants.
"""

from .log import setup_logger, get_logger
from .paths import resolve_url, classify_reference, ReferenceKind, ensure_dir
from .constants import (
    DEFAULT_USER_AGENT,
    DEFAULT_TIMEOUT,
    DEFAULT_PAGE_TIMEOUT,
    DEFAULT_JOB_TIMEOUT,
    DEFAULT_CONCURRENCY,
    DEFAULT_SETTLE_DELAY,
)

__all__ = [
    "setup_logger",
    "get_logger",
    "resolve_url",
    "classify_reference",
    "ReferenceKind",
    "ensure_dir",
    "DEFAULT_USER_AGENT",
    "DEFAULT_TIMEOUT",
    "DEFAULT_PAGE_TIMEOUT",
    "DEFAULT_JOB_TIMEOUT",
    "DEFAULT_CONCURRENCY",
    "DEFAULT_SETTLE_DELAY",
]
