"""
Utility helpers for peerkeeper.

This package provides reusable utilities used across peerkeeper, including:

- Logging configuration and retrieval
- Filesystem safety helpers
- Async HTTP client utilities
- Semantic version helpers
- A bounded concurrency pool

Only symbols listed in ``__all__`` are considered part of the public API.
"""

from __future__ import annotations

# ---------------------------------------------------------------------------
# Filesystem utilities
# ---------------------------------------------------------------------------

from peerkeeper.utils.filesystem import atomic_write_text, read_text_if_exists

# ---------------------------------------------------------------------------
# Logging utilities
# ---------------------------------------------------------------------------

from peerkeeper.utils.logger import (
    disable_logging,
    get_logger,
    is_logging_configured,
    setup_logging,
)

# ---------------------------------------------------------------------------
# HTTP utilities
# ---------------------------------------------------------------------------

from peerkeeper.utils.http import HTTPClient

# ---------------------------------------------------------------------------
# Concurrency utilities
# ---------------------------------------------------------------------------

from peerkeeper.utils.pool import Failure, Success, async_pool

# ---------------------------------------------------------------------------
# Version utilities
# ---------------------------------------------------------------------------

from peerkeeper.utils.semver import (
    apply_range_style,
    classify_diff,
    parse_version,
    pick_target_version,
    satisfies,
)

# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

__all__ = [
    # Logging
    "get_logger",
    "setup_logging",
    "disable_logging",
    "is_logging_configured",
    # Filesystem
    "read_text_if_exists",
    "atomic_write_text",
    # HTTP
    "HTTPClient",
    # Concurrency
    "async_pool",
    "Success",
    "Failure",
    # Version utilities
    "parse_version",
    "classify_diff",
    "pick_target_version",
    "apply_range_style",
    "satisfies",
]
