"""
Centralized constants for peerkeeper.

This module defines immutable configuration values used across peerkeeper,
including registry endpoints, retry policy, cache layout, and logging
formats. All values are intended to be treated as read-only.
"""

from typing import Final, Tuple

# ---------------------------------------------------------------------------
# Project metadata
# ---------------------------------------------------------------------------

#: HTTP User-Agent template used for outbound requests.
USER_AGENT_TEMPLATE: Final[str] = (
    "peerkeeper/{version} (https://github.com/peerkeeper/peerkeeper)"
)

# ---------------------------------------------------------------------------
# Registry endpoints
# ---------------------------------------------------------------------------

#: Registry used when no ``registry=`` entry is configured.
DEFAULT_REGISTRY: Final[str] = "https://registry.npmjs.org/"

#: Name of the line-oriented registry configuration file.
REGISTRY_CONFIG_FILENAME: Final[str] = ".npmrc"

# ---------------------------------------------------------------------------
# HTTP configuration
# ---------------------------------------------------------------------------

#: Default per-attempt registry timeout in milliseconds.
DEFAULT_TIMEOUT_MS: Final[int] = 8000

#: Total number of attempts for a retryable registry request.
DEFAULT_MAX_ATTEMPTS: Final[int] = 3

#: Linear backoff step between attempts, in milliseconds.
RETRY_BACKOFF_MS: Final[int] = 120

#: Status codes that are retried in addition to any 5xx.
RETRYABLE_STATUS_CODES: Final[Tuple[int, ...]] = (429,)

#: Status codes reported as credential failures.
AUTH_STATUS_CODES: Final[Tuple[int, ...]] = (401, 403)

#: Default number of registry requests in flight at once.
DEFAULT_CONCURRENCY: Final[int] = 12

# ---------------------------------------------------------------------------
# Version cache
# ---------------------------------------------------------------------------

#: Cache root, relative to the user's home directory.
CACHE_ROOT_PARTS: Final[Tuple[str, ...]] = (".cache", "peerkeeper")

#: Embedded database file name under the cache root.
CACHE_DB_FILENAME: Final[str] = "cache.db"

#: JSON fallback document name under the cache root.
CACHE_JSON_FILENAME: Final[str] = "cache.json"

#: Default time-to-live for cached registry answers.
DEFAULT_CACHE_TTL_SECONDS: Final[int] = 3600

#: Environment variable that overrides the cache root.
ENV_CACHE_DIR: Final[str] = "PEERKEEPER_CACHE_DIR"

#: Environment variable that forces a cache backend (``file``).
ENV_CACHE_BACKEND: Final[str] = "PEERKEEPER_CACHE_BACKEND"

# ---------------------------------------------------------------------------
# Peer conflicts
# ---------------------------------------------------------------------------

#: Resolved version reported for a peer that is absent from the graph.
NOT_INSTALLED: Final[str] = "(not installed)"

#: Version assumed when nothing is known about a package.
UNKNOWN_VERSION: Final[str] = "0.0.0"

# ---------------------------------------------------------------------------
# Settings file
# ---------------------------------------------------------------------------

#: Environment variable naming an explicit settings file.
ENV_CONFIG: Final[str] = "PEERKEEPER_CONFIG"

#: Default engine settings.
DEFAULT_OFFLINE: Final[bool] = False

# ---------------------------------------------------------------------------
# Logging configuration
# ---------------------------------------------------------------------------

#: Timestamp format for verbose logging.
LOG_DATE_FORMAT: Final[str] = "%Y-%m-%d %H:%M:%S"

#: Default log format (non-verbose).
LOG_DEFAULT_FORMAT: Final[str] = "%(levelname)s: %(message)s"

#: Verbose log format including timestamp and logger name.
LOG_VERBOSE_FORMAT: Final[str] = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
