"""
Exception types raised by peerkeeper.

Everything derives from :class:`PeerkeeperError`, whose ``details`` mapping
holds structured context for log output alongside the human message.

Expected outcomes are not exceptions here. A 404 from the registry is an
empty :class:`~peerkeeper.core.registry.PackageMetadata`, an unparsable
version is ``None``, and a missing SQLite backend only marks the cache as
``degraded``. Raised errors are the ones a caller must handle.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional

#: Longest response body echoed into ``details``.
_MAX_BODY_CHARS = 200


class PeerkeeperError(Exception):
    """Root of the peerkeeper exception hierarchy.

    Args:
        message: Human-readable description.
        details: Structured context; ``None`` values are dropped.
    """

    __slots__ = ("message", "details")

    def __init__(
        self,
        message: str,
        details: Optional[Mapping[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details: Dict[str, Any] = {
            key: value for key, value in (details or {}).items() if value is not None
        }

    def __str__(self) -> str:
        if not self.details:
            return self.message
        context = ", ".join(f"{key}={value}" for key, value in self.details.items())
        return f"{self.message} ({context})"

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r}, details={self.details!r})"


def _clip(body: Optional[str]) -> Optional[str]:
    if body is None or len(body) <= _MAX_BODY_CHARS:
        return body
    return body[:_MAX_BODY_CHARS] + "..."


def _describe(error: Optional[BaseException]) -> Optional[str]:
    return None if error is None else f"{type(error).__name__}: {error}"


# ---------------------------------------------------------------------------
# Network
# ---------------------------------------------------------------------------


class NetworkError(PeerkeeperError):
    """An HTTP exchange failed or produced an unusable response.

    ``status_code`` is ``None`` for timeouts and transport failures.
    """

    __slots__ = ("url", "status_code", "response_body")

    def __init__(
        self,
        message: str,
        *,
        url: Optional[str] = None,
        status_code: Optional[int] = None,
        response_body: Optional[str] = None,
    ) -> None:
        super().__init__(
            message,
            {"url": url, "status_code": status_code, "response": _clip(response_body)},
        )
        self.url = url
        self.status_code = status_code
        self.response_body = response_body


class RegistryError(NetworkError):
    """The registry could not answer for ``package_name``.

    Raised for unexpected statuses straight away and for retryable
    failures once every attempt has been used.
    """

    __slots__ = ("package_name",)

    def __init__(
        self,
        message: str,
        *,
        package_name: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        self.package_name = package_name
        if package_name is not None:
            self.details["package"] = package_name


class RegistryAuthError(RegistryError):
    """The registry refused the configured credentials (401/403)."""

    __slots__ = ()


# ---------------------------------------------------------------------------
# Local storage
# ---------------------------------------------------------------------------


class FileOperationError(PeerkeeperError):
    """Reading or writing a local file failed."""

    __slots__ = ("file_path", "operation", "original_error")

    def __init__(
        self,
        message: str,
        *,
        file_path: Optional[str] = None,
        operation: Optional[str] = None,
        original_error: Optional[BaseException] = None,
    ) -> None:
        super().__init__(
            message,
            {"path": file_path, "operation": operation, "cause": _describe(original_error)},
        )
        self.file_path = file_path
        self.operation = operation
        self.original_error = original_error


class CacheError(PeerkeeperError):
    """No cache backend could persist an entry.

    This is the only fatal cache condition; read problems degrade instead.
    """

    __slots__ = ("path", "operation", "original_error")

    def __init__(
        self,
        message: str,
        *,
        path: Optional[str] = None,
        operation: Optional[str] = None,
        original_error: Optional[BaseException] = None,
    ) -> None:
        super().__init__(
            message,
            {"path": path, "operation": operation, "cause": _describe(original_error)},
        )
        self.path = path
        self.operation = operation
        self.original_error = original_error


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


class ConfigError(PeerkeeperError):
    """A settings file is unreadable or holds an invalid value."""

    __slots__ = ("config_path", "option")

    def __init__(
        self,
        message: str,
        *,
        config_path: Optional[str] = None,
        option: Optional[str] = None,
    ) -> None:
        super().__init__(message, {"path": config_path, "option": option})
        self.config_path = config_path
        self.option = option
