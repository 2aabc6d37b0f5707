"""
Version data models for peerkeeper.

Defines the parsed ``major.minor.patch`` triple used by the semver engine
and the cached registry answer persisted by the version cache.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, NamedTuple, Optional


class ParsedVersion(NamedTuple):
    """A ``major.minor.patch`` triple; pre-release and build data are dropped.

    Tuple ordering gives the lexicographic comparison on
    ``(major, minor, patch)``.
    """

    major: int
    minor: int
    patch: int

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}.{self.patch}"


def now_ms() -> int:
    """Current wall-clock time in milliseconds."""
    return int(time.time() * 1000)


@dataclass
class CachedVersion:
    """Registry answer persisted per ``(package_name, target)``.

    Attributes:
        package_name: Package the entry belongs to.
        target: Update policy value the entry was fetched for.
        latest_version: Latest version observed at fetch time.
        available_versions: Full version list observed at fetch time.
        fetched_at: Wall-clock write time in milliseconds.
        ttl_seconds: Time-to-live in seconds.
    """

    package_name: str
    target: str
    latest_version: str
    available_versions: List[str] = field(default_factory=list)
    fetched_at: int = 0
    ttl_seconds: int = 0

    @property
    def expires_at(self) -> int:
        return self.fetched_at + self.ttl_seconds * 1000

    def is_valid(self, at_ms: Optional[int] = None) -> bool:
        """Return True while the entry is within its TTL.

        A zero (or negative) TTL is never valid, even within the same
        millisecond it was written.

        Args:
            at_ms: Reference time in milliseconds; defaults to now.
        """
        if self.ttl_seconds <= 0:
            return False
        reference = now_ms() if at_ms is None else at_ms
        return reference <= self.expires_at

    def to_json(self) -> Dict[str, Any]:
        return {
            "packageName": self.package_name,
            "target": self.target,
            "latestVersion": self.latest_version,
            "availableVersions": list(self.available_versions),
            "fetchedAt": self.fetched_at,
            "ttlSeconds": self.ttl_seconds,
        }

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "CachedVersion":
        """Build an entry from its stored JSON form.

        Raises:
            ValueError: ``fetchedAt`` or ``ttlSeconds`` is not an integer.
        """
        latest = str(data.get("latestVersion", ""))
        available = data.get("availableVersions")
        if not isinstance(available, list):
            available = [latest]
        return cls(
            package_name=str(data.get("packageName", "")),
            target=str(data.get("target", "")),
            latest_version=latest,
            available_versions=[v for v in available if isinstance(v, str)],
            fetched_at=_int_field(data, "fetchedAt"),
            ttl_seconds=_int_field(data, "ttlSeconds"),
        )


def _int_field(data: Dict[str, Any], key: str) -> int:
    value = data.get(key, 0)
    # bool is an int subclass; reject it explicitly
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{key} must be an integer, got {value!r}")
    return value
