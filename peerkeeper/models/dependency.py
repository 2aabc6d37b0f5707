"""
Dependency data models for peerkeeper.

This module defines the update policies, dependency kinds, declared
dependencies, and the per-dependency update decision produced by
:class:`~peerkeeper.core.checker.UpdateChecker`.
"""

from __future__ import annotations

from enum import Enum
from dataclasses import dataclass
from typing import Any, Dict, Optional


class UpdatePolicy(str, Enum):
    """Requested upgrade aggressiveness, ordered from safest to widest."""

    PATCH = "patch"
    MINOR = "minor"
    MAJOR = "major"
    LATEST = "latest"

    @property
    def rank(self) -> int:
        """Position of this policy in the patch < minor < major < latest order."""
        return _POLICY_ORDER.index(self)


_POLICY_ORDER = (
    UpdatePolicy.PATCH,
    UpdatePolicy.MINOR,
    UpdatePolicy.MAJOR,
    UpdatePolicy.LATEST,
)


def clamp_target(
    requested: UpdatePolicy,
    max_allowed: Optional[UpdatePolicy] = None,
) -> UpdatePolicy:
    """Restrict ``requested`` so it never exceeds ``max_allowed``.

    Examples:
        >>> clamp_target(UpdatePolicy.MAJOR, UpdatePolicy.MINOR)
        <UpdatePolicy.MINOR: 'minor'>
        >>> clamp_target(UpdatePolicy.PATCH, UpdatePolicy.MAJOR)
        <UpdatePolicy.PATCH: 'patch'>
    """
    if max_allowed is None:
        return requested
    return _POLICY_ORDER[min(requested.rank, max_allowed.rank)]


class DependencyKind(str, Enum):
    """Manifest section a dependency was declared in."""

    RUNTIME = "dependencies"
    DEV = "devDependencies"
    OPTIONAL = "optionalDependencies"
    PEER = "peerDependencies"


@dataclass(frozen=True)
class PackageDependency:
    """A dependency as declared by a manifest.

    Args:
        name: Package name, possibly scoped (``@org/name``).
        range: Raw range string as written (``^1.2.3``, ``workspace:*``...).
        kind: Manifest section the dependency came from.
    """

    name: str
    range: str
    kind: DependencyKind = DependencyKind.RUNTIME


@dataclass(frozen=True)
class PackageUpdate:
    """A genuine available update for one declared dependency.

    Attributes:
        package_path: Directory of the manifest declaring the dependency.
        name: Package name.
        kind: Manifest section of the dependency.
        from_range: Range as currently declared.
        to_range: Proposed range, keeping the declared prefix operator.
        to_version_resolved: Concrete version the proposal points at.
        diff_type: Semantic distance between ``from_range`` and the new version.
        autofix: Whether automation may apply the update unattended.
        reason: Optional note explaining a policy adjustment.
    """

    package_path: str
    name: str
    kind: DependencyKind
    from_range: str
    to_range: str
    to_version_resolved: str
    diff_type: UpdatePolicy
    autofix: bool = True
    reason: Optional[str] = None

    def sort_key(self) -> tuple:
        return (
            self.package_path,
            self.name,
            self.kind.value,
            self.from_range,
            self.to_range,
        )

    def to_json(self) -> Dict[str, Any]:
        """Return a JSON-serializable representation with stable key order."""
        entry: Dict[str, Any] = {
            "packagePath": self.package_path,
            "name": self.name,
            "kind": self.kind.value,
            "fromRange": self.from_range,
            "toRange": self.to_range,
            "toVersionResolved": self.to_version_resolved,
            "diffType": self.diff_type.value,
            "autofix": self.autofix,
        }
        if self.reason is not None:
            entry["reason"] = self.reason
        return entry

    def __str__(self) -> str:
        return (
            f"{self.name} {self.from_range} -> {self.to_range} "
            f"({self.diff_type.value})"
        )
