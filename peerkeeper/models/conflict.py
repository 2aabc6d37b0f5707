"""
Peer conflict data models for peerkeeper.

This module defines the severity-classified conflict emitted by the
conflict resolver. The remediation suggestion is always derived from the
other fields so two conflicts that compare equal render identically.
"""

from __future__ import annotations

from enum import Enum
from dataclasses import dataclass
from typing import Dict, Union


class ConflictSeverity(str, Enum):
    """How badly a peer requirement is violated."""

    ERROR = "error"
    WARNING = "warning"

    @property
    def rank(self) -> int:
        return 0 if self is ConflictSeverity.ERROR else 1


@dataclass(frozen=True)
class PeerConflict:
    """A peer requirement that the resolved graph does not satisfy.

    Args:
        requester: Package declaring the peer requirement.
        peer: Package the requirement is about.
        required_range: Range the peer must satisfy.
        resolved_version: Version the peer resolves to, or ``(not installed)``.
        severity: ``error`` or ``warning``.
        is_installed: False when the peer is absent from the graph.
    """

    requester: str
    peer: str
    required_range: str
    resolved_version: str
    severity: ConflictSeverity
    is_installed: bool = True

    @property
    def suggestion(self) -> str:
        """Human-readable remediation, regenerated from the other fields."""
        if not self.is_installed:
            return (
                f"Install {self.peer}@{self.required_range} "
                f"(required by {self.requester} but not found in the dependency tree)"
            )

        clean = self.required_range
        if clean[:1] in ("^", "~"):
            clean = clean[1:]
        return (
            f"Upgrade {self.peer} from {self.resolved_version} to {clean} "
            f'(required by {self.requester}: "{self.peer}": "{self.required_range}")'
        )

    def sort_key(self) -> tuple:
        return (self.severity.rank, self.requester)

    def to_json(self) -> Dict[str, Union[str, bool]]:
        """Return a JSON-serializable representation with stable key order."""
        return {
            "requester": self.requester,
            "peer": self.peer,
            "requiredRange": self.required_range,
            "resolvedVersion": self.resolved_version,
            "severity": self.severity.value,
            "isInstalled": self.is_installed,
            "suggestion": self.suggestion,
        }

    def __str__(self) -> str:
        return (
            f"[{self.severity.value}] {self.requester} requires "
            f"{self.peer}@{self.required_range} (resolved {self.resolved_version})"
        )
