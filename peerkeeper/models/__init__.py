"""
Unified data model exports for peerkeeper.

This module re-exports all core data models to provide a stable and
convenient public API. Users can import models directly from
``peerkeeper.models`` instead of individual submodules.

Example:
    >>> from peerkeeper.models import PackageDependency, PeerConflict
"""

from __future__ import annotations

from peerkeeper.models.graph import PeerGraph, PeerNode
from peerkeeper.models.version import CachedVersion, ParsedVersion
from peerkeeper.models.conflict import ConflictSeverity, PeerConflict
from peerkeeper.models.dependency import (
    DependencyKind,
    PackageDependency,
    PackageUpdate,
    UpdatePolicy,
    clamp_target,
)

__all__ = [
    "CachedVersion",
    "ConflictSeverity",
    "DependencyKind",
    "PackageDependency",
    "PackageUpdate",
    "ParsedVersion",
    "PeerConflict",
    "PeerGraph",
    "PeerNode",
    "UpdatePolicy",
    "clamp_target",
]
