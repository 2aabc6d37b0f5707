"""
Core functionality exports for peerkeeper.

This module provides convenient access to the core subsystems of peerkeeper.
Importing from here keeps user-facing imports clean and stable:

    from peerkeeper.core import PeerGraphBuilder, resolve_peer_conflicts
"""

from __future__ import annotations

from peerkeeper.core.version_cache import VersionCache
from peerkeeper.core.checker import CheckResult, PolicyRule, UpdateChecker, WarmCacheResult
from peerkeeper.core.graph_builder import PeerGraphBuilder
from peerkeeper.core.conflict_resolver import classify_conflict, resolve_peer_conflicts
from peerkeeper.core.registry import (
    BatchMetadataResult,
    PackageMetadata,
    RegistryClient,
    RegistryConfig,
    load_registry_config,
)

__all__ = [
    "VersionCache",
    "RegistryClient",
    "RegistryConfig",
    "PackageMetadata",
    "BatchMetadataResult",
    "load_registry_config",
    "UpdateChecker",
    "CheckResult",
    "WarmCacheResult",
    "PolicyRule",
    "PeerGraphBuilder",
    "resolve_peer_conflicts",
    "classify_conflict",
]
