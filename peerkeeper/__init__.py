"""
peerkeeper: dependency resolution and peer compatibility engine

peerkeeper helps keep npm-style projects current without breaking them:

    • Policy-driven version updates (patch / minor / major / latest)
    • Time-bounded registry cache with SQLite and JSON backends
    • Scope-aware registry client honouring ``.npmrc``
    • Peer-dependency graph construction and conflict detection

Manifest reading, workspace discovery and output rendering are left to the
caller; peerkeeper consumes declared dependencies and returns structured
results that serialize to JSON with a stable key order.
"""

from __future__ import annotations

from peerkeeper.__version__ import __version__

# ---------------------------------------------------------------------------
# Package Metadata
# ---------------------------------------------------------------------------

__author__ = "peerkeeper Contributors"
__license__ = "Apache-2.0"
__description__ = "Dependency update and peer-conflict engine for npm-style manifests."

__all__ = [
    "__version__",
]
