"""
Peer graph data models for peerkeeper.

The graph is an arena-style node table keyed by package name. Nodes only
point forward to the *names* of their peers; there are no back-references
from a peer to the packages that require it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, Iterable, Iterator, Mapping, Optional, Tuple


@dataclass(frozen=True)
class PeerNode:
    """A package participating in peer resolution.

    Attributes:
        name: Package name.
        resolved_version: Version the package resolves to in this run.
        peer_requirements: Peer package name to the range it must satisfy.
    """

    name: str
    resolved_version: str
    peer_requirements: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(
            self,
            "peer_requirements",
            MappingProxyType(dict(self.peer_requirements)),
        )

    @property
    def has_peers(self) -> bool:
        return bool(self.peer_requirements)

    def to_json(self) -> Dict[str, object]:
        return {
            "name": self.name,
            "resolvedVersion": self.resolved_version,
            "peerRequirements": dict(sorted(self.peer_requirements.items())),
        }


class PeerGraph:
    """Read-only view over the peer node table.

    Args:
        nodes: Node table keyed by package name.
        roots: Direct dependency names in discovery order.
    """

    __slots__ = ("_nodes", "_roots")

    def __init__(self, nodes: Mapping[str, PeerNode], roots: Iterable[str]) -> None:
        self._nodes: Mapping[str, PeerNode] = MappingProxyType(dict(nodes))
        # dict.fromkeys dedupes while keeping first-seen order
        self._roots: Tuple[str, ...] = tuple(dict.fromkeys(roots))

    @property
    def nodes(self) -> Mapping[str, PeerNode]:
        return self._nodes

    @property
    def roots(self) -> Tuple[str, ...]:
        return self._roots

    def get(self, name: str) -> Optional[PeerNode]:
        return self._nodes.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)

    def __iter__(self) -> Iterator[PeerNode]:
        return iter(self._nodes.values())

    def to_json(self) -> Dict[str, object]:
        """Return a JSON-serializable representation with sorted node keys."""
        return {
            "roots": list(self._roots),
            "nodes": {name: self._nodes[name].to_json() for name in sorted(self._nodes)},
        }

    def __repr__(self) -> str:
        return f"PeerGraph(nodes={len(self._nodes)}, roots={len(self._roots)})"
