"""Peer conflict detection for peerkeeper.

Walks a :class:`~peerkeeper.models.graph.PeerGraph` breadth-first from its
roots and reports every peer requirement the resolved versions do not
satisfy.

Severity rules:

* ``error``: the peer is not in the graph at all;
* ``error``: the resolved version or the range's base version cannot be
  parsed;
* ``error``: the resolved major differs from the range's base major, even
  when the range itself has no lower bound;
* ``warning``: same major, range still not satisfied.

The returned list is ordered errors first, then by requester name, with
ties kept in discovery order.
"""

from __future__ import annotations

from collections import deque
from typing import Deque, List, Set

from peerkeeper.constants import NOT_INSTALLED
from peerkeeper.models.conflict import ConflictSeverity, PeerConflict
from peerkeeper.models.graph import PeerGraph
from peerkeeper.utils.logger import get_logger
from peerkeeper.utils.semver import extract_base_version, parse_version, satisfies

logger = get_logger("conflict_resolver")


def classify_conflict(
    requester: str,
    peer: str,
    required_range: str,
    resolved_version: str,
    is_installed: bool = True,
) -> PeerConflict:
    """Build a :class:`PeerConflict` with its severity decided."""
    return PeerConflict(
        requester=requester,
        peer=peer,
        required_range=required_range,
        resolved_version=resolved_version,
        severity=_determine_severity(required_range, resolved_version, is_installed),
        is_installed=is_installed,
    )


def _determine_severity(
    required_range: str,
    resolved_version: str,
    is_installed: bool,
) -> ConflictSeverity:
    if not is_installed:
        return ConflictSeverity.ERROR

    resolved = parse_version(resolved_version)
    base = extract_base_version(required_range)
    if resolved is None or base is None:
        return ConflictSeverity.ERROR

    if resolved.major != base.major:
        return ConflictSeverity.ERROR

    return ConflictSeverity.WARNING


def resolve_peer_conflicts(graph: PeerGraph) -> List[PeerConflict]:
    """Return every unsatisfied peer requirement in ``graph``.

    Each node is visited at most once.  Peers are enqueued whether or not
    their requirement was satisfied, so conflicts are found transitively.
    """
    conflicts: List[PeerConflict] = []
    queue: Deque[str] = deque(graph.roots)
    visited: Set[str] = set()

    while queue:
        name = queue.popleft()
        if name in visited:
            continue
        visited.add(name)

        node = graph.get(name)
        if node is None:
            continue

        for peer, required_range in node.peer_requirements.items():
            peer_node = graph.get(peer)

            if peer_node is None:
                conflicts.append(
                    classify_conflict(
                        name, peer, required_range, NOT_INSTALLED, is_installed=False
                    )
                )
                continue

            if not satisfies(peer_node.resolved_version, required_range):
                conflicts.append(
                    classify_conflict(
                        name, peer, required_range, peer_node.resolved_version
                    )
                )

            if peer not in visited:
                queue.append(peer)

    conflicts.sort(key=PeerConflict.sort_key)
    logger.debug(
        "Resolved %d conflict(s) across %d visited node(s)",
        len(conflicts),
        len(visited),
    )
    return conflicts
