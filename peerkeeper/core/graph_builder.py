"""Peer graph construction for peerkeeper.

Turns the declared dependencies of one or more package directories into a
:class:`~peerkeeper.models.graph.PeerGraph` that the conflict resolver can
walk.  Only packages that declare peer requirements, plus the declared
packages they reference as peers, become nodes; everything else cannot take
part in a conflict and is left out.

Registry access goes through :class:`~peerkeeper.core.registry.RegistryClient`
and the shared :class:`~peerkeeper.core.version_cache.VersionCache`; all
lookups are driven through :func:`~peerkeeper.utils.pool.async_pool`.

Typical usage::

    async with HTTPClient() as http, await VersionCache.create() as cache:
        registry = RegistryClient.from_project(cwd, http)
        builder  = PeerGraphBuilder(cache, registry, concurrency=12)
        graph    = await builder.build([(cwd, dependencies)])
        conflicts = resolve_peer_conflicts(graph)
"""

from __future__ import annotations

from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from peerkeeper.core.registry import RegistryClient
from peerkeeper.core.version_cache import VersionCache
from peerkeeper.exceptions import CacheError
from peerkeeper.models.dependency import DependencyKind, PackageDependency, UpdatePolicy
from peerkeeper.models.graph import PeerGraph, PeerNode
from peerkeeper.utils.logger import get_logger
from peerkeeper.utils.pool import async_pool
from peerkeeper.constants import (
    DEFAULT_CACHE_TTL_SECONDS,
    DEFAULT_CONCURRENCY,
    DEFAULT_TIMEOUT_MS,
    UNKNOWN_VERSION,
)

logger = get_logger("graph_builder")

#: Manifest reader output: a package directory and its declared dependencies.
Manifest = Tuple[str, Sequence[PackageDependency]]

_ROOT_KINDS = frozenset(
    {DependencyKind.RUNTIME, DependencyKind.DEV, DependencyKind.OPTIONAL}
)


def declared_version(range_: str) -> str:
    """Reduce a declared range to the bare version used as its resolution.

    ``"^18.2.0"`` becomes ``"18.2.0"``; ``">=1.0.0 <2.0.0"`` becomes
    ``"1.0.0"``.
    """
    stripped = range_.strip().lstrip("~^>=<")
    tokens = stripped.split()
    return tokens[0] if tokens else stripped


class PeerGraphBuilder:
    """Build a :class:`PeerGraph` from declared dependencies.

    Args:
        cache: Shared version cache, opened once per run.
        registry: Registry client used for metadata and peer lookups.
        concurrency: Maximum number of in-flight registry lookups.
        timeout_ms: Per-request timeout.
        cache_ttl_seconds: TTL for metadata written back to the cache.
    """

    def __init__(
        self,
        cache: VersionCache,
        registry: RegistryClient,
        *,
        concurrency: int = DEFAULT_CONCURRENCY,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        cache_ttl_seconds: int = DEFAULT_CACHE_TTL_SECONDS,
    ) -> None:
        self.cache = cache
        self.registry = registry
        self.concurrency = concurrency
        self.timeout_ms = timeout_ms
        self.cache_ttl_seconds = cache_ttl_seconds

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def build(
        self,
        manifests: Sequence[Manifest],
        overrides: Optional[Mapping[str, str]] = None,
    ) -> PeerGraph:
        """Build the peer graph for ``manifests``.

        Args:
            manifests: Package directories with their declared dependencies,
                in discovery order.
            overrides: Optional name to version mapping simulating upgrades;
                takes precedence for node versions and peer lookups.

        Returns:
            The assembled :class:`PeerGraph`.  Registry failures never abort
            the build; affected packages simply carry no peer data.
        """
        declared, roots = self._collect_declared(manifests)

        resolved: Dict[str, str] = dict(declared)
        if overrides:
            resolved.update(overrides)

        await self._warm_cache(roots)
        peer_requirements = await self._fetch_peer_requirements(roots, resolved)

        graph = self._assemble(roots, declared, resolved, peer_requirements)
        logger.debug(
            "Built peer graph: %d node(s) from %d declared package(s)",
            len(graph),
            len(roots),
        )
        return graph

    # ------------------------------------------------------------------
    # Steps (private)
    # ------------------------------------------------------------------

    @staticmethod
    def _collect_declared(
        manifests: Sequence[Manifest],
    ) -> Tuple[Dict[str, str], List[str]]:
        declared: Dict[str, str] = {}
        roots: List[str] = []
        for package_dir, dependencies in manifests:
            for dep in dependencies:
                if dep.kind not in _ROOT_KINDS or dep.name in declared:
                    continue
                declared[dep.name] = declared_version(dep.range)
                roots.append(dep.name)
            logger.debug("Collected dependencies from %s", package_dir)
        return declared, roots

    async def _warm_cache(self, names: List[str]) -> None:
        """Fetch metadata for names the cache has never seen."""
        target = UpdatePolicy.LATEST.value
        uncached = [name for name in names if await self.cache.get_any(name, target) is None]
        if not uncached:
            return

        batch = await self.registry.resolve_many_package_metadata(
            uncached, concurrency=self.concurrency, timeout_ms=self.timeout_ms
        )
        for name, error in batch.errors.items():
            logger.warning("Could not resolve %s: %s", name, error)

        for name, metadata in batch.metadata.items():
            if metadata.latest_version is None:
                continue
            try:
                await self.cache.set(
                    name,
                    target,
                    metadata.latest_version,
                    metadata.versions,
                    self.cache_ttl_seconds,
                )
            except CacheError as exc:
                logger.warning("Could not cache %s: %s", name, exc)

    async def _fetch_peer_requirements(
        self,
        names: List[str],
        resolved: Mapping[str, str],
    ) -> Dict[str, Dict[str, str]]:
        tasks = [
            (
                lambda n=name: self.registry.fetch_peer_requirements(
                    n, resolved.get(n, UNKNOWN_VERSION), self.timeout_ms
                )
            )
            for name in names
        ]
        results = await async_pool(self.concurrency, tasks)

        peers: Dict[str, Dict[str, str]] = {}
        for name, result in zip(names, results):
            if result.ok:
                peers[name] = result.value
            else:
                logger.debug("Peer lookup failed for %s: %s", name, result.error)
                peers[name] = {}
        return peers

    @staticmethod
    def _assemble(
        roots: List[str],
        declared: Mapping[str, str],
        resolved: Mapping[str, str],
        peer_requirements: Mapping[str, Dict[str, str]],
    ) -> PeerGraph:
        nodes: Dict[str, PeerNode] = {}

        for name in roots:
            requirements = peer_requirements.get(name) or {}
            if requirements:
                nodes[name] = PeerNode(
                    name=name,
                    resolved_version=resolved.get(name, UNKNOWN_VERSION),
                    peer_requirements=requirements,
                )

        for node in list(nodes.values()):
            for peer in node.peer_requirements:
                if peer not in nodes and peer in declared:
                    nodes[peer] = PeerNode(
                        name=peer,
                        resolved_version=resolved.get(peer, UNKNOWN_VERSION),
                    )

        return PeerGraph(nodes, roots)
