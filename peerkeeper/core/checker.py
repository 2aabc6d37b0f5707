"""Update checking for peerkeeper.

Decides, for every declared dependency, whether a newer published version is
allowed by the requested :class:`~peerkeeper.models.dependency.UpdatePolicy`
and, if so, what the rewritten range would be.

Registry answers are read through the shared
:class:`~peerkeeper.core.version_cache.VersionCache`; only packages without a
valid cache entry are sent to the registry, in one pooled batch.  In offline
mode the registry is never contacted and stale entries are used instead.
:meth:`UpdateChecker.warm_cache` runs the same lookup without deciding
anything, so a later offline run finds the cache populated.

Typical usage::

    async with HTTPClient() as http, await VersionCache.create() as cache:
        registry = RegistryClient.from_project(cwd, http)
        checker  = UpdateChecker(cache, registry, cooldown_days=3)
        result   = await checker.check([(cwd, dependencies)], UpdatePolicy.MINOR)

        for update in result.updates:
            print(update)
        if result.has_errors:
            raise SystemExit(1)
"""

from __future__ import annotations

import os
from fnmatch import fnmatchcase
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from peerkeeper.core.registry import RegistryClient
from peerkeeper.core.version_cache import VersionCache
from peerkeeper.models.version import now_ms
from peerkeeper.models.dependency import (
    PackageDependency,
    PackageUpdate,
    UpdatePolicy,
    clamp_target,
)
from peerkeeper.utils.logger import get_logger
from peerkeeper.utils.semver import (
    apply_range_style,
    classify_diff,
    pick_target_version,
    pick_target_version_from_available,
)
from peerkeeper.constants import (
    DEFAULT_CACHE_TTL_SECONDS,
    DEFAULT_CONCURRENCY,
    DEFAULT_TIMEOUT_MS,
)

logger = get_logger("checker")

Manifest = Tuple[str, Sequence[PackageDependency]]

_DAY_MS = 24 * 60 * 60 * 1000


@dataclass(frozen=True)
class PolicyRule:
    """Per-package adjustment of the requested update policy.

    Attributes:
        target: Policy used instead of the run-wide one.
        max_target: Upper bound the effective policy is clamped to.
        autofix: False marks resulting updates as needing review.
        ignore: Skip the package entirely.
        cooldown_days: Overrides the run-wide cooldown for this package.
        max_updates_per_run: Keep at most this many updates for the package.
    """

    target: Optional[UpdatePolicy] = None
    max_target: Optional[UpdatePolicy] = None
    autofix: bool = True
    ignore: bool = False
    cooldown_days: Optional[int] = None
    max_updates_per_run: Optional[int] = None


def resolve_policy_rule(
    name: str,
    rules: Optional[Mapping[str, PolicyRule]],
) -> Optional[PolicyRule]:
    """Return the rule for ``name``: an exact key first, then the first
    ``*`` pattern that matches."""
    if not rules:
        return None
    exact = rules.get(name)
    if exact is not None:
        return exact
    for pattern, rule in rules.items():
        if "*" in pattern and fnmatchcase(name, pattern):
            return rule
    return None


@dataclass
class CheckResult:
    """Outcome of :meth:`UpdateChecker.check`.

    Attributes:
        updates: Genuine updates, sorted by package path, name, kind and ranges.
        errors: Sorted per-package failures (registry errors, offline misses).
        warnings: Sorted non-fatal notes (stale cache use, degraded cache).
        skipped: Dependencies left out by an ignore rule or pattern.
        cooldown_skipped: Candidates dropped for being published too recently.
    """

    updates: List[PackageUpdate] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    skipped: int = 0
    cooldown_skipped: int = 0

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)

    def to_json(self) -> Dict[str, object]:
        return {
            "updates": [update.to_json() for update in self.updates],
            "errors": list(self.errors),
            "warnings": list(self.warnings),
            "skipped": self.skipped,
            "cooldownSkipped": self.cooldown_skipped,
        }


@dataclass
class WarmCacheResult:
    """Outcome of :meth:`UpdateChecker.warm_cache`."""

    warmed: int = 0
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)

    def to_json(self) -> Dict[str, object]:
        return {
            "warmed": self.warmed,
            "errors": list(self.errors),
            "warnings": list(self.warnings),
        }


@dataclass
class _ResolvedMetadata:
    latest_version: Optional[str]
    available_versions: List[str]
    # Only known for fresh registry answers; cache entries carry none
    published_at_by_version: Dict[str, int] = field(default_factory=dict)


class UpdateChecker:
    """Compute :class:`PackageUpdate` decisions for declared dependencies.

    Args:
        cache: Shared version cache, opened once per run.
        registry: Registry client for cache misses.
        concurrency: Maximum number of in-flight registry lookups.
        timeout_ms: Per-request timeout.
        cache_ttl_seconds: TTL for freshly fetched entries.
        offline: Never contact the registry; fall back to stale entries.
        cooldown_days: Skip candidates published fewer than this many days
            ago. ``None`` or ``0`` disables the cooldown.
        ignore_patterns: Package names or ``*`` patterns never checked.
        clock: Millisecond wall clock, injectable for tests.
    """

    def __init__(
        self,
        cache: VersionCache,
        registry: RegistryClient,
        *,
        concurrency: int = DEFAULT_CONCURRENCY,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        cache_ttl_seconds: int = DEFAULT_CACHE_TTL_SECONDS,
        offline: bool = False,
        cooldown_days: Optional[int] = None,
        ignore_patterns: Sequence[str] = (),
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.cache = cache
        self.registry = registry
        self.concurrency = concurrency
        self.timeout_ms = timeout_ms
        self.cache_ttl_seconds = cache_ttl_seconds
        self.offline = offline
        self.cooldown_days = cooldown_days
        self.ignore_patterns = tuple(ignore_patterns)
        self._clock = clock

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def check(
        self,
        manifests: Sequence[Manifest],
        policy: UpdatePolicy,
        rules: Optional[Mapping[str, PolicyRule]] = None,
    ) -> CheckResult:
        """Check every dependency in ``manifests`` against ``policy``.

        Args:
            manifests: Package directories with their declared dependencies.
            policy: Run-wide update policy; also the cache target.
            rules: Optional per-package rules keyed by name or ``*`` pattern.

        Returns:
            A :class:`CheckResult`; per-package failures are collected, never
            raised.

        Raises:
            CacheError: A fetched entry could not be written to any cache
                backend.
        """
        result = CheckResult()
        if self.cache.degraded and self.cache.fallback_reason:
            result.warnings.append(f"Cache degraded: {self.cache.fallback_reason}")

        tasks: List[Tuple[str, PackageDependency, Optional[PolicyRule]]] = []
        for package_dir, dependencies in manifests:
            for dep in dependencies:
                rule = resolve_policy_rule(dep.name, rules)
                if rule is not None and rule.ignore:
                    logger.debug("Ignoring %s by policy rule", dep.name)
                    result.skipped += 1
                    continue
                if self._ignored_by_pattern(dep.name):
                    logger.debug("Ignoring %s by ignore pattern", dep.name)
                    result.skipped += 1
                    continue
                tasks.append((package_dir, dep, rule))

        names = sorted({dep.name for _, dep, _ in tasks})
        resolved = await self._resolve_metadata(
            names, policy, result.errors, result.warnings
        )

        updates: List[PackageUpdate] = []
        for package_dir, dep, rule in tasks:
            metadata = resolved.get(dep.name)
            if metadata is None or not metadata.latest_version:
                continue

            picked = self._pick(dep, metadata, policy, rule)
            if picked is None:
                continue
            if self._in_cooldown(picked, metadata, rule):
                logger.debug("Cooldown skip for %s@%s", dep.name, picked)
                result.cooldown_skipped += 1
                continue

            update = self._build_update(package_dir, dep, picked, rule)
            if update is not None:
                updates.append(update)

        updates.sort(key=PackageUpdate.sort_key)
        result.updates = _apply_update_caps(updates, rules)
        result.errors.sort()
        result.warnings.sort()

        logger.info(
            "Checked %d dependency(ies): %d update(s), %d error(s)",
            len(tasks),
            len(result.updates),
            len(result.errors),
        )
        return result

    async def warm_cache(
        self,
        manifests: Sequence[Manifest],
        policy: UpdatePolicy,
    ) -> WarmCacheResult:
        """Populate the cache for every declared name under ``policy``.

        Names with a valid entry are left alone. Offline, the registry is
        never contacted: stale entries count as warmed with a warning, and
        missing ones are errors.

        Raises:
            CacheError: A fetched entry could not be written to any cache
                backend.
        """
        result = WarmCacheResult()
        if self.cache.degraded and self.cache.fallback_reason:
            result.warnings.append(f"Cache degraded: {self.cache.fallback_reason}")

        target = policy.value
        names = sorted(
            {
                dep.name
                for _, dependencies in manifests
                for dep in dependencies
                if not self._ignored_by_pattern(dep.name)
            }
        )
        needs_fetch = [
            name for name in names if await self.cache.get_valid(name, target) is None
        ]

        if needs_fetch and self.offline:
            for name in needs_fetch:
                if await self.cache.get_any(name, target) is not None:
                    result.warmed += 1
                    result.warnings.append(
                        f"Using stale cache for {name} in offline warm-cache mode."
                    )
                else:
                    result.errors.append(
                        f"Offline cache miss for {name}. Retry warm-cache without offline mode."
                    )
        elif needs_fetch:
            batch = await self.registry.resolve_many_package_metadata(
                needs_fetch, concurrency=self.concurrency, timeout_ms=self.timeout_ms
            )
            for name, metadata in batch.metadata.items():
                if not metadata.latest_version:
                    continue
                await self.cache.set(
                    name,
                    target,
                    metadata.latest_version,
                    metadata.versions,
                    self.cache_ttl_seconds,
                )
                result.warmed += 1
            for name, error in batch.errors.items():
                result.errors.append(f"Unable to warm {name}: {error}")

        result.errors.sort()
        result.warnings.sort()
        logger.info(
            "Warmed %d of %d package(s) (%d already fresh)",
            result.warmed,
            len(names),
            len(names) - len(needs_fetch),
        )
        return result

    # ------------------------------------------------------------------
    # Metadata resolution (private)
    # ------------------------------------------------------------------

    async def _resolve_metadata(
        self,
        names: List[str],
        policy: UpdatePolicy,
        errors: List[str],
        warnings: List[str],
    ) -> Dict[str, _ResolvedMetadata]:
        target = policy.value
        resolved: Dict[str, _ResolvedMetadata] = {}
        unresolved: List[str] = []

        for name in names:
            cached = await self.cache.get_valid(name, target)
            if cached is not None:
                resolved[name] = _ResolvedMetadata(
                    cached.latest_version, list(cached.available_versions)
                )
            else:
                unresolved.append(name)

        if not unresolved:
            return resolved

        if self.offline:
            for name in unresolved:
                if await self._use_stale(name, target, resolved):
                    warnings.append(f"Using stale cache for {name} because offline mode is enabled.")
                else:
                    errors.append(
                        f"Offline cache miss for {name}. Run once without offline mode to warm cache."
                    )
            return resolved

        batch = await self.registry.resolve_many_package_metadata(
            unresolved, concurrency=self.concurrency, timeout_ms=self.timeout_ms
        )

        for name, metadata in batch.metadata.items():
            resolved[name] = _ResolvedMetadata(
                metadata.latest_version,
                list(metadata.versions),
                dict(metadata.published_at_by_version),
            )
            if metadata.latest_version:
                await self.cache.set(
                    name,
                    target,
                    metadata.latest_version,
                    metadata.versions,
                    self.cache_ttl_seconds,
                )

        for name, error in batch.errors.items():
            if await self._use_stale(name, target, resolved):
                warnings.append(f"Using stale cache for {name} due to registry error: {error}")
            else:
                errors.append(f"Unable to resolve {name}: {error}")

        return resolved

    async def _use_stale(
        self,
        name: str,
        target: str,
        resolved: Dict[str, _ResolvedMetadata],
    ) -> bool:
        stale = await self.cache.get_any(name, target)
        if stale is None:
            return False
        resolved[name] = _ResolvedMetadata(stale.latest_version, list(stale.available_versions))
        return True

    # ------------------------------------------------------------------
    # Decision (private)
    # ------------------------------------------------------------------

    def _ignored_by_pattern(self, name: str) -> bool:
        return any(fnmatchcase(name, pattern) for pattern in self.ignore_patterns)

    @staticmethod
    def _pick(
        dep: PackageDependency,
        metadata: _ResolvedMetadata,
        policy: UpdatePolicy,
        rule: Optional[PolicyRule],
    ) -> Optional[str]:
        base = rule.target if rule is not None and rule.target is not None else policy
        effective = clamp_target(base, rule.max_target if rule is not None else None)

        latest = metadata.latest_version or ""
        if metadata.available_versions:
            return pick_target_version_from_available(
                dep.range, metadata.available_versions, latest, effective
            )
        return pick_target_version(dep.range, latest, effective)

    def _in_cooldown(
        self,
        picked: str,
        metadata: _ResolvedMetadata,
        rule: Optional[PolicyRule],
    ) -> bool:
        days = self.cooldown_days
        if rule is not None and rule.cooldown_days is not None:
            days = rule.cooldown_days
        if not days or days <= 0:
            return False

        published_at = metadata.published_at_by_version.get(picked)
        if published_at is None:
            return False
        return published_at > self._clock() - days * _DAY_MS

    @staticmethod
    def _build_update(
        package_dir: str,
        dep: PackageDependency,
        picked: str,
        rule: Optional[PolicyRule],
    ) -> Optional[PackageUpdate]:
        next_range = apply_range_style(dep.range, picked)
        if next_range == dep.range:
            return None

        reason = None
        if rule is not None and rule.max_target is not None:
            reason = f"policy maxTarget={rule.max_target.value}"

        return PackageUpdate(
            package_path=os.path.abspath(package_dir),
            name=dep.name,
            kind=dep.kind,
            from_range=dep.range,
            to_range=next_range,
            to_version_resolved=picked,
            diff_type=classify_diff(dep.range, picked),
            autofix=rule.autofix if rule is not None else True,
            reason=reason,
        )


def _apply_update_caps(
    updates: List[PackageUpdate],
    rules: Optional[Mapping[str, PolicyRule]],
) -> List[PackageUpdate]:
    """Drop updates past a rule's ``max_updates_per_run``, in sorted order."""
    kept: List[PackageUpdate] = []
    seen: Dict[str, int] = {}
    for update in updates:
        rule = resolve_policy_rule(update.name, rules)
        cap = rule.max_updates_per_run if rule is not None else None
        if cap is None:
            kept.append(update)
            continue
        if seen.get(update.name, 0) >= cap:
            continue
        seen[update.name] = seen.get(update.name, 0) + 1
        kept.append(update)
    return kept
