"""Registry configuration and metadata client for peerkeeper.

Resolves package metadata (latest version, full version list and per-version
peer requirements) from one or more npm-compatible registries.

Registry selection follows the ``.npmrc`` files found in the user's home
directory and in the project directory (project entries win):

* ``registry=<url>`` sets the default registry;
* ``@scope:registry=<url>`` routes ``@scope/*`` packages elsewhere;
* ``//host/path/:_authToken=<token>`` and ``//host/path/:_auth=<b64>``
  attach credentials to every registry URL under that host/path.

Typical usage::

    from peerkeeper.utils.http import HTTPClient
    from peerkeeper.core.registry import RegistryClient, load_registry_config

    async with HTTPClient() as http:
        client = RegistryClient(load_registry_config(cwd), http)
        batch  = await client.resolve_many_package_metadata(
            ["react", "@acme/widget"], concurrency=12
        )
        for name, meta in batch.metadata.items():
            print(name, meta.latest_version)
        for name, error in batch.errors.items():
            print(name, "failed:", error)
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from datetime import datetime
from urllib.parse import quote
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Union

from peerkeeper.utils.pool import async_pool
from peerkeeper.utils.http import HTTPClient
from peerkeeper.utils.logger import get_logger
from peerkeeper.utils.filesystem import read_text_if_exists
from peerkeeper.exceptions import (
    FileOperationError,
    NetworkError,
    RegistryAuthError,
    RegistryError,
)
from peerkeeper.constants import (
    AUTH_STATUS_CODES,
    DEFAULT_CONCURRENCY,
    DEFAULT_REGISTRY,
    DEFAULT_TIMEOUT_MS,
    REGISTRY_CONFIG_FILENAME,
)

logger = get_logger("registry")

__all__ = [
    "RegistryConfig",
    "PackageMetadata",
    "BatchMetadataResult",
    "RegistryClient",
    "load_registry_config",
    "parse_registry_config",
    "resolve_registry_for_package",
    "resolve_auth_header",
]

_ENV_REF_RE = re.compile(r"\$\{([^}]+)\}")

PathLike = Union[str, Path]


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


@dataclass
class RegistryConfig:
    """Merged registry settings.

    Attributes:
        default_registry: Registry for unscoped packages.
        scoped_registries: ``@scope`` to registry URL.
        auth_tokens: ``//host/path/`` prefix to bearer token.
        basic_auth: ``//host/path/`` prefix to base64 ``user:password``.
    """

    default_registry: str = DEFAULT_REGISTRY
    scoped_registries: Dict[str, str] = field(default_factory=dict)
    auth_tokens: Dict[str, str] = field(default_factory=dict)
    basic_auth: Dict[str, str] = field(default_factory=dict)


def _normalize_registry_url(url: str) -> str:
    url = url.strip().strip("\"'")
    return url if url.endswith("/") else f"{url}/"


def _expand_env(value: str) -> str:
    return _ENV_REF_RE.sub(lambda m: os.environ.get(m.group(1), ""), value)


def _parse_lines(text: str) -> Dict[str, str]:
    entries: Dict[str, str] = {}
    for raw in text.splitlines():
        line = raw.strip()
        if not line or line.startswith(("#", ";")):
            continue
        if "=" not in line:
            continue
        key, value = line.split("=", 1)
        entries[key.strip()] = _expand_env(value.strip())
    return entries


def parse_registry_config(*texts: str) -> RegistryConfig:
    """Build a :class:`RegistryConfig` from ``.npmrc`` contents.

    Later texts override earlier ones key by key.
    """
    merged: Dict[str, str] = {}
    for text in texts:
        merged.update(_parse_lines(text))

    config = RegistryConfig()
    for key, value in merged.items():
        if not value:
            continue
        if key == "registry":
            config.default_registry = _normalize_registry_url(value)
        elif key.startswith("@") and key.endswith(":registry"):
            scope = key[: -len(":registry")]
            config.scoped_registries[scope] = _normalize_registry_url(value)
        elif key.startswith("//") and key.endswith(":_authToken"):
            config.auth_tokens[_auth_prefix(key[: -len(":_authToken")])] = value
        elif key.startswith("//") and key.endswith(":_auth"):
            config.basic_auth[_auth_prefix(key[: -len(":_auth")])] = value

    return config


def load_registry_config(
    cwd: PathLike,
    home: Optional[PathLike] = None,
) -> RegistryConfig:
    """Load and merge ``~/.npmrc`` and ``<cwd>/.npmrc``.

    Unreadable files are logged and skipped; the result always has at
    least the default registry.
    """
    home_dir = Path(home) if home is not None else Path.home()
    texts: List[str] = []

    for path in (home_dir / REGISTRY_CONFIG_FILENAME, Path(cwd) / REGISTRY_CONFIG_FILENAME):
        try:
            content = read_text_if_exists(path)
        except FileOperationError as exc:
            logger.warning("Skipping registry config %s: %s", path, exc)
            continue
        if content is not None:
            logger.debug("Loaded registry config %s", path)
            texts.append(content)

    return parse_registry_config(*texts)


def resolve_registry_for_package(name: str, config: RegistryConfig) -> str:
    """Return the registry URL serving ``name``."""
    if name.startswith("@") and "/" in name:
        scope = name.split("/", 1)[0]
        scoped = config.scoped_registries.get(scope)
        if scoped:
            return scoped
    return config.default_registry


def resolve_auth_header(registry_url: str, config: RegistryConfig) -> Optional[str]:
    """Return the ``Authorization`` header value for ``registry_url``, if any.

    The longest configured ``//host/path/`` prefix matching the URL wins.
    """
    target = _auth_prefix(re.sub(r"^[a-zA-Z][a-zA-Z0-9+.-]*:", "", registry_url))

    best_key = ""
    header: Optional[str] = None
    for prefixes, scheme in ((config.auth_tokens, "Bearer"), (config.basic_auth, "Basic")):
        for prefix, secret in prefixes.items():
            if target.startswith(prefix) and len(prefix) > len(best_key):
                best_key = prefix
                header = f"{scheme} {secret}"
    return header


def _auth_prefix(value: str) -> str:
    return value if value.endswith("/") else f"{value}/"


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


@dataclass
class PackageMetadata:
    """Registry answer for one package.

    Attributes:
        name: Package name.
        latest_version: ``dist-tags.latest``, or ``None`` when not found.
        versions: Every published version, in packument order.
        peer_requirements_by_version: Version to its ``peerDependencies``
            (only versions declaring peers are present).
        published_at_by_version: Version to its publish time in epoch
            milliseconds, from the packument ``time`` map.
    """

    name: str
    latest_version: Optional[str] = None
    versions: List[str] = field(default_factory=list)
    peer_requirements_by_version: Dict[str, Dict[str, str]] = field(default_factory=dict)
    published_at_by_version: Dict[str, int] = field(default_factory=dict)

    @property
    def found(self) -> bool:
        return self.latest_version is not None or bool(self.versions)


@dataclass
class BatchMetadataResult:
    """Partitioned outcome of :meth:`RegistryClient.resolve_many_package_metadata`."""

    metadata: Dict[str, PackageMetadata] = field(default_factory=dict)
    errors: Dict[str, Exception] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------


class RegistryClient:
    """Fetch package metadata from scope-appropriate registries.

    Args:
        config: Merged registry configuration.
        http_client: Shared :class:`HTTPClient` (owns retries and timeouts).
        timeout_ms: Default per-attempt timeout.
    """

    def __init__(
        self,
        config: RegistryConfig,
        http_client: HTTPClient,
        *,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
    ) -> None:
        self.config = config
        self.http_client = http_client
        self.timeout_ms = timeout_ms

        # name -> version -> peerDependencies, filled from any packument seen
        self._peer_requirements: Dict[str, Dict[str, Dict[str, str]]] = {}

    @classmethod
    def from_project(
        cls,
        cwd: PathLike,
        http_client: HTTPClient,
        *,
        home: Optional[PathLike] = None,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
    ) -> "RegistryClient":
        """Build a client from the ``.npmrc`` files around ``cwd``."""
        return cls(load_registry_config(cwd, home), http_client, timeout_ms=timeout_ms)

    def package_url(self, name: str) -> str:
        registry = resolve_registry_for_package(name, self.config)
        # npm expects the scope separator escaped: @scope%2fname
        return f"{registry}{quote(name, safe='@/').replace('/', '%2f')}"

    async def resolve_package_metadata(
        self,
        name: str,
        timeout_ms: Optional[int] = None,
    ) -> PackageMetadata:
        """Fetch the packument for ``name``.

        Returns an empty :class:`PackageMetadata` for a 404.

        Raises:
            RegistryAuthError: The registry answered 401 or 403.
            RegistryError: Any other non-2xx status, an invalid body, or an
                exhausted retry budget.
        """
        packument = await self._fetch_packument(name, timeout_ms)
        if packument is None:
            return PackageMetadata(name=name)

        metadata = _parse_packument(name, packument)
        self._peer_requirements[name] = metadata.peer_requirements_by_version
        return metadata

    async def fetch_peer_requirements(
        self,
        name: str,
        version: str,
        timeout_ms: Optional[int] = None,
    ) -> Dict[str, str]:
        """Return the ``peerDependencies`` declared by ``name@version``.

        Any failure yields an empty mapping. That means "no data", not "no
        peers".
        """
        known = self._peer_requirements.get(name)
        if known is None:
            try:
                packument = await self._fetch_packument(name, timeout_ms)
            except RegistryError as exc:
                logger.debug("Peer lookup failed for %s@%s: %s", name, version, exc)
                return {}
            if packument is None:
                return {}
            known = _parse_packument(name, packument).peer_requirements_by_version
            self._peer_requirements[name] = known

        return dict(known.get(version, {}))

    async def resolve_many_package_metadata(
        self,
        names: Iterable[str],
        *,
        concurrency: int = DEFAULT_CONCURRENCY,
        timeout_ms: Optional[int] = None,
    ) -> BatchMetadataResult:
        """Resolve many packages through the bounded pool.

        Names are deduplicated in first-seen order. One package failing
        never prevents the others from being returned.
        """
        unique = list(dict.fromkeys(names))
        tasks = [
            (lambda n=name: self.resolve_package_metadata(n, timeout_ms))
            for name in unique
        ]
        results = await async_pool(concurrency, tasks)

        batch = BatchMetadataResult()
        for name, result in zip(unique, results):
            if result.ok:
                batch.metadata[name] = result.value
            else:
                batch.errors[name] = result.error
        if batch.errors:
            logger.warning(
                "Registry lookup failed for %d of %d package(s)",
                len(batch.errors),
                len(unique),
            )
        return batch

    async def _fetch_packument(
        self,
        name: str,
        timeout_ms: Optional[int],
    ) -> Optional[Mapping[str, object]]:
        url = self.package_url(name)
        registry = resolve_registry_for_package(name, self.config)
        headers: Dict[str, str] = {}
        auth = resolve_auth_header(registry, self.config)
        if auth:
            headers["Authorization"] = auth

        effective_timeout = timeout_ms if timeout_ms is not None else self.timeout_ms
        try:
            response = await self.http_client.get(
                url, headers=headers, timeout_ms=effective_timeout
            )
        except NetworkError as exc:
            raise RegistryError(
                f"Unable to resolve {name}: {exc.message}",
                package_name=name,
                url=url,
                status_code=exc.status_code,
            ) from exc

        status = response.status_code
        if status == 404:
            logger.debug("Package not found: %s", name)
            return None
        if status in AUTH_STATUS_CODES:
            raise RegistryAuthError(
                f"Registry rejected credentials for {name} (HTTP {status})",
                package_name=name,
                url=url,
                status_code=status,
            )
        if not 200 <= status < 300:
            raise RegistryError(
                f"Registry request failed for {name}: HTTP {status}",
                package_name=name,
                url=url,
                status_code=status,
                response_body=response.text,
            )

        try:
            return self.http_client.decode_json(response, url)
        except NetworkError as exc:
            raise RegistryError(
                f"Invalid registry response for {name}",
                package_name=name,
                url=url,
                status_code=status,
            ) from exc


def _parse_packument(name: str, packument: Mapping[str, object]) -> PackageMetadata:
    """Extract the fields peerkeeper uses from a registry packument."""
    dist_tags = packument.get("dist-tags")
    latest: Optional[str] = None
    if isinstance(dist_tags, dict) and isinstance(dist_tags.get("latest"), str):
        latest = dist_tags["latest"]

    versions_doc = packument.get("versions")
    versions: List[str] = []
    peers: Dict[str, Dict[str, str]] = {}
    if isinstance(versions_doc, dict):
        for version, manifest in versions_doc.items():
            versions.append(version)
            if not isinstance(manifest, dict):
                continue
            declared = manifest.get("peerDependencies")
            if isinstance(declared, dict) and declared:
                peers[version] = {
                    str(peer): str(range_) for peer, range_ in declared.items()
                }

    return PackageMetadata(
        name=name,
        latest_version=latest,
        versions=versions,
        peer_requirements_by_version=peers,
        published_at_by_version=_parse_publish_times(packument.get("time"), versions),
    )


def _parse_publish_times(time_doc: object, versions: List[str]) -> Dict[str, int]:
    """Read ISO-8601 publish stamps for known versions; bad stamps are skipped."""
    if not isinstance(time_doc, dict):
        return {}

    published: Dict[str, int] = {}
    for version in versions:
        stamp = time_doc.get(version)
        if not isinstance(stamp, str):
            continue
        try:
            # fromisoformat on 3.9/3.10 rejects the "Z" suffix
            moment = datetime.fromisoformat(stamp.replace("Z", "+00:00"))
        except ValueError:
            logger.debug("Ignoring publish time %r for %s", stamp, version)
            continue
        if moment.tzinfo is None:
            continue
        published[version] = int(moment.timestamp() * 1000)
    return published
