"""
Semantic version helpers for peerkeeper.

Pure functions used by the update checker and the peer conflict resolver:
parsing ``major.minor.patch`` triples out of npm ranges, comparing them,
classifying the distance between two versions, choosing an update target
under a policy, and checking range satisfaction.

Parsing is deliberately narrow. Anything that is not ``D.D.D`` (after an
optional ``^``/``~`` and with any pre-release suffix dropped) yields
``None``; callers must decide what an unparsable version means for them.
"""

from __future__ import annotations

import re
from typing import List, Optional, Sequence, Tuple

import semantic_version

from peerkeeper.models.version import ParsedVersion
from peerkeeper.models.dependency import UpdatePolicy

__all__ = [
    "parse_version",
    "compare_versions",
    "classify_diff",
    "pick_target_version",
    "pick_target_version_from_available",
    "normalize_range_prefix",
    "apply_range_style",
    "extract_base_version",
    "satisfies",
]

_VERSION_RE = re.compile(r"^(\d+)\.(\d+)\.(\d+)$")

# Longest operators first so ">=" wins over ">"
_RANGE_PREFIXES: Tuple[str, ...] = (">=", "<=", "^", "~", ">", "<", "=")

_LEADING_OPERATORS_RE = re.compile(r"^[~^>=<]+")

# npm accepts whitespace between a comparator and its version (">= 16.8.0")
_OPERATOR_GAP_RE = re.compile(r"(>=|<=|>|<|=|\^|~)\s+")


def parse_version(raw: str) -> Optional[ParsedVersion]:
    """Parse a version or simple range into a :class:`ParsedVersion`.

    Strips surrounding whitespace and a single leading ``^`` or ``~``, then
    drops everything after the first ``-``.

    Examples:
        >>> parse_version("^1.2.3")
        ParsedVersion(major=1, minor=2, patch=3)
        >>> parse_version("2.0.0-beta.1")
        ParsedVersion(major=2, minor=0, patch=0)
        >>> parse_version("workspace:*") is None
        True
    """
    clean = raw.strip()
    if clean[:1] in ("^", "~"):
        clean = clean[1:]
    clean = clean.split("-", 1)[0]

    match = _VERSION_RE.match(clean)
    if not match:
        return None
    return ParsedVersion(int(match.group(1)), int(match.group(2)), int(match.group(3)))


def compare_versions(a: ParsedVersion, b: ParsedVersion) -> int:
    """Return a negative, zero, or positive number as ``a`` is <, ==, > ``b``."""
    if a.major != b.major:
        return a.major - b.major
    if a.minor != b.minor:
        return a.minor - b.minor
    return a.patch - b.patch


def classify_diff(current_range: str, next_version: str) -> UpdatePolicy:
    """Classify the semantic distance from ``current_range`` to ``next_version``.

    Returns ``latest`` when either side cannot be parsed, so an unparsable
    comparison is never reported as a harmless ``patch``.
    """
    current = parse_version(current_range)
    nxt = parse_version(next_version)
    if current is None or nxt is None:
        return UpdatePolicy.LATEST
    if nxt.major > current.major:
        return UpdatePolicy.MAJOR
    if nxt.minor > current.minor:
        return UpdatePolicy.MINOR
    if nxt.patch > current.patch:
        return UpdatePolicy.PATCH
    return UpdatePolicy.LATEST


def pick_target_version(
    current_range: str,
    latest_version: str,
    policy: UpdatePolicy,
) -> Optional[str]:
    """Return ``latest_version`` if it is an allowed update under ``policy``.

    * ``patch``: same major and minor, strictly greater patch.
    * ``minor``: same major, strictly greater version.
    * ``major``: any strictly greater version.
    * ``latest``: the candidate verbatim, without boundary checks.

    An unparsable candidate yields ``None``. An unparsable current range
    cannot be bounded, so the candidate is returned as-is.
    """
    current = parse_version(current_range)
    latest = parse_version(latest_version)

    if latest is None:
        return None
    if current is None or policy is UpdatePolicy.LATEST:
        return latest_version

    if policy is UpdatePolicy.PATCH:
        if (
            current.major == latest.major
            and current.minor == latest.minor
            and latest.patch > current.patch
        ):
            return latest_version
        return None

    if policy is UpdatePolicy.MINOR:
        if current.major == latest.major and compare_versions(latest, current) > 0:
            return latest_version
        return None

    if compare_versions(latest, current) > 0:
        return latest_version
    return None


def pick_target_version_from_available(
    current_range: str,
    available_versions: Sequence[str],
    latest_version: str,
    policy: UpdatePolicy,
) -> Optional[str]:
    """Pick the highest published version allowed by ``policy``.

    Only versions strictly greater than the current one are considered.
    ``latest`` (or an unparsable current range) returns ``latest_version``.
    """
    current = parse_version(current_range)
    if current is None or policy is UpdatePolicy.LATEST:
        return latest_version

    candidates: List[Tuple[ParsedVersion, str]] = []
    for raw in available_versions:
        parsed = parse_version(raw)
        if parsed is not None and compare_versions(parsed, current) > 0:
            candidates.append((parsed, raw))

    if policy is UpdatePolicy.MINOR:
        candidates = [c for c in candidates if c[0].major == current.major]
    elif policy is UpdatePolicy.PATCH:
        candidates = [
            c
            for c in candidates
            if c[0].major == current.major and c[0].minor == current.minor
        ]

    if not candidates:
        return None

    # max() keeps the first of equal triples (e.g. "1.0.0" vs "1.0.0-rc.1")
    return max(candidates, key=lambda item: item[0])[1]


def normalize_range_prefix(range_: str) -> str:
    """Return the operator prefix of ``range_`` or ``""`` for a bare pin."""
    trimmed = range_.strip()
    for prefix in _RANGE_PREFIXES:
        if trimmed.startswith(prefix):
            return prefix
    return ""


def apply_range_style(previous_range: str, new_version: str) -> str:
    """Rewrite ``previous_range`` to point at ``new_version``, keeping its operator.

    Examples:
        >>> apply_range_style("^1.2.3", "2.0.0")
        '^2.0.0'
        >>> apply_range_style("workspace:*", "2.0.0")
        '2.0.0'
    """
    return f"{normalize_range_prefix(previous_range)}{new_version}"


def extract_base_version(range_: str) -> Optional[ParsedVersion]:
    """Parse the floor version of a range such as ``>=18.2.0 <19``."""
    stripped = _LEADING_OPERATORS_RE.sub("", _close_operator_gaps(range_.strip()))
    first = stripped.split(" ", 1)[0]
    return parse_version(first)


# ---------------------------------------------------------------------------
# Range satisfaction
# ---------------------------------------------------------------------------


def satisfies(version: str, range_: str) -> bool:
    """Check whether a concrete ``version`` falls inside an npm ``range_``.

    Empty and ``*`` ranges always match. Versions that are not semver
    (dist-tags, ``workspace:*``, git URLs) pass through as satisfied.
    Ranges are evaluated with :class:`semantic_version.NpmSpec`; the few it
    rejects are checked clause by clause instead.
    """
    trimmed = range_.strip()
    if not trimmed or trimmed == "*":
        return True
    trimmed = _close_operator_gaps(trimmed)

    try:
        candidate = semantic_version.Version(version.strip())
    except ValueError:
        if parse_version(version) is None:
            return True
        return _satisfies_clauses(version, trimmed)

    try:
        spec = semantic_version.NpmSpec(trimmed)
    except ValueError:
        return _satisfies_clauses(version, trimmed)

    return spec.match(candidate)


def _close_operator_gaps(range_: str) -> str:
    return _OPERATOR_GAP_RE.sub(r"\1", range_)


def _satisfies_clauses(version: str, range_: str) -> bool:
    """Operator-by-operator fallback for ranges NpmSpec cannot read."""
    parsed = parse_version(version)
    if parsed is None:
        return True

    if "||" in range_:
        return any(_satisfies_clauses(version, part.strip()) for part in range_.split("||"))

    clauses = range_.split()
    if len(clauses) > 1:
        return all(_satisfies_clauses(version, clause) for clause in clauses)
    if not clauses:
        return True

    operator, bound = _parse_clause(clauses[0])
    if bound is None:
        # Unknown clause shapes never produce a conflict on their own
        return True

    cmp = compare_versions(parsed, bound)
    if operator == "^":
        return parsed.major == bound.major and cmp >= 0
    if operator == "~":
        return parsed.major == bound.major and parsed.minor == bound.minor and cmp >= 0
    if operator == ">=":
        return cmp >= 0
    if operator == "<=":
        return cmp <= 0
    if operator == ">":
        return cmp > 0
    if operator == "<":
        return cmp < 0
    return cmp == 0


def _parse_clause(clause: str) -> Tuple[str, Optional[ParsedVersion]]:
    for operator in _RANGE_PREFIXES:
        if clause.startswith(operator):
            bound = parse_version(clause[len(operator):])
            if bound is not None:
                return operator, bound
    return "=", parse_version(clause)
