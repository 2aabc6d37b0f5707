"""Unit tests for peerkeeper.core.conflict_resolver module.

Covers severity classification, breadth-first traversal, transitive
discovery and deterministic ordering of the reported conflicts.
"""

from __future__ import annotations

import json
from typing import Dict

import pytest

from peerkeeper.core.conflict_resolver import classify_conflict, resolve_peer_conflicts
from peerkeeper.models.conflict import ConflictSeverity
from peerkeeper.models.graph import PeerGraph, PeerNode


def _graph(nodes: Dict[str, tuple], roots) -> PeerGraph:
    return PeerGraph(
        {name: PeerNode(name, version, peers) for name, (version, peers) in nodes.items()},
        roots,
    )


@pytest.mark.unit
class TestClassifyConflict:
    """Tests for severity classification."""

    def test_not_installed_is_error(self) -> None:
        conflict = classify_conflict("a", "x", "^1.0.0", "(not installed)", is_installed=False)
        assert conflict.severity is ConflictSeverity.ERROR
        assert conflict.is_installed is False

    def test_major_mismatch_is_error(self) -> None:
        conflict = classify_conflict("react-dom", "react", "^18.0.0", "17.0.2")
        assert conflict.severity is ConflictSeverity.ERROR

    def test_same_major_is_warning(self) -> None:
        conflict = classify_conflict("react-dom", "react", "^18.3.0", "18.1.0")
        assert conflict.severity is ConflictSeverity.WARNING

    @pytest.mark.parametrize(
        "required, resolved",
        [("latest", "18.1.0"), ("^18.0.0", "canary"), ("next", "beta")],
    )
    def test_unparsable_is_error(self, required: str, resolved: str) -> None:
        assert classify_conflict("a", "b", required, resolved).severity is ConflictSeverity.ERROR

    def test_space_after_operator_keeps_floor(self) -> None:
        conflict = classify_conflict("styled-components", "react", ">= 18.3.0", "18.2.0")
        assert conflict.severity is ConflictSeverity.WARNING

    def test_major_rule_applies_without_floor(self) -> None:
        """Test a differing major is an error even for an upper-bound-only range."""
        conflict = classify_conflict("a", "b", "<3.0.0", "1.0.0")
        assert conflict.severity is ConflictSeverity.ERROR


@pytest.mark.unit
class TestResolvePeerConflicts:
    """Tests for the BFS conflict resolver."""

    def test_absent_peer(self) -> None:
        graph = _graph({"react-dom": ("18.2.0", {"react": "^18.2.0"})}, ["react-dom"])

        conflicts = resolve_peer_conflicts(graph)

        assert len(conflicts) == 1
        assert conflicts[0].severity is ConflictSeverity.ERROR
        assert conflicts[0].resolved_version == "(not installed)"
        assert conflicts[0].is_installed is False

    def test_major_mismatch(self) -> None:
        graph = _graph(
            {"react-dom": ("18.2.0", {"react": "^18.0.0"}), "react": ("17.0.2", {})},
            ["react", "react-dom"],
        )

        [conflict] = resolve_peer_conflicts(graph)

        assert conflict.severity is ConflictSeverity.ERROR
        assert conflict.resolved_version == "17.0.2"

    def test_same_major_unsatisfied(self) -> None:
        graph = _graph(
            {"lib": ("1.0.0", {"react": "^18.3.0"}), "react": ("18.1.0", {})},
            ["lib", "react"],
        )

        [conflict] = resolve_peer_conflicts(graph)

        assert conflict.severity is ConflictSeverity.WARNING

    def test_satisfied_produces_nothing(self) -> None:
        graph = _graph(
            {"react-dom": ("18.2.0", {"react": "^18.0.0"}), "react": ("18.2.0", {})},
            ["react-dom"],
        )
        assert resolve_peer_conflicts(graph) == []

    def test_space_after_operator_is_satisfied(self) -> None:
        """Test a peer range written as ">= 16.8.0" is read as a floor, not a pin."""
        graph = _graph(
            {
                "styled-components": ("6.1.0", {"react": ">= 16.8.0"}),
                "react": ("18.2.0", {}),
            },
            ["styled-components"],
        )
        assert resolve_peer_conflicts(graph) == []

    def test_transitive_discovery(self) -> None:
        """Test peers reached only through another node are still checked."""
        graph = _graph(
            {
                "app-kit": ("1.0.0", {"ui": "^2.0.0"}),
                "ui": ("2.0.0", {"react": "^18.0.0"}),
                "react": ("17.0.2", {}),
            },
            ["app-kit"],
        )

        conflicts = resolve_peer_conflicts(graph)

        assert [(c.requester, c.peer) for c in conflicts] == [("ui", "react")]

    def test_each_node_visited_once(self) -> None:
        graph = _graph(
            {
                "a": ("1.0.0", {"b": "^2.0.0"}),
                "b": ("1.0.0", {"a": "^2.0.0"}),
            },
            ["a", "b", "a"],
        )

        conflicts = resolve_peer_conflicts(graph)

        assert sorted((c.requester, c.peer) for c in conflicts) == [("a", "b"), ("b", "a")]

    def test_ordering_errors_then_requester(self) -> None:
        graph = _graph(
            {
                "zeta": ("1.0.0", {"react": "^17.0.0"}),
                "alpha": ("1.0.0", {"react": "^18.3.0"}),
                "beta": ("1.0.0", {"missing": "^1.0.0", "react": "^18.3.0"}),
                "react": ("18.1.0", {}),
            },
            ["zeta", "alpha", "beta"],
        )

        conflicts = resolve_peer_conflicts(graph)

        assert [(c.severity.value, c.requester, c.peer) for c in conflicts] == [
            ("error", "beta", "missing"),
            ("error", "zeta", "react"),
            ("warning", "alpha", "react"),
            ("warning", "beta", "react"),
        ]

    def test_deterministic_output(self) -> None:
        """Test two runs over the same graph serialize byte-identically."""
        nodes = {
            "x": ("1.0.0", {"react": "^18.3.0", "vue": "^3.0.0"}),
            "y": ("1.0.0", {"react": "^19.0.0"}),
            "react": ("18.1.0", {}),
        }

        first = json.dumps([c.to_json() for c in resolve_peer_conflicts(_graph(nodes, ["x", "y"]))])
        second = json.dumps([c.to_json() for c in resolve_peer_conflicts(_graph(nodes, ["x", "y"]))])

        assert first == second

    def test_roots_without_nodes_are_skipped(self) -> None:
        graph = _graph({}, ["lodash", "chalk"])
        assert resolve_peer_conflicts(graph) == []
