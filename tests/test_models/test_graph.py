from __future__ import annotations

import pytest

from peerkeeper.models.graph import PeerGraph, PeerNode


@pytest.mark.unit
class TestPeerNode:
    """Tests for PeerNode."""

    def test_requirements_read_only(self) -> None:
        source = {"react": "^18.0.0"}
        node = PeerNode("react-dom", "18.2.0", source)
        source["vue"] = "^3.0.0"

        assert dict(node.peer_requirements) == {"react": "^18.0.0"}
        with pytest.raises(TypeError):
            node.peer_requirements["x"] = "1"  # type: ignore[index]

    def test_has_peers(self) -> None:
        assert PeerNode("react", "18.2.0").has_peers is False
        assert PeerNode("react-dom", "18.2.0", {"react": "^18"}).has_peers is True

    def test_to_json_sorted_requirements(self) -> None:
        node = PeerNode("x", "1.0.0", {"b": "1", "a": "2"})
        assert list(node.to_json()["peerRequirements"]) == ["a", "b"]


@pytest.mark.unit
class TestPeerGraph:
    """Tests for the read-only PeerGraph view."""

    def test_roots_deduplicated_in_order(self) -> None:
        graph = PeerGraph({}, ["b", "a", "b", "c", "a"])
        assert graph.roots == ("b", "a", "c")

    def test_nodes_read_only(self) -> None:
        nodes = {"react": PeerNode("react", "18.2.0")}
        graph = PeerGraph(nodes, ["react"])
        nodes["vue"] = PeerNode("vue", "3.0.0")

        assert "vue" not in graph
        assert len(graph) == 1
        with pytest.raises(TypeError):
            graph.nodes["vue"] = PeerNode("vue", "3.0.0")  # type: ignore[index]

    def test_lookup_and_iteration(self) -> None:
        react = PeerNode("react", "18.2.0")
        graph = PeerGraph({"react": react}, ["react"])

        assert graph.get("react") is react
        assert graph.get("missing") is None
        assert list(graph) == [react]

    def test_to_json(self) -> None:
        graph = PeerGraph(
            {
                "react-dom": PeerNode("react-dom", "18.2.0", {"react": "^18.2.0"}),
                "react": PeerNode("react", "18.2.0"),
            },
            ["react-dom", "react"],
        )

        data = graph.to_json()

        assert data["roots"] == ["react-dom", "react"]
        assert list(data["nodes"]) == ["react", "react-dom"]
