from __future__ import annotations

import pytest

from peerkeeper.models.conflict import ConflictSeverity, PeerConflict


@pytest.mark.unit
class TestPeerConflict:
    """Tests for PeerConflict derived fields and serialization."""

    def test_suggestion_for_missing_peer(self) -> None:
        conflict = PeerConflict(
            requester="react-dom",
            peer="react",
            required_range="^18.2.0",
            resolved_version="(not installed)",
            severity=ConflictSeverity.ERROR,
            is_installed=False,
        )

        assert conflict.suggestion == (
            "Install react@^18.2.0 (required by react-dom but not found in the dependency tree)"
        )

    def test_suggestion_for_upgrade(self) -> None:
        conflict = PeerConflict(
            requester="react-dom",
            peer="react",
            required_range="^18.2.0",
            resolved_version="17.0.2",
            severity=ConflictSeverity.ERROR,
        )

        assert conflict.suggestion == (
            'Upgrade react from 17.0.2 to 18.2.0 (required by react-dom: "react": "^18.2.0")'
        )

    def test_suggestion_regenerated_from_fields(self) -> None:
        """Test equal conflicts always render the same suggestion."""
        a = PeerConflict("x", "y", "~1.2.0", "1.1.0", ConflictSeverity.WARNING)
        b = PeerConflict("x", "y", "~1.2.0", "1.1.0", ConflictSeverity.WARNING)

        assert a == b
        assert a.suggestion == b.suggestion
        assert "to 1.2.0" in a.suggestion

    def test_to_json_key_order(self) -> None:
        conflict = PeerConflict("x", "y", "^2.0.0", "1.0.0", ConflictSeverity.ERROR)

        assert list(conflict.to_json()) == [
            "requester",
            "peer",
            "requiredRange",
            "resolvedVersion",
            "severity",
            "isInstalled",
            "suggestion",
        ]
        assert conflict.to_json()["severity"] == "error"

    def test_sort_key_errors_first(self) -> None:
        warning = PeerConflict("a", "p", "^1.2.0", "1.1.0", ConflictSeverity.WARNING)
        error = PeerConflict("z", "p", "^2.0.0", "1.0.0", ConflictSeverity.ERROR)

        assert sorted([warning, error], key=PeerConflict.sort_key) == [error, warning]

    def test_str(self) -> None:
        conflict = PeerConflict("x", "y", "^2.0.0", "1.0.0", ConflictSeverity.ERROR)
        assert str(conflict) == "[error] x requires y@^2.0.0 (resolved 1.0.0)"
