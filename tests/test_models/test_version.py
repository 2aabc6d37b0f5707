from __future__ import annotations

import pytest

from peerkeeper.models.version import CachedVersion, ParsedVersion


def _entry(fetched_at: int = 1_000_000, ttl_seconds: int = 60) -> CachedVersion:
    return CachedVersion(
        package_name="react",
        target="latest",
        latest_version="19.0.0",
        available_versions=["18.2.0", "19.0.0"],
        fetched_at=fetched_at,
        ttl_seconds=ttl_seconds,
    )


@pytest.mark.unit
class TestParsedVersion:
    """Tests for the ParsedVersion triple."""

    def test_ordering(self) -> None:
        assert ParsedVersion(1, 10, 0) > ParsedVersion(1, 9, 9)
        assert max(ParsedVersion(2, 0, 0), ParsedVersion(1, 99, 99)) == ParsedVersion(2, 0, 0)

    def test_str(self) -> None:
        assert str(ParsedVersion(18, 2, 0)) == "18.2.0"


@pytest.mark.unit
class TestCachedVersion:
    """Tests for CachedVersion TTL and JSON form."""

    def test_valid_until_expiry_inclusive(self) -> None:
        entry = _entry()

        assert entry.expires_at == 1_060_000
        assert entry.is_valid(1_060_000) is True
        assert entry.is_valid(1_060_001) is False

    @pytest.mark.parametrize("ttl", [0, -5])
    def test_non_positive_ttl_never_valid(self, ttl: int) -> None:
        entry = _entry(ttl_seconds=ttl)
        assert entry.is_valid(entry.fetched_at) is False

    def test_json_round_trip(self) -> None:
        entry = _entry()
        data = entry.to_json()

        assert list(data) == [
            "packageName",
            "target",
            "latestVersion",
            "availableVersions",
            "fetchedAt",
            "ttlSeconds",
        ]
        assert CachedVersion.from_json(data) == entry

    def test_malformed_versions_fall_back_to_latest(self) -> None:
        data = _entry().to_json()
        data["availableVersions"] = "not-a-list"

        assert CachedVersion.from_json(data).available_versions == ["19.0.0"]

    @pytest.mark.parametrize(
        "key, value",
        [("fetchedAt", None), ("fetchedAt", "soon"), ("ttlSeconds", True), ("ttlSeconds", 1.5)],
    )
    def test_non_integer_timestamps_rejected(self, key: str, value: object) -> None:
        data = _entry().to_json()
        data[key] = value

        with pytest.raises(ValueError, match=key):
            CachedVersion.from_json(data)
