from __future__ import annotations

import json
from dataclasses import FrozenInstanceError

import pytest

from peerkeeper.models.dependency import (
    DependencyKind,
    PackageDependency,
    PackageUpdate,
    UpdatePolicy,
    clamp_target,
)


def _update(**overrides: object) -> PackageUpdate:
    fields = dict(
        package_path="/repo",
        name="react",
        kind=DependencyKind.RUNTIME,
        from_range="^18.2.0",
        to_range="^19.0.0",
        to_version_resolved="19.0.0",
        diff_type=UpdatePolicy.MAJOR,
    )
    fields.update(overrides)
    return PackageUpdate(**fields)


@pytest.mark.unit
class TestUpdatePolicy:
    """Tests for UpdatePolicy ordering and clamp_target."""

    def test_rank_order(self) -> None:
        ranks = [policy.rank for policy in UpdatePolicy]
        assert ranks == [0, 1, 2, 3]

    def test_values(self) -> None:
        assert UpdatePolicy("minor") is UpdatePolicy.MINOR
        assert UpdatePolicy.LATEST == "latest"

    @pytest.mark.parametrize(
        "requested, maximum, expected",
        [
            (UpdatePolicy.MAJOR, UpdatePolicy.MINOR, UpdatePolicy.MINOR),
            (UpdatePolicy.LATEST, UpdatePolicy.PATCH, UpdatePolicy.PATCH),
            (UpdatePolicy.PATCH, UpdatePolicy.MAJOR, UpdatePolicy.PATCH),
            (UpdatePolicy.MINOR, None, UpdatePolicy.MINOR),
        ],
    )
    def test_clamp_target(
        self, requested: UpdatePolicy, maximum: UpdatePolicy, expected: UpdatePolicy
    ) -> None:
        assert clamp_target(requested, maximum) is expected


@pytest.mark.unit
class TestPackageDependency:
    """Tests for the PackageDependency value object."""

    def test_defaults_to_runtime(self) -> None:
        dep = PackageDependency("react", "^18.2.0")
        assert dep.kind is DependencyKind.RUNTIME
        assert dep.kind.value == "dependencies"

    def test_frozen(self) -> None:
        dep = PackageDependency("react", "^18.2.0")
        with pytest.raises(FrozenInstanceError):
            dep.range = "^19.0.0"  # type: ignore[misc]

    def test_hashable_and_equal(self) -> None:
        assert {PackageDependency("a", "1.0.0"), PackageDependency("a", "1.0.0")} == {
            PackageDependency("a", "1.0.0")
        }


@pytest.mark.unit
class TestPackageUpdate:
    """Tests for PackageUpdate serialization and ordering."""

    def test_to_json_key_order(self) -> None:
        assert list(_update().to_json()) == [
            "packagePath",
            "name",
            "kind",
            "fromRange",
            "toRange",
            "toVersionResolved",
            "diffType",
            "autofix",
        ]

    def test_to_json_values(self) -> None:
        data = _update(autofix=False, reason="policy maxTarget=minor").to_json()

        assert data["kind"] == "dependencies"
        assert data["diffType"] == "major"
        assert data["autofix"] is False
        assert data["reason"] == "policy maxTarget=minor"
        json.dumps(data)

    def test_sort_key(self) -> None:
        updates = [
            _update(name="b"),
            _update(package_path="/a", name="z"),
            _update(name="a", kind=DependencyKind.DEV),
            _update(name="a"),
        ]

        ordered = sorted(updates, key=PackageUpdate.sort_key)

        assert [(u.package_path, u.name, u.kind) for u in ordered] == [
            ("/a", "z", DependencyKind.RUNTIME),
            ("/repo", "a", DependencyKind.RUNTIME),
            ("/repo", "a", DependencyKind.DEV),
            ("/repo", "b", DependencyKind.RUNTIME),
        ]

    def test_str(self) -> None:
        assert str(_update()) == "react ^18.2.0 -> ^19.0.0 (major)"
