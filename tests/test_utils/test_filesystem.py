from __future__ import annotations

import os
from pathlib import Path
from unittest.mock import patch

import pytest

from peerkeeper.exceptions import FileOperationError
from peerkeeper.utils.filesystem import atomic_write_text, read_text_if_exists


@pytest.mark.unit
class TestReadTextIfExists:
    """Tests for read_text_if_exists."""

    def test_missing_file_returns_none(self, tmp_path: Path) -> None:
        assert read_text_if_exists(tmp_path / "absent.npmrc") is None

    def test_directory_returns_none(self, tmp_path: Path) -> None:
        assert read_text_if_exists(tmp_path) is None

    def test_reads_content(self, tmp_path: Path) -> None:
        target = tmp_path / ".npmrc"
        target.write_text("registry=https://r.test/\n", encoding="utf-8")

        assert read_text_if_exists(target) == "registry=https://r.test/\n"

    def test_too_large(self, tmp_path: Path) -> None:
        target = tmp_path / "big"
        target.write_text("x" * 20, encoding="utf-8")

        with pytest.raises(FileOperationError, match="too large") as exc_info:
            read_text_if_exists(target, max_size=10)

        assert exc_info.value.operation == "read"

    def test_decode_error_wrapped(self, tmp_path: Path) -> None:
        target = tmp_path / "binary"
        target.write_bytes(b"\xff\xfe\xfa")

        with pytest.raises(FileOperationError) as exc_info:
            read_text_if_exists(target)

        assert isinstance(exc_info.value.original_error, UnicodeDecodeError)


@pytest.mark.unit
class TestAtomicWriteText:
    """Tests for atomic_write_text."""

    def test_creates_parents_and_writes(self, tmp_path: Path) -> None:
        target = tmp_path / "nested" / "cache.json"

        atomic_write_text(target, '{"a": 1}')

        assert target.read_text(encoding="utf-8") == '{"a": 1}'

    def test_replaces_existing(self, tmp_path: Path) -> None:
        target = tmp_path / "cache.json"
        target.write_text("old", encoding="utf-8")

        atomic_write_text(target, "new")

        assert target.read_text(encoding="utf-8") == "new"
        assert [p.name for p in tmp_path.iterdir()] == ["cache.json"]

    def test_failure_keeps_previous_and_cleans_temp(self, tmp_path: Path) -> None:
        """Test an interrupted replace leaves the old document and no temp file."""
        target = tmp_path / "cache.json"
        target.write_text("old", encoding="utf-8")

        with patch("peerkeeper.utils.filesystem.os.replace", side_effect=OSError("disk full")):
            with pytest.raises(FileOperationError) as exc_info:
                atomic_write_text(target, "new")

        assert exc_info.value.operation == "write"
        assert target.read_text(encoding="utf-8") == "old"
        assert [p.name for p in tmp_path.iterdir()] == ["cache.json"]
