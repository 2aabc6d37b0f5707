"""
Filesystem utilities for peerkeeper.

Small, safe helpers for reading configuration files and atomically
replacing the JSON cache document. All filesystem errors are normalized
to ``FileOperationError``.
"""

from __future__ import annotations

import os
import tempfile
from pathlib import Path
from typing import Optional, Union

from peerkeeper.utils.logger import get_logger
from peerkeeper.exceptions import FileOperationError

logger = get_logger("filesystem")

PathLike = Union[str, Path]

#: Maximum size accepted when reading configuration files.
MAX_FILE_SIZE = 10 * 1024 * 1024  # 10 MB


def read_text_if_exists(
    file_path: PathLike,
    *,
    max_size: Optional[int] = MAX_FILE_SIZE,
    encoding: str = "utf-8",
) -> Optional[str]:
    """Read a text file, returning ``None`` when it does not exist.

    Args:
        file_path: Path to the file.
        max_size: Maximum allowed file size in bytes (None disables limit).
        encoding: Text encoding.

    Raises:
        FileOperationError: The path exists but cannot be read, or is too large.
    """
    path = Path(file_path)
    if not path.is_file():
        return None

    size = path.stat().st_size
    if max_size is not None and size > max_size:
        raise FileOperationError(
            f"File too large: {size} bytes (max {max_size})",
            file_path=str(path),
            operation="read",
        )

    try:
        return path.read_text(encoding=encoding)
    except Exception as exc:
        raise FileOperationError(
            f"Failed to read file: {exc}",
            file_path=str(path),
            operation="read",
            original_error=exc,
        ) from exc


def atomic_write_text(target: PathLike, content: str) -> None:
    """Atomically write text to a file using a temporary file + replace.

    Readers see either the previous content or the new content, never a
    partially written file.
    """
    target = Path(target)
    temp_path: Optional[Path] = None

    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            mode="w",
            encoding="utf-8",
            dir=str(target.parent),
            delete=False,
            prefix=f".{target.name}.",
            suffix=".tmp",
        ) as tmp:
            temp_path = Path(tmp.name)
            tmp.write(content)
            tmp.flush()
            os.fsync(tmp.fileno())

        os.replace(temp_path, target)

    except Exception as exc:
        if temp_path and temp_path.exists():
            try:
                temp_path.unlink()
                logger.debug("Cleaned up temporary file: %s", temp_path)
            except OSError as cleanup_exc:
                logger.warning(
                    "Failed to clean up temporary file %s: %s",
                    temp_path,
                    cleanup_exc,
                )

        raise FileOperationError(
            f"Atomic write failed: {exc}",
            file_path=str(target),
            operation="write",
            original_error=exc,
        ) from exc
