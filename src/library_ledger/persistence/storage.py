"""JSON document storage shared by the ledger and the collections.

Each store keeps its whole state in one JSON document that is read once at
startup and rewritten after every mutation. Writes go to a temporary file in
the same directory and are moved over the target with ``os.replace`` so a
crash mid-write never leaves a truncated document behind.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

from .errors import StorageError

logger = logging.getLogger(__name__)


def read_document(path: Path) -> dict[str, Any] | None:
    """Read a JSON document.

    Args:
        path: Document location

    Returns:
        The decoded document, or None if the file does not exist or is empty

    Raises:
        StorageError: If the file cannot be read or does not hold a JSON object
    """
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return None
    except OSError as e:
        raise StorageError(path, f"cannot read document: {e}") from e

    if not raw.strip():
        return None

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise StorageError(path, f"malformed document: {e}") from e

    if not isinstance(data, dict):
        raise StorageError(path, "document root must be an object")
    return data


def write_document(path: Path, document: dict[str, Any]) -> None:
    """Atomically replace ``path`` with ``document`` serialized as JSON.

    Raises:
        StorageError: If the document cannot be written
    """
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            dir=path.parent, prefix=f".{path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(document, f, ensure_ascii=False, default=str)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
    except OSError as e:
        logger.error(f"Failed to write {path}: {e}")
        raise StorageError(path, f"cannot write document: {e}") from e
