"""Filesystem-backed object storage for device documents and logos.

Keys are relative POSIX paths such as ``local/2024-03/dev-1/Rechnung_dev-1.pdf``.
They are resolved below a single root directory and never allowed to escape it.
"""

from __future__ import annotations

import logging
from pathlib import Path, PurePosixPath
from typing import List

from ..core.config import settings
from ..core.errors import StorageError

LOGGER = logging.getLogger(__name__)


class LocalStorage:
    def __init__(self, root: Path | str) -> None:
        self.root = Path(root).resolve()

    def _clean_key(self, key: str) -> PurePosixPath:
        raw = (key or "").replace("\\", "/").strip("/")
        if not raw:
            raise StorageError("Empty storage path")
        parts = PurePosixPath(raw).parts
        if any(part in {"", ".", ".."} for part in parts):
            raise StorageError(f"Invalid storage path: {key}")
        return PurePosixPath(*parts)

    def resolve(self, key: str) -> Path:
        target = (self.root / self._clean_key(key)).resolve()
        if self.root != target and self.root not in target.parents:
            raise StorageError(f"Invalid storage path: {key}")
        return target

    def exists(self, key: str) -> bool:
        return self.resolve(key).is_file()

    def save(self, key: str, data: bytes, *, overwrite: bool = True) -> str:
        target = self.resolve(key)
        if target.exists() and not overwrite:
            raise StorageError(f"File already exists: {key}")
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        except OSError as exc:
            raise StorageError(f"Could not store {key}: {exc}") from exc
        LOGGER.debug("Stored %s (%d bytes)", key, len(data))
        return str(self._clean_key(key))

    def read(self, key: str) -> bytes:
        target = self.resolve(key)
        try:
            return target.read_bytes()
        except FileNotFoundError as exc:
            raise StorageError(f"File not found: {key}") from exc
        except OSError as exc:
            raise StorageError(f"Could not read {key}: {exc}") from exc

    def move(self, source: str, target: str) -> str:
        """Rename ``source`` to ``target``, replacing any existing file."""

        origin = self.resolve(source)
        destination = self.resolve(target)
        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            origin.replace(destination)
        except FileNotFoundError as exc:
            raise StorageError(f"File not found: {source}") from exc
        except OSError as exc:
            raise StorageError(f"Could not move {source} to {target}: {exc}") from exc
        return str(self._clean_key(target))

    def delete(self, key: str) -> bool:
        """Remove ``key``; returns False when it did not exist."""

        target = self.resolve(key)
        try:
            target.unlink()
        except FileNotFoundError:
            return False
        except OSError as exc:
            raise StorageError(f"Could not delete {key}: {exc}") from exc
        return True

    def list_dir(self, prefix: str) -> List[str]:
        """Return the keys of the files directly below ``prefix``."""

        folder = self.resolve(prefix)
        if not folder.is_dir():
            return []
        return sorted(
            str(PurePosixPath(self._clean_key(prefix)) / entry.name)
            for entry in folder.iterdir()
            if entry.is_file()
        )


def get_storage() -> LocalStorage:
    """FastAPI dependency returning the configured storage backend."""

    return LocalStorage(settings.storage_dir)


__all__ = ["LocalStorage", "get_storage"]
