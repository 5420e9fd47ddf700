from __future__ import annotations

import logging
import re
import shutil
import time
from pathlib import Path

"""Local-directory object storage.

Objects live under ``<root>/<bucket>/<key>``; keys for uploads are
``<owner>/<epoch_ms>_<file name>`` so two uploads of the same name never
collide.
"""

__all__ = [
    "StorageError",
    "LocalObjectStorage",
    "object_key",
]

logger = logging.getLogger(__name__)

_UNSAFE_SEGMENT = re.compile(r"[^A-Za-z0-9._@-]+")


class StorageError(Exception):
    pass


def _safe_segment(value: str) -> str:
    cleaned = _UNSAFE_SEGMENT.sub("_", value).strip("._")
    return cleaned or "_"


def object_key(owner: str | None, file_name: str, epoch_ms: int | None = None) -> str:
    stamp = epoch_ms if epoch_ms is not None else int(time.time() * 1000)
    return f"{_safe_segment(owner or 'anonymous')}/{stamp}_{_safe_segment(Path(file_name).name)}"


class LocalObjectStorage:
    def __init__(self, root: Path | str, bucket: str = "imports") -> None:
        self.base = Path(root) / bucket

    def _resolve(self, key: str) -> Path:
        path = (self.base / key).resolve()
        if self.base.resolve() not in path.parents:
            raise StorageError(f"object key escapes bucket: {key}")
        return path

    def upload(self, source: Path, owner: str | None = None) -> str:
        """Copy ``source`` into the bucket; returns the object key."""
        if not source.is_file():
            raise StorageError(f"upload source not found: {source}")
        key = object_key(owner, source.name)
        target = self._resolve(key)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(source, target)
        except OSError as e:
            raise StorageError(f"upload failed for {source.name}: {e}") from e
        logger.debug("stored %s as %s", source.name, key)
        return key

    def path(self, key: str) -> Path:
        """Local path of a stored object (download equivalent)."""
        target = self._resolve(key)
        if not target.is_file():
            raise StorageError(f"object not found: {key}")
        return target

    def exists(self, key: str) -> bool:
        return self._resolve(key).is_file()

    def delete(self, key: str) -> None:
        target = self._resolve(key)
        try:
            target.unlink()
        except FileNotFoundError:
            return
        except OSError as e:
            raise StorageError(f"delete failed for {key}: {e}") from e
