"""Directory-backed key-value store writing one JSON document per key."""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Any

from .base import KeyValueStore, safe_name


class FileKeyValueStore(KeyValueStore):
    """Store values as ``<storage_dir>/key_value_stores/<store>/<key>.json``."""

    def __init__(self, storage_dir: Path, name: str) -> None:
        super().__init__(name)
        self.directory = storage_dir / "key_value_stores" / safe_name(name, "default")
        self.directory.mkdir(parents=True, exist_ok=True)

    def path_for(self, key: str) -> Path:
        return self.directory / f"{safe_name(key, 'record')}.json"

    def put(self, key: str, value: Any) -> None:
        target = self.path_for(key)
        # Write to a sibling temp file first so a crash never leaves half a document
        fd, tmp_name = tempfile.mkstemp(prefix=f".{target.stem}-", suffix=".tmp", dir=self.directory)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as stream:
                json.dump(value, stream, ensure_ascii=False, indent=2)
                stream.flush()
                os.fsync(stream.fileno())
            os.replace(tmp_name, target)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def get(self, key: str, default: Any = None) -> Any:
        path = self.path_for(key)
        if not path.exists():
            return default
        return json.loads(path.read_text(encoding="utf-8"))

    def close(self) -> None:
        return


__all__ = ["FileKeyValueStore"]
