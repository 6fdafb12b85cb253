"""Key-value storage collaborator and its local backends."""

from __future__ import annotations

import fcntl
import json
import os
import re
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Optional, Protocol


_SAFE_KEY_RE = re.compile(r"[^a-zA-Z0-9._-]")


class KeyValueStore(Protocol):
    def get(self, key: str) -> Optional[Any]: ...

    def set(self, key: str, value: Any) -> None: ...

    def remove(self, key: str) -> None: ...


def ensure_private_dir(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)
    os.chmod(path, 0o700)


def ensure_private_file(path: Path) -> None:
    if not path.exists():
        path.touch()
    os.chmod(path, 0o600)


def key_to_filename(key: str) -> str:
    """Map a store key to a filesystem-safe file name."""
    return _SAFE_KEY_RE.sub("_", key) + ".json"


class FileKeyValueStore:
    """One private JSON file per key, replaced atomically under an flock."""

    def __init__(self, base_dir: Path):
        self.base_dir = base_dir
        ensure_private_dir(self.base_dir)
        self._lock_path = self.base_dir / ".lock"
        ensure_private_file(self._lock_path)

    @contextmanager
    def _lock(self):
        with open(self._lock_path, "r+") as lockf:
            fcntl.flock(lockf.fileno(), fcntl.LOCK_EX)
            try:
                yield
            finally:
                fcntl.flock(lockf.fileno(), fcntl.LOCK_UN)

    def _path(self, key: str) -> Path:
        path = (self.base_dir / key_to_filename(key)).resolve()
        if path.parent != self.base_dir.resolve():
            raise ValueError(f"Unsafe storage key: {key}")
        return path

    def get(self, key: str) -> Optional[Any]:
        with self._lock():
            path = self._path(key)
            if not path.exists():
                return None
            with open(path, encoding="utf-8") as f:
                return json.load(f)

    def set(self, key: str, value: Any) -> None:
        with self._lock():
            path = self._path(key)
            tmp_path = path.with_suffix(path.suffix + f".tmp.{os.getpid()}.{threading.get_ident()}")
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(value, f, indent=2, sort_keys=True)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, path)
            ensure_private_file(path)

    def remove(self, key: str) -> None:
        with self._lock():
            path = self._path(key)
            if path.exists():
                path.unlink()


class MemoryKeyValueStore:
    """In-process store; values are JSON round-tripped so callers can't alias them."""

    def __init__(self):
        self._data: dict[str, str] = {}
        self._mutex = threading.Lock()

    def get(self, key: str) -> Optional[Any]:
        with self._mutex:
            raw = self._data.get(key)
        return None if raw is None else json.loads(raw)

    def set(self, key: str, value: Any) -> None:
        encoded = json.dumps(value)
        with self._mutex:
            self._data[key] = encoded

    def remove(self, key: str) -> None:
        with self._mutex:
            self._data.pop(key, None)

    def __contains__(self, key: str) -> bool:
        return key in self._data
