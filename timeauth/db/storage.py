"""
Key-Value Storage
=================

The persisted store every auth component reads and writes through.

The contract is deliberately small: ``get`` / ``set`` / ``remove`` of opaque
strings, no transactions, no schema. Parsing and validation of the stored
JSON is the caller's job.

Implementations:
- MemoryStorage: dict-backed, for tests and embedding
- JsonFileStorage: a single JSON object on disk, rewritten atomically
"""

from __future__ import annotations

import json
import logging
import os
import platform
import tempfile
from pathlib import Path
from typing import Dict, Optional, Protocol, runtime_checkable


class StorageUnavailable(Exception):
    """Raised when the backing store cannot be read or written."""
    pass


@runtime_checkable
class KeyValueStorage(Protocol):
    """Generic string key-value store."""

    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...


class MemoryStorage:
    """In-process storage. Contents are lost with the instance."""

    __slots__ = ("_data",)

    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        if not isinstance(value, str):
            raise TypeError("Storage values must be strings")
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"MemoryStorage(keys={len(self._data)})"


class PrefixedStorage:
    """
    View over another storage that namespaces every key.

    Lets several applications share one partition, e.g. ``chtime-`` keys
    next to unrelated data.
    """

    __slots__ = ("_inner", "_prefix")

    def __init__(self, inner: KeyValueStorage, prefix: str) -> None:
        self._inner = inner
        self._prefix = prefix

    def get(self, key: str) -> Optional[str]:
        return self._inner.get(self._prefix + key)

    def set(self, key: str, value: str) -> None:
        self._inner.set(self._prefix + key, value)

    def remove(self, key: str) -> None:
        self._inner.remove(self._prefix + key)


class JsonFileStorage:
    """
    File-backed storage holding one JSON object of key -> string.

    Every write re-reads the file, applies the change and replaces the file
    atomically, so a crash mid-write leaves the previous contents intact.
    A file that is not a JSON object of strings reads as empty.

    Usage:
        storage = JsonFileStorage(Path("~/.local/share/timeauth/auth-store.json").expanduser())
        storage.set("system-policy", '{"registrationEnabled": true}')
    """

    __slots__ = ("_path", "_log")

    def __init__(self, path: Path | str) -> None:
        self._path = Path(path)
        self._log = logging.getLogger("timeauth.storage")

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> Dict[str, str]:
        if not self._path.exists():
            return {}

        try:
            raw = self._path.read_bytes()
        except OSError as e:
            raise StorageUnavailable(f"Cannot read {self._path}: {e}") from e

        try:
            data = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError):
            self._log.warning("Store file %s is not valid JSON; treating as empty", self._path.name)
            return {}

        if not isinstance(data, dict):
            self._log.warning("Store file %s is not a JSON object; treating as empty", self._path.name)
            return {}

        return {k: v for k, v in data.items() if isinstance(k, str) and isinstance(v, str)}

    def _atomic_write(self, data: Dict[str, str]) -> None:
        """Write the whole store to a temp file and move it into place."""
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                mode="w",
                dir=self._path.parent,
                prefix=f".{self._path.name}.",
                delete=False,
                encoding="utf-8",
            ) as tf:
                json.dump(data, tf, indent=2, ensure_ascii=False)
                temp_path = Path(tf.name)
        except OSError as e:
            raise StorageUnavailable(f"Cannot write {self._path}: {e}") from e

        try:
            if platform.system().lower() != "windows":
                temp_path.chmod(0o600)
            os.replace(temp_path, self._path)
        except OSError as e:
            if temp_path.exists():
                temp_path.unlink()
            raise StorageUnavailable(f"Cannot replace {self._path}: {e}") from e

    def get(self, key: str) -> Optional[str]:
        return self._load().get(key)

    def set(self, key: str, value: str) -> None:
        if not isinstance(value, str):
            raise TypeError("Storage values must be strings")
        data = self._load()
        data[key] = value
        self._atomic_write(data)

    def remove(self, key: str) -> None:
        data = self._load()
        if key in data:
            del data[key]
            self._atomic_write(data)

    def __repr__(self) -> str:
        return f"JsonFileStorage(path={self._path.name!r})"
