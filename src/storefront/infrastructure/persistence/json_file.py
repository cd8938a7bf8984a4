"""Shared file helpers for the JSON-backed repositories.

Each data file gets one process-wide re-entrant lock, so every
read-modify-write performed under ``JsonFile.locked()`` is atomic with
respect to other threads in the same process.  Waiting for the lock is
bounded by ``timeout``; running out raises TransientStorageError.  Writes go to a sibling
temp file and are swapped in with ``os.replace`` so readers never see
a half-written document.
"""

from __future__ import annotations

import json
import os
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from storefront.domain.exceptions import StorageUnavailableError, TransientStorageError

DEFAULT_LOCK_TIMEOUT = 5.0

_LOCKS: dict[Path, threading.RLock] = {}
_LOCKS_GUARD = threading.Lock()


def _lock_for(path: Path) -> threading.RLock:
    with _LOCKS_GUARD:
        lock = _LOCKS.get(path)
        if lock is None:
            lock = _LOCKS[path] = threading.RLock()
        return lock


class JsonFile:

    def __init__(self, file_path: Path, timeout: float = DEFAULT_LOCK_TIMEOUT) -> None:
        self.path = Path(file_path).resolve()
        self.lock = _lock_for(self.path)
        self.timeout = timeout
        self._ensure_file()

    @contextmanager
    def locked(self) -> Iterator[None]:
        if not self.lock.acquire(timeout=self.timeout):
            raise TransientStorageError(
                f"Timed out after {self.timeout}s waiting for {self.path.name}"
            )
        try:
            yield
        finally:
            self.lock.release()

    def load(self) -> list[dict]:
        try:
            return json.loads(self.path.read_text(encoding="utf-8"))
        except OSError as exc:
            raise StorageUnavailableError(f"Cannot read {self.path}: {exc}") from exc
        except json.JSONDecodeError as exc:
            raise StorageUnavailableError(f"Corrupt data file {self.path}: {exc}") from exc

    def persist(self, records: list[dict]) -> None:
        tmp = self.path.with_name(f".{self.path.name}.{os.getpid()}.{threading.get_ident()}.tmp")
        try:
            tmp.write_text(json.dumps(records, indent=2) + "\n", encoding="utf-8")
            os.replace(tmp, self.path)
        except OSError as exc:
            raise StorageUnavailableError(f"Cannot write {self.path}: {exc}") from exc

    def _ensure_file(self) -> None:
        with self.locked():
            if self.path.exists():
                return
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                self.path.write_text("[]", encoding="utf-8")
            except OSError as exc:
                raise StorageUnavailableError(
                    f"Cannot create data file {self.path}: {exc}"
                ) from exc
