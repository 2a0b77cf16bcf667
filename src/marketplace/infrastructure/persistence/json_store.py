"""A single JSON document holding every collection the order core persists.

All repositories share one store, so a transition that writes stock and
the order lands in the file as one atomic replace or not at all.

The outermost transaction holds an exclusive ``flock`` on a sidecar lock
file from read to write, so separate processes (and separate store
instances) on one file serialize their read-modify-write cycles.
"""

from __future__ import annotations

import fcntl
import json
import os
import tempfile
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from marketplace.domain.exceptions import PersistenceFailure

COLLECTIONS = ("products", "inventory", "reservations", "orders", "sellers", "coupons")


class JsonDocumentStore:

    def __init__(self, file_path: Path) -> None:
        self._file_path = file_path
        self._lock_path = file_path.with_name(f".{file_path.name}.lock")
        self._lock = threading.RLock()
        self._working: dict[str, dict] | None = None
        self._ensure_file()

    @property
    def file_path(self) -> Path:
        return self._file_path

    @contextmanager
    def transaction(self) -> Iterator[dict[str, dict]]:
        """Yield the working document.

        The outermost transaction loads the file and writes it back once,
        on success, if anything changed. Nested transactions join it. An
        exception anywhere discards every change.
        """
        with self._lock:
            if self._working is not None:
                yield self._working
                return

            with self._file_lock():
                original = self._read_text()
                self._working = self._parse(original)
                try:
                    yield self._working
                    text = self._dump(self._working)
                    if text != original:
                        self._write_text(text)
                finally:
                    self._working = None

    # --- File helpers ---------------------------------------------------------

    def _parse(self, text: str) -> dict[str, dict]:
        try:
            document = json.loads(text)
        except json.JSONDecodeError as exc:
            raise PersistenceFailure(f"Corrupt data file {self._file_path}: {exc}") from exc
        for name in COLLECTIONS:
            document.setdefault(name, {})
        return document

    @staticmethod
    def _dump(document: dict[str, dict]) -> str:
        return json.dumps(document, indent=2, sort_keys=True) + "\n"

    def _read_text(self) -> str:
        try:
            return self._file_path.read_text(encoding="utf-8")
        except OSError as exc:
            raise PersistenceFailure(f"Cannot read {self._file_path}: {exc}") from exc

    def _write_text(self, text: str) -> None:
        # Write-then-rename so readers never see a half-written file.
        try:
            fd, tmp_name = tempfile.mkstemp(
                dir=self._file_path.parent, prefix=".marketplace-", suffix=".tmp"
            )
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(text)
            os.replace(tmp_name, self._file_path)
        except OSError as exc:
            raise PersistenceFailure(f"Cannot write {self._file_path}: {exc}") from exc

    @contextmanager
    def _file_lock(self) -> Iterator[None]:
        try:
            handle = open(self._lock_path, "a")
        except OSError as exc:
            raise PersistenceFailure(f"Cannot open lock file {self._lock_path}: {exc}") from exc
        with handle:
            fcntl.flock(handle.fileno(), fcntl.LOCK_EX)
            try:
                yield
            finally:
                fcntl.flock(handle.fileno(), fcntl.LOCK_UN)

    def _ensure_file(self) -> None:
        try:
            self._file_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise PersistenceFailure(f"Cannot create {self._file_path.parent}: {exc}") from exc
        with self._lock, self._file_lock():
            if not self._file_path.exists():
                self._write_text(self._dump({name: {} for name in COLLECTIONS}))
