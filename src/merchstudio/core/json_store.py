"""Locked, atomic JSON file persistence.

Every store in Merch Studio is a single pretty-printed JSON document on disk
(an array for design, product, order and idea stores; an object for
``config.json``).  Updating one means reading the whole document, changing
it, and writing it back.  Done naively, two overlapping requests lose one of
the updates.

:class:`JsonFile` removes that lost-update race:

- a process-wide ``threading.Lock`` per resolved path serialises threads
  (FastAPI runs sync handlers in a thread pool);
- an exclusive ``fcntl.flock`` on a sidecar ``<name>.lock`` file serialises
  processes that share the data directory;
- writes go to a temporary file in the same directory and are moved into
  place with ``os.replace``, so readers never observe a half-written file.

Reads are forgiving: a missing, empty or
unparsable file yields the caller's default instead of an exception.
"""

from __future__ import annotations

import fcntl
import json
import logging
import os
import tempfile
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from merchstudio.core.exceptions import StorageError

logger = logging.getLogger(__name__)

_registry_lock = threading.Lock()
_path_locks: dict[Path, threading.Lock] = {}


def _lock_for(path: Path) -> threading.Lock:
    """Return the process-wide lock guarding *path*."""
    key = path.resolve()
    with _registry_lock:
        lock = _path_locks.get(key)
        if lock is None:
            lock = threading.Lock()
            _path_locks[key] = lock
        return lock


def dump_json(data: Any) -> str:
    """Serialise *data* the way every store file is written.

    Four-space indentation, UTF-8 characters kept as-is and forward slashes
    left unescaped (``json`` never escapes them).
    """
    return json.dumps(data, indent=4, ensure_ascii=False)


class JsonFile:
    """One JSON document on disk with serialised read-modify-write access.

    Args:
        path: Location of the JSON file.  Parent directories are created on
            first write.
        default: Factory for the value returned when the file is missing or
            invalid (``list`` for array stores, ``dict`` for ``config.json``).
    """

    def __init__(self, path: Path, default: Callable[[], Any] = list) -> None:
        self.path = Path(path)
        self._default = default

    # ------------------------------------------------------------------
    # Locking
    # ------------------------------------------------------------------

    @contextmanager
    def locked(self) -> Iterator[None]:
        """Hold both the thread lock and the cross-process file lock."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        lock_path = self.path.with_name(self.path.name + ".lock")
        with _lock_for(self.path):
            with open(lock_path, "a") as lock_handle:
                fcntl.flock(lock_handle, fcntl.LOCK_EX)
                try:
                    yield
                finally:
                    fcntl.flock(lock_handle, fcntl.LOCK_UN)

    # ------------------------------------------------------------------
    # Raw I/O (callers must hold the lock for writes)
    # ------------------------------------------------------------------

    def _read_unlocked(self) -> Any:
        default = self._default()
        if not self.path.exists():
            return default
        try:
            with open(self.path, encoding="utf-8") as handle:
                data = json.load(handle)
        except (OSError, ValueError) as exc:
            logger.warning(f"Ignoring unreadable JSON file {self.path}: {exc}")
            return default
        if not isinstance(data, type(default)):
            logger.warning(f"Ignoring {self.path}: expected {type(default).__name__}")
            return default
        return data

    def _write_unlocked(self, data: Any) -> None:
        try:
            fd, tmp_name = tempfile.mkstemp(
                dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    handle.write(dump_json(data))
                os.replace(tmp_name, self.path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as exc:
            logger.error(f"Failed to write {self.path}: {exc}")
            raise StorageError(f"Could not write {self.path.name}.") from exc
        logger.debug(f"Wrote {self.path}")

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def read(self) -> Any:
        """Return the parsed document, or the default if unavailable."""
        return self._read_unlocked()

    def write(self, data: Any) -> None:
        """Replace the whole document atomically."""
        with self.locked():
            self._write_unlocked(data)

    def update(self, mutate: Callable[[Any], Any]) -> Any:
        """Apply *mutate* to the current document under the lock.

        *mutate* receives the parsed document and may either modify it in
        place (returning ``None``) or return a replacement.  The resulting
        document is written back before the lock is released.

        Returns:
            The document that was written.
        """
        with self.locked():
            data = self._read_unlocked()
            result = mutate(data)
            if result is not None:
                data = result
            self._write_unlocked(data)
            return data
