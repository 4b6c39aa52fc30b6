"""
state_store.py
The Local State Store: sole owner and writer of the Settings aggregate.

Reads hand out deep copies under a shared lock. Every mutation runs as one
critical section under the exclusive lock: copy current settings, apply the
change, persist to disk, then swap the copy in. A failed save leaves both
the file and the in-memory state untouched.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Iterator, TypeVar

from Butterfly.settings import Settings, load_settings, save_settings

T = TypeVar("T")


class ReadWriteLock:
    """Many concurrent readers or one writer. Waiting writers block new readers."""

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


class SettingsStore:
    """
    Thread-safe holder of Settings backed by a JSON file.

    Parameters
    ----------
    path : Path
        Location of Settings.json.
    settings : Settings | None
        Initial state; when omitted the file is loaded (defaults if missing).
    """

    def __init__(self, path: Path, settings: Settings | None = None):
        self._path = path
        self._lock = ReadWriteLock()
        self._settings = settings if settings is not None else load_settings(path)

    @property
    def path(self) -> Path:
        return self._path

    def snapshot(self) -> Settings:
        """Return a private copy of the current settings."""
        with self._lock.read():
            return self._settings.copy()

    def read(self, fn: Callable[[Settings], T]) -> T:
        """Run *fn* against the live settings under the read lock. *fn* must not mutate."""
        with self._lock.read():
            return fn(self._settings)

    def update(self, fn: Callable[[Settings], T]) -> T:
        """
        Apply *fn* to a copy of the settings, persist it, and make it current.

        The write lock is held across the whole read-modify-write sequence so
        concurrent updates cannot lose each other's changes.
        """
        with self._lock.write():
            draft = self._settings.copy()
            result = fn(draft)
            save_settings(self._path, draft)
            self._settings = draft
            return result

    def reload(self) -> Settings:
        """Re-read the settings file, replacing in-memory state."""
        with self._lock.write():
            self._settings = load_settings(self._path)
            return self._settings.copy()
