"""
Key/value storage shared by the UI surfaces.

A ``StorageChannel`` wraps a backend and plays the role of the browser's
local storage: every surface reads and writes the same slots, and a write is
announced to every *other* subscribed surface. The writer never hears about
its own write.
"""

import os
import tempfile
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Optional, Protocol, Tuple

from inspectai.config import get_settings
from inspectai.logging import get_logger

logger = get_logger(__name__)


class StorageError(Exception):
    """Raised when a backend cannot persist a value."""


class StorageQuotaExceeded(StorageError):
    """Raised when a write would exceed the backend's byte quota."""


class StorageBackend(Protocol):
    """Minimal string key/value slot interface."""

    def get(self, key: str) -> Optional[str]:
        ...

    def set(self, key: str, value: str) -> None:
        ...

    def remove(self, key: str) -> None:
        ...


class InMemoryStorage:
    """Process-local storage with an optional byte quota."""

    def __init__(self, quota_bytes: Optional[int] = None):
        """
        Initialize in-memory storage.

        Args:
            quota_bytes: Maximum total size of stored values, unlimited when None
        """
        self.quota_bytes = quota_bytes
        self._data: Dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        if self.quota_bytes is not None:
            used = sum(len(v.encode("utf-8")) for k, v in self._data.items() if k != key)
            if used + len(value.encode("utf-8")) > self.quota_bytes:
                raise StorageQuotaExceeded(f"Quota of {self.quota_bytes} bytes exceeded writing {key}")
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)


class FileStorage:
    """
    File-backed storage, one JSON document per key.

    Reads are resilient: a missing or unreadable file reads as absent.
    Writes raise ``StorageError`` so callers decide how to handle failures.
    """

    def __init__(self, base_path: str = ".inspectai"):
        """
        Initialize file storage.

        Args:
            base_path: Directory holding one file per key
        """
        self.base_path = Path(base_path)
        self.base_path.mkdir(parents=True, exist_ok=True)

    def _resolve_path(self, key: str) -> Path:
        """Resolve a key to a file inside the storage directory."""
        safe_key = "".join(ch if ch.isalnum() or ch in "-_." else "_" for ch in key)
        return self.base_path / f"{safe_key}.json"

    def get(self, key: str) -> Optional[str]:
        file_path = self._resolve_path(key)
        try:
            return file_path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            logger.warning(f"Could not read storage key {key}: {e}")
            return None

    def set(self, key: str, value: str) -> None:
        """Write ``value`` to a temp file beside the slot, then swap it into place."""
        file_path = self._resolve_path(key)
        tmp_path = None
        try:
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=self.base_path,
                prefix=f".{file_path.stem}.",
                suffix=".tmp",
                delete=False,
            ) as tmp:
                tmp_path = Path(tmp.name)
                tmp.write(value)
                tmp.flush()
                os.fsync(tmp.fileno())
            tmp_path.replace(file_path)
        except OSError as e:
            if tmp_path is not None:
                tmp_path.unlink(missing_ok=True)
            raise StorageError(f"Could not write storage key {key}: {e}") from e

    def remove(self, key: str) -> None:
        try:
            self._resolve_path(key).unlink()
        except FileNotFoundError:
            pass


@dataclass(frozen=True)
class StorageEvent:
    """Change notification delivered to surfaces other than the writer."""

    key: str
    old_value: Optional[str]
    new_value: Optional[str]
    origin: str


StorageListener = Callable[[StorageEvent], None]


class StorageChannel:
    """Shared storage slots plus change notifications between surfaces."""

    def __init__(self, backend: StorageBackend):
        """
        Initialize the channel.

        Args:
            backend: Storage backend holding the slots
        """
        self.backend = backend
        self._listeners: List[Tuple[str, StorageListener]] = []
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[str]:
        return self.backend.get(key)

    def set(self, key: str, value: str, origin: str) -> None:
        """
        Store ``value`` and notify every surface except ``origin``.

        Raises:
            StorageError: If the backend rejects the write
        """
        old_value = self.backend.get(key)
        self.backend.set(key, value)
        if old_value != value:
            self._dispatch(StorageEvent(key=key, old_value=old_value, new_value=value, origin=origin))

    def remove(self, key: str, origin: str) -> None:
        old_value = self.backend.get(key)
        self.backend.remove(key)
        if old_value is not None:
            self._dispatch(StorageEvent(key=key, old_value=old_value, new_value=None, origin=origin))

    def subscribe(self, surface: str, listener: StorageListener) -> Callable[[], None]:
        """
        Register ``listener`` for writes made by other surfaces.

        Args:
            surface: Identifier of the subscribing surface
            listener: Called with each StorageEvent from another surface

        Returns:
            A callable that removes the subscription
        """
        entry = (surface, listener)
        with self._lock:
            self._listeners.append(entry)

        def unsubscribe() -> None:
            with self._lock:
                if entry in self._listeners:
                    self._listeners.remove(entry)

        return unsubscribe

    def _dispatch(self, event: StorageEvent) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for surface, listener in listeners:
            if surface == event.origin:
                continue
            try:
                listener(event)
            except Exception:
                # Listener failures stay isolated
                logger.exception(f"Storage listener for {surface} failed on {event.key}")


def create_storage_channel(storage_dir: Optional[str] = None) -> StorageChannel:
    """
    Create a storage channel from settings.

    Args:
        storage_dir: Directory for file storage; defaults to the configured one

    Returns:
        Channel over file storage when a directory is configured, memory otherwise
    """
    directory = storage_dir or get_settings().storage_dir
    if directory:
        return StorageChannel(FileStorage(directory))
    return StorageChannel(InMemoryStorage())
