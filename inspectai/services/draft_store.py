"""Shared proposal draft slot with merge and change-notification helpers."""

import json
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional

from inspectai.config import get_settings
from inspectai.logging import get_logger
from inspectai.services.draft_normalizer import apply_defaults
from inspectai.storage import StorageChannel, StorageError, StorageEvent

logger = get_logger(__name__)

DraftListener = Callable[[Dict[str, Any]], None]


@dataclass(frozen=True)
class StoreResult:
    """Outcome of a storage step; ``error`` is set when ``ok`` is False."""

    ok: bool
    value: Any = None
    error: Optional[str] = None

    @classmethod
    def success(cls, value: Any = None) -> "StoreResult":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: str) -> "StoreResult":
        return cls(ok=False, error=error)


def merge_draft(prev: Optional[Mapping[str, Any]], incoming: Any) -> Dict[str, Any]:
    """
    Shallow-merge the keys present in ``incoming`` onto ``prev``.

    A partial update from one surface must not erase fields only the other
    surface manages, so keys absent from ``incoming`` keep their old value.
    """
    merged = dict(prev or {})
    if isinstance(incoming, Mapping):
        merged.update(incoming)
    return merged


def parse_draft(text: Optional[str]) -> StoreResult:
    """Parse serialized draft text; a non-object payload is an error."""
    if not text:
        return StoreResult.success({})
    try:
        value = json.loads(text)
    except ValueError as e:
        return StoreResult.failure(f"Malformed draft: {e}")
    if not isinstance(value, dict):
        return StoreResult.failure(f"Draft is a {type(value).__name__}, not an object")
    return StoreResult.success(value)


class DraftStore:
    """
    One surface's handle on the shared draft slot.

    Reads always return a defaulted draft and writes never raise: a corrupt
    slot reads as an empty draft, and a rejected write leaves the caller's
    in-memory draft authoritative.
    """

    def __init__(self, channel: StorageChannel, surface: str, key: Optional[str] = None):
        """
        Initialize the draft store.

        Args:
            channel: Storage channel shared by all surfaces
            surface: Identifier of the owning surface
            key: Storage slot; defaults to the configured draft key
        """
        self.channel = channel
        self.surface = surface
        self.key = key or get_settings().draft_key
        self.logger = get_logger(__name__, {"surface": surface})

    def load(self) -> StoreResult:
        """Read and parse the slot without defaulting."""
        return parse_draft(self.channel.get(self.key))

    def read_draft(self) -> Dict[str, Any]:
        """Return the stored draft with defaults applied."""
        result = self.load()
        if not result.ok:
            self.logger.warning(f"Ignoring stored draft: {result.error}")
            return apply_defaults({})
        return apply_defaults(result.value)

    def persist(self, draft: Optional[Mapping[str, Any]]) -> StoreResult:
        """Serialize and store ``draft``, reporting failures as a result."""
        try:
            text = json.dumps(dict(draft or {}))
        except (TypeError, ValueError) as e:
            return StoreResult.failure(f"Draft is not serializable: {e}")
        try:
            self.channel.set(self.key, text, origin=self.surface)
        except StorageError as e:
            return StoreResult.failure(str(e))
        return StoreResult.success(text)

    def write_draft(self, draft: Optional[Mapping[str, Any]]) -> None:
        """Store ``draft``, best effort."""
        result = self.persist(draft)
        if not result.ok:
            self.logger.warning(f"Draft not saved: {result.error}")

    def subscribe(self, listener: DraftListener) -> Callable[[], None]:
        """
        Call ``listener`` with the raw incoming draft whenever another surface
        writes the slot.

        The payload is not defaulted; receivers apply defaults themselves.
        Malformed payloads arrive as an empty mapping.

        Returns:
            A callable that removes the subscription
        """

        def on_storage(event: StorageEvent) -> None:
            if event.key != self.key:
                return
            result = parse_draft(event.new_value)
            if not result.ok:
                self.logger.warning(f"Ignoring malformed draft update: {result.error}")
            listener(result.value if result.ok else {})

        return self.channel.subscribe(self.surface, on_storage)
