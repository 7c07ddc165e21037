"""Report history: generated reports with their draft snapshots."""

import copy
import json
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Mapping, Optional, Union

from inspectai.config import get_settings
from inspectai.logging import get_logger
from inspectai.schemas.draft import PricingMode
from inspectai.schemas.report import HistoryEntry, HistorySnapshot, ReportRequest, ReportResult
from inspectai.storage import StorageChannel, StorageError

logger = get_logger(__name__)

# Fields a caller may change after generation; top-level ones live on the
# entry, notes on the snapshot, everything else on the report.
ALLOWED_UPDATE_FIELDS = (
    "reportText",
    "summary",
    "photoAnalysis",
    "photos",
    "restaurantName",
    "address",
    "notes",
)
_ENTRY_FIELDS = ("restaurantName", "address")
_SNAPSHOT_FIELDS = ("notes",)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO timestamp, treating naive values as UTC."""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value:
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def normalize_entry(entry: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Normalize a stored history entry for callers.

    Ensures ``createdAt`` is an ISO string and the report carries both
    ``photos`` and ``photoAnalysis`` plus ``reportText``.
    """
    normalized = copy.deepcopy(dict(entry))

    created = normalized.get("createdAt")
    if isinstance(created, datetime):
        normalized["createdAt"] = created.isoformat()
    elif not isinstance(created, str) or not created:
        normalized["createdAt"] = datetime.now(timezone.utc).isoformat()

    report = normalized.get("report")
    if not isinstance(report, dict):
        report = {}
    photos = report.get("photos") or report.get("photoAnalysis") or []
    report["photos"] = photos
    report["photoAnalysis"] = photos
    report["reportText"] = report.get("reportText") or report.get("summary") or ""
    normalized["report"] = report

    if not isinstance(normalized.get("snapshot"), dict):
        normalized["snapshot"] = {}
    return normalized


class HistoryStore:
    """
    Recent report history kept in a storage slot.

    Entries are stored newest first and capped at ``limit``. Each entry embeds
    a by-value copy of the proposal draft taken at generation time, so later
    draft edits never change a historical proposal.
    """

    def __init__(
        self,
        channel: StorageChannel,
        key: Optional[str] = None,
        limit: Optional[int] = None,
        retention_days: Optional[int] = None,
        origin: str = "history",
    ):
        """
        Initialize the history store.

        Args:
            channel: Storage channel holding the history slot
            key: Storage slot; defaults to the configured history key
            limit: Maximum entries kept; defaults to settings
            retention_days: Default age for the retention sweep
            origin: Surface identifier used for writes
        """
        settings = get_settings()
        self.channel = channel
        self.key = key or settings.history_key
        self.limit = limit or settings.history_limit
        self.retention_days = retention_days or settings.retention_days
        self.origin = origin

    def _load(self) -> List[Dict[str, Any]]:
        text = self.channel.get(self.key)
        if not text:
            return []
        try:
            entries = json.loads(text)
        except ValueError as e:
            logger.warning(f"Ignoring malformed history: {e}")
            return []
        if not isinstance(entries, list):
            logger.warning("Ignoring history that is not a list")
            return []
        return [entry for entry in entries if isinstance(entry, dict)]

    def _save(self, entries: List[Dict[str, Any]]) -> bool:
        try:
            self.channel.set(self.key, json.dumps(entries), origin=self.origin)
        except (StorageError, TypeError, ValueError) as e:
            logger.warning(f"History not saved: {e}")
            return False
        return True

    def add(self, entry: Union[HistoryEntry, Mapping[str, Any]]) -> Dict[str, Any]:
        """
        Add an entry at the front of the history.

        Args:
            entry: HistoryEntry or its record form

        Returns:
            The normalized stored record
        """
        record = entry.to_record() if isinstance(entry, HistoryEntry) else copy.deepcopy(dict(entry))
        record = normalize_entry(record)
        entries = [record] + [e for e in self._load() if e.get("id") != record.get("id")]
        self._save(entries[: self.limit])
        logger.info(f"History entry added: {record.get('id')}", extra={"report_id": record.get("reportId")})
        return record

    def list(self, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """List entries newest first."""
        limit = self.limit if limit is None else max(0, limit)
        return [normalize_entry(entry) for entry in self._load()[:limit]]

    def get(self, entry_id: str) -> Optional[Dict[str, Any]]:
        """Get an entry by its id or report id."""
        for entry in self._load():
            if entry.get("id") == entry_id or (entry.get("reportId") and entry.get("reportId") == entry_id):
                return normalize_entry(entry)
        return None

    def update(self, entry_id: str, updates: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
        """
        Apply the allowed fields of ``updates`` to an entry.

        Unknown fields are ignored; ``createdAt`` is preserved and ``updatedAt``
        is stamped when something changed.

        Returns:
            The updated entry, or None when no entry matches
        """
        entries = self._load()
        for index, entry in enumerate(entries):
            if entry.get("id") != entry_id and entry.get("reportId") != entry_id:
                continue

            payload = {k: updates[k] for k in ALLOWED_UPDATE_FIELDS if k in updates}
            if not payload:
                return normalize_entry(entry)

            updated = normalize_entry(entry)
            for field, value in payload.items():
                if field in _ENTRY_FIELDS:
                    updated[field] = value
                elif field in _SNAPSHOT_FIELDS:
                    updated["snapshot"][field] = value
                elif field in ("photos", "photoAnalysis"):
                    updated["report"]["photos"] = value
                    updated["report"]["photoAnalysis"] = value
                else:
                    updated["report"][field] = value
            if "summary" in payload and "reportText" not in payload:
                updated["report"]["reportText"] = payload["summary"]
            updated["updatedAt"] = datetime.now(timezone.utc).isoformat()

            entries[index] = updated
            self._save(entries)
            logger.info(f"History entry updated: {entry_id}", extra={"report_id": updated.get("reportId")})
            return updated
        return None

    def delete_older_than(self, days: Optional[int] = None, now: Optional[datetime] = None) -> int:
        """
        Retention sweep: delete entries created more than ``days`` ago.

        Entries with an unreadable timestamp are kept.

        Returns:
            Number of entries deleted
        """
        days = self.retention_days if days is None else days
        cutoff = (now or datetime.now(timezone.utc)) - timedelta(days=days)

        entries = self._load()
        kept = []
        for entry in entries:
            created = parse_timestamp(entry.get("createdAt"))
            if created is None or created >= cutoff:
                kept.append(entry)

        deleted = len(entries) - len(kept)
        if deleted:
            self._save(kept)
        logger.info(f"Retention sweep removed {deleted} history entries older than {days} days")
        return deleted


def build_history_entry(
    request: ReportRequest,
    result: ReportResult,
    draft: Mapping[str, Any],
    photo_count: int,
    pricing_mode: Union[PricingMode, str] = PricingMode.DERIVED,
) -> HistoryEntry:
    """
    Build the history entry for a freshly generated report.

    The draft is deep-copied into the snapshot so the stored proposal is
    decoupled from later edits.
    """
    mode = PricingMode(pricing_mode)
    photos = [photo.model_dump(by_alias=True) for photo in result.photo_analysis]
    return HistoryEntry(
        id=result.report_id or uuid.uuid4().hex,
        report_id=result.report_id,
        restaurant_name=request.restaurant_name.strip(),
        address=request.address.strip(),
        snapshot=HistorySnapshot(
            hoods=request.hoods,
            fans=request.fans,
            filters=request.filters,
            notes=request.notes.strip(),
            photo_count=photo_count,
            analyze_all_photos=request.analyze_all,
            pricing_touched=mode == PricingMode.MANUAL,
            pricing_mode=mode,
            proposal_draft=copy.deepcopy(dict(draft)),
        ),
        report={
            "reportText": result.report_text,
            "photos": photos,
            "photoAnalysis": photos,
            "reportId": result.report_id,
        },
    )
