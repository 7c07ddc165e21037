"""Inspection form surface: equipment counts, notes and the derived pricing quantities."""

import copy
from typing import Any, Callable, Dict, Mapping, Optional, Sequence

from inspectai.logging import get_logger
from inspectai.schemas.draft import PricingMode
from inspectai.schemas.pricing import ProposalTotals
from inspectai.schemas.report import PhotoUpload, ReportRequest
from inspectai.services.draft_normalizer import (
    ADDITIONAL_FAN,
    ADDITIONAL_HOOD,
    apply_defaults,
    is_item_named,
    normalize_pricing_mode,
    safe_num,
)
from inspectai.services.draft_store import DraftStore, merge_draft
from inspectai.services.history import HistoryStore, build_history_entry
from inspectai.services.pricing_calculator import compute_totals
from inspectai.services.report_generator import ReportGenerator

_LEGACY_EQUIPMENT_KEYS = ("additionalHoodQty", "additionalFanQty", "additionalHoodRate", "additionalFanRate")


def _count(value: Any) -> int:
    return max(int(safe_num(value)), 0)


def _item_qty(items: Sequence[Mapping[str, Any]], name: str) -> int:
    for item in items:
        if is_item_named(item, name):
            return _count(item.get("qty"))
    return 0


class InspectionForm:
    """
    The inspection form's view of the shared draft.

    While the pricing mode is ``derived`` the "Additional Hood"/"Additional
    Fan" quantities follow ``hoods - 1``/``fans - 1`` and the standard filter
    and filter exchange quantities follow the filter count. The first pricing
    update observed from another surface switches the mode to ``manual`` for
    good; after that equipment changes leave the quantities alone. Only
    restoring a history entry can bring ``derived`` back.
    """

    def __init__(self, store: DraftStore, history: Optional[HistoryStore] = None):
        """
        Initialize the form from the stored draft and start listening.

        Args:
            store: This surface's handle on the shared draft
            history: Report history, required for generate_report
        """
        self.store = store
        self.history = history
        self.logger = get_logger(__name__, {"surface": store.surface})

        draft = store.read_draft()
        self.draft: Dict[str, Any] = draft
        self.restaurant_name: str = draft["restaurantName"]
        self.address: str = draft["address"]
        self.notes = ""
        self.hoods = 1 + _item_qty(draft["additionalItems"], ADDITIONAL_HOOD)
        self.fans = 1 + _item_qty(draft["additionalItems"], ADDITIONAL_FAN)
        self.filters: int = draft["filters"]
        self.analyze_all_photos = False
        self.pricing_mode = PricingMode(draft["pricingMode"])

        self._unsubscribe: Optional[Callable[[], None]] = store.subscribe(self.on_external_update)

    @property
    def pricing_touched(self) -> bool:
        return self.pricing_mode == PricingMode.MANUAL

    @property
    def totals(self) -> ProposalTotals:
        return compute_totals(self.build_draft())

    def close(self) -> None:
        """Stop listening for updates from other surfaces."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def _derive_quantities(self) -> None:
        if self.pricing_touched:
            return
        items = []
        for item in self.draft["additionalItems"]:
            if is_item_named(item, ADDITIONAL_HOOD):
                item = {**item, "qty": max(self.hoods - 1, 0)}
            elif is_item_named(item, ADDITIONAL_FAN):
                item = {**item, "qty": max(self.fans - 1, 0)}
            items.append(item)
        self.draft["additionalItems"] = items
        self.draft["stdFilterQty"] = self.filters
        self.draft["filterExchangeQty"] = self.filters

    def build_draft(self) -> Dict[str, Any]:
        """Return the normalized draft this form would publish."""
        return apply_defaults(
            merge_draft(
                self.draft,
                {
                    "restaurantName": self.restaurant_name,
                    "address": self.address,
                    "filters": self.filters,
                    "initialHoodQty": 1,
                    "initialFanQty": 1,
                    "pricingMode": self.pricing_mode.value,
                },
            )
        )

    def publish(self) -> None:
        """Write this form's fields into the shared draft, keeping fields it does not manage."""
        self.store.write_draft(merge_draft(self.store.read_draft(), self.build_draft()))

    def set_details(
        self,
        restaurant_name: Optional[str] = None,
        address: Optional[str] = None,
        notes: Optional[str] = None,
        proposal_date: Optional[str] = None,
        cleaning_frequency: Optional[str] = None,
    ) -> None:
        """Update job details and publish."""
        if restaurant_name is not None:
            self.restaurant_name = restaurant_name
        if address is not None:
            self.address = address
        if notes is not None:
            self.notes = notes
        changes: Dict[str, Any] = {}
        if proposal_date is not None:
            changes["proposalDate"] = proposal_date
        if cleaning_frequency is not None:
            changes["cleaningFrequency"] = cleaning_frequency
        if changes:
            self.draft = apply_defaults(merge_draft(self.draft, changes))
            self._derive_quantities()
        self.publish()

    def set_equipment(
        self,
        hoods: Optional[Any] = None,
        fans: Optional[Any] = None,
        filters: Optional[Any] = None,
    ) -> None:
        """Update equipment counts, re-derive quantities when allowed, and publish."""
        if hoods is not None:
            self.hoods = _count(hoods)
        if fans is not None:
            self.fans = _count(fans)
        if filters is not None:
            self.filters = _count(filters)
        self._derive_quantities()
        self.publish()

    def update_pricing(self, changes: Mapping[str, Any]) -> None:
        """
        Apply pricing edits made on this form and publish.

        Local edits do not change the pricing mode.
        """
        self.draft = apply_defaults(merge_draft(self.draft, changes))
        self.publish()

    def on_external_update(self, incoming: Dict[str, Any]) -> None:
        """
        Adopt a draft written by another surface.

        Equipment counts are re-derived from the incoming hood/fan items and
        the pricing mode switches to manual. Nothing is written back.
        """
        base = self.build_draft()
        has_items = isinstance(incoming.get("additionalItems"), list)
        has_legacy_fields = any(incoming.get(key) is not None for key in _LEGACY_EQUIPMENT_KEYS)
        if has_legacy_fields and not has_items:
            # Flat legacy fields only win when there is no item list to prefer
            base.pop("additionalItems", None)
        adopted = apply_defaults(merge_draft(base, incoming))

        if "restaurantName" in incoming:
            self.restaurant_name = adopted["restaurantName"]
        if "address" in incoming:
            self.address = adopted["address"]
        if "filters" in incoming:
            self.filters = adopted["filters"]
        if has_items or has_legacy_fields:
            self.hoods = 1 + _item_qty(adopted["additionalItems"], ADDITIONAL_HOOD)
            self.fans = 1 + _item_qty(adopted["additionalItems"], ADDITIONAL_FAN)

        if not self.pricing_touched:
            self.logger.info("Pricing edited on another surface; quantities no longer follow equipment counts")
        self.pricing_mode = PricingMode.MANUAL
        adopted["pricingMode"] = PricingMode.MANUAL.value
        self.draft = adopted

    def generate_report(
        self,
        generator: ReportGenerator,
        photos: Sequence[PhotoUpload] = (),
        analyze_all: bool = False,
    ) -> Dict[str, Any]:
        """
        Generate a report and record it in the history with a draft snapshot.

        Returns:
            The stored history record
        """
        self.analyze_all_photos = analyze_all
        request = ReportRequest(
            restaurant_name=self.restaurant_name.strip(),
            address=self.address.strip(),
            hoods=self.hoods,
            fans=self.fans,
            filters=self.filters,
            notes=self.notes.strip(),
            analyze_all=analyze_all,
        )
        result = generator.generate(request, photos)
        entry = build_history_entry(
            request, result, self.build_draft(), photo_count=len(photos), pricing_mode=self.pricing_mode
        )
        if self.history is None:
            return entry.to_record()
        return self.history.add(entry)

    def restore_from_history(self, entry: Mapping[str, Any]) -> None:
        """Restore form state, pricing draft and pricing mode from a history entry."""
        snapshot = entry.get("snapshot") or {}
        self.restaurant_name = str(entry.get("restaurantName") or "")
        self.address = str(entry.get("address") or "")
        self.hoods = _count(snapshot.get("hoods"))
        self.fans = _count(snapshot.get("fans"))
        self.filters = _count(snapshot.get("filters"))
        self.notes = str(snapshot.get("notes") or "")
        if isinstance(snapshot.get("analyzeAllPhotos"), bool):
            self.analyze_all_photos = snapshot["analyzeAllPhotos"]

        draft = snapshot.get("proposalDraft")
        if isinstance(draft, Mapping) and draft:
            self.draft = apply_defaults(copy.deepcopy(dict(draft)))

        if "pricingMode" in snapshot or isinstance(snapshot.get("pricingTouched"), bool):
            self.pricing_mode = PricingMode(normalize_pricing_mode(snapshot))

        self._derive_quantities()
        self.publish()
