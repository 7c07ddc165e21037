"""Proposal preview surface: review, edit and price the shared draft."""

import copy
from datetime import date
from typing import Any, Callable, Dict, List, Optional

from inspectai.logging import get_logger
from inspectai.schemas.draft import PricingMode
from inspectai.schemas.pricing import ProposalTotals
from inspectai.services.draft_normalizer import (
    ADDITIONAL_HOOD,
    DEFAULT_RATES,
    apply_defaults,
    normalize_additional_items,
    normalize_repairs,
    safe_num,
)
from inspectai.services.draft_store import DraftStore, merge_draft
from inspectai.services.pricing_calculator import compute_totals
from inspectai.services.proposal_formatter import ProposalFormatter, format_proposal_date


class ProposalPreview:
    """
    Read the shared draft, edit it in a buffer and save it back.

    Updates from other surfaces replace the displayed draft right away; an
    edit in progress keeps its buffer until it is saved or cancelled. Saving
    marks the draft's pricing as manually edited.
    """

    def __init__(self, store: DraftStore, today: Optional[date] = None):
        """
        Initialize the preview from the stored draft and start listening.

        Args:
            store: This surface's handle on the shared draft
            today: Date used for an empty proposal date
        """
        self.store = store
        self.today = today
        self.logger = get_logger(__name__, {"surface": store.surface})
        self.draft: Dict[str, Any] = self._with_date(store.read_draft())
        self.edit_draft: Optional[Dict[str, Any]] = None
        self._unsubscribe: Optional[Callable[[], None]] = store.subscribe(self.on_external_update)

    def _with_date(self, draft: Dict[str, Any]) -> Dict[str, Any]:
        if not draft.get("proposalDate"):
            draft = {**draft, "proposalDate": format_proposal_date(self.today)}
        return draft

    @property
    def is_editing(self) -> bool:
        return self.edit_draft is not None

    @property
    def active(self) -> Dict[str, Any]:
        """The draft being displayed: the edit buffer while editing."""
        return self.edit_draft if self.edit_draft is not None else self.draft

    @property
    def totals(self) -> ProposalTotals:
        return compute_totals(self.active)

    def close(self) -> None:
        """Stop listening for updates from other surfaces."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def on_external_update(self, incoming: Dict[str, Any]) -> None:
        self.draft = self._with_date(apply_defaults(merge_draft(self.draft, incoming)))

    def start_edit(self) -> None:
        self.edit_draft = copy.deepcopy(self.active)

    def cancel_edit(self) -> None:
        """Drop the edit buffer and reload the stored draft."""
        self.edit_draft = None
        self.draft = self._with_date(self.store.read_draft())

    def save_edit(self) -> None:
        """Normalize the buffer, mark pricing as manual and write it to the store."""
        if self.edit_draft is None:
            return
        draft = apply_defaults(self.edit_draft)
        draft["pricingMode"] = PricingMode.MANUAL.value
        self.store.write_draft(draft)
        self.logger.info("Proposal draft saved from preview")
        self.draft = draft
        self.edit_draft = None

    def _buffer(self) -> Dict[str, Any]:
        if self.edit_draft is None:
            self.start_edit()
        return self.edit_draft

    def set_field(self, key: str, value: Any) -> None:
        self._buffer()[key] = value

    def _placeholder_item(self) -> Dict[str, Any]:
        return {
            "description": ADDITIONAL_HOOD,
            "qty": 0,
            "rate": DEFAULT_RATES["additionalHoodRate"],
            "frequency": self.active.get("cleaningFrequency") or "",
        }

    # Additional items
    def add_additional_item(self) -> None:
        buffer = self._buffer()
        buffer["additionalItems"] = normalize_additional_items(buffer) + [self._placeholder_item()]

    def update_additional_item(self, index: int, field: str, value: Any) -> None:
        buffer = self._buffer()
        items = normalize_additional_items(buffer)
        items[index] = {**items[index], field: safe_num(value) if field in ("qty", "rate") else str(value)}
        buffer["additionalItems"] = items

    def remove_additional_item(self, index: int) -> None:
        buffer = self._buffer()
        items: List[Dict[str, Any]] = normalize_additional_items(buffer)
        del items[index]
        buffer["additionalItems"] = items or [self._placeholder_item()]

    # Repairs
    def add_repair(self) -> None:
        buffer = self._buffer()
        buffer["repairs"] = normalize_repairs(buffer) + [{"description": "", "amount": 0}]

    def update_repair(self, index: int, field: str, value: Any) -> None:
        buffer = self._buffer()
        repairs = normalize_repairs(buffer)
        repairs[index] = {**repairs[index], field: safe_num(value) if field == "amount" else str(value)}
        buffer["repairs"] = repairs

    def remove_repair(self, index: int) -> None:
        buffer = self._buffer()
        repairs = normalize_repairs(buffer)
        del repairs[index]
        buffer["repairs"] = repairs or [{"description": "", "amount": 0}]

    def proposal_text(self) -> str:
        """Clipboard text for the displayed draft."""
        return ProposalFormatter().render_text(self.active)
