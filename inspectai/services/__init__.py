"""Services for InspectAI."""

from .draft_store import DraftStore, StoreResult, merge_draft
from .history import HistoryStore
from .pricing_calculator import PricingCalculator, compute_totals
from .proposal_formatter import ProposalFormatter

__all__ = [
    "DraftStore",
    "StoreResult",
    "merge_draft",
    "HistoryStore",
    "PricingCalculator",
    "compute_totals",
    "ProposalFormatter",
]
