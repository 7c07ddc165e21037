"""Data schemas for InspectAI."""

from .draft import AdditionalItem, CleaningFrequency, PricingMode, ProposalDraft, RepairItem
from .pricing import ProposalTotals
from .report import (
    HistoryEntry,
    HistorySnapshot,
    PhotoAnalysis,
    PhotoUpload,
    ReportRequest,
    ReportResult,
)

__all__ = [
    "AdditionalItem",
    "CleaningFrequency",
    "PricingMode",
    "ProposalDraft",
    "RepairItem",
    "ProposalTotals",
    "HistoryEntry",
    "HistorySnapshot",
    "PhotoAnalysis",
    "PhotoUpload",
    "ReportRequest",
    "ReportResult",
]
