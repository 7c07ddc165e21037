"""UI surfaces sharing the proposal draft."""

from .inspection_form import InspectionForm
from .proposal_preview import ProposalPreview

__all__ = ["InspectionForm", "ProposalPreview"]
