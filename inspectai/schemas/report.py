"""Inspection report and history schemas."""

from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .draft import PricingMode


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PhotoUpload(BaseModel):
    """A photo submitted with an inspection."""

    filename: str = Field(..., description="Original file name")
    content: bytes = Field(..., description="Raw image bytes")
    content_type: str = Field(default="application/octet-stream", description="MIME type")


class ReportRequest(_CamelModel):
    """Structured inspection input forwarded to the report generator."""

    restaurant_name: str = Field(..., description="Restaurant name")
    address: str = Field(default="", description="Service address")
    hoods: int = Field(default=0, description="Hoods counted")
    fans: int = Field(default=0, description="Fans counted")
    filters: int = Field(default=0, description="Filters counted")
    notes: str = Field(default="", description="Free-text inspector notes")
    analyze_all: bool = Field(default=False, description="Analyze every photo instead of the first few")


class PhotoAnalysis(_CamelModel):
    """Per-photo analysis returned by the report generator."""

    filename: str = Field(..., description="Original file name")
    analysis: str = Field(default="", description="Model findings for the photo")
    caption: str = Field(default="", description="Short caption derived from the analysis")
    public_url: Optional[str] = Field(default=None, description="Public URL when uploaded")


class ReportResult(_CamelModel):
    """Narrative report plus per-photo analyses."""

    report_text: str = Field(..., description="Narrative inspection report")
    photo_analysis: list[PhotoAnalysis] = Field(default_factory=list)
    report_id: Optional[str] = Field(default=None, description="Opaque report identifier")


class HistorySnapshot(_CamelModel):
    """Form state captured when a report was generated."""

    hoods: int = 0
    fans: int = 0
    filters: int = 0
    notes: str = ""
    photo_count: int = 0
    analyze_all_photos: bool = False
    pricing_touched: bool = False
    pricing_mode: PricingMode = PricingMode.DERIVED
    proposal_draft: dict[str, Any] = Field(
        default_factory=dict, description="By-value copy of the draft at generation time"
    )


class HistoryEntry(_CamelModel):
    """A generated report as kept in the history list."""

    id: str = Field(..., description="History entry identifier")
    report_id: Optional[str] = Field(default=None, description="Report identifier, when one was issued")
    restaurant_name: str = ""
    address: str = ""
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    snapshot: HistorySnapshot = Field(default_factory=HistorySnapshot)
    report: dict[str, Any] = Field(default_factory=dict, description="Report text and photos")

    def to_record(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")
