"""Proposal draft schemas."""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CleaningFrequency(str, Enum):
    """Billing cadence labels offered for the service and its line items."""

    MONTHLY = "Monthly"
    QUARTERLY = "Quarterly"
    SEMI_ANNUALLY = "Semi-annually"
    ANNUALLY = "Annually"


class PricingMode(str, Enum):
    """Whether hood/fan/filter quantities follow the inspection counts."""

    DERIVED = "derived"
    MANUAL = "manual"


class AdditionalItem(BaseModel):
    """A recurring billable line item beyond the base service."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    description: str = Field(default="", description="Line item description")
    qty: float = Field(default=0, description="Quantity")
    rate: float = Field(default=203, description="Unit rate")
    frequency: str = Field(default="", description="Billing cadence label")

    @property
    def line_total(self) -> float:
        return self.qty * self.rate


class RepairItem(BaseModel):
    """A one-time charge."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    description: str = Field(default="", description="Repair description")
    amount: float = Field(default=0, description="Flat amount")


class ProposalDraft(BaseModel):
    """
    Typed view of the normalized pricing draft.

    Build instances from stored records with
    ``inspectai.services.draft_normalizer.draft_model`` so the defaulting and
    legacy fallbacks run first. Unknown keys are kept so legacy fields survive
    a round trip through ``to_record``.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    # Job information
    restaurant_name: str = Field(default="", description="Restaurant name")
    address: str = Field(default="", description="Service address")
    proposal_date: str = Field(default="", description="Display date, e.g. 03/14/25")
    cleaning_frequency: str = Field(default="", description="One of CleaningFrequency or empty")

    # Base service
    initial_hood_qty: float = Field(default=1, description="Hoods included in the base rate")
    initial_fan_qty: float = Field(default=1, description="Fans included in the base rate")
    filters: int = Field(default=0, description="Filter units counted at inspection")
    base_rate: float = Field(default=723, description="Base service rate")
    additional_hood_rate: float = Field(default=203, description="Default rate for an extra hood")
    additional_fan_rate: float = Field(default=203, description="Default rate for an extra fan")

    # Line items
    additional_items: list[AdditionalItem] = Field(default_factory=list)
    repairs: list[RepairItem] = Field(default_factory=list)

    # Filters and fuel
    std_filter_qty: float = Field(default=0, description="Standard filters exchanged")
    std_filter_rate: float = Field(default=8, description="Rate per standard filter")
    non_std_filter_qty: float = Field(default=0, description="Non-standard filters exchanged")
    non_std_filter_rate: float = Field(default=13.5, description="Rate per non-standard filter")
    filter_exchange_qty: float = Field(default=0, description="Filters in the exchange program")
    filter_exchange_unit_rate: float = Field(default=8, description="Exchange program unit rate")
    filter_exchange_frequency: str = Field(default="", description="Exchange cadence override")
    fuel_surcharge: float = Field(default=46, description="Flat fuel surcharge per service")
    fuel_frequency: str = Field(default="", description="Fuel cadence override")

    pricing_mode: PricingMode = Field(default=PricingMode.DERIVED, description="Quantity regime")

    def to_record(self) -> dict[str, Any]:
        """Dump the flat camelCase record used for storage."""
        return self.model_dump(by_alias=True, mode="json")
