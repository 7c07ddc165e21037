"""Pricing result schemas."""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ProposalTotals(BaseModel):
    """Subtotals and grand total for one service visit."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    base_rate: float = Field(..., description="Base service rate used")
    additional_subtotal: float = Field(..., description="Sum of qty x rate over additional items")
    main_service_subtotal: float = Field(..., description="Base rate plus additional items")
    repairs_subtotal: float = Field(..., description="Sum of repair amounts")
    filters_subtotal: float = Field(..., description="Standard plus non-standard filter charges")
    fuel_subtotal: float = Field(..., description="Flat fuel surcharge")
    total_per_service: float = Field(..., description="Grand total per service")
