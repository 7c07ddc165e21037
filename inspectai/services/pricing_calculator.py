"""Per-service totals for a proposal draft."""

from typing import Any, Dict, Mapping, Optional

from inspectai.schemas.pricing import ProposalTotals
from inspectai.services.draft_normalizer import (
    DEFAULT_RATES,
    normalize_additional_items,
    normalize_repairs,
    or_default,
    safe_num,
)


class PricingCalculator:
    """
    Calculate proposal totals from a draft.

    This service:
    - Sums additional line items as qty x rate
    - Adds the base rate to get the main service subtotal
    - Sums one-time repairs
    - Prices standard and non-standard filters
    - Adds the flat fuel surcharge

    Every input goes through the same tolerant coercion as draft
    normalization, so a partial or legacy draft never produces NaN.
    """

    def __init__(self, default_rates: Optional[Mapping[str, float]] = None):
        """
        Initialize pricing calculator.

        Args:
            default_rates: Rates used when a draft leaves one unset
        """
        self.default_rates: Dict[str, float] = {**DEFAULT_RATES, **(default_rates or {})}

    def _rate(self, draft: Mapping[str, Any], key: str) -> float:
        return or_default(draft.get(key), self.default_rates[key])

    def compute_totals(self, draft: Any) -> ProposalTotals:
        """
        Compute subtotals and the total per service.

        Args:
            draft: Normalized or raw draft mapping

        Returns:
            ProposalTotals for the draft
        """
        if not isinstance(draft, Mapping):
            draft = {}

        base_rate = self._rate(draft, "baseRate")

        additional_items = draft.get("additionalItems")
        if not isinstance(additional_items, (list, tuple)):
            additional_items = normalize_additional_items(draft)
        additional_subtotal = 0.0
        for item in additional_items:
            if not isinstance(item, Mapping):
                continue
            additional_subtotal += float(safe_num(item.get("qty"))) * or_default(
                item.get("rate"), self.default_rates["additionalHoodRate"]
            )

        main_service_subtotal = float(base_rate) + additional_subtotal

        repairs = draft.get("repairs")
        if not isinstance(repairs, (list, tuple)):
            repairs = normalize_repairs(draft)
        repairs_subtotal = 0.0
        for repair in repairs:
            if isinstance(repair, Mapping):
                repairs_subtotal += safe_num(repair.get("amount"))

        filters_subtotal = float(safe_num(draft.get("stdFilterQty"))) * self._rate(
            draft, "stdFilterRate"
        ) + float(safe_num(draft.get("nonStdFilterQty"))) * self._rate(draft, "nonStdFilterRate")

        # Flat per service, not scaled by quantity
        fuel_subtotal = self._rate(draft, "fuelSurcharge")

        total_per_service = (
            main_service_subtotal + repairs_subtotal + filters_subtotal + fuel_subtotal
        )

        return ProposalTotals(
            base_rate=base_rate,
            additional_subtotal=additional_subtotal,
            main_service_subtotal=main_service_subtotal,
            repairs_subtotal=repairs_subtotal,
            filters_subtotal=filters_subtotal,
            fuel_subtotal=fuel_subtotal,
            total_per_service=total_per_service,
        )

    def generate_pricing_summary(self, totals: ProposalTotals) -> str:
        """
        Generate a formatted pricing summary.

        Args:
            totals: Totals from compute_totals

        Returns:
            Formatted pricing summary text
        """
        return f"""
PRICING SUMMARY

Main Service:
  Base Rate:            ${totals.base_rate:,.2f}
  Additional Items:     ${totals.additional_subtotal:,.2f}
  ────────────────────
  Main Service:         ${totals.main_service_subtotal:,.2f}

Other Charges:
  Repairs:              ${totals.repairs_subtotal:,.2f}
  Filters:              ${totals.filters_subtotal:,.2f}
  Fuel Surcharge:       ${totals.fuel_subtotal:,.2f}
  ────────────────────
  TOTAL PER SERVICE:    ${totals.total_per_service:,.2f}
        """.strip()


def compute_totals(draft: Any) -> ProposalTotals:
    """Compute totals with the default rates."""
    return PricingCalculator().compute_totals(draft)
