"""Proposal text formatter."""

import math
from datetime import date
from typing import Any, List, Optional

from inspectai.services.draft_normalizer import draft_model, effective_frequency, frequency_summary
from inspectai.services.pricing_calculator import PricingCalculator

EMPTY = "—"
RULE = "—" * 40


def money(value: Any) -> str:
    """Format an amount as US dollars; a non-numeric amount renders as "$"."""
    try:
        amount = float(value)
    except (TypeError, ValueError):
        return "$"
    if not math.isfinite(amount):
        return "$"
    sign = "-" if amount < 0 else ""
    return f"{sign}${abs(amount):,.2f}"


def format_quantity(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else f"{value:g}"


def format_proposal_date(day: Optional[date] = None) -> str:
    """Format a date as MM/DD/YY; defaults to today."""
    return (day or date.today()).strftime("%m/%d/%y")


def _with_frequency(text: str, frequency: str) -> str:
    return f"{text} ({frequency})" if frequency else text


class ProposalFormatter:
    """
    Format a proposal draft as plain text.

    The output is a tab-separated description/amount table that pastes
    cleanly into spreadsheets and email.
    """

    def __init__(self, calculator: Optional[PricingCalculator] = None):
        """
        Initialize proposal formatter.

        Args:
            calculator: Pricing calculator used for the totals
        """
        self.calculator = calculator or PricingCalculator()

    @staticmethod
    def _row(description: str, amount: str) -> str:
        return f"{description}\t{amount}"

    def render_text(self, raw_draft: Any) -> str:
        """
        Render the proposal as clipboard text.

        Zero-value lines are left out, except the base rate and the total.

        Args:
            raw_draft: Stored or incoming draft

        Returns:
            CRLF-joined proposal text
        """
        draft = draft_model(raw_draft)
        record = draft.to_record()
        totals = self.calculator.compute_totals(record)

        lines: List[str] = [
            "PROPOSAL",
            "",
            f"Restaurant: {draft.restaurant_name or EMPTY}",
            f"Proposal Date: {draft.proposal_date or EMPTY}",
            f"Cleaning Frequency: {frequency_summary(record)}",
            "",
            self._row("Description", "Amount"),
            RULE,
        ]

        base = _with_frequency(
            f"Base rate - Initial hood: {format_quantity(draft.initial_hood_qty)}, "
            f"Initial fan: {format_quantity(draft.initial_fan_qty)}",
            draft.cleaning_frequency,
        )
        lines.append(self._row(base, money(draft.base_rate)))

        for item in draft.additional_items:
            if item.line_total <= 0:
                continue
            detail = _with_frequency(f"{format_quantity(item.qty)} × {money(item.rate)}", item.frequency)
            lines.append(self._row(f"{item.description or EMPTY} - {detail}", money(item.line_total)))

        std_total = draft.std_filter_qty * draft.std_filter_rate
        if std_total > 0:
            detail = _with_frequency(
                f"{format_quantity(draft.std_filter_qty)} × {money(draft.std_filter_rate)}",
                draft.filter_exchange_frequency,
            )
            lines.append(self._row(f"Standard Filters - {detail}", money(std_total)))

        non_std_total = draft.non_std_filter_qty * draft.non_std_filter_rate
        if non_std_total > 0:
            detail = f"{format_quantity(draft.non_std_filter_qty)} × {money(draft.non_std_filter_rate)}"
            lines.append(self._row(f"Non-Standard Filters - {detail}", money(non_std_total)))

        for repair in draft.repairs:
            if repair.amount > 0:
                lines.append(self._row(repair.description or EMPTY, money(repair.amount)))

        if totals.fuel_subtotal > 0:
            fuel = _with_frequency("Fuel surcharge", effective_frequency(record, "fuelFrequency"))
            lines.append(self._row(fuel, money(totals.fuel_subtotal)))

        lines.extend(["", RULE, self._row("Total Per Service", money(totals.total_per_service))])
        return "\r\n".join(lines)
