"""Main entry point for InspectAI."""

import json
import sys
from pathlib import Path
from typing import Any, Dict

from inspectai.config import get_settings
from inspectai.services.draft_normalizer import apply_defaults, frequency_summary
from inspectai.services.pricing_calculator import PricingCalculator
from inspectai.services.proposal_formatter import ProposalFormatter


def load_draft_from_file(draft_file: str) -> Dict[str, Any]:
    """
    Load a proposal draft from a JSON file.

    Args:
        draft_file: Path to draft JSON file

    Returns:
        Draft with defaults applied
    """
    with open(draft_file, "r") as f:
        return apply_defaults(json.load(f))


def price_draft(draft_file: str) -> Dict[str, Any]:
    """
    Price a draft and print the summary and proposal text.

    Args:
        draft_file: Path to draft JSON file

    Returns:
        Totals keyed by their camelCase names
    """
    print(f"\n{'='*80}")
    print("INSPECTAI - Proposal Pricing")
    print(f"{'='*80}\n")

    print(f"📋 Loading draft from: {draft_file}")
    draft = load_draft_from_file(draft_file)
    print(f"✓ Draft loaded: {draft['restaurantName'] or '(unnamed restaurant)'}")
    print(f"  Frequency: {frequency_summary(draft)}")
    print(f"  Pricing mode: {draft['pricingMode']}")
    print()

    calculator = PricingCalculator()
    totals = calculator.compute_totals(draft)
    print(calculator.generate_pricing_summary(totals))
    print()

    print(f"{'─'*80}")
    print(ProposalFormatter(calculator).render_text(draft).replace("\r\n", "\n"))
    print(f"{'─'*80}\n")

    return totals.model_dump(by_alias=True)


def serve() -> None:
    """Run the HTTP API."""
    import uvicorn

    from inspectai.logging import setup_logging

    setup_logging()
    uvicorn.run(
        "inspectai.server:app",
        host="0.0.0.0",
        port=8000,
        reload=get_settings().environment == "development",
    )


def main():
    """Main entry point."""
    if len(sys.argv) < 2:
        print("Usage: python main.py <draft_json_file>")
        print("       python main.py serve")
        print()
        print("Example:")
        print("  python main.py proposal_draft.json")
        sys.exit(1)

    if sys.argv[1] == "serve":
        serve()
        return

    draft_file = sys.argv[1]
    if not Path(draft_file).exists():
        print(f"Error: Draft file not found: {draft_file}")
        sys.exit(1)

    try:
        totals = price_draft(draft_file)
    except (OSError, ValueError) as e:
        print(f"\n❌ Error pricing draft: {str(e)}")
        sys.exit(1)

    output_file = f"{Path(draft_file).stem}_totals.json"
    with open(output_file, "w") as f:
        json.dump(totals, f, indent=2)
    print(f"📁 Totals saved to: {output_file}")


if __name__ == "__main__":
    main()
