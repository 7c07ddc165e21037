"""Tests for form and preview synchronization through the shared draft."""

import json
from datetime import date
from unittest.mock import MagicMock

import pytest

from inspectai.schemas.draft import PricingMode
from inspectai.schemas.report import PhotoAnalysis, PhotoUpload, ReportResult
from inspectai.surfaces import InspectionForm, ProposalPreview

DRAFT_KEY = "inspectai_proposal_draft"


def _item_qty(draft, description):
    return next(item["qty"] for item in draft["additionalItems"] if item["description"] == description)


@pytest.fixture
def form(form_store, history):
    form = InspectionForm(form_store, history)
    yield form
    form.close()


@pytest.fixture
def preview(preview_store):
    preview = ProposalPreview(preview_store, today=date(2025, 3, 14))
    yield preview
    preview.close()


@pytest.fixture
def generator():
    mock_generator = MagicMock()
    mock_generator.generate.return_value = ReportResult(
        report_text="Inspection report",
        photo_analysis=[PhotoAnalysis(filename="hood.jpg", analysis="Heavy grease", caption="Heavy grease")],
    )
    return mock_generator


def test_form_starts_derived(form):
    assert form.pricing_mode == PricingMode.DERIVED
    assert not form.pricing_touched
    assert (form.hoods, form.fans, form.filters) == (1, 1, 0)


def test_equipment_counts_drive_quantities(form, preview):
    form.set_details(restaurant_name="Joe's Diner")
    form.set_equipment(hoods=3, fans=1, filters=4)

    draft = preview.draft
    assert draft["restaurantName"] == "Joe's Diner"
    assert _item_qty(draft, "Additional Hood") == 2
    assert _item_qty(draft, "Additional Fan") == 0
    assert draft["stdFilterQty"] == 4
    assert draft["filterExchangeQty"] == 4
    assert draft["pricingMode"] == "derived"
    assert preview.totals.total_per_service == 1207
    assert form.totals.total_per_service == 1207


def test_fans_derive_additional_fan(form, preview):
    form.set_equipment(hoods=3, fans=2)

    assert _item_qty(preview.draft, "Additional Hood") == 2
    assert _item_qty(preview.draft, "Additional Fan") == 1


def test_zero_counts_never_go_negative(form):
    form.set_equipment(hoods=0, fans="abc")

    assert _item_qty(form.draft, "Additional Hood") == 0
    assert _item_qty(form.draft, "Additional Fan") == 0


def test_preview_edit_makes_pricing_sticky(channel, form, preview):
    form.set_equipment(hoods=3, fans=1, filters=4)

    preview.update_additional_item(0, "qty", "5")
    preview.save_edit()

    assert form.pricing_mode == PricingMode.MANUAL
    assert form.hoods == 6
    assert json.loads(channel.get(DRAFT_KEY))["pricingMode"] == "manual"

    # Equipment changes no longer touch the quantities
    form.set_equipment(hoods=1, filters=10)
    stored = json.loads(channel.get(DRAFT_KEY))
    assert _item_qty(stored, "Additional Hood") == 5
    assert stored["stdFilterQty"] == 4
    assert stored["filters"] == 10
    assert preview.draft["filters"] == 10


def test_external_update_is_not_written_back(channel, form, preview):
    events = []
    channel.subscribe("observer", events.append)

    preview.set_field("baseRate", 900)
    preview.save_edit()

    assert [event.origin for event in events] == ["preview"]
    assert form.draft["baseRate"] == 900


def test_form_local_pricing_edit_stays_derived(form, preview):
    form.update_pricing({"baseRate": 800})

    assert form.pricing_mode == PricingMode.DERIVED
    assert preview.draft["baseRate"] == 800

    form.set_equipment(hoods=2)
    assert _item_qty(preview.draft, "Additional Hood") == 1


def test_form_keeps_fields_it_does_not_manage(channel, form_store):
    channel.set(DRAFT_KEY, json.dumps({"customNote": "side door", "proposalDate": "01/02/25"}), origin="other")
    form = InspectionForm(form_store)

    form.set_equipment(hoods=2)

    stored = json.loads(channel.get(DRAFT_KEY))
    assert stored["customNote"] == "side door"
    assert stored["proposalDate"] == "01/02/25"
    form.close()


def test_form_reads_legacy_touched_flag(channel, form_store):
    channel.set(DRAFT_KEY, json.dumps({"pricingTouched": True, "additionalHoodQty": 3}), origin="other")
    form = InspectionForm(form_store)

    assert form.pricing_mode == PricingMode.MANUAL
    assert form.hoods == 4
    form.close()


def test_external_legacy_update_rederives_counts(channel, form):
    channel.set(DRAFT_KEY, json.dumps({"additionalHoodQty": 2, "additionalFanQty": 1}), origin="other")

    assert (form.hoods, form.fans) == (3, 2)
    assert form.pricing_touched


def test_preview_defaults_proposal_date(preview):
    assert preview.draft["proposalDate"] == "03/14/25"


def test_preview_cancel_discards_buffer(preview):
    preview.start_edit()
    preview.set_field("baseRate", 999)
    assert preview.is_editing
    assert preview.totals.base_rate == 999

    preview.cancel_edit()

    assert not preview.is_editing
    assert preview.totals.base_rate == 723


def test_preview_keeps_buffer_during_external_update(form, preview):
    preview.start_edit()
    preview.set_field("baseRate", 999)

    form.set_equipment(hoods=3)

    assert _item_qty(preview.draft, "Additional Hood") == 2
    assert _item_qty(preview.edit_draft, "Additional Hood") == 0
    assert preview.edit_draft["baseRate"] == 999


def test_preview_additional_items(preview):
    preview.add_additional_item()
    preview.update_additional_item(2, "description", "Rooftop fan")
    preview.update_additional_item(2, "qty", "2")
    preview.update_additional_item(2, "rate", "abc")

    items = preview.edit_draft["additionalItems"]
    assert items[2] == {"description": "Rooftop fan", "qty": 2, "rate": 0, "frequency": ""}

    for _ in range(3):
        preview.remove_additional_item(0)
    assert preview.edit_draft["additionalItems"] == [
        {"description": "Additional Hood", "qty": 0, "rate": 203, "frequency": ""}
    ]


def test_preview_placeholder_uses_cleaning_frequency(preview):
    preview.set_field("cleaningFrequency", "Monthly")
    preview.remove_additional_item(0)
    preview.remove_additional_item(0)

    assert preview.edit_draft["additionalItems"][0]["frequency"] == "Monthly"


def test_preview_repairs(preview):
    preview.update_repair(0, "description", "Replace belt")
    preview.update_repair(0, "amount", "85")
    preview.add_repair()
    preview.update_repair(1, "amount", 40)

    assert preview.totals.repairs_subtotal == 125

    preview.remove_repair(0)
    preview.remove_repair(0)
    assert preview.edit_draft["repairs"] == [{"description": "", "amount": 0}]


def test_preview_save_normalizes_and_marks_manual(preview_store, preview):
    preview.set_field("baseRate", "")
    preview.save_edit()

    stored = preview_store.read_draft()
    assert stored["baseRate"] == 723
    assert stored["pricingMode"] == "manual"
    assert stored["proposalDate"] == "03/14/25"
    assert not preview.is_editing


def test_preview_proposal_text(form, preview):
    form.set_details(restaurant_name="Joe's Diner", cleaning_frequency="quarterly")
    form.set_equipment(hoods=3, filters=4)

    text = preview.proposal_text()
    assert "Restaurant: Joe's Diner" in text
    assert text.endswith("Total Per Service\t$1,207.00")


def test_generate_report_records_snapshot(form, history, generator):
    form.set_details(restaurant_name="Joe's Diner", address="1 Main St", notes="Fryer hood heavy")
    form.set_equipment(hoods=3, fans=1, filters=4)
    photos = [PhotoUpload(filename="hood.jpg", content=b"img", content_type="image/jpeg")]

    record = form.generate_report(generator, photos, analyze_all=True)

    request = generator.generate.call_args.args[0]
    assert request.restaurant_name == "Joe's Diner"
    assert (request.hoods, request.fans, request.filters) == (3, 1, 4)
    assert request.analyze_all is True

    snapshot = record["snapshot"]
    assert snapshot["photoCount"] == 1
    assert snapshot["pricingMode"] == "derived"
    assert snapshot["pricingTouched"] is False
    assert snapshot["analyzeAllPhotos"] is True
    assert _item_qty(snapshot["proposalDraft"], "Additional Hood") == 2
    assert history.list()[0]["id"] == record["id"]

    # Later edits do not change the stored snapshot
    form.set_equipment(hoods=5)
    assert _item_qty(history.get(record["id"])["snapshot"]["proposalDraft"], "Additional Hood") == 2


def test_restore_from_history(channel, form_store, history, generator, preview):
    form = InspectionForm(form_store, history)
    form.set_details(restaurant_name="Joe's Diner", notes="Check roof fan")
    form.set_equipment(hoods=3, fans=2, filters=4)
    preview.update_additional_item(0, "qty", 7)
    preview.save_edit()
    record = form.generate_report(generator)
    assert record["snapshot"]["pricingMode"] == "manual"
    form.close()

    channel.set(DRAFT_KEY, json.dumps({}), origin="other")
    restored = InspectionForm(form_store, history)
    restored.restore_from_history(history.get(record["id"]))

    assert restored.restaurant_name == "Joe's Diner"
    assert restored.notes == "Check roof fan"
    assert (restored.hoods, restored.fans, restored.filters) == (8, 2, 4)
    assert restored.pricing_mode == PricingMode.MANUAL
    assert _item_qty(preview.draft, "Additional Hood") == 7
    restored.close()


def test_restore_derived_entry_rederives(form, preview):
    form.pricing_mode = PricingMode.MANUAL
    entry = {
        "restaurantName": "Joe's Diner",
        "snapshot": {"hoods": 4, "fans": 1, "filters": 2, "pricingTouched": False},
    }

    form.restore_from_history(entry)

    assert form.pricing_mode == PricingMode.DERIVED
    assert _item_qty(preview.draft, "Additional Hood") == 3
    assert preview.draft["stdFilterQty"] == 2


def test_touched_quantities_survive_hood_count_change(channel, form, preview):
    preview.set_field("additionalItems", [{"description": "Additional Hood", "qty": 3, "rate": 203}])
    preview.save_edit()
    assert form.pricing_touched
    form.set_equipment(hoods=1)

    form.set_equipment(hoods=5)

    stored = json.loads(channel.get(DRAFT_KEY))
    assert _item_qty(stored, "Additional Hood") == 3
    assert form.hoods == 5
