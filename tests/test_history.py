"""Tests for report history."""

from datetime import datetime, timedelta, timezone

from inspectai.schemas.report import PhotoAnalysis, ReportRequest, ReportResult
from inspectai.services.draft_normalizer import apply_defaults
from inspectai.services.history import (
    HistoryStore,
    build_history_entry,
    normalize_entry,
    parse_timestamp,
)

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


def _entry(entry_id, days_old=0, **fields):
    return {
        "id": entry_id,
        "createdAt": (NOW - timedelta(days=days_old)).isoformat(),
        "restaurantName": f"Restaurant {entry_id}",
        "snapshot": {"notes": ""},
        "report": {"reportText": "Report", "photos": []},
        **fields,
    }


def test_add_keeps_newest_first_and_caps(channel):
    store = HistoryStore(channel, limit=3)
    for i in range(5):
        store.add(_entry(f"r{i}"))

    assert [e["id"] for e in store.list()] == ["r4", "r3", "r2"]
    assert [e["id"] for e in store.list(limit=1)] == ["r4"]


def test_add_replaces_same_id(history):
    history.add(_entry("r1"))
    history.add(_entry("r2"))
    history.add(_entry("r1", restaurantName="Renamed"))

    entries = history.list()
    assert [e["id"] for e in entries] == ["r1", "r2"]
    assert entries[0]["restaurantName"] == "Renamed"


def test_get_by_id_or_report_id(history):
    history.add(_entry("r1", reportId="rep-1"))

    assert history.get("r1")["id"] == "r1"
    assert history.get("rep-1")["id"] == "r1"
    assert history.get("missing") is None


def test_entries_are_normalized_on_read(history):
    history.add({"id": "old", "report": {"photoAnalysis": [{"filename": "a.jpg"}], "summary": "Legacy"}})
    entry = history.get("old")

    assert entry["report"]["photos"] == [{"filename": "a.jpg"}]
    assert entry["report"]["photoAnalysis"] == [{"filename": "a.jpg"}]
    assert entry["report"]["reportText"] == "Legacy"
    assert isinstance(entry["createdAt"], str)
    assert entry["snapshot"] == {}


def test_update_applies_allowed_fields(history):
    history.add(_entry("r1"))

    updated = history.update(
        "r1",
        {
            "restaurantName": "New Name",
            "notes": "Grease on roof",
            "summary": "Edited summary",
            "photos": [{"filename": "b.jpg"}],
            "bogus": 1,
            "createdAt": "1999-01-01T00:00:00+00:00",
        },
    )

    assert updated["restaurantName"] == "New Name"
    assert updated["snapshot"]["notes"] == "Grease on roof"
    assert updated["report"]["reportText"] == "Edited summary"
    assert updated["report"]["photoAnalysis"] == [{"filename": "b.jpg"}]
    assert "bogus" not in updated
    assert "bogus" not in updated["report"]
    assert updated["createdAt"] == NOW.isoformat()
    assert "updatedAt" in updated
    assert history.get("r1") == updated


def test_update_without_allowed_fields_changes_nothing(history):
    history.add(_entry("r1"))

    entry = history.update("r1", {"bogus": 1})

    assert "updatedAt" not in entry
    assert entry == history.get("r1")


def test_update_unknown_entry(history):
    assert history.update("missing", {"notes": "x"}) is None


def test_retention_sweep(history):
    history.add(_entry("fresh", days_old=5))
    history.add(_entry("stale", days_old=40))
    history.add({**_entry("odd"), "createdAt": "not a date"})

    deleted = history.delete_older_than(30, now=NOW)

    assert deleted == 1
    assert sorted(e["id"] for e in history.list()) == ["fresh", "odd"]
    assert history.delete_older_than(30, now=NOW) == 0


def test_retention_sweep_uses_configured_days(channel):
    store = HistoryStore(channel, retention_days=3)
    store.add(_entry("r1", days_old=5))

    assert store.delete_older_than(now=NOW) == 1


def test_malformed_history_reads_as_empty(channel, history):
    channel.backend.set(history.key, "{broken")
    assert history.list() == []

    channel.backend.set(history.key, '{"id": "x"}')
    assert history.list() == []


def test_parse_timestamp():
    assert parse_timestamp("2025-06-01T12:00:00Z") == NOW
    assert parse_timestamp("2025-06-01T12:00:00") == NOW
    assert parse_timestamp("nope") is None
    assert parse_timestamp(None) is None


def test_normalize_entry_does_not_mutate_input():
    raw = {"id": "x", "report": {"summary": "hi"}}
    normalize_entry(raw)
    assert raw == {"id": "x", "report": {"summary": "hi"}}


def test_build_history_entry_snapshots_draft_by_value(history):
    draft = apply_defaults({"additionalItems": [{"description": "Additional Hood", "qty": 2}]})
    request = ReportRequest(
        restaurant_name=" Joe's Diner ", address="1 Main", hoods=3, fans=1, filters=4, notes=" n "
    )
    result = ReportResult(
        report_text="Report body",
        photo_analysis=[PhotoAnalysis(filename="a.jpg", analysis="Heavy grease", caption="Heavy grease")],
    )

    entry = build_history_entry(request, result, draft, photo_count=1, pricing_mode="manual")
    draft["additionalItems"][0]["qty"] = 99

    assert entry.snapshot.proposal_draft["additionalItems"][0]["qty"] == 2
    assert entry.snapshot.pricing_touched is True
    assert entry.restaurant_name == "Joe's Diner"
    assert len(entry.id) == 32

    record = history.add(entry)
    assert record["snapshot"]["pricingMode"] == "manual"
    assert record["snapshot"]["photoCount"] == 1
    assert record["snapshot"]["notes"] == "n"
    assert record["report"]["photos"][0]["filename"] == "a.jpg"
    assert record["report"]["reportText"] == "Report body"
