"""Shared fixtures for InspectAI tests."""

import pytest

from inspectai.config import get_settings
from inspectai.services.draft_store import DraftStore
from inspectai.services.history import HistoryStore
from inspectai.storage import InMemoryStorage, StorageChannel


@pytest.fixture(autouse=True)
def fresh_settings(monkeypatch):
    """Default settings for every test."""
    monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
    monkeypatch.delenv("STORAGE_DIR", raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def channel():
    return StorageChannel(InMemoryStorage())


@pytest.fixture
def form_store(channel):
    return DraftStore(channel, surface="form")


@pytest.fixture
def preview_store(channel):
    return DraftStore(channel, surface="preview")


@pytest.fixture
def history(channel):
    return HistoryStore(channel)


@pytest.fixture
def scenario_draft():
    """Three hoods, one fan and four filters at default rates."""
    return {
        "restaurantName": "Joe's Diner",
        "proposalDate": "03/14/25",
        "cleaningFrequency": "Quarterly",
        "additionalItems": [
            {"description": "Additional Hood", "qty": 2, "rate": 203},
            {"description": "Additional Fan", "qty": 0, "rate": 203},
        ],
        "stdFilterQty": 4,
    }
