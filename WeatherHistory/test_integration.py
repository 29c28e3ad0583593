"""Integration tests - can optionally hit real API (disabled by default)."""
import asyncio
import os
import pytest
from fetch_orchestrator import FetchOrchestrator
from history_storage import HistoryStorage, MemoryStore
from history_store import HistoryStore
from weather_data import CitySearch
from weatherapi_provider import WeatherApiProvider


@pytest.mark.skipif(
    not os.environ.get("WEATHER_API_KEY"),
    reason="WEATHER_API_KEY not set - skipping integration test"
)
def test_weatherapi_integration():
    """
    Integration test that hits the real WeatherAPI.

    Set WEATHER_API_KEY environment variable to run this test.
    """
    provider = WeatherApiProvider(api_key=os.environ.get("WEATHER_API_KEY"))

    weather = provider.get_current("London")

    assert weather["location"]["name"] == "London"
    assert "temp_c" in weather["current"]


@pytest.mark.skipif(
    not os.environ.get("WEATHER_API_KEY"),
    reason="WEATHER_API_KEY not set - skipping integration test"
)
def test_orchestrator_integration():
    """Full submit against the real API records one history entry."""
    storage = HistoryStorage(MemoryStore())
    store = HistoryStore(storage)
    provider = WeatherApiProvider(api_key=os.environ.get("WEATHER_API_KEY"))

    asyncio.run(FetchOrchestrator(store, provider).submit(CitySearch(city="London")))

    assert store.error is None
    assert len(store.history) == 1
    assert storage.load() == list(store.history)
