"""Tests for the fetch orchestrator."""
import asyncio
import threading
import pytest
from unittest.mock import Mock
from fetch_orchestrator import FetchOrchestrator, MISSING_PARAMETERS
from history_storage import HistoryStorage, MemoryStore
from history_store import HistoryStore
from weather_data import CitySearch, CoordinateSearch, SOURCE_AUTOLOCATION
from weather_provider import WeatherProviderBase, WeatherProviderError
from weatherapi_provider import WeatherApiProvider


class MockProvider(WeatherProviderBase):
    """Mock weather provider for testing."""

    def __init__(self, return_data=None, raise_error=None):
        self.return_data = return_data
        self.raise_error = raise_error
        self.call_count = 0
        self.queries = []

    def get_current(self, query):
        self.call_count += 1
        self.queries.append(query)
        if self.raise_error:
            raise self.raise_error
        return self.return_data


class GatedProvider(WeatherProviderBase):
    """Provider whose answers are held back until their gate is opened."""

    def __init__(self):
        self.gates = {}
        self.results = {}

    def add(self, query, result, open_gate=False):
        gate = threading.Event()
        if open_gate:
            gate.set()
        self.gates[query] = gate
        self.results[query] = result
        return gate

    def get_current(self, query):
        self.gates[query].wait(timeout=5)
        return self.results[query]


@pytest.fixture
def store():
    return HistoryStore(HistoryStorage(MemoryStore()))


@pytest.fixture
def paris_weather():
    return {
        "location": {"name": "Paris", "country": "France"},
        "current": {"temp_c": 18, "humidity": 60, "wind_kph": 9.0, "vis_km": 10,
                    "precip_mm": 0.0, "condition": {"text": "Sunny"}},
    }


def test_submit_city_success(store, paris_weather):
    """Successful city lookup becomes the current weather and one history entry."""
    provider = MockProvider(return_data=paris_weather)
    orchestrator = FetchOrchestrator(store, provider)

    processed = asyncio.run(orchestrator.submit(CitySearch(city="Paris")))

    assert processed is True
    assert provider.queries == ["Paris"]
    assert store.current == paris_weather
    assert store.loading is False
    assert store.error is None
    assert len(store.history) == 1
    assert store.history[0].params.to_dict() == {"type": "city", "city": "Paris"}


def test_submit_sets_loading_before_fetch(store, paris_weather):
    seen_loading = []

    class RecordingProvider(WeatherProviderBase):
        def get_current(self, query):
            seen_loading.append(store.loading)
            return paris_weather

    asyncio.run(FetchOrchestrator(store, RecordingProvider()).submit(CitySearch(city="Paris")))

    assert seen_loading == [True]
    assert store.loading is False


def test_submit_coordinates_provider_error(store):
    """Provider's own message is what the store reports; history is untouched."""
    session = Mock()
    response = Mock()
    response.ok = False
    response.status_code = 400
    response.reason = "Bad Request"
    response.json.return_value = {"error": {"message": "No matching location found.", "code": 1006}}
    session.get.return_value = response
    provider = WeatherApiProvider(api_key="test_key", session=session)

    asyncio.run(FetchOrchestrator(store, provider).submit(CoordinateSearch(latitude=12.9, longitude=77.6)))

    assert store.error == "No matching location found."
    assert store.loading is False
    assert store.history == ()
    assert session.get.call_args.kwargs["params"]["q"] == "12.9,77.6"


def test_failure_keeps_previous_weather(store, paris_weather):
    provider = MockProvider(return_data=paris_weather)
    orchestrator = FetchOrchestrator(store, provider)
    asyncio.run(orchestrator.submit(CitySearch(city="Paris")))

    provider.raise_error = WeatherProviderError("Network error: connection refused")
    asyncio.run(orchestrator.submit(CitySearch(city="Paris")))

    assert store.error == "Network error: connection refused"
    assert store.current == paris_weather
    assert len(store.history) == 1


def test_unexpected_provider_exception_sets_error(store):
    provider = MockProvider(raise_error=RuntimeError("provider exploded"))

    asyncio.run(FetchOrchestrator(store, provider).submit(CitySearch(city="Paris")))

    assert store.error == "provider exploded"
    assert store.loading is False


def test_same_trigger_fetches_once(store, paris_weather):
    """A repeated notification for the same trigger issues no second fetch."""
    provider = MockProvider(return_data=paris_weather)
    orchestrator = FetchOrchestrator(store, provider)
    params = CitySearch(city="Paris")
    trigger = orchestrator.next_trigger()

    async def scenario():
        return await asyncio.gather(
            orchestrator.handle_trigger(trigger, params),
            orchestrator.handle_trigger(trigger, params),
        )

    results = asyncio.run(scenario())

    assert sorted(results) == [False, True]
    assert provider.call_count == 1
    assert len(store.history) == 1


def test_repeat_submits_each_fetch(store, paris_weather):
    """Clicking submit twice for the same city is two legitimate lookups."""
    provider = MockProvider(return_data=paris_weather)
    orchestrator = FetchOrchestrator(store, provider)

    asyncio.run(orchestrator.submit(CitySearch(city="Paris")))
    asyncio.run(orchestrator.submit(CitySearch(city="Paris")))

    assert provider.call_count == 2
    assert orchestrator.trigger_counter == 2
    assert len(store.history) == 2


@pytest.mark.parametrize("params", [
    CitySearch(city=""),
    CitySearch(city="  "),
    CoordinateSearch(latitude=None, longitude=77.6),
    CoordinateSearch(latitude=12.9, longitude=None, source=SOURCE_AUTOLOCATION),
])
def test_missing_parameters_fail_fast(store, params):
    provider = MockProvider(return_data={})

    processed = asyncio.run(FetchOrchestrator(store, provider).submit(params))

    assert processed is True
    assert provider.call_count == 0
    assert store.error == MISSING_PARAMETERS
    assert store.loading is False
    assert store.history == ()


def _overlapping_submits(orchestrator, provider):
    slow = {"location": {"name": "Slowtown", "country": "X"}, "current": {"temp_c": 1}}
    fast = {"location": {"name": "Fastville", "country": "Y"}, "current": {"temp_c": 2}}
    slow_gate = provider.add("Slowtown", slow)
    provider.add("Fastville", fast, open_gate=True)

    async def scenario():
        first = asyncio.create_task(orchestrator.submit(CitySearch(city="Slowtown")))
        await asyncio.sleep(0)
        await orchestrator.submit(CitySearch(city="Fastville"))
        slow_gate.set()
        await first

    asyncio.run(scenario())
    return slow, fast


def test_stale_resolution_discarded(store):
    """An older lookup finishing after a newer one doesn't overwrite it."""
    provider = GatedProvider()
    orchestrator = FetchOrchestrator(store, provider)

    slow, fast = _overlapping_submits(orchestrator, provider)

    assert store.current == fast
    assert [e.result for e in store.history] == [fast]


def test_last_resolution_wins_without_discard(store):
    """Known limitation when stale results are kept: the late, older answer is shown."""
    provider = GatedProvider()
    orchestrator = FetchOrchestrator(store, provider, discard_stale=False)

    slow, fast = _overlapping_submits(orchestrator, provider)

    assert store.current == slow
    assert [e.result for e in store.history] == [slow, fast]


def test_unexpected_result_shape_recorded(store):
    """The orchestrator hands results through without inspecting them."""
    odd = {"location": "Paris"}

    asyncio.run(FetchOrchestrator(store, MockProvider(return_data=odd)).submit(CitySearch(city="Paris")))

    assert store.current == odd
    assert store.error is None
    assert len(store.history) == 1


def test_invalid_submit_supersedes_pending_lookup(store):
    """A later submit that fails validation is still the latest; the older answer is dropped."""
    provider = GatedProvider()
    orchestrator = FetchOrchestrator(store, provider)
    slow_gate = provider.add("Slowtown", {"location": {"name": "Slowtown", "country": "X"}})

    async def scenario():
        first = asyncio.create_task(orchestrator.submit(CitySearch(city="Slowtown")))
        await asyncio.sleep(0)
        await orchestrator.submit(CitySearch(city=""))
        slow_gate.set()
        await first

    asyncio.run(scenario())

    assert store.error == MISSING_PARAMETERS
    assert store.current is None
    assert store.history == ()
