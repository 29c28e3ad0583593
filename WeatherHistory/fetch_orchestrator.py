"""Fetch orchestrator - turns submit events into one weather lookup and store updates."""
import asyncio
import logging
from typing import Optional

from history_store import HistoryStore
from weather_data import SearchParams
from weather_provider import WeatherProviderBase, WeatherProviderError

MISSING_PARAMETERS = "Invalid parameters for weather search"


class FetchOrchestrator:
    """
    Runs one provider lookup per submit and posts the outcome to the store.

    Each submit gets a trigger id from a counter. Handling the same trigger id
    twice (a repeated notification without a new user action) does nothing
    the second time. Lookups are never cancelled; when two overlap and
    discard_stale is set, only the lookup for the latest trigger may update
    the store. With discard_stale off, whichever resolves last wins.
    """

    def __init__(
        self,
        store: HistoryStore,
        provider: WeatherProviderBase,
        discard_stale: bool = True
    ):
        self.store = store
        self.provider = provider
        self.discard_stale = discard_stale

        self._trigger_counter = 0
        self._last_processed: Optional[int] = None
        self._latest_issued: Optional[int] = None

    @property
    def trigger_counter(self) -> int:
        return self._trigger_counter

    def next_trigger(self) -> int:
        """Start a new user submit and return its trigger id."""
        self._trigger_counter += 1
        return self._trigger_counter

    async def submit(self, params: SearchParams) -> bool:
        """Handle a fresh user submit for params."""
        return await self.handle_trigger(self.next_trigger(), params)

    async def handle_trigger(self, trigger_id: int, params: SearchParams) -> bool:
        """
        Process a trigger, fetching weather for params unless already handled.

        Args:
            trigger_id: Trigger id of the submit being processed
            params: What to look up

        Returns:
            True if the trigger was processed, False if it had already been seen
        """
        if trigger_id == self._last_processed:
            logging.debug(f"Trigger {trigger_id} already processed, skipping fetch")
            return False
        # Recorded before the first await so a repeat arriving mid-fetch is skipped
        self._last_processed = trigger_id
        self._latest_issued = trigger_id

        self.store.set_loading(True)

        if not params.is_complete():
            logging.warning(f"Trigger {trigger_id}: incomplete search params {params!r}")
            self.store.set_error(MISSING_PARAMETERS)
            return True

        query = params.query()
        logging.info(f"Trigger {trigger_id}: fetching weather for '{query}' ({params.type_label})")

        try:
            result = await asyncio.to_thread(self.provider.get_current, query)
        except WeatherProviderError as e:
            if self._is_stale(trigger_id):
                return True
            logging.error(f"Trigger {trigger_id}: weather fetch failed: {e}")
            self.store.set_error(e.message)
            return True
        except Exception as e:
            if self._is_stale(trigger_id):
                return True
            logging.exception(f"Trigger {trigger_id}: unexpected error during weather fetch")
            self.store.set_error(str(e) or e.__class__.__name__)
            return True

        if self._is_stale(trigger_id):
            return True
        self.store.set_weather(result, params)
        logging.info(f"Trigger {trigger_id}: weather fetch successful")
        return True

    def _is_stale(self, trigger_id: int) -> bool:
        if self.discard_stale and trigger_id != self._latest_issued:
            logging.info(
                f"Trigger {trigger_id}: discarding stale result (latest is {self._latest_issued})"
            )
            return True
        return False
