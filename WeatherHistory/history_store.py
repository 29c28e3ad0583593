"""History store - authoritative in-memory state for current weather and search history."""
import logging
from typing import Callable, List, Optional, Tuple

from history_storage import HistoryStorage
from weather_data import (
    EntryIdGenerator,
    HistoryEntry,
    SearchParams,
    StoreState,
    WeatherResult,
    utc_now_iso,
)

Listener = Callable[[StoreState], None]


class HistoryStore:
    """
    Holds the current weather result, loading/error flags and the history log.

    History is hydrated from storage once, at construction. Every mutation
    runs to completion, then the store writes the history back to storage
    and notifies subscribed listeners with a fresh snapshot. Only the
    history is persisted; current/loading/error live for the process only.
    """

    def __init__(
        self,
        storage: HistoryStorage,
        id_generator: Optional[EntryIdGenerator] = None,
        clock: Optional[Callable[[], str]] = None
    ):
        """
        Initialize the store.

        Args:
            storage: Persistence adapter for the history log
            id_generator: Source of entry ids (default: clock-derived, strictly increasing)
            clock: Returns the capture timestamp for new entries (default: UTC now, ISO-8601)
        """
        self.storage = storage
        self.id_generator = id_generator or EntryIdGenerator()
        self.clock = clock or utc_now_iso

        self._current: Optional[WeatherResult] = None
        self._history: List[HistoryEntry] = storage.load()
        self._loading = False
        self._error: Optional[str] = None
        self._listeners: List[Listener] = []

        self.id_generator.seed(self._history)
        logging.info(f"History store ready with {len(self._history)} entries")

    # Read access

    @property
    def current(self) -> Optional[WeatherResult]:
        return self._current

    @property
    def history(self) -> Tuple[HistoryEntry, ...]:
        return tuple(self._history)

    @property
    def loading(self) -> bool:
        return self._loading

    @property
    def error(self) -> Optional[str]:
        return self._error

    @property
    def state(self) -> StoreState:
        return StoreState(
            current=self._current,
            history=list(self._history),
            loading=self._loading,
            error=self._error,
        )

    def get_entry(self, entry_id: int) -> Optional[HistoryEntry]:
        for entry in self._history:
            if entry.id == entry_id:
                return entry
        return None

    # Observers

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """
        Register a listener called with the new state after every mutation.

        Returns:
            A callable that removes the listener again
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # Mutations

    def set_weather(self, result: WeatherResult, params: SearchParams) -> HistoryEntry:
        """Show a freshly fetched result and record it at the head of the history."""
        entry = HistoryEntry(
            id=self.id_generator.next_id(),
            result=result,
            params=params,
            captured_at=self.clock(),
        )
        self._current = result
        self._history.insert(0, entry)
        self._loading = False
        self._error = None
        logging.info(f"Recorded history entry {entry.id} ({entry.location_label()})")
        self._after_mutation("set_weather")
        return entry

    def set_loading(self, flag: bool) -> None:
        self._loading = bool(flag)
        self._after_mutation("set_loading")

    def set_error(self, message: str) -> None:
        """Record a failed lookup. The displayed weather and the history stay as they are."""
        self._error = message
        self._loading = False
        logging.warning(f"Store error set: {message}")
        self._after_mutation("set_error")

    def remove_history_item(self, entry_id: int) -> bool:
        """
        Remove the entry with entry_id, keeping the order of the rest.

        Returns:
            True if an entry was removed, False if no entry had that id
        """
        remaining = [entry for entry in self._history if entry.id != entry_id]
        removed = len(remaining) != len(self._history)
        self._history = remaining
        if removed:
            logging.info(f"Removed history entry {entry_id}")
        else:
            logging.debug(f"No history entry with id {entry_id}, nothing removed")
        self._after_mutation("remove_history_item")
        return removed

    def clear_history(self) -> None:
        count = len(self._history)
        self._history = []
        logging.info(f"Cleared {count} history entries")
        self._after_mutation("clear_history")

    def replay(self, entry: HistoryEntry) -> None:
        """Show a past entry as the current result without adding it to the history again."""
        self._current = entry.result
        self._loading = False
        self._error = None
        logging.info(f"Replaying history entry {entry.id} ({entry.location_label()})")
        self._after_mutation("replay")

    def _after_mutation(self, action: str) -> None:
        # Storage absorbs its own failures, so this never raises into the caller
        self.storage.save(self._history)

        if not self._listeners:
            return
        snapshot = self.state
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logging.exception(f"History store listener failed after {action}")
