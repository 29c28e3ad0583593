"""Durable storage for the search history log."""
import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from weather_data import HistoryEntry

HISTORY_KEY = "weatherHistory"
DEFAULT_HISTORY_FILE = os.path.join(os.path.expanduser("~"), ".weather_history.json")


class KeyValueStore(ABC):
    """Abstract string key-value store the history is written to."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """
        Read the value stored under key.

        Returns:
            The stored string, or None if the key was never written

        Raises:
            OSError: If the underlying storage can't be read
        """
        pass

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """
        Store value under key, replacing any previous value.

        Raises:
            OSError: If the underlying storage can't be written
        """
        pass


class MemoryStore(KeyValueStore):
    """In-process store, used for ephemeral sessions and tests."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self.data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        self.data[key] = value


class JsonFileStore(KeyValueStore):
    """
    Key-value store backed by a single JSON object file.

    Writes go to a temp file in the same directory which is then renamed
    over the target, so a crash mid-write leaves the previous file intact.
    """

    def __init__(self, path: str = DEFAULT_HISTORY_FILE):
        self.path = path

    def _read_all(self) -> Dict[str, str]:
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return {}
        if not isinstance(data, dict):
            raise ValueError(f"{self.path} does not contain a JSON object")
        return data

    def get(self, key: str) -> Optional[str]:
        return self._read_all().get(key)

    def set(self, key: str, value: str) -> None:
        try:
            data = self._read_all()
        except ValueError:
            logging.warning(f"Replacing unreadable store file {self.path}")
            data = {}
        data[key] = value

        directory = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(directory, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".weather_history.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f)
            os.replace(tmp_path, self.path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise


class HistoryStorage:
    """
    Reads and writes the history log under one constant key.

    Storage problems never reach the caller: a missing or corrupt log loads
    as an empty history and a failed write is logged and dropped.
    """

    def __init__(self, backend: KeyValueStore, key: str = HISTORY_KEY):
        self.backend = backend
        self.key = key

    def load(self) -> List[HistoryEntry]:
        """
        Load the persisted history log.

        Returns:
            List of entries, newest first. Empty if nothing was stored or
            the stored value can't be read back.
        """
        try:
            serialized = self.backend.get(self.key)
        except Exception as e:
            logging.error(f"Error loading history from storage: {e}")
            return []

        if serialized is None:
            logging.debug(f"No stored history under '{self.key}'")
            return []

        try:
            raw_entries = json.loads(serialized)
            if not isinstance(raw_entries, list):
                raise ValueError(f"expected a list, got {type(raw_entries).__name__}")
            history = [HistoryEntry.from_dict(item) for item in raw_entries]
        except (TypeError, ValueError) as e:
            # json.JSONDecodeError is a ValueError
            logging.error(f"Error loading history from storage: {e}")
            return []

        logging.info(f"Loaded {len(history)} history entries")
        return history

    def save(self, history: List[HistoryEntry]) -> None:
        """Serialize the full log and overwrite the stored value."""
        try:
            serialized = json.dumps([entry.to_dict() for entry in history])
            self.backend.set(self.key, serialized)
        except Exception as e:
            logging.error(f"Error saving history to storage: {e}")
            return
        logging.debug(f"Saved {len(history)} history entries")
