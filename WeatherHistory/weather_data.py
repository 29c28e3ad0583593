"""Weather history domain model - pure data structures independent of any API."""
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

WeatherResult = Dict[str, Any]

CITY_TYPE = "city"
COORDINATES_TYPE = "latitude and longitude"
AUTOLOCATION_TYPE = "Autolocation"

SOURCE_MANUAL = "manual"
SOURCE_AUTOLOCATION = "autolocation"


@dataclass(frozen=True)
class CitySearch:
    """Search by city name."""
    city: str

    @property
    def type_label(self) -> str:
        return CITY_TYPE

    def is_complete(self) -> bool:
        return bool(self.city and self.city.strip())

    def query(self) -> str:
        return self.city.strip()

    def to_dict(self) -> Dict[str, Any]:
        return {"type": CITY_TYPE, "city": self.city}


@dataclass(frozen=True)
class CoordinateSearch:
    """Search by latitude/longitude, entered manually or found by autolocation."""
    latitude: Optional[float]
    longitude: Optional[float]
    source: str = SOURCE_MANUAL

    def __post_init__(self):
        if self.source not in (SOURCE_MANUAL, SOURCE_AUTOLOCATION):
            raise ValueError(f"Unknown coordinate source: {self.source!r}")

    @property
    def type_label(self) -> str:
        return AUTOLOCATION_TYPE if self.source == SOURCE_AUTOLOCATION else COORDINATES_TYPE

    def is_complete(self) -> bool:
        # Zero is a valid coordinate, only absence counts as missing
        return self.latitude is not None and self.longitude is not None

    def query(self) -> str:
        return f"{self.latitude},{self.longitude}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type_label,
            "latitude": self.latitude,
            "longitude": self.longitude,
        }


SearchParams = Union[CitySearch, CoordinateSearch]


def _coerce_coordinate(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValueError(f"Invalid coordinate: {value!r}")
    return float(value)


def search_params_from_dict(data: Dict[str, Any]) -> SearchParams:
    """
    Rebuild search parameters from their serialized form.

    Raises:
        ValueError: If the dict is not a recognised search params object
    """
    if not isinstance(data, dict):
        raise ValueError(f"Search params must be an object, got {type(data).__name__}")

    search_type = data.get("type")
    if search_type == CITY_TYPE:
        city = data.get("city")
        if not isinstance(city, str):
            raise ValueError("City search params missing 'city'")
        return CitySearch(city=city)
    if search_type in (COORDINATES_TYPE, AUTOLOCATION_TYPE):
        source = SOURCE_AUTOLOCATION if search_type == AUTOLOCATION_TYPE else SOURCE_MANUAL
        return CoordinateSearch(
            latitude=_coerce_coordinate(data.get("latitude")),
            longitude=_coerce_coordinate(data.get("longitude")),
            source=source,
        )
    raise ValueError(f"Unknown search type: {search_type!r}")


def utc_now_iso() -> str:
    """Current UTC time as ISO-8601 with millisecond precision."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def result_section(result: Any, key: str) -> Dict[str, Any]:
    """Return result[key] when it is an object, else an empty dict. Results are not validated."""
    if not isinstance(result, dict):
        return {}
    section = result.get(key)
    return section if isinstance(section, dict) else {}


@dataclass(frozen=True)
class HistoryEntry:
    """One past search: the provider's result plus how it was requested."""
    id: int
    result: WeatherResult
    params: SearchParams
    captured_at: str

    def location_label(self) -> str:
        location = result_section(self.result, "location")
        return f"{location.get('name', '?')}, {location.get('country', '?')}"

    def temperature_c(self) -> Optional[float]:
        return result_section(self.result, "current").get("temp_c")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "data": self.result,
            "searchParams": self.params.to_dict(),
            "timestamp": self.captured_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HistoryEntry":
        """
        Rebuild an entry from its serialized form.

        Raises:
            ValueError: If a field is missing or has the wrong type
        """
        if not isinstance(data, dict):
            raise ValueError(f"History entry must be an object, got {type(data).__name__}")
        try:
            entry_id = data["id"]
            result = data["data"]
            params = data["searchParams"]
            captured_at = data["timestamp"]
        except KeyError as e:
            raise ValueError(f"History entry missing field {e}") from e

        if isinstance(entry_id, bool) or not isinstance(entry_id, int):
            raise ValueError(f"History entry id must be an integer, got {entry_id!r}")
        if not isinstance(result, dict):
            raise ValueError("History entry data must be an object")
        if not isinstance(captured_at, str):
            raise ValueError("History entry timestamp must be a string")

        return cls(
            id=entry_id,
            result=result,
            params=search_params_from_dict(params),
            captured_at=captured_at,
        )


@dataclass
class StoreState:
    """Snapshot of the history store."""
    current: Optional[WeatherResult] = None
    history: List[HistoryEntry] = field(default_factory=list)
    loading: bool = False
    error: Optional[str] = None


class EntryIdGenerator:
    """
    Hands out history entry ids derived from the wall clock in milliseconds.

    Ids never repeat: when two entries are created within the same
    millisecond (or the clock steps backwards) the next id is last + 1.
    """

    def __init__(self, last_id: int = 0, clock=None):
        self._last_id = last_id
        self._clock = clock or time.time

    def seed(self, history: List[HistoryEntry]) -> None:
        """Make sure new ids are above every id already in the log."""
        for entry in history:
            if entry.id > self._last_id:
                self._last_id = entry.id

    def next_id(self) -> int:
        now_ms = int(self._clock() * 1000)
        self._last_id = max(now_ms, self._last_id + 1)
        return self._last_id
