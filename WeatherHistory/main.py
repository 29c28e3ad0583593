"""Command-line weather lookup with a persistent, editable search history."""
import argparse
import asyncio
import logging
import os
import sys
from dataclasses import dataclass
from typing import List, Optional

from dotenv import load_dotenv

from fetch_orchestrator import FetchOrchestrator
from history_storage import DEFAULT_HISTORY_FILE, HistoryStorage, JsonFileStore
from history_store import HistoryStore
from location_provider import IPLocationProvider, LocationError, LocationProviderBase
from weather_data import (
    CitySearch,
    CoordinateSearch,
    HistoryEntry,
    SOURCE_AUTOLOCATION,
    SOURCE_MANUAL,
    SearchParams,
    WeatherResult,
    result_section,
)
from weather_provider import WeatherProviderBase
from weatherapi_provider import ProxyWeatherProvider, WeatherApiProvider


@dataclass
class Config:
    api_key: Optional[str]
    proxy_url: Optional[str]
    history_file: str


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser("weather-history", description="Current weather with search history")
    parser.add_argument("--history-file", default=None, help="Where the search history is kept")
    parser.add_argument("--proxy-url", default=None, help="Fetch through the weather proxy at this URL")
    parser.add_argument("--timeout", type=int, default=10, help="HTTP timeout in seconds")
    parser.add_argument("--log-file", default=None)
    parser.add_argument("--verbose", action="store_true")

    commands = parser.add_subparsers(dest="command", required=True)

    city = commands.add_parser("city", help="Weather for a city")
    city.add_argument("name", nargs="+")

    coords = commands.add_parser("coords", help="Weather for latitude/longitude")
    coords.add_argument("latitude", type=float)
    coords.add_argument("longitude", type=float)

    commands.add_parser("auto", help="Weather for the detected location")
    commands.add_parser("history", help="List past searches")

    view = commands.add_parser("view", help="Show a past search again")
    view.add_argument("id", type=int)

    remove = commands.add_parser("remove", help="Delete one past search")
    remove.add_argument("id", type=int)

    clear = commands.add_parser("clear", help="Delete all past searches")
    clear.add_argument("--yes", action="store_true", help="Don't ask for confirmation")

    serve = commands.add_parser("serve", help="Run the weather proxy")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)

    return parser.parse_args(argv)


def setup_logging(log_file: Optional[str], verbose: bool) -> None:
    log_level = logging.DEBUG if verbose else logging.WARNING
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))
        if not verbose:
            log_level = logging.INFO
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(levelname)s - %(message)s",
        handlers=handlers
    )


def load_config(args: argparse.Namespace) -> Config:
    load_dotenv()
    config = Config(
        api_key=os.getenv("WEATHER_API_KEY"),
        proxy_url=args.proxy_url or os.getenv("WEATHER_PROXY_URL"),
        history_file=args.history_file or os.getenv("WEATHER_HISTORY_FILE") or DEFAULT_HISTORY_FILE,
    )
    logging.info("Configuration loaded: history_file=%s proxy=%s", config.history_file, config.proxy_url)
    return config


def build_store(config: Config) -> HistoryStore:
    storage = HistoryStorage(JsonFileStore(config.history_file))
    return HistoryStore(storage)


def build_provider(config: Config, timeout: int, query_type: str = "") -> WeatherProviderBase:
    if config.proxy_url:
        logging.info("Using weather proxy at %s", config.proxy_url)
        return ProxyWeatherProvider(config.proxy_url, query_type=query_type, timeout=timeout)
    if not config.api_key:
        raise SystemExit("Missing WEATHER_API_KEY in environment (or set WEATHER_PROXY_URL)")
    return WeatherApiProvider(config.api_key, timeout=timeout)


def format_weather_lines(weather: WeatherResult) -> List[str]:
    location = result_section(weather, "location")
    current = result_section(weather, "current")
    condition = result_section(current, "condition").get("text") or "N/A"
    return [
        f"{location.get('name', '?')}, {location.get('country', '?')}",
        f"  Temperature:   {current.get('temp_c')}°C",
        f"  Humidity:      {current.get('humidity')}%",
        f"  Wind Speed:    {current.get('wind_kph')} km/h",
        f"  Visibility:    {current.get('vis_km')} km",
        f"  Precipitation: {current.get('precip_mm')} mm",
        f"  Condition:     {condition}",
    ]


def format_search(params: SearchParams) -> str:
    if isinstance(params, CitySearch):
        return f"{params.type_label} - {params.city}"
    if params.source == SOURCE_MANUAL:
        return f"{params.type_label} - {params.latitude}, {params.longitude}"
    return params.type_label


def format_history_line(entry: HistoryEntry) -> str:
    return (
        f"[{entry.id}] {entry.location_label()}  {entry.temperature_c()}°C  "
        f"{entry.captured_at}  (search by: {format_search(entry.params)})"
    )


def render_state(store: HistoryStore) -> int:
    if store.error:
        print(f"Error: {store.error}")
        return 1
    if store.current is None:
        print('Enter search parameters and run "city", "coords" or "auto"')
        return 0
    print("\n".join(format_weather_lines(store.current)))
    return 0


def resolve_params(args: argparse.Namespace, locator: Optional[LocationProviderBase] = None) -> SearchParams:
    if args.command == "city":
        return CitySearch(city=" ".join(args.name))
    if args.command == "coords":
        return CoordinateSearch(latitude=args.latitude, longitude=args.longitude, source=SOURCE_MANUAL)

    locator = locator or IPLocationProvider(timeout=args.timeout)
    latitude, longitude = locator.get_position()
    print(f"Location found: Latitude {latitude:.4f}, Longitude {longitude:.4f}")
    return CoordinateSearch(latitude=latitude, longitude=longitude, source=SOURCE_AUTOLOCATION)


def run_search(store: HistoryStore, provider: WeatherProviderBase, params: SearchParams) -> int:
    orchestrator = FetchOrchestrator(store, provider)
    asyncio.run(orchestrator.submit(params))
    return render_state(store)


def run_history(store: HistoryStore) -> int:
    if not store.history:
        print("No search history yet. Start searching for weather!")
        return 0
    for entry in store.history:
        print(format_history_line(entry))
    return 0


def run_view(store: HistoryStore, entry_id: int) -> int:
    entry = store.get_entry(entry_id)
    if entry is None:
        print(f"No history entry with id {entry_id}")
        return 1
    store.replay(entry)
    return render_state(store)


def run_clear(store: HistoryStore, assume_yes: bool) -> int:
    if not assume_yes:
        answer = input("Are you sure you want to clear all history? [y/N] ")
        if answer.strip().lower() not in ("y", "yes"):
            print("History kept")
            return 0
    store.clear_history()
    print("History cleared")
    return 0


def run_serve(config: Config, host: str, port: int, timeout: int) -> int:
    import uvicorn

    from weather_proxy import create_app

    if not config.api_key:
        logging.warning("WEATHER_API_KEY not set; proxy will answer 500 until it is")
    uvicorn.run(create_app(api_key=config.api_key, timeout=timeout), host=host, port=port)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    setup_logging(args.log_file, args.verbose)
    config = load_config(args)

    if args.command == "serve":
        return run_serve(config, args.host, args.port, args.timeout)

    store = build_store(config)

    if args.command in ("city", "coords", "auto"):
        try:
            params = resolve_params(args)
        except LocationError as err:
            logging.error("Autolocation failed: %s", err)
            print(str(err))
            return 1
        provider = build_provider(config, args.timeout, query_type=params.type_label)
        return run_search(store, provider, params)
    if args.command == "history":
        return run_history(store)
    if args.command == "view":
        return run_view(store, args.id)
    if args.command == "remove":
        if store.remove_history_item(args.id):
            print(f"Removed entry {args.id}")
        else:
            print(f"No history entry with id {args.id}")
        return 0
    if args.command == "clear":
        return run_clear(store, args.yes)
    return 2


if __name__ == "__main__":
    sys.exit(main())
