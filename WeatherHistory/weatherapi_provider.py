"""WeatherAPI.com current weather providers: direct, and through the weather proxy."""
import logging
from abc import abstractmethod
from typing import Any, Dict, Optional

import requests

from weather_data import WeatherResult
from weather_provider import WeatherProviderBase, WeatherProviderError

WEATHERAPI_BASE_URL = "https://api.weatherapi.com/v1"


def _error_message(payload: Any) -> Optional[str]:
    """Pull the most specific message out of an error body.

    WeatherAPI nests it ({"error": {"message": ..}}), the proxy flattens it
    ({"error": ".."}).
    """
    if not isinstance(payload, dict):
        return None
    error = payload.get("error")
    if isinstance(error, dict):
        return error.get("message") or None
    if isinstance(error, str):
        return error or None
    return None


def _error_code(payload: Any) -> Optional[int]:
    if not isinstance(payload, dict):
        return None
    error = payload.get("error")
    if isinstance(error, dict):
        return error.get("code")
    return payload.get("code")


class _HttpWeatherProvider(WeatherProviderBase):
    """Shared request/response handling for the HTTP-backed providers."""

    def __init__(self, timeout: int = 10, session: Optional[requests.Session] = None):
        self.timeout = timeout
        self.session = session or requests.Session()

    @abstractmethod
    def _request_params(self, query: str) -> Dict[str, str]:
        """Query parameters for a lookup of query."""
        pass

    @property
    @abstractmethod
    def url(self) -> str:
        """Endpoint the lookup is sent to."""
        pass

    def get_current(self, query: str) -> WeatherResult:
        """
        Fetch current weather for query.

        Returns:
            WeatherResult: The JSON document as returned

        Raises:
            WeatherProviderError: On network failure, non-2xx status or malformed body
        """
        try:
            logging.info(f"Making weather request: {self.url} q={query}")
            response = self.session.get(self.url, params=self._request_params(query), timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            logging.error(f"Network error during API request: {e}")
            raise WeatherProviderError(f"Network error: {str(e)}")

        logging.info(f"API response status: {response.status_code}")
        if not response.ok:
            logging.error(f"API request failed with status {response.status_code}")
            self._handle_error_response(response)

        try:
            data = response.json()
        except ValueError as e:
            logging.error(f"Failed to parse API response: {e}", exc_info=True)
            raise WeatherProviderError(f"Failed to parse response: {str(e)}")

        if not isinstance(data, dict):
            logging.error(f"API response is not a JSON object: {str(data)[:200]}")
            raise WeatherProviderError("Failed to parse response: expected a JSON object")

        logging.debug(f"API response (truncated): {str(data)[:500]}...")
        return data

    def _handle_error_response(self, response: requests.Response) -> None:
        """Raise the most specific error available for a non-2xx response."""
        try:
            error_data = response.json()
        except ValueError:
            logging.error(f"Non-JSON error response: HTTP {response.status_code}, body: {response.text[:500]}")
            raise WeatherProviderError(
                f"HTTP {response.status_code}: {response.reason or 'request failed'}",
                status_code=response.status_code,
            )

        logging.error(f"Weather API error response: {error_data}")
        message = _error_message(error_data)
        if not message:
            message = f"Failed to fetch weather: HTTP {response.status_code} {response.reason or ''}".rstrip()
        raise WeatherProviderError(
            message,
            status_code=response.status_code,
            code=_error_code(error_data),
        )


class WeatherApiProvider(_HttpWeatherProvider):
    """
    Provider calling the WeatherAPI.com current weather endpoint directly.

    Docs: https://www.weatherapi.com/docs/ (current.json)
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = WEATHERAPI_BASE_URL,
        timeout: int = 10,
        session: Optional[requests.Session] = None
    ):
        """
        Initialize WeatherAPI provider.

        Args:
            api_key: WeatherAPI.com key
            base_url: API root, without trailing slash
            timeout: HTTP request timeout in seconds
            session: Optional requests session to reuse

        Raises:
            ValueError: If api_key is empty
        """
        if not api_key:
            raise ValueError("API key is missing")
        super().__init__(timeout=timeout, session=session)
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")

    @property
    def url(self) -> str:
        return f"{self.base_url}/current.json"

    def _request_params(self, query: str) -> Dict[str, str]:
        return {"key": self.api_key, "q": query}


class ProxyWeatherProvider(_HttpWeatherProvider):
    """Provider going through the weather proxy, which holds the API key."""

    def __init__(
        self,
        proxy_url: str,
        query_type: str = "",
        timeout: int = 10,
        session: Optional[requests.Session] = None
    ):
        """
        Args:
            proxy_url: Full URL of the proxy route, e.g. http://localhost:8000/api/weather
            query_type: Informational "type" parameter sent along with q
        """
        super().__init__(timeout=timeout, session=session)
        self.proxy_url = proxy_url
        self.query_type = query_type

    @property
    def url(self) -> str:
        return self.proxy_url

    def _request_params(self, query: str) -> Dict[str, str]:
        params = {"q": query}
        if self.query_type:
            params["type"] = self.query_type
        return params
