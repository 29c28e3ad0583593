"""Weather provider abstraction - allows swapping direct API access for the proxy."""
from abc import ABC, abstractmethod
from typing import Optional

from weather_data import WeatherResult


class WeatherProviderBase(ABC):
    """Abstract base class for weather data providers."""

    @abstractmethod
    def get_current(self, query: str) -> WeatherResult:
        """
        Fetch current weather for a query.

        Args:
            query: City name, or "lat,lon"

        Returns:
            WeatherResult: The provider's JSON document, unmodified

        Raises:
            WeatherProviderError: If the provider fails to fetch data
        """
        pass


class WeatherProviderError(Exception):
    """Exception raised when a weather provider fails."""

    def __init__(self, message: str, status_code: Optional[int] = None, code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code
