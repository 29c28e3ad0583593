"""Location providers used for autolocation searches."""
import logging
from abc import ABC, abstractmethod
from typing import Optional, Tuple

import requests


class LocationError(Exception):
    """Exception raised when the current position can't be determined."""
    pass


class LocationProviderBase(ABC):
    """Abstract source of the user's current position."""

    @abstractmethod
    def get_position(self) -> Tuple[float, float]:
        """
        Determine the current position.

        Returns:
            (latitude, longitude)

        Raises:
            LocationError: If no position is available
        """
        pass


class StaticLocationProvider(LocationProviderBase):
    """Always reports the same, configured position."""

    def __init__(self, latitude: float, longitude: float):
        self.latitude = latitude
        self.longitude = longitude

    def get_position(self) -> Tuple[float, float]:
        return self.latitude, self.longitude


class IPLocationProvider(LocationProviderBase):
    """
    Approximate position from the public IP address.

    Uses the free ip-api.com JSON endpoint: http://ip-api.com/docs/api:json
    """

    BASE_URL = "http://ip-api.com/json"

    def __init__(self, timeout: int = 10, session: Optional[requests.Session] = None):
        self.timeout = timeout
        self.session = session or requests.Session()

    def get_position(self) -> Tuple[float, float]:
        try:
            logging.info(f"Looking up position from IP: {self.BASE_URL}")
            response = self.session.get(
                self.BASE_URL,
                params={"fields": "status,message,lat,lon"},
                timeout=self.timeout,
            )
            response.raise_for_status()
            data = response.json()
        except requests.exceptions.RequestException as e:
            logging.error(f"IP location lookup failed: {e}")
            raise LocationError(f"Error getting location: {e}")
        except ValueError as e:
            logging.error(f"IP location response is not JSON: {e}")
            raise LocationError(f"Error getting location: {e}")

        if not isinstance(data, dict) or data.get("status") != "success":
            message = data.get("message", "unknown error") if isinstance(data, dict) else "unknown error"
            raise LocationError(f"Error getting location: {message}")

        try:
            position = float(data["lat"]), float(data["lon"])
        except (KeyError, TypeError, ValueError) as e:
            raise LocationError(f"Error getting location: missing coordinates ({e})")

        logging.info(f"Location found: lat={position[0]:.4f} lon={position[1]:.4f}")
        return position
