"""
Stateless weather proxy.

Forwards GET /api/weather?q=..&type=.. to WeatherAPI.com with a key held on
the server, so clients never see it. Keeps no state between requests.
"""
import logging
import os
from typing import Optional

import requests
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from weatherapi_provider import WEATHERAPI_BASE_URL

API_KEY_ENV = "WEATHER_API_KEY"
PROXY_ROUTE = "/api/weather"


def create_app(
    api_key: Optional[str] = None,
    session: Optional[requests.Session] = None,
    base_url: str = WEATHERAPI_BASE_URL,
    timeout: int = 10
) -> FastAPI:
    """
    Build the proxy application.

    Args:
        api_key: WeatherAPI key; when None it is read from WEATHER_API_KEY on every request
        session: requests session used for upstream calls
        base_url: Upstream API root
        timeout: Upstream HTTP timeout in seconds
    """
    app = FastAPI(title="Weather proxy")
    http = session or requests.Session()

    @app.api_route(PROXY_ROUTE, methods=["GET", "POST", "PUT", "PATCH", "DELETE"])
    def weather(request: Request):
        if request.method != "GET":
            return JSONResponse(status_code=405, content={"error": "Method not allowed"})

        try:
            key = api_key if api_key is not None else os.getenv(API_KEY_ENV)
            if not key:
                logging.error(f"Weather proxy misconfigured: {API_KEY_ENV} not set")
                return JSONResponse(status_code=500, content={"error": "API key is missing"})

            q = request.query_params.get("q")
            query_type = request.query_params.get("type")
            if not q:
                return JSONResponse(status_code=400, content={"error": "Missing required parameter: q"})

            logging.info(f"Proxying weather request q={q} type={query_type}")
            response = http.get(
                f"{base_url}/current.json",
                params={"key": key, "q": q},
                timeout=timeout,
            )

            if not response.ok:
                try:
                    error_data = response.json()
                except ValueError:
                    error_data = {}
                upstream_error = error_data.get("error") if isinstance(error_data, dict) else None
                if not isinstance(upstream_error, dict):
                    upstream_error = {}
                logging.warning(f"Upstream returned {response.status_code}: {upstream_error}")
                return JSONResponse(
                    status_code=response.status_code,
                    content={
                        "error": upstream_error.get("message") or "Failed to fetch weather data",
                        "code": upstream_error.get("code"),
                    },
                )

            return JSONResponse(status_code=200, content=response.json())
        except Exception:
            logging.exception("Error in weather proxy")
            return JSONResponse(status_code=500, content={"error": "Internal server error"})

    return app
