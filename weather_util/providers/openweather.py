"""
OpenWeatherMap Provider for weather-util

Queries two endpoints per invocation:

- /data/2.5/weather   current conditions
- /data/2.5/forecast  5 day / 3 hour forecast (``cnt`` limits the entries)

Both requests run concurrently on one httpx.AsyncClient. Each one is
retried on transient failure (see resilience.py). The first failure cancels
the sibling request and is raised to the caller.
"""

import asyncio
import logging
from typing import Dict, Optional, Tuple

import httpx

from weather_util import __version__
from weather_util.config import Location, endpoint_url
from weather_util.errors import Endpoint
from weather_util.models import (
    CurrentObservation,
    ForecastEntry,
    ProviderUnits,
    decode_current,
    decode_forecast,
)
from weather_util.resilience import DEFAULT_RETRY_CONFIG, RetryConfig, retry_async, to_fetch_error
from weather_util.ssl_helper import get_httpx_verify

logger = logging.getLogger(__name__)


class OpenWeatherProvider:
    """
    Fetch client for the OpenWeatherMap 2.5 API.

    The client keeps no state between calls: every fetch_all() opens and
    closes its own httpx.AsyncClient.
    """

    PROVIDER_NAME = "OpenWeatherMap"
    DEFAULT_ENDPOINT = "api.openweathermap.org"
    PATHS = {
        Endpoint.CURRENT: "/data/2.5/weather",
        Endpoint.FORECAST: "/data/2.5/forecast",
    }

    HEADERS = {
        "User-Agent": f"weather-util/{__version__}",
        "Accept": "application/json",
    }

    def __init__(
        self,
        api_key: str,
        endpoint: str = DEFAULT_ENDPOINT,
        units: ProviderUnits = ProviderUnits.STANDARD,
        forecast_count: Optional[int] = None,
        retry_config: Optional[RetryConfig] = None,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.endpoint = endpoint
        self.units = units
        self.forecast_count = forecast_count
        self.retry_config = retry_config or DEFAULT_RETRY_CONFIG
        self.timeout = timeout
        self.transport = transport

    @property
    def base_url(self) -> str:
        return endpoint_url(self.endpoint)

    def build_params(self, location: Location, endpoint: Endpoint) -> Dict[str, str]:
        """Query parameters for one endpoint, including the API key."""
        params = dict(location.query_params())
        params["appid"] = self.api_key
        params["units"] = self.units.value
        if endpoint is Endpoint.FORECAST and self.forecast_count:
            params["cnt"] = str(self.forecast_count)
        return params

    def _client(self) -> httpx.AsyncClient:
        kwargs = {
            "base_url": self.base_url,
            "timeout": self.timeout,
            "headers": self.HEADERS,
        }
        if self.transport is not None:
            kwargs["transport"] = self.transport
        else:
            kwargs["verify"] = get_httpx_verify()
        try:
            return httpx.AsyncClient(**kwargs)
        except httpx.InvalidURL as e:
            error = to_fetch_error(e, endpoint=None, attempts=0)
            logger.error(f"[{self.PROVIDER_NAME}] Unusable endpoint {self.endpoint!r}: {error}")
            raise error from e

    async def _get(self, client: httpx.AsyncClient, endpoint: Endpoint, location: Location) -> bytes:
        params = self.build_params(location, endpoint)
        path = self.PATHS[endpoint]
        logged = {k: v for k, v in params.items() if k != "appid"}
        logger.debug(f"[{self.PROVIDER_NAME}] GET {path} {logged}")

        resp = await client.get(path, params=params)
        logger.info(f"[{self.PROVIDER_NAME}] {endpoint.value}: HTTP {resp.status_code}")
        resp.raise_for_status()
        return resp.content

    async def _fetch(self, client: httpx.AsyncClient, endpoint: Endpoint, location: Location):
        async def attempt():
            body = await self._get(client, endpoint, location)
            if endpoint is Endpoint.CURRENT:
                return decode_current(body, self.units)
            entries = decode_forecast(body, self.units)
            if self.forecast_count:
                entries = entries[:self.forecast_count]
            return entries

        return await retry_async(
            attempt,
            provider_name=self.PROVIDER_NAME,
            config=self.retry_config,
            endpoint=endpoint,
        )

    async def fetch_current(self, location: Location,
                            client: Optional[httpx.AsyncClient] = None) -> CurrentObservation:
        """Fetch and decode current conditions."""
        if client is not None:
            return await self._fetch(client, Endpoint.CURRENT, location)
        async with self._client() as own_client:
            return await self._fetch(own_client, Endpoint.CURRENT, location)

    async def fetch_forecast(self, location: Location,
                             client: Optional[httpx.AsyncClient] = None) -> Tuple[ForecastEntry, ...]:
        """Fetch and decode the forecast, sorted by timestamp."""
        if client is not None:
            return await self._fetch(client, Endpoint.FORECAST, location)
        async with self._client() as own_client:
            return await self._fetch(own_client, Endpoint.FORECAST, location)

    async def fetch_all(self, location: Location) -> Tuple[CurrentObservation, Tuple[ForecastEntry, ...]]:
        """
        Fetch both endpoints concurrently.

        Returns:
            (CurrentObservation, forecast entries) once both succeed

        Raises:
            FetchError / MalformedResponse from whichever request failed
            first; the other request is cancelled.
        """
        logger.info(f"[{self.PROVIDER_NAME}] Fetching current + forecast for {location.describe()}")

        async with self._client() as client:
            current_task = asyncio.create_task(
                self.fetch_current(location, client), name="weather-util:current"
            )
            forecast_task = asyncio.create_task(
                self.fetch_forecast(location, client), name="weather-util:forecast"
            )
            tasks = [current_task, forecast_task]

            try:
                done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
            except asyncio.CancelledError:
                await _cancel_all(tasks)
                raise

            failed = [t for t in tasks if t in done and t.exception() is not None]
            if failed:
                await _cancel_all(pending)
                error = failed[0].exception()
                logger.error(f"[{self.PROVIDER_NAME}] Fetch failed: {error}")
                raise error

            current = current_task.result()
            forecast = forecast_task.result()

        logger.info(
            f"[{self.PROVIDER_NAME}] Retrieved current conditions for {current.name} "
            f"and {len(forecast)} forecast entries"
        )
        return current, forecast


async def _cancel_all(tasks) -> None:
    for task in tasks:
        task.cancel()
    if tasks:
        await asyncio.gather(*tasks, return_exceptions=True)
