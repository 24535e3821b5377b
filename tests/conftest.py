"""
Shared fixtures: OpenWeatherMap payloads and a mock HTTP transport.

Times used throughout (UTC):
    current dt   2020-05-01 11:00  (12:00 local, timezone +3600)
    forecast     12:00, 15:00, 18:00 (listed out of order in the payload)
"""

import copy
import json
import logging
from typing import Callable, Dict, List

import httpx
import pytest

from weather_util.resilience import RetryConfig

logging.basicConfig(level=logging.DEBUG)

CURRENT_DT = 1588330800
FORECAST_DTS = (1588334400, 1588345200, 1588356000)

CURRENT_PAYLOAD = {
    "coord": {"lon": -0.1257, "lat": 51.5085},
    "weather": [{"id": 800, "main": "Clear", "description": "clear sky", "icon": "01d"}],
    "base": "stations",
    "main": {
        "temp": 285.15,
        "feels_like": 283.65,
        "temp_min": 284.15,
        "temp_max": 286.15,
        "pressure": 1012,
        "humidity": 70,
    },
    "visibility": 10000,
    "wind": {"speed": 3.5, "deg": 90},
    "clouds": {"all": 0},
    "dt": CURRENT_DT,
    "sys": {"type": 1, "id": 1414, "country": "GB", "sunrise": 1588307520, "sunset": 1588360860},
    "timezone": 3600,
    "id": 2643743,
    "name": "London",
    "cod": 200,
}


def _forecast_item(dt: int, temp: float, deg: float, main: str, description: str) -> dict:
    return {
        "dt": dt,
        "main": {
            "temp": temp,
            "feels_like": temp - 1.5,
            "temp_min": temp - 0.5,
            "temp_max": temp + 0.5,
            "pressure": 1013,
            "humidity": 65,
        },
        "weather": [{"id": 800, "main": main, "description": description}],
        "wind": {"speed": 3.1, "deg": deg},
        "dt_txt": "ignored",
    }


FORECAST_PAYLOAD = {
    "cod": "200",
    "message": 0,
    "cnt": 3,
    "list": [
        _forecast_item(FORECAST_DTS[2], 283.15, 180, "Clouds", "few clouds"),
        _forecast_item(FORECAST_DTS[0], 285.65, 90, "Clear", "clear sky"),
        _forecast_item(FORECAST_DTS[1], 286.15, 270, "Clear", "clear sky"),
    ],
    "city": {"id": 2643743, "name": "London", "country": "GB", "timezone": 3600},
}

# Zero delays and no per-attempt deadline keep retry tests fast
FAST_RETRY = RetryConfig(
    max_attempts=3,
    base_delay_seconds=0.0,
    max_delay_seconds=0.0,
    jitter=False,
    attempt_timeout_seconds=None,
)


@pytest.fixture
def current_payload() -> dict:
    return copy.deepcopy(CURRENT_PAYLOAD)


@pytest.fixture
def forecast_payload() -> dict:
    return copy.deepcopy(FORECAST_PAYLOAD)


class RecordingHandler:
    """
    httpx.MockTransport handler routing by path.

    ``routes`` maps "/data/2.5/weather" or "/data/2.5/forecast" to a callable
    taking the request and returning an httpx.Response (or raising).
    """

    def __init__(self, routes: Dict[str, Callable[[httpx.Request], httpx.Response]]):
        self.routes = routes
        self.requests: List[httpx.Request] = []

    def calls(self, path: str) -> int:
        return sum(1 for r in self.requests if r.url.path == path)

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes[request.url.path]
        result = route(request)
        if hasattr(result, "__await__"):
            result = await result
        return result


def json_response(payload: dict, status_code: int = 200) -> Callable[[httpx.Request], httpx.Response]:
    body = json.dumps(payload).encode()

    def respond(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code, content=body, headers={"Content-Type": "application/json"})

    return respond


def status_response(status_code: int, message: str = "error") -> Callable[[httpx.Request], httpx.Response]:
    def respond(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code, json={"cod": status_code, "message": message})

    return respond


@pytest.fixture
def ok_handler(current_payload, forecast_payload) -> RecordingHandler:
    return RecordingHandler({
        "/data/2.5/weather": json_response(current_payload),
        "/data/2.5/forecast": json_response(forecast_payload),
    })
