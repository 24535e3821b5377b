"""
Configuration for weather-util

Values come from (highest priority first):
1. Command-line flags (passed in as keyword arguments)
2. Environment variables
3. ``.env`` in the working directory, then
   ``~/.config/weather_util/config.env``

Environment defaults for the location are only used when no location was
given on the command line, so ``--city`` never clashes with a default
WEATHER_UTIL_LAT/WEATHER_UTIL_LON pair.
"""

import logging
import math
import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Dict, Optional

import httpx
from dotenv import load_dotenv

from weather_util.errors import ConfigurationError
from weather_util.models import Coordinates
from weather_util.resilience import DEFAULT_RETRY_CONFIG
from weather_util.units import UnitSystem

logger = logging.getLogger(__name__)

DEFAULT_ENDPOINT = "api.openweathermap.org"
DEFAULT_FORECAST_COUNT = 8  # one day of 3-hour steps
DEFAULT_TIMEOUT_SECONDS = 10.0
USER_CONFIG_FILE = Path.home() / ".config" / "weather_util" / "config.env"

_API_KEY_ENV = ("OPENWEATHERMAP_API_KEY", "API_KEY")
_ENDPOINT_ENV = "OPENWEATHERMAP_API_ENDPOINT"
_CITY_ENV = "WEATHER_UTIL_CITY"
_LAT_ENV = "WEATHER_UTIL_LAT"
_LON_ENV = "WEATHER_UTIL_LON"
_ZIPCODE_ENV = "WEATHER_UTIL_ZIPCODE"
_COUNTRY_CODE_ENV = "WEATHER_UTIL_COUNTRY_CODE"
_UNITS_ENV = "WEATHER_UTIL_UNITS"
_FORECAST_COUNT_ENV = "WEATHER_UTIL_FORECAST_COUNT"
_TIMEOUT_ENV = "WEATHER_UTIL_TIMEOUT"
_MAX_ATTEMPTS_ENV = "WEATHER_UTIL_MAX_ATTEMPTS"


def endpoint_url(endpoint: str) -> str:
    """Base URL for an API host; bare hosts get https."""
    if endpoint.startswith(("http://", "https://")):
        return endpoint.rstrip("/")
    return f"https://{endpoint.strip('/')}"


class OutputMode(Enum):
    HUMAN = "human"
    JSON = "json"


@dataclass(frozen=True)
class Location:
    """Exactly one of city, coordinates or zipcode is set."""
    city: Optional[str] = None
    coordinates: Optional[Coordinates] = None
    zipcode: Optional[str] = None
    country_code: Optional[str] = None

    def query_params(self) -> Dict[str, str]:
        if self.coordinates is not None:
            return {"lat": str(self.coordinates.lat), "lon": str(self.coordinates.lon)}
        if self.zipcode is not None:
            if self.country_code:
                return {"zip": f"{self.zipcode},{self.country_code}"}
            return {"zip": self.zipcode}
        return {"q": self.city or ""}

    def describe(self) -> str:
        if self.coordinates is not None:
            return f"{self.coordinates.lat},{self.coordinates.lon}"
        if self.zipcode is not None:
            return f"zip {self.zipcode}" + (f",{self.country_code}" if self.country_code else "")
        return self.city or ""


@dataclass(frozen=True)
class WeatherConfig:
    api_key: str
    location: Location
    units: UnitSystem = UnitSystem.METRIC
    mode: OutputMode = OutputMode.HUMAN
    endpoint: str = DEFAULT_ENDPOINT
    forecast_count: int = DEFAULT_FORECAST_COUNT
    timeout: float = DEFAULT_TIMEOUT_SECONDS
    max_attempts: int = DEFAULT_RETRY_CONFIG.max_attempts

    def __repr__(self) -> str:
        # Keep the API key out of logs and tracebacks
        return (
            f"WeatherConfig(location={self.location.describe()!r}, units={self.units.value}, "
            f"mode={self.mode.value}, endpoint={self.endpoint!r}, "
            f"forecast_count={self.forecast_count}, timeout={self.timeout}, "
            f"max_attempts={self.max_attempts})"
        )


def load_env_files() -> None:
    """Load .env files without overriding variables already in the environment."""
    load_dotenv()
    if USER_CONFIG_FILE.exists():
        logger.debug(f"[config] Loading {USER_CONFIG_FILE}")
        load_dotenv(USER_CONFIG_FILE)


def _read_str_env(*names: str) -> Optional[str]:
    for name in names:
        value = os.getenv(name)
        if value is None:
            continue
        candidate = value.strip()
        if candidate:
            return candidate
    return None


def _parse_float(name: str, value) -> float:
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"{name} must be a number, got {value!r}")
    if not math.isfinite(parsed):
        raise ConfigurationError(f"{name} must be finite, got {value!r}")
    return parsed


def _parse_positive_int(name: str, value) -> int:
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"{name} must be an integer, got {value!r}")
    if parsed <= 0:
        raise ConfigurationError(f"{name} must be positive, got {parsed}")
    return parsed


def _parse_enum(enum_cls, name: str, value):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).strip().lower())
    except ValueError:
        choices = ", ".join(member.value for member in enum_cls)
        raise ConfigurationError(f"{name} must be one of {choices}, got {value!r}")


def build_location(
    city: Optional[str] = None,
    lat=None,
    lon=None,
    zipcode: Optional[str] = None,
    country_code: Optional[str] = None,
) -> Location:
    """
    Validate a location selector.

    Raises:
        ConfigurationError: if zero or more than one selector is given, if
        only one of lat/lon is given, or if a coordinate is out of range.
    """
    city = city.strip() if city else None
    zipcode = str(zipcode).strip() if zipcode else None

    if (lat is None) != (lon is None):
        raise ConfigurationError("latitude and longitude must be given together")

    selectors = [city is not None, lat is not None, zipcode is not None]
    if sum(selectors) == 0:
        raise ConfigurationError("no location given (use a city name, lat/lon or a zip code)")
    if sum(selectors) > 1:
        raise ConfigurationError("give exactly one location: city name, lat/lon or zip code")

    if lat is not None:
        lat_value = _parse_float("latitude", lat)
        lon_value = _parse_float("longitude", lon)
        if not Coordinates.is_valid_latitude(lat_value):
            raise ConfigurationError(f"{lat_value} is not a valid latitude")
        if not Coordinates.is_valid_longitude(lon_value):
            raise ConfigurationError(f"{lon_value} is not a valid longitude")
        return Location(coordinates=Coordinates(lat=lat_value, lon=lon_value))

    if zipcode is not None:
        return Location(zipcode=zipcode, country_code=country_code.strip() if country_code else None)

    return Location(city=city)


def build_config(
    api_key: Optional[str] = None,
    city: Optional[str] = None,
    lat=None,
    lon=None,
    zipcode: Optional[str] = None,
    country_code: Optional[str] = None,
    units=None,
    mode=None,
    endpoint: Optional[str] = None,
    forecast_count=None,
    timeout=None,
    max_attempts=None,
    use_env: bool = True,
) -> WeatherConfig:
    """
    Resolve a WeatherConfig from explicit values and the environment.

    Args:
        use_env: Fall back to environment variables for unset values

    Raises:
        ConfigurationError: on a missing API key, bad location or bad setting
    """
    def env(*names):
        return _read_str_env(*names) if use_env else None

    api_key = (api_key or "").strip() or env(*_API_KEY_ENV)
    if not api_key:
        raise ConfigurationError(
            f"no API key given (set {_API_KEY_ENV[0]} or pass --api-key)"
        )

    if city is None and lat is None and lon is None and zipcode is None:
        city = env(_CITY_ENV)
        lat = env(_LAT_ENV)
        lon = env(_LON_ENV)
        zipcode = env(_ZIPCODE_ENV)
        if city is not None and (lat is not None or zipcode is not None):
            logger.warning(f"[config] Both {_CITY_ENV} and another location are set; using {_CITY_ENV}")
            lat = lon = zipcode = None
    if country_code is None:
        country_code = env(_COUNTRY_CODE_ENV)

    location = build_location(city=city, lat=lat, lon=lon, zipcode=zipcode, country_code=country_code)

    units = _parse_enum(UnitSystem, "units", units or env(_UNITS_ENV) or UnitSystem.METRIC)
    mode = _parse_enum(OutputMode, "output mode", mode or OutputMode.HUMAN)

    endpoint = (endpoint or env(_ENDPOINT_ENV) or DEFAULT_ENDPOINT).strip()
    if not endpoint:
        raise ConfigurationError("API endpoint must not be empty")
    try:
        url = httpx.URL(endpoint_url(endpoint))
    except httpx.InvalidURL as e:
        raise ConfigurationError(f"Invalid API endpoint {endpoint!r}: {e}") from e
    if not url.host:
        raise ConfigurationError(f"Invalid API endpoint {endpoint!r}: no host")

    forecast_count = _parse_positive_int(
        "forecast count", forecast_count if forecast_count is not None
        else env(_FORECAST_COUNT_ENV) or DEFAULT_FORECAST_COUNT
    )
    max_attempts = _parse_positive_int(
        "max attempts", max_attempts if max_attempts is not None
        else env(_MAX_ATTEMPTS_ENV) or DEFAULT_RETRY_CONFIG.max_attempts
    )
    timeout = _parse_float(
        "timeout", timeout if timeout is not None
        else env(_TIMEOUT_ENV) or DEFAULT_TIMEOUT_SECONDS
    )
    if timeout <= 0:
        raise ConfigurationError(f"timeout must be positive, got {timeout}")

    config = WeatherConfig(
        api_key=api_key,
        location=location,
        units=units,
        mode=mode,
        endpoint=endpoint,
        forecast_count=forecast_count,
        timeout=timeout,
        max_attempts=max_attempts,
    )
    logger.info(f"[config] Resolved {config!r}")
    return config
