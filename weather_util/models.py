"""
Provider Response Model for weather-util

Decodes OpenWeatherMap "current weather" (/data/2.5/weather) and
"5 day / 3 hour forecast" (/data/2.5/forecast) payloads into frozen,
fully populated dataclasses.

Rules:
- A missing or mistyped required field raises MalformedResponse naming the
  dotted path of the field (e.g. "main.temp", "list[2].dt").
- Optional fields (rain, snow, wind.deg, visibility, sys.country, weather)
  fall back to neutral values so consumers never deal with None for them,
  except where None is the neutral value (country, visibility).
- Unknown fields are ignored.
"""

import json
import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Mapping, Optional, Tuple, Union

from weather_util.errors import Endpoint, MalformedResponse
from weather_util.units import (
    Direction,
    Pressure,
    Speed,
    Temperature,
    TemperatureUnit,
    Wind,
)

logger = logging.getLogger(__name__)

Payload = Union[bytes, str, Mapping[str, Any]]

# datetime.timezone rejects offsets of a full day or more
MAX_UTC_OFFSET_SECONDS = 86400


class ProviderUnits(Enum):
    """The ``units`` query parameter understood by OpenWeatherMap."""
    STANDARD = "standard"  # Kelvin, m/s
    METRIC = "metric"      # Celsius, m/s
    IMPERIAL = "imperial"  # Fahrenheit, mph

    @property
    def temperature_unit(self) -> TemperatureUnit:
        return {
            ProviderUnits.STANDARD: TemperatureUnit.KELVIN,
            ProviderUnits.METRIC: TemperatureUnit.CELSIUS,
            ProviderUnits.IMPERIAL: TemperatureUnit.FAHRENHEIT,
        }[self]

    def speed(self, value: float) -> Speed:
        if self is ProviderUnits.IMPERIAL:
            return Speed.from_mph(value)
        return Speed.from_mps(value)


class WeatherCondition(Enum):
    """OpenWeatherMap "weather.main" groups."""
    CLEAR = "Clear"
    CLOUDS = "Clouds"
    RAIN = "Rain"
    DRIZZLE = "Drizzle"
    SNOW = "Snow"
    THUNDERSTORM = "Thunderstorm"
    MIST = "Mist"
    SMOKE = "Smoke"
    HAZE = "Haze"
    DUST = "Dust"
    FOG = "Fog"
    SAND = "Sand"
    ASH = "Ash"
    SQUALL = "Squall"
    TORNADO = "Tornado"
    OTHER = "Other"

    @classmethod
    def parse(cls, value: Optional[str]) -> "WeatherCondition":
        if not value:
            return cls.OTHER
        for member in cls:
            if member.value.lower() == value.strip().lower():
                return member
        logger.debug(f"[WeatherCondition] Unknown condition {value!r}, using Other")
        return cls.OTHER


@dataclass(frozen=True)
class Conditions:
    condition: WeatherCondition = WeatherCondition.OTHER
    description: str = ""


class PrecipitationKind(Enum):
    NONE = "none"
    RAIN = "rain"
    SNOW = "snow"
    MIXED = "mixed"


@dataclass(frozen=True)
class Precipitation:
    """Rain and snow volume in millimetres over the provider's window."""
    rain_mm: float = 0.0
    snow_mm: float = 0.0

    @property
    def kind(self) -> PrecipitationKind:
        if self.rain_mm > 0 and self.snow_mm > 0:
            return PrecipitationKind.MIXED
        if self.rain_mm > 0:
            return PrecipitationKind.RAIN
        if self.snow_mm > 0:
            return PrecipitationKind.SNOW
        return PrecipitationKind.NONE

    @property
    def total_mm(self) -> float:
        return self.rain_mm + self.snow_mm


NO_PRECIPITATION = Precipitation()


@dataclass(frozen=True)
class Coordinates:
    lat: float
    lon: float

    @staticmethod
    def is_valid_latitude(value: float) -> bool:
        return math.isfinite(value) and -90.0 <= value <= 90.0

    @staticmethod
    def is_valid_longitude(value: float) -> bool:
        return math.isfinite(value) and -180.0 <= value <= 180.0


@dataclass(frozen=True)
class CurrentObservation:
    name: str
    coordinates: Coordinates
    observed_at: datetime
    utc_offset: int  # seconds east of UTC for the location
    temperature: Temperature
    feels_like: Temperature
    temp_min: Temperature
    temp_max: Temperature
    pressure: Pressure
    humidity: int
    wind: Wind
    conditions: Conditions
    sunrise: datetime
    sunset: datetime
    country: Optional[str] = None
    visibility_m: Optional[float] = None
    precipitation: Precipitation = field(default=NO_PRECIPITATION)


@dataclass(frozen=True)
class ForecastEntry:
    timestamp: datetime
    temperature: Temperature
    feels_like: Temperature
    temp_min: Temperature
    temp_max: Temperature
    pressure: Pressure
    humidity: int
    wind: Wind
    conditions: Conditions
    precipitation: Precipitation = field(default=NO_PRECIPITATION)


_MISSING = object()


class _Decoder:
    """Walks a parsed payload, turning lookup failures into MalformedResponse."""

    def __init__(self, endpoint: Endpoint):
        self.endpoint = endpoint

    def fail(self, path: str, reason: str = "missing required field") -> MalformedResponse:
        return MalformedResponse(path, reason, endpoint=self.endpoint)

    def lookup(self, obj: Any, path: str, prefix: str = "") -> Any:
        current = obj
        walked = prefix
        for key in path.split("."):
            if not isinstance(current, Mapping):
                raise self.fail(walked or "<body>", "expected an object")
            walked = f"{walked}.{key}" if walked else key
            current = current.get(key, _MISSING)
            if current is _MISSING or current is None:
                return _MISSING
        return current

    def number(self, obj: Any, path: str, prefix: str = "") -> float:
        value = self.lookup(obj, path, prefix)
        full = f"{prefix}.{path}" if prefix else path
        if value is _MISSING:
            raise self.fail(full)
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise self.fail(full, "expected a number")
        if not math.isfinite(value):
            raise self.fail(full, "expected a finite number")
        return float(value)

    def optional_number(self, obj: Any, path: str, prefix: str = "",
                        default: Optional[float] = None) -> Optional[float]:
        value = self.lookup(obj, path, prefix)
        if value is _MISSING:
            return default
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            full = f"{prefix}.{path}" if prefix else path
            raise self.fail(full, "expected a number")
        if not math.isfinite(value):
            full = f"{prefix}.{path}" if prefix else path
            raise self.fail(full, "expected a finite number")
        return float(value)

    def string(self, obj: Any, path: str, prefix: str = "") -> str:
        value = self.lookup(obj, path, prefix)
        full = f"{prefix}.{path}" if prefix else path
        if value is _MISSING:
            raise self.fail(full)
        if not isinstance(value, str):
            raise self.fail(full, "expected a string")
        return value

    def optional_string(self, obj: Any, path: str, prefix: str = "") -> Optional[str]:
        value = self.lookup(obj, path, prefix)
        if value is _MISSING:
            return None
        if not isinstance(value, str):
            full = f"{prefix}.{path}" if prefix else path
            raise self.fail(full, "expected a string")
        return value

    def timestamp(self, obj: Any, path: str, prefix: str = "") -> datetime:
        seconds = self.number(obj, path, prefix)
        try:
            return datetime.fromtimestamp(seconds, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            full = f"{prefix}.{path}" if prefix else path
            raise self.fail(full, "timestamp out of range")

    def temperature(self, obj: Any, path: str, units: ProviderUnits, prefix: str = "") -> Temperature:
        return Temperature.from_unit(self.number(obj, path, prefix), units.temperature_unit)

    def wind(self, obj: Any, units: ProviderUnits, prefix: str = "") -> Wind:
        speed = self.number(obj, "wind.speed", prefix)
        degrees = self.optional_number(obj, "wind.deg", prefix, default=0.0)
        return Wind(speed=units.speed(speed), direction=Direction(degrees))

    def conditions(self, obj: Any, prefix: str = "") -> Conditions:
        weather = obj.get("weather") if isinstance(obj, Mapping) else None
        if not weather:
            return Conditions()
        full = f"{prefix}.weather" if prefix else "weather"
        if not isinstance(weather, list) or not isinstance(weather[0], Mapping):
            raise self.fail(full, "expected a list of objects")
        first = weather[0]
        main = self.optional_string(first, "main", f"{full}[0]")
        description = self.optional_string(first, "description", f"{full}[0]") or ""
        return Conditions(condition=WeatherCondition.parse(main), description=description)

    def precipitation(self, obj: Any, prefix: str = "") -> Precipitation:
        return Precipitation(
            rain_mm=self._volume(obj, "rain", prefix),
            snow_mm=self._volume(obj, "snow", prefix),
        )

    def _volume(self, obj: Any, key: str, prefix: str) -> float:
        # Current weather reports "1h" (sometimes "3h"); the forecast reports "3h".
        for window in ("1h", "3h"):
            value = self.optional_number(obj, f"{key}.{window}", prefix)
            if value is not None:
                return value
        return 0.0


def _load(payload: Payload, decoder: _Decoder) -> Mapping[str, Any]:
    if isinstance(payload, (bytes, bytearray, str)):
        try:
            payload = json.loads(payload)
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise decoder.fail("<body>", f"invalid JSON ({e})")
    if not isinstance(payload, Mapping):
        raise decoder.fail("<body>", "expected a JSON object")
    return payload


def decode_current(payload: Payload, units: ProviderUnits = ProviderUnits.STANDARD) -> CurrentObservation:
    """
    Decode a current-weather payload.

    Args:
        payload: Raw response body or an already parsed mapping
        units: Unit system the provider was asked to use

    Returns:
        CurrentObservation with canonical (Kelvin, m/s, hPa) quantities
    """
    d = _Decoder(Endpoint.CURRENT)
    data = _load(payload, d)

    lat = d.number(data, "coord.lat")
    lon = d.number(data, "coord.lon")
    if not Coordinates.is_valid_latitude(lat):
        raise d.fail("coord.lat", "latitude out of range")
    if not Coordinates.is_valid_longitude(lon):
        raise d.fail("coord.lon", "longitude out of range")
    utc_offset = d.optional_number(data, "timezone", default=0.0)
    if not utc_offset.is_integer() or abs(utc_offset) >= MAX_UTC_OFFSET_SECONDS:
        raise d.fail("timezone", "UTC offset out of range")

    observation = CurrentObservation(
        name=d.string(data, "name"),
        country=d.optional_string(data, "sys.country"),
        coordinates=Coordinates(lat=lat, lon=lon),
        observed_at=d.timestamp(data, "dt"),
        utc_offset=int(utc_offset),
        temperature=d.temperature(data, "main.temp", units),
        feels_like=d.temperature(data, "main.feels_like", units),
        temp_min=d.temperature(data, "main.temp_min", units),
        temp_max=d.temperature(data, "main.temp_max", units),
        pressure=Pressure(d.number(data, "main.pressure")),
        humidity=int(d.number(data, "main.humidity")),
        wind=d.wind(data, units),
        visibility_m=d.optional_number(data, "visibility"),
        conditions=d.conditions(data),
        precipitation=d.precipitation(data),
        sunrise=d.timestamp(data, "sys.sunrise"),
        sunset=d.timestamp(data, "sys.sunset"),
    )
    logger.debug(f"[decode_current] Decoded observation for {observation.name}")
    return observation


def decode_forecast(payload: Payload, units: ProviderUnits = ProviderUnits.STANDARD) -> Tuple[ForecastEntry, ...]:
    """
    Decode a forecast payload into entries sorted by timestamp ascending.
    """
    d = _Decoder(Endpoint.FORECAST)
    data = _load(payload, d)

    items = data.get("list")
    if items is None:
        raise d.fail("list")
    if not isinstance(items, list):
        raise d.fail("list", "expected a list")

    entries = []
    for i, item in enumerate(items):
        prefix = f"list[{i}]"
        if not isinstance(item, Mapping):
            raise d.fail(prefix, "expected an object")
        entries.append(ForecastEntry(
            timestamp=d.timestamp(item, "dt", prefix),
            temperature=d.temperature(item, "main.temp", units, prefix),
            feels_like=d.temperature(item, "main.feels_like", units, prefix),
            temp_min=d.temperature(item, "main.temp_min", units, prefix),
            temp_max=d.temperature(item, "main.temp_max", units, prefix),
            pressure=Pressure(d.number(item, "main.pressure", prefix)),
            humidity=int(d.number(item, "main.humidity", prefix)),
            wind=d.wind(item, units, prefix),
            conditions=d.conditions(item, prefix),
            precipitation=d.precipitation(item, prefix),
        ))

    entries.sort(key=lambda entry: entry.timestamp)
    logger.debug(f"[decode_forecast] Decoded {len(entries)} forecast entries")
    return tuple(entries)
