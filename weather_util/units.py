"""
Unit & Measurement Model for weather-util

Each measurement is stored in one canonical unit and converted on demand:

- Temperature: Kelvin
- Speed: meters/second
- Pressure: hectopascals
- Precipitation depth: millimetres
- Direction: degrees normalized into [0, 360)

All conversions are pure functions. None of them raise.
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Tuple

ABSOLUTE_ZERO_C = 273.15
METERS_PER_MILE = 1609.344
HPA_PER_INHG = 33.8638866667
MM_PER_INCH = 25.4

DEFAULT_TOLERANCE = 1e-6

COMPASS_POINTS: Tuple[str, ...] = (
    "N", "NNE", "NE", "ENE",
    "E", "ESE", "SE", "SSE",
    "S", "SSW", "SW", "WSW",
    "W", "WNW", "NW", "NNW",
)
UNKNOWN_DIRECTION = "?"


class TemperatureUnit(Enum):
    KELVIN = "K"
    CELSIUS = "C"
    FAHRENHEIT = "F"


class SpeedUnit(Enum):
    METERS_PER_SECOND = "m/s"
    MILES_PER_HOUR = "mph"


class UnitSystem(Enum):
    """Display unit system selected by the user."""
    METRIC = "metric"
    IMPERIAL = "imperial"

    @property
    def temperature_unit(self) -> TemperatureUnit:
        if self is UnitSystem.IMPERIAL:
            return TemperatureUnit.FAHRENHEIT
        return TemperatureUnit.CELSIUS

    @property
    def speed_unit(self) -> SpeedUnit:
        if self is UnitSystem.IMPERIAL:
            return SpeedUnit.MILES_PER_HOUR
        return SpeedUnit.METERS_PER_SECOND


# Temperature conversions

def to_kelvin(value: float, unit: TemperatureUnit) -> float:
    if unit is TemperatureUnit.CELSIUS:
        return value + ABSOLUTE_ZERO_C
    if unit is TemperatureUnit.FAHRENHEIT:
        return (value - 32.0) * 5.0 / 9.0 + ABSOLUTE_ZERO_C
    return value


def to_celsius(value: float, unit: TemperatureUnit = TemperatureUnit.KELVIN) -> float:
    if unit is TemperatureUnit.CELSIUS:
        return value
    return to_kelvin(value, unit) - ABSOLUTE_ZERO_C


def to_fahrenheit(value: float, unit: TemperatureUnit = TemperatureUnit.KELVIN) -> float:
    if unit is TemperatureUnit.FAHRENHEIT:
        return value
    return to_celsius(value, unit) * 9.0 / 5.0 + 32.0


# Speed, pressure and depth conversions

def mps_to_mph(value: float) -> float:
    return value * 3600.0 / METERS_PER_MILE


def mph_to_mps(value: float) -> float:
    return value * METERS_PER_MILE / 3600.0


def hpa_to_inhg(value: float) -> float:
    return value / HPA_PER_INHG


def inhg_to_hpa(value: float) -> float:
    return value * HPA_PER_INHG


def mm_to_inches(value: float) -> float:
    return value / MM_PER_INCH


def meters_to_miles(value: float) -> float:
    return value / METERS_PER_MILE


def normalize_degrees(degrees: float) -> float:
    """Wrap any finite angle into [0, 360)."""
    wrapped = math.fmod(degrees, 360.0)
    if wrapped < 0:
        wrapped += 360.0
    # fmod of a tiny negative number can round back up to 360.0
    if wrapped >= 360.0:
        wrapped = 0.0
    return wrapped


def compass_of(degrees: float) -> str:
    """
    Map a bearing to one of the 16 compass points.

    Each point covers 22.5 degrees centred on its bearing, so 0 -> "N",
    90 -> "E", 180 -> "S". Non-finite input returns "?".
    """
    if degrees is None or not math.isfinite(degrees):
        return UNKNOWN_DIRECTION
    index = int((normalize_degrees(degrees) + 11.25) // 22.5) % len(COMPASS_POINTS)
    return COMPASS_POINTS[index]


@dataclass(frozen=True)
class Temperature:
    """Temperature held in Kelvin."""
    kelvin: float

    @classmethod
    def from_kelvin(cls, value: float) -> "Temperature":
        return cls(float(value))

    @classmethod
    def from_celsius(cls, value: float) -> "Temperature":
        return cls(to_kelvin(float(value), TemperatureUnit.CELSIUS))

    @classmethod
    def from_fahrenheit(cls, value: float) -> "Temperature":
        return cls(to_kelvin(float(value), TemperatureUnit.FAHRENHEIT))

    @classmethod
    def from_unit(cls, value: float, unit: TemperatureUnit) -> "Temperature":
        return cls(to_kelvin(float(value), unit))

    @property
    def celsius(self) -> float:
        return to_celsius(self.kelvin)

    @property
    def fahrenheit(self) -> float:
        return to_fahrenheit(self.kelvin)

    def in_unit(self, unit: TemperatureUnit) -> float:
        if unit is TemperatureUnit.CELSIUS:
            return self.celsius
        if unit is TemperatureUnit.FAHRENHEIT:
            return self.fahrenheit
        return self.kelvin

    def approx_eq(self, other: "Temperature", tol: float = DEFAULT_TOLERANCE) -> bool:
        return math.isclose(self.kelvin, other.kelvin, rel_tol=0.0, abs_tol=tol)


@dataclass(frozen=True)
class Speed:
    """Speed held in meters/second."""
    mps: float

    @classmethod
    def from_mps(cls, value: float) -> "Speed":
        return cls(float(value))

    @classmethod
    def from_mph(cls, value: float) -> "Speed":
        return cls(mph_to_mps(float(value)))

    @property
    def mph(self) -> float:
        return mps_to_mph(self.mps)

    def in_unit(self, unit: SpeedUnit) -> float:
        if unit is SpeedUnit.MILES_PER_HOUR:
            return self.mph
        return self.mps

    def approx_eq(self, other: "Speed", tol: float = DEFAULT_TOLERANCE) -> bool:
        return math.isclose(self.mps, other.mps, rel_tol=0.0, abs_tol=tol)


@dataclass(frozen=True)
class Pressure:
    """Atmospheric pressure held in hectopascals."""
    hpa: float

    @classmethod
    def from_inhg(cls, value: float) -> "Pressure":
        return cls(inhg_to_hpa(float(value)))

    @property
    def inhg(self) -> float:
        return hpa_to_inhg(self.hpa)


@dataclass(frozen=True)
class Direction:
    """Wind bearing in degrees; always stored wrapped into [0, 360) when finite."""
    degrees: float

    def __post_init__(self):
        if self.degrees is not None and math.isfinite(self.degrees):
            object.__setattr__(self, "degrees", normalize_degrees(float(self.degrees)))

    @property
    def compass(self) -> str:
        return compass_of(self.degrees)


@dataclass(frozen=True)
class Wind:
    speed: Speed
    direction: Direction
