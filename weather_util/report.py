"""
Report Formatter for weather-util

normalize() turns decoded observations into a Report whose quantities are
already expressed in the selected unit system. The renderers only lay the
values out:

- render_text(): fixed-section layout, one line per field, then a forecast
  table with fixed column widths
- render_json(): self-describing JSON (explicit value/unit pairs, ISO-8601
  timestamps with offset) that report_from_json() reads back

Both renderers are deterministic: the same Report always gives the same
string.
"""

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple

from weather_util.config import OutputMode
from weather_util.errors import FormattingError
from weather_util.models import (
    Coordinates,
    CurrentObservation,
    ForecastEntry,
    Precipitation,
    PrecipitationKind,
    WeatherCondition,
)
from weather_util.units import (
    Pressure,
    Temperature,
    UnitSystem,
    Wind,
    meters_to_miles,
    mm_to_inches,
)

logger = logging.getLogger(__name__)

SCHEMA_VERSION = "weather-util/report/1"

DESCRIPTION_WIDTH = 20

# Decimal places per unit label; anything else gets one
_PRECISION = {"inHg": 2, "in": 2, "mi": 1, "m": 0}


@dataclass(frozen=True)
class Quantity:
    value: float
    unit: str

    def __str__(self) -> str:
        places = _PRECISION.get(self.unit, 1)
        return f"{self.value:.{places}f} {self.unit}"


@dataclass(frozen=True)
class WindReading:
    speed: Quantity
    degrees: float
    compass: str


@dataclass(frozen=True)
class PrecipitationReading:
    kind: PrecipitationKind
    rain: Quantity
    snow: Quantity

    @property
    def total(self) -> Quantity:
        return Quantity(self.rain.value + self.snow.value, self.rain.unit)


@dataclass(frozen=True)
class CurrentBlock:
    observed_at: datetime
    temperature: Quantity
    feels_like: Quantity
    temp_min: Quantity
    temp_max: Quantity
    humidity: int
    pressure: Quantity
    wind: WindReading
    condition: WeatherCondition
    description: str
    precipitation: PrecipitationReading
    sunrise: datetime
    sunset: datetime
    visibility: Optional[Quantity] = None


@dataclass(frozen=True)
class ForecastRow:
    timestamp: datetime
    temperature: Quantity
    feels_like: Quantity
    temp_min: Quantity
    temp_max: Quantity
    humidity: int
    pressure: Quantity
    wind: WindReading
    condition: WeatherCondition
    description: str
    precipitation: PrecipitationReading


@dataclass(frozen=True)
class Report:
    location: str
    country: Optional[str]
    coordinates: Coordinates
    utc_offset: int
    current: CurrentBlock
    forecast: Tuple[ForecastRow, ...]
    units: UnitSystem
    mode: OutputMode


# Normalization

class _Normalizer:
    """Applies one unit system to every quantity of an observation."""

    def __init__(self, units: UnitSystem, utc_offset: int):
        self.units = units
        self.tz = timezone(timedelta(seconds=utc_offset))

    def local(self, moment: datetime) -> datetime:
        return moment.astimezone(self.tz)

    def temperature(self, value: Temperature) -> Quantity:
        unit = self.units.temperature_unit
        return Quantity(value.in_unit(unit), unit.value)

    def pressure(self, value: Pressure) -> Quantity:
        if self.units is UnitSystem.IMPERIAL:
            return Quantity(value.inhg, "inHg")
        return Quantity(value.hpa, "hPa")

    def depth(self, mm: float) -> Quantity:
        if self.units is UnitSystem.IMPERIAL:
            return Quantity(mm_to_inches(mm), "in")
        return Quantity(mm, "mm")

    def visibility(self, meters: Optional[float]) -> Optional[Quantity]:
        if meters is None:
            return None
        if self.units is UnitSystem.IMPERIAL:
            return Quantity(meters_to_miles(meters), "mi")
        return Quantity(meters, "m")

    def wind(self, wind: Wind) -> WindReading:
        unit = self.units.speed_unit
        return WindReading(
            speed=Quantity(wind.speed.in_unit(unit), unit.value),
            degrees=wind.direction.degrees,
            compass=wind.direction.compass,
        )

    def precipitation(self, precipitation: Precipitation) -> PrecipitationReading:
        return PrecipitationReading(
            kind=precipitation.kind,
            rain=self.depth(precipitation.rain_mm),
            snow=self.depth(precipitation.snow_mm),
        )


def normalize(
    current: CurrentObservation,
    forecast: Iterable[ForecastEntry],
    units: UnitSystem,
    mode: OutputMode = OutputMode.HUMAN,
) -> Report:
    """
    Build a render-ready Report.

    Timestamps are shifted into the location's UTC offset and the forecast is
    ordered by timestamp.
    """
    n = _Normalizer(units, current.utc_offset)

    block = CurrentBlock(
        observed_at=n.local(current.observed_at),
        temperature=n.temperature(current.temperature),
        feels_like=n.temperature(current.feels_like),
        temp_min=n.temperature(current.temp_min),
        temp_max=n.temperature(current.temp_max),
        humidity=current.humidity,
        pressure=n.pressure(current.pressure),
        wind=n.wind(current.wind),
        condition=current.conditions.condition,
        description=current.conditions.description,
        precipitation=n.precipitation(current.precipitation),
        sunrise=n.local(current.sunrise),
        sunset=n.local(current.sunset),
        visibility=n.visibility(current.visibility_m),
    )

    rows = tuple(
        ForecastRow(
            timestamp=n.local(entry.timestamp),
            temperature=n.temperature(entry.temperature),
            feels_like=n.temperature(entry.feels_like),
            temp_min=n.temperature(entry.temp_min),
            temp_max=n.temperature(entry.temp_max),
            humidity=entry.humidity,
            pressure=n.pressure(entry.pressure),
            wind=n.wind(entry.wind),
            condition=entry.conditions.condition,
            description=entry.conditions.description,
            precipitation=n.precipitation(entry.precipitation),
        )
        for entry in sorted(forecast, key=lambda e: e.timestamp)
    )

    return Report(
        location=current.name,
        country=current.country,
        coordinates=current.coordinates,
        utc_offset=current.utc_offset,
        current=block,
        forecast=rows,
        units=units,
        mode=mode,
    )


# Text rendering

def _clock(moment: datetime) -> str:
    return moment.strftime("%H:%M")


def _stamp(moment: datetime) -> str:
    return moment.strftime("%Y-%m-%d %H:%M:%S %z")


def _truncate(text: str, width: int) -> str:
    if len(text) <= width:
        return text
    return text[:width - 1] + "~"


def _precipitation_lines(reading: PrecipitationReading) -> List[str]:
    lines = []
    if reading.kind in (PrecipitationKind.RAIN, PrecipitationKind.MIXED):
        lines.append(f"\tRain: {reading.rain}")
    if reading.kind in (PrecipitationKind.SNOW, PrecipitationKind.MIXED):
        lines.append(f"\tSnow: {reading.snow}")
    return lines


def _forecast_row(row: ForecastRow) -> str:
    line = (
        f"\t{row.timestamp.strftime('%Y-%m-%d %H:%M'):<16}  "
        f"{str(row.temperature):<8} "
        f"{str(row.feels_like):<8} "
        f"{row.humidity:>3}%  "
        f"{row.wind.compass:<4} "
        f"{str(row.wind.speed):<10} "
        f"{_truncate(row.description, DESCRIPTION_WIDTH):<{DESCRIPTION_WIDTH}}"
    )
    if row.precipitation.kind is not PrecipitationKind.NONE:
        line += f"  {row.precipitation.total}"
    return line.rstrip()


FORECAST_HEADER = (
    f"\t{'Time':<16}  {'Temp':<8} {'Feels':<8} {'Hum':>4}  "
    f"{'Wind':<15} {'Conditions'}"
)


def render_text(report: Report) -> str:
    """Render the fixed-layout text report (ends with a newline)."""
    cur = report.current
    place = report.location
    if report.country:
        place = f"{place} {report.country}"

    lines = [
        f"Current conditions {place} "
        f"{report.coordinates.lat:.2f}N {report.coordinates.lon:.2f}E",
        f"Last Updated {_stamp(cur.observed_at)}",
        f"\tTemperature: {cur.temperature} (feels like {cur.feels_like})",
        f"\tMin/Max: {cur.temp_min} / {cur.temp_max}",
        f"\tRelative Humidity: {cur.humidity}%",
        f"\tPressure: {cur.pressure}",
        f"\tWind: {cur.wind.compass} ({cur.wind.degrees:.0f} degrees) at {cur.wind.speed}",
        f"\tConditions: {cur.description or cur.condition.value}",
    ]
    lines.extend(_precipitation_lines(cur.precipitation))
    if cur.visibility is not None:
        lines.append(f"\tVisibility: {cur.visibility}")
    lines.append(f"\tSunrise: {_clock(cur.sunrise)}")
    lines.append(f"\tSunset: {_clock(cur.sunset)}")

    lines.append("")
    lines.append("Forecast:")
    if report.forecast:
        lines.append(FORECAST_HEADER)
        lines.extend(_forecast_row(row) for row in report.forecast)
    else:
        lines.append("\t(no forecast entries)")

    return "\n".join(lines) + "\n"


# Structured rendering

def _quantity_to_json(q: Optional[Quantity]) -> Optional[Dict[str, Any]]:
    if q is None:
        return None
    return {"value": q.value, "unit": q.unit}


def _wind_to_json(w: WindReading) -> Dict[str, Any]:
    return {
        "speed": _quantity_to_json(w.speed),
        "direction": {"value": w.degrees, "unit": "deg", "compass": w.compass},
    }


def _precipitation_to_json(p: PrecipitationReading) -> Dict[str, Any]:
    return {
        "kind": p.kind.value,
        "rain": _quantity_to_json(p.rain),
        "snow": _quantity_to_json(p.snow),
    }


def _reading_to_json(reading) -> Dict[str, Any]:
    return {
        "temperature": _quantity_to_json(reading.temperature),
        "feels_like": _quantity_to_json(reading.feels_like),
        "temp_min": _quantity_to_json(reading.temp_min),
        "temp_max": _quantity_to_json(reading.temp_max),
        "humidity": {"value": reading.humidity, "unit": "%"},
        "pressure": _quantity_to_json(reading.pressure),
        "wind": _wind_to_json(reading.wind),
        "condition": reading.condition.value,
        "description": reading.description,
        "precipitation": _precipitation_to_json(reading.precipitation),
    }


def report_to_dict(report: Report) -> Dict[str, Any]:
    cur = report.current
    current = {"observed_at": cur.observed_at.isoformat()}
    current.update(_reading_to_json(cur))
    current.update({
        "visibility": _quantity_to_json(cur.visibility),
        "sunrise": cur.sunrise.isoformat(),
        "sunset": cur.sunset.isoformat(),
    })

    forecast = []
    for row in report.forecast:
        item = {"timestamp": row.timestamp.isoformat()}
        item.update(_reading_to_json(row))
        forecast.append(item)

    return {
        "schema": SCHEMA_VERSION,
        "units": report.units.value,
        "mode": report.mode.value,
        "location": {
            "name": report.location,
            "country": report.country,
            "coordinates": {"lat": report.coordinates.lat, "lon": report.coordinates.lon},
            "utc_offset_seconds": report.utc_offset,
        },
        "current": current,
        "forecast": forecast,
    }


def render_json(report: Report) -> str:
    return json.dumps(report_to_dict(report), indent=2, sort_keys=True, ensure_ascii=False) + "\n"


def _quantity_from_json(obj: Optional[Dict[str, Any]]) -> Optional[Quantity]:
    if obj is None:
        return None
    return Quantity(float(obj["value"]), str(obj["unit"]))


def _wind_from_json(obj: Dict[str, Any]) -> WindReading:
    direction = obj["direction"]
    return WindReading(
        speed=_quantity_from_json(obj["speed"]),
        degrees=float(direction["value"]),
        compass=str(direction["compass"]),
    )


def _precipitation_from_json(obj: Dict[str, Any]) -> PrecipitationReading:
    return PrecipitationReading(
        kind=PrecipitationKind(obj["kind"]),
        rain=_quantity_from_json(obj["rain"]),
        snow=_quantity_from_json(obj["snow"]),
    )


def _reading_fields(obj: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "temperature": _quantity_from_json(obj["temperature"]),
        "feels_like": _quantity_from_json(obj["feels_like"]),
        "temp_min": _quantity_from_json(obj["temp_min"]),
        "temp_max": _quantity_from_json(obj["temp_max"]),
        "humidity": int(obj["humidity"]["value"]),
        "pressure": _quantity_from_json(obj["pressure"]),
        "wind": _wind_from_json(obj["wind"]),
        "condition": WeatherCondition(obj["condition"]),
        "description": str(obj["description"]),
        "precipitation": _precipitation_from_json(obj["precipitation"]),
    }


def report_from_json(text: str) -> Report:
    """
    Read a document produced by render_json() back into a Report.

    Raises:
        FormattingError: if the document is not a weather-util report
    """
    try:
        data = json.loads(text)
        if data.get("schema") != SCHEMA_VERSION:
            raise FormattingError(f"unsupported report schema: {data.get('schema')!r}")

        location = data["location"]
        cur = data["current"]
        current = CurrentBlock(
            observed_at=datetime.fromisoformat(cur["observed_at"]),
            sunrise=datetime.fromisoformat(cur["sunrise"]),
            sunset=datetime.fromisoformat(cur["sunset"]),
            visibility=_quantity_from_json(cur.get("visibility")),
            **_reading_fields(cur),
        )
        forecast = tuple(
            ForecastRow(timestamp=datetime.fromisoformat(item["timestamp"]), **_reading_fields(item))
            for item in data["forecast"]
        )
        return Report(
            location=str(location["name"]),
            country=location.get("country"),
            coordinates=Coordinates(
                lat=float(location["coordinates"]["lat"]),
                lon=float(location["coordinates"]["lon"]),
            ),
            utc_offset=int(location["utc_offset_seconds"]),
            current=current,
            forecast=forecast,
            units=UnitSystem(data["units"]),
            mode=OutputMode(data["mode"]),
        )
    except FormattingError:
        raise
    except (AttributeError, KeyError, TypeError, ValueError) as e:
        raise FormattingError(f"not a weather-util report: {type(e).__name__}: {e}") from e


def format_report(report: Report, mode: Optional[OutputMode] = None) -> str:
    """
    Render a Report in the given mode (defaults to report.mode).

    Raises:
        FormattingError: if rendering fails
    """
    mode = mode or report.mode
    try:
        if mode is OutputMode.JSON:
            return render_json(report)
        return render_text(report)
    except (AttributeError, KeyError, TypeError, ValueError) as e:
        logger.error(f"[format_report] Rendering failed: {e}", exc_info=True)
        raise FormattingError(f"could not render report: {e}") from e

