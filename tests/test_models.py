"""
Tests for decoding OpenWeatherMap payloads

Run with: python -m pytest tests/test_models.py -v
"""

import json
import logging
from datetime import datetime, timezone

import pytest

from weather_util.errors import Endpoint, MalformedResponse
from weather_util.models import (
    PrecipitationKind,
    ProviderUnits,
    WeatherCondition,
    decode_current,
    decode_forecast,
)

logger = logging.getLogger(__name__)


class TestDecodeCurrent:
    """Current-weather payload decoding."""

    def test_well_formed_payload(self, current_payload):
        obs = decode_current(json.dumps(current_payload).encode())

        assert obs.name == "London"
        assert obs.country == "GB"
        assert obs.coordinates.lat == pytest.approx(51.5085)
        assert obs.coordinates.lon == pytest.approx(-0.1257)
        assert obs.observed_at == datetime(2020, 5, 1, 11, 0, tzinfo=timezone.utc)
        assert obs.utc_offset == 3600
        assert obs.temperature.kelvin == pytest.approx(285.15)
        assert obs.feels_like.kelvin == pytest.approx(283.65)
        assert obs.temp_min.kelvin == pytest.approx(284.15)
        assert obs.temp_max.kelvin == pytest.approx(286.15)
        assert obs.pressure.hpa == pytest.approx(1012.0)
        assert obs.humidity == 70
        assert obs.wind.speed.mps == pytest.approx(3.5)
        assert obs.wind.direction.degrees == pytest.approx(90.0)
        assert obs.wind.direction.compass == "E"
        assert obs.visibility_m == pytest.approx(10000.0)
        assert obs.conditions.condition is WeatherCondition.CLEAR
        assert obs.conditions.description == "clear sky"
        assert obs.sunrise == datetime(2020, 5, 1, 4, 32, tzinfo=timezone.utc)
        assert obs.sunset == datetime(2020, 5, 1, 19, 21, tzinfo=timezone.utc)

    def test_accepts_str_and_mapping(self, current_payload):
        from_str = decode_current(json.dumps(current_payload))
        from_dict = decode_current(current_payload)
        assert from_str == from_dict

    def test_missing_temperature_names_field(self, current_payload):
        del current_payload["main"]["temp"]
        with pytest.raises(MalformedResponse) as exc_info:
            decode_current(current_payload)
        logger.info(f"[TEST] Error: {exc_info.value}")
        assert exc_info.value.field == "main.temp"
        assert exc_info.value.endpoint is Endpoint.CURRENT
        assert "main.temp" in str(exc_info.value)

    @pytest.mark.parametrize("path", ["name", "dt", "coord", "main", "wind.speed", "sys.sunrise"])
    def test_missing_required_fields(self, current_payload, path):
        target = current_payload
        keys = path.split(".")
        for key in keys[:-1]:
            target = target[key]
        del target[keys[-1]]

        with pytest.raises(MalformedResponse) as exc_info:
            decode_current(current_payload)
        assert exc_info.value.field.startswith(path)

    def test_wrong_type_is_malformed(self, current_payload):
        current_payload["main"]["humidity"] = "seventy"
        with pytest.raises(MalformedResponse) as exc_info:
            decode_current(current_payload)
        assert exc_info.value.field == "main.humidity"
        assert "number" in exc_info.value.reason

    def test_invalid_json(self):
        with pytest.raises(MalformedResponse) as exc_info:
            decode_current(b"<html>502 Bad Gateway</html>")
        assert exc_info.value.field == "<body>"

    def test_non_object_body(self):
        with pytest.raises(MalformedResponse):
            decode_current(b"[1, 2, 3]")

    def test_latitude_out_of_range(self, current_payload):
        current_payload["coord"]["lat"] = 123.0
        with pytest.raises(MalformedResponse) as exc_info:
            decode_current(current_payload)
        assert exc_info.value.field == "coord.lat"

    @pytest.mark.parametrize("offset", [86400, -90000, 3600.5])
    def test_utc_offset_out_of_range(self, current_payload, offset):
        current_payload["timezone"] = offset
        with pytest.raises(MalformedResponse) as exc_info:
            decode_current(current_payload)
        assert exc_info.value.field == "timezone"

    def test_largest_utc_offsets_accepted(self, current_payload):
        current_payload["timezone"] = 50400
        assert decode_current(current_payload).utc_offset == 50400
        current_payload["timezone"] = -43200
        assert decode_current(current_payload).utc_offset == -43200

    @pytest.mark.parametrize("literal", ["NaN", "Infinity", "-Infinity"])
    def test_non_finite_number_is_malformed(self, current_payload, literal):
        body = json.dumps(current_payload).replace('"humidity": 70', f'"humidity": {literal}')
        with pytest.raises(MalformedResponse) as exc_info:
            decode_current(body)
        assert exc_info.value.field == "main.humidity"
        assert "finite" in exc_info.value.reason

    def test_non_finite_optional_number_is_malformed(self, current_payload):
        current_payload["visibility"] = float("nan")
        with pytest.raises(MalformedResponse) as exc_info:
            decode_current(json.dumps(current_payload))
        assert exc_info.value.field == "visibility"

    def test_optional_fields_default(self, current_payload):
        del current_payload["wind"]["deg"]
        del current_payload["visibility"]
        del current_payload["sys"]["country"]
        del current_payload["weather"]
        del current_payload["timezone"]

        obs = decode_current(current_payload)

        assert obs.wind.direction.degrees == 0.0
        assert obs.visibility_m is None
        assert obs.country is None
        assert obs.conditions.condition is WeatherCondition.OTHER
        assert obs.conditions.description == ""
        assert obs.utc_offset == 0
        assert obs.precipitation.kind is PrecipitationKind.NONE
        assert obs.precipitation.rain_mm == 0.0
        assert obs.precipitation.snow_mm == 0.0

    def test_unknown_fields_ignored(self, current_payload):
        current_payload["brand_new_field"] = {"nested": [1, 2, 3]}
        current_payload["main"]["sea_level"] = 1015
        assert decode_current(current_payload).name == "London"

    def test_unknown_condition_maps_to_other(self, current_payload):
        current_payload["weather"][0]["main"] = "Meteor Shower"
        obs = decode_current(current_payload)
        assert obs.conditions.condition is WeatherCondition.OTHER
        assert obs.conditions.description == "clear sky"

    def test_precipitation_variants(self, current_payload):
        current_payload["rain"] = {"1h": 1.2}
        assert decode_current(current_payload).precipitation.kind is PrecipitationKind.RAIN

        current_payload["snow"] = {"3h": 0.4}
        obs = decode_current(current_payload)
        assert obs.precipitation.kind is PrecipitationKind.MIXED
        assert obs.precipitation.rain_mm == pytest.approx(1.2)
        assert obs.precipitation.snow_mm == pytest.approx(0.4)
        assert obs.precipitation.total_mm == pytest.approx(1.6)

        del current_payload["rain"]
        assert decode_current(current_payload).precipitation.kind is PrecipitationKind.SNOW

    def test_metric_payload_is_stored_canonically(self, current_payload):
        current_payload["main"]["temp"] = 12.0
        obs = decode_current(current_payload, units=ProviderUnits.METRIC)
        assert obs.temperature.kelvin == pytest.approx(285.15)

    def test_imperial_payload_converts_speed(self, current_payload):
        current_payload["wind"]["speed"] = 10.0
        current_payload["main"]["temp"] = 50.0
        obs = decode_current(current_payload, units=ProviderUnits.IMPERIAL)
        assert obs.wind.speed.mph == pytest.approx(10.0)
        assert obs.temperature.celsius == pytest.approx(10.0)

    def test_observation_is_immutable(self, current_payload):
        obs = decode_current(current_payload)
        with pytest.raises(AttributeError):
            obs.name = "Paris"


class TestDecodeForecast:
    """Forecast payload decoding."""

    def test_entries_sorted_ascending(self, forecast_payload):
        entries = decode_forecast(json.dumps(forecast_payload).encode())

        assert len(entries) == 3
        stamps = [e.timestamp for e in entries]
        assert stamps == sorted(stamps)
        assert entries[0].timestamp == datetime(2020, 5, 1, 12, 0, tzinfo=timezone.utc)
        assert entries[0].temperature.kelvin == pytest.approx(285.65)
        assert entries[0].wind.direction.compass == "E"
        assert entries[2].conditions.condition is WeatherCondition.CLOUDS
        assert entries[2].conditions.description == "few clouds"

    def test_forecast_precipitation_uses_3h_window(self, forecast_payload):
        forecast_payload["list"][0]["rain"] = {"3h": 2.5}
        entries = decode_forecast(forecast_payload)
        last = entries[-1]  # list[0] is the 18:00 entry
        assert last.precipitation.rain_mm == pytest.approx(2.5)
        assert last.precipitation.kind is PrecipitationKind.RAIN
        assert entries[0].precipitation.kind is PrecipitationKind.NONE

    def test_missing_list(self, forecast_payload):
        del forecast_payload["list"]
        with pytest.raises(MalformedResponse) as exc_info:
            decode_forecast(forecast_payload)
        assert exc_info.value.field == "list"
        assert exc_info.value.endpoint is Endpoint.FORECAST

    def test_missing_field_in_entry_names_index(self, forecast_payload):
        del forecast_payload["list"][1]["main"]["temp"]
        with pytest.raises(MalformedResponse) as exc_info:
            decode_forecast(forecast_payload)
        assert exc_info.value.field == "list[1].main.temp"

    def test_empty_forecast(self, forecast_payload):
        forecast_payload["list"] = []
        assert decode_forecast(forecast_payload) == ()
