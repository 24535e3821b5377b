"""
Tests for the command-line entry point

Run with: python -m pytest tests/test_cli.py -v
"""

import logging

import pytest

from weather_util import cli
from weather_util.errors import PermanentRequestError


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(cli, "load_env_files", lambda: None)
    for name in ("OPENWEATHERMAP_API_KEY", "API_KEY", "WEATHER_UTIL_CITY",
                 "WEATHER_UTIL_LAT", "WEATHER_UTIL_LON", "WEATHER_UTIL_ZIPCODE"):
        monkeypatch.delenv(name, raising=False)


def test_prints_report(monkeypatch, capsys):
    seen = {}

    def fake_generate(config):
        seen["config"] = config
        return "Current conditions London GB\n"

    monkeypatch.setattr(cli, "generate_report", fake_generate)

    code = cli.main(["--api-key", "k", "--city", "London", "-u", "imperial", "-n", "3"])

    out, err = capsys.readouterr()
    assert code == cli.EXIT_OK
    assert out == "Current conditions London GB\n"
    assert err == ""
    assert seen["config"].units.value == "imperial"
    assert seen["config"].forecast_count == 3


def test_missing_api_key_is_config_error(monkeypatch, capsys):
    monkeypatch.setattr(cli, "generate_report", lambda config: pytest.fail("should not fetch"))

    code = cli.main(["--city", "London"])

    out, err = capsys.readouterr()
    assert code == cli.EXIT_CONFIG
    assert out == ""
    assert err.startswith("Error [config]:")


def test_conflicting_location_is_config_error(capsys):
    code = cli.main(["-k", "k", "--city", "London", "--lat", "1", "--lon", "2"])
    assert code == cli.EXIT_CONFIG
    assert "exactly one location" in capsys.readouterr().err


def test_fetch_failure_prints_single_message(monkeypatch, capsys):
    def failing(config):
        raise PermanentRequestError("HTTP 401 Unauthorized", status_code=401)

    monkeypatch.setattr(cli, "generate_report", failing)

    code = cli.main(["-k", "bad", "--city", "London"])

    out, err = capsys.readouterr()
    assert code == cli.EXIT_FAILURE
    assert out == ""
    assert err.strip().splitlines() == ["Error [fetch]: HTTP 401 Unauthorized"]


def test_version(capsys):
    with pytest.raises(SystemExit) as exc_info:
        cli.main(["--version"])
    assert exc_info.value.code == 0
    assert "weather-util" in capsys.readouterr().out


@pytest.mark.parametrize("value, expected", [
    ("loud", logging.WARNING),
    ("debug", logging.DEBUG),
    ("", logging.WARNING),
])
def test_log_level_from_environment(monkeypatch, value, expected):
    monkeypatch.setenv("LOG_LEVEL", value)
    cli.configure_logging(0)
    assert logging.getLogger().level == expected


def test_unusable_endpoint_is_config_error(monkeypatch, capsys):
    monkeypatch.setattr(cli, "generate_report", lambda config: pytest.fail("should not fetch"))

    code = cli.main(["-k", "k", "--city", "London", "--endpoint", "api.example.com:notaport"])

    out, err = capsys.readouterr()
    assert code == cli.EXIT_CONFIG
    assert out == ""
    assert err.startswith("Error [config]:")
    assert "Traceback" not in err
