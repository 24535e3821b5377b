"""
weather-util command-line entry point

Prints current conditions and a short-term forecast from OpenWeatherMap.

Exit codes:
    0    report printed
    1    fetch, decode or format failure
    2    configuration or usage error
    130  interrupted
"""

import argparse
import logging
import os
import sys
from typing import List, Optional

from colorama import Fore, Style, just_fix_windows_console

from weather_util import __version__
from weather_util.config import OutputMode, build_config, load_env_files
from weather_util.errors import ConfigurationError, WeatherUtilError
from weather_util.orchestrator import generate_report
from weather_util.units import UnitSystem

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CONFIG = 2
EXIT_INTERRUPTED = 130


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="weather-util",
        description="Current conditions and forecast from openweathermap.org",
    )
    parser.add_argument("-k", "--api-key", help="OpenWeatherMap API key (default: $OPENWEATHERMAP_API_KEY)")
    parser.add_argument("-c", "--city", help="City name, e.g. 'London' or 'London,GB'")
    parser.add_argument("--lat", type=float, help="Latitude (use with --lon)")
    parser.add_argument("--lon", type=float, help="Longitude (use with --lat)")
    parser.add_argument("-z", "--zipcode", help="Zip/post code")
    parser.add_argument("--country-code", help="Country code for --zipcode (e.g. US)")
    parser.add_argument(
        "-u", "--units",
        choices=[u.value for u in UnitSystem],
        help="Unit system (default: $WEATHER_UTIL_UNITS or metric)",
    )
    parser.add_argument(
        "-o", "--output",
        choices=[m.value for m in OutputMode],
        default=OutputMode.HUMAN.value,
        help="Output format (default: human)",
    )
    parser.add_argument("-n", "--forecast", type=int, dest="forecast_count",
                        help="Number of 3-hour forecast entries (default: 8)")
    parser.add_argument("--endpoint", help="API host (default: api.openweathermap.org)")
    parser.add_argument("--timeout", type=float, help="Per-attempt timeout in seconds (default: 10)")
    parser.add_argument("--max-attempts", type=int, help="Attempts per request before giving up (default: 3)")
    parser.add_argument("-v", "--verbose", action="count", default=0,
                        help="Log progress to stderr (-vv for debug)")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser.parse_args(argv)


def configure_logging(verbosity: int) -> None:
    """Logs go to stderr so stdout only ever carries the report."""
    if verbosity >= 2:
        level = "DEBUG"
    elif verbosity == 1:
        level = "INFO"
    else:
        level = os.getenv("LOG_LEVEL", "WARNING").strip().upper()
        if not isinstance(logging.getLevelName(level), int):
            level = "WARNING"

    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[logging.StreamHandler(sys.stderr)],
        force=True,
    )
    # httpx logs every request URL at INFO, which includes the API key
    logging.getLogger("httpx").setLevel(logging.WARNING)


def print_error(error: BaseException, stage: str) -> None:
    message = f"Error [{stage}]: {error}"
    if sys.stderr.isatty():
        message = f"{Fore.RED}{message}{Style.RESET_ALL}"
    print(message, file=sys.stderr)


def main(argv: Optional[List[str]] = None) -> int:
    just_fix_windows_console()
    args = parse_args(argv)
    load_env_files()
    configure_logging(args.verbose)

    try:
        config = build_config(
            api_key=args.api_key,
            city=args.city,
            lat=args.lat,
            lon=args.lon,
            zipcode=args.zipcode,
            country_code=args.country_code,
            units=args.units,
            mode=args.output,
            endpoint=args.endpoint,
            forecast_count=args.forecast_count,
            timeout=args.timeout,
            max_attempts=args.max_attempts,
        )
    except ConfigurationError as e:
        print_error(e, e.stage)
        return EXIT_CONFIG

    try:
        output = generate_report(config)
    except WeatherUtilError as e:
        print_error(e, e.stage)
        return EXIT_CONFIG if isinstance(e, ConfigurationError) else EXIT_FAILURE
    except KeyboardInterrupt:
        print_error(KeyboardInterrupt("interrupted"), "fetch")
        return EXIT_INTERRUPTED

    sys.stdout.write(output)
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
