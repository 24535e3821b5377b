"""
Providers package for weather-util.

Only OpenWeatherMap is supported; the provider fetches the current-weather
and forecast endpoints concurrently with retry and backoff.
"""

from weather_util.providers.openweather import OpenWeatherProvider

__all__ = [
    "OpenWeatherProvider",
]
