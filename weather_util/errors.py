"""
Error taxonomy for weather-util.

Every error carries a ``stage`` tag (config, fetch, decode, format) so the
CLI can print a single message naming where the pipeline stopped.
"""

from enum import Enum
from typing import Optional


class Endpoint(Enum):
    """The two provider endpoints queried per invocation."""
    CURRENT = "current"
    FORECAST = "forecast"


class WeatherUtilError(Exception):
    """Base class for all errors surfaced to the process boundary."""
    stage = "unknown"


class ConfigurationError(WeatherUtilError):
    """Missing API key, bad location selector or invalid setting."""
    stage = "config"


class FetchError(WeatherUtilError):
    """A provider request failed."""
    stage = "fetch"

    def __init__(self, message: str, endpoint: Optional[Endpoint] = None):
        super().__init__(message)
        self.endpoint = endpoint

    def __str__(self) -> str:
        message = super().__str__()
        if self.endpoint is None:
            return message
        return f"{self.endpoint.value} endpoint: {message}"


class TransientNetworkError(FetchError):
    """Timeout, transport error or HTTP 5xx after every attempt was used."""

    def __init__(self, message: str, endpoint: Optional[Endpoint] = None, attempts: int = 1):
        super().__init__(message, endpoint)
        self.attempts = attempts


class PermanentRequestError(FetchError):
    """HTTP 4xx, auth rejection or an unusable request. Never retried."""

    def __init__(
        self,
        message: str,
        endpoint: Optional[Endpoint] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(message, endpoint)
        self.status_code = status_code


class MalformedResponse(WeatherUtilError):
    """The provider payload is missing a required field or is not JSON."""
    stage = "decode"

    def __init__(self, field: str, reason: str = "missing required field",
                 endpoint: Optional[Endpoint] = None):
        super().__init__(f"{reason}: {field}")
        self.field = field
        self.reason = reason
        self.endpoint = endpoint

    def __str__(self) -> str:
        message = f"{self.reason}: {self.field}"
        if self.endpoint is None:
            return message
        return f"{self.endpoint.value} endpoint: {message}"


class FormattingError(WeatherUtilError):
    """Rendering or re-reading a report failed."""
    stage = "format"
