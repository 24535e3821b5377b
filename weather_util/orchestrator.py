"""
weather-util Orchestrator

Drives one invocation through a fixed sequence of states:

    IDLE -> FETCHING -> NORMALIZING -> FORMATTING -> DONE
               |            |              |
               +------------+--------------+------> FAILED

No retries happen here; retry policy lives in resilience.py. DONE and
FAILED are terminal: a reporter runs at most once.
"""

import asyncio
import logging
import time
from enum import Enum
from typing import Optional

from weather_util.config import WeatherConfig
from weather_util.models import ProviderUnits
from weather_util.providers.openweather import OpenWeatherProvider
from weather_util.report import Report, format_report, normalize
from weather_util.resilience import DEFAULT_RETRY_CONFIG, RetryConfig

logger = logging.getLogger(__name__)


class ReporterState(Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    NORMALIZING = "normalizing"
    FORMATTING = "formatting"
    DONE = "done"
    FAILED = "failed"


TERMINAL_STATES = (ReporterState.DONE, ReporterState.FAILED)


def provider_for(config: WeatherConfig) -> OpenWeatherProvider:
    """Build the fetch client for a resolved configuration."""
    retry_config = RetryConfig(
        max_attempts=config.max_attempts,
        base_delay_seconds=DEFAULT_RETRY_CONFIG.base_delay_seconds,
        max_delay_seconds=DEFAULT_RETRY_CONFIG.max_delay_seconds,
        attempt_timeout_seconds=config.timeout,
    )
    return OpenWeatherProvider(
        api_key=config.api_key,
        endpoint=config.endpoint,
        units=ProviderUnits.STANDARD,
        forecast_count=config.forecast_count,
        retry_config=retry_config,
        timeout=config.timeout,
    )


class WeatherReporter:
    """
    Runs fetch -> normalize -> format for one WeatherConfig.

    Attributes:
        state: current ReporterState
        error: the error that moved the reporter to FAILED, if any
        report: the normalized Report once NORMALIZING finished
    """

    def __init__(self, config: WeatherConfig, provider: Optional[OpenWeatherProvider] = None):
        self.config = config
        self.provider = provider or provider_for(config)
        self.state = ReporterState.IDLE
        self.error: Optional[BaseException] = None
        self.report: Optional[Report] = None

    def _transition(self, state: ReporterState) -> None:
        logger.debug(f"[WeatherReporter] {self.state.value} -> {state.value}")
        self.state = state

    async def run(self) -> str:
        """
        Produce the rendered report.

        Raises:
            WeatherUtilError: whatever stopped the pipeline, unchanged
            RuntimeError: if the reporter already ran
        """
        if self.state is not ReporterState.IDLE:
            raise RuntimeError(f"reporter already ran (state={self.state.value})")

        start = time.monotonic()
        try:
            self._transition(ReporterState.FETCHING)
            current, forecast = await self.provider.fetch_all(self.config.location)

            self._transition(ReporterState.NORMALIZING)
            self.report = normalize(current, forecast, self.config.units, self.config.mode)

            self._transition(ReporterState.FORMATTING)
            output = format_report(self.report)
        except BaseException as e:
            self.error = e
            self._transition(ReporterState.FAILED)
            logger.error(f"[WeatherReporter] Failed during {getattr(e, 'stage', 'fetch')}: {e}")
            raise

        self._transition(ReporterState.DONE)
        logger.info(f"[WeatherReporter] Report ready in {time.monotonic() - start:.2f}s")
        return output


def generate_report(config: WeatherConfig, provider: Optional[OpenWeatherProvider] = None) -> str:
    """Synchronous wrapper around WeatherReporter.run()."""
    return asyncio.run(WeatherReporter(config, provider).run())
