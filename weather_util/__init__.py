"""
weather-util: current conditions and a short-term forecast from OpenWeatherMap

Fetches the "current weather" and "forecast" endpoints concurrently,
decodes both payloads into typed observations, converts them into the
requested unit system and renders a fixed-layout text report or a JSON
document.

Architecture:
    units.py        - Temperature/Speed/Pressure/Direction and conversions
    models.py       - Provider payload decoding (current + forecast)
    resilience.py   - Retry with exponential backoff
    providers/      - OpenWeatherMap fetch client
    report.py       - Normalization, text and JSON rendering
    orchestrator.py - Fetch -> normalize -> format state machine
    config.py       - Environment/.env configuration
    cli.py          - Command-line entry point

Entry Points:
    weather-util          - console script
    python main.py        - same, from a checkout
"""

__version__ = "0.3.1"
__author__ = "weather-util contributors"
