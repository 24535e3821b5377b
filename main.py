"""
weather-util: current conditions and forecast from openweathermap.org

Run from a checkout:

    python main.py --city London
    python main.py --lat 51.51 --lon -0.13 --units imperial --output json
"""

import sys

from weather_util.cli import main

if __name__ == "__main__":
    sys.exit(main())
