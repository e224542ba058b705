"""
Unit conversions and feels-like temperature.
Wind chill and heat index use the NWS regression formulas with fixed threshold branches.
"""
import math
import re

KPH_PER_MPH = 1.60934

WIND_CHILL_MAX_TEMP_F = 50
WIND_CHILL_MIN_WIND_MPH = 3
HEAT_INDEX_MIN_TEMP_F = 80

_LEADING_NUMBER = re.compile(r"\d+")


def round_half_up(value: float) -> int:
    """Nearest integer with halves rounded up (2.5 -> 3, -2.5 -> -2)."""
    return math.floor(value + 0.5)


def fahrenheit_to_celsius(temp_f: float) -> float:
    return (temp_f - 32) * 5 / 9


def celsius_to_fahrenheit(temp_c: float) -> float:
    return temp_c * 9 / 5 + 32


def mph_to_kph(mph: float) -> float:
    return mph * KPH_PER_MPH


def parse_wind_mph(wind_speed) -> int:
    """First integer in a provider wind string ("10 mph", "5 to 10 mph"); 0 when there is none."""
    if isinstance(wind_speed, (int, float)):
        return int(wind_speed)
    match = _LEADING_NUMBER.search(str(wind_speed or ""))
    return int(match.group()) if match else 0


def wind_chill(temp_f: float, wind_mph: float) -> int:
    v = wind_mph ** 0.16
    return round_half_up(35.74 + 0.6215 * temp_f - 35.75 * v + 0.4275 * temp_f * v)


def heat_index(temp_f: float, humidity: float) -> int:
    t, h = temp_f, humidity
    return round_half_up(
        -42.379
        + 2.04901523 * t
        + 10.14333127 * h
        - 0.22475541 * t * h
        - 0.00683783 * t * t
        - 0.05481717 * h * h
        + 0.00122874 * t * t * h
        + 0.00085282 * t * h * h
        - 0.00000199 * t * t * h * h
    )


def feels_like(temp_f: float, wind_mph: float, humidity: float) -> float:
    """
    Wind chill when temp <= 50F and wind > 3 mph; heat index when temp >= 80F
    (regardless of humidity); otherwise the actual temperature.
    """
    if temp_f <= WIND_CHILL_MAX_TEMP_F and wind_mph > WIND_CHILL_MIN_WIND_MPH:
        return wind_chill(temp_f, wind_mph)
    if temp_f >= HEAT_INDEX_MIN_TEMP_F:
        return heat_index(temp_f, humidity)
    return temp_f
