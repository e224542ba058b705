"""
Weather tool: NWS (National Weather Service) grid-forecast client and normalizer.

Fetches the gridpoint descriptor for a lat/lon, then the daily and hourly forecasts
concurrently, and folds them into a WeatherSnapshot: current conditions from the first
hourly period, up to 7 calendar-day buckets with day/night aggregates and hourly breakdowns.

NWS API docs: https://www.weather.gov/documentation/services-web-api
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Optional

import httpx

from app.errors import ErrorCode, WeatherLookupError
from tools.base import (
    CurrentConditions,
    DayAggregate,
    ForecastDay,
    HourlyEntry,
    LocationInfo,
    WeatherSnapshot,
)
from tools.conversions import (
    celsius_to_fahrenheit,
    fahrenheit_to_celsius,
    feels_like,
    mph_to_kph,
    parse_wind_mph,
)

logger = logging.getLogger(__name__)

NWS_BASE_URL = "https://api.weather.gov"

MAX_FORECAST_DAYS = 7


@dataclass(frozen=True)
class GridPoint:
    forecast_url: str
    forecast_hourly_url: str
    time_zone: Optional[str]


def _value(period: dict[str, Any], key: str) -> Optional[float]:
    """Read a {"unitCode", "value"} quantity; None when absent."""
    data = period.get(key)
    if isinstance(data, dict):
        return data.get("value")
    return None


def _temperature(period: Optional[dict[str, Any]]) -> float:
    if not period or period.get("temperature") is None:
        return 0
    return period["temperature"]


def _date_of(period: dict[str, Any]) -> str:
    """Calendar date (YYYY-MM-DD) from the period's local start timestamp."""
    return period["startTime"].split("T")[0]


def group_by_date(periods: list[dict[str, Any]]) -> dict[str, list[dict[str, Any]]]:
    """Bucket periods by start date, preserving first-encountered date order."""
    grouped: dict[str, list[dict[str, Any]]] = {}
    for period in periods:
        grouped.setdefault(_date_of(period), []).append(period)
    return grouped


def build_current(period: dict[str, Any]) -> CurrentConditions:
    temp_f = _temperature(period)
    wind_mph = parse_wind_mph(period.get("windSpeed"))
    humidity = _value(period, "relativeHumidity") or 0
    dew_c = _value(period, "dewpoint")
    feels_f = feels_like(temp_f, wind_mph, humidity)
    return CurrentConditions(
        temp_f=temp_f,
        temp_c=fahrenheit_to_celsius(temp_f),
        condition=period.get("shortForecast", ""),
        condition_icon=period.get("icon", ""),
        wind_mph=wind_mph,
        wind_kph=mph_to_kph(wind_mph),
        wind_dir=period.get("windDirection", ""),
        humidity=humidity,
        feels_like_f=feels_f,
        feels_like_c=fahrenheit_to_celsius(feels_f),
        precip_chance=_value(period, "probabilityOfPrecipitation") or 0,
        dew_point_f=celsius_to_fahrenheit(dew_c) if dew_c is not None else None,
        dew_point_c=dew_c,
    )


def build_day_aggregate(day: Optional[dict[str, Any]], night: Optional[dict[str, Any]]) -> DayAggregate:
    """
    Combine the day and night halves of a date. A missing half reuses the present one,
    so a night-only date gets max == min rather than a zero high.
    """
    day_period = day or night or {}
    night_period = night or day or {}
    max_f = _temperature(day_period)
    min_f = _temperature(night_period)
    avg_f = (max_f + min_f) / 2
    return DayAggregate(
        max_temp_f=max_f,
        max_temp_c=fahrenheit_to_celsius(max_f),
        min_temp_f=min_f,
        min_temp_c=fahrenheit_to_celsius(min_f),
        avg_temp_f=avg_f,
        avg_temp_c=fahrenheit_to_celsius(avg_f),
        condition=day_period.get("shortForecast") or "Unknown",
        condition_icon=day_period.get("icon") or "",
        detailed_forecast=day_period.get("detailedForecast") or "",
        wind_speed=day_period.get("windSpeed") or "0 mph",
        wind_direction=day_period.get("windDirection") or "N",
        daily_chance_of_rain=max(
            _value(day_period, "probabilityOfPrecipitation") or 0,
            _value(night_period, "probabilityOfPrecipitation") or 0,
        ),
    )


def build_hourly_entry(period: dict[str, Any]) -> HourlyEntry:
    temp_f = _temperature(period)
    dew_c = _value(period, "dewpoint")
    return HourlyEntry(
        time=period["startTime"],
        temp_f=temp_f,
        temp_c=fahrenheit_to_celsius(temp_f),
        condition=period.get("shortForecast", ""),
        condition_icon=period.get("icon", ""),
        wind_speed=period.get("windSpeed", ""),
        wind_direction=period.get("windDirection", ""),
        humidity=_value(period, "relativeHumidity") or 0,
        chance_of_rain=_value(period, "probabilityOfPrecipitation") or 0,
        dew_point_f=celsius_to_fahrenheit(dew_c) if dew_c is not None else None,
        dew_point_c=dew_c,
    )


def build_forecast(
    daily_periods: list[dict[str, Any]],
    hourly_periods: list[dict[str, Any]],
    max_days: int = MAX_FORECAST_DAYS,
) -> list[ForecastDay]:
    """First max_days distinct dates in encounter order, each with its hourly entries attached."""
    hourly_by_date = group_by_date(hourly_periods)
    forecast: list[ForecastDay] = []
    for date, periods in list(group_by_date(daily_periods).items())[:max_days]:
        day = night = None
        for period in periods:
            if period.get("isDaytime"):
                day = period
            else:
                night = period
        forecast.append(ForecastDay(
            date=date,
            day=build_day_aggregate(day, night),
            hourly=[build_hourly_entry(h) for h in hourly_by_date.get(date, [])],
        ))
    return forecast


def build_snapshot(
    location: LocationInfo,
    daily_periods: list[dict[str, Any]],
    hourly_periods: list[dict[str, Any]],
) -> WeatherSnapshot:
    if not hourly_periods:
        raise WeatherLookupError(ErrorCode.LOOKUP_ERROR, "Forecast provider returned no hourly data")
    return WeatherSnapshot(
        location=location,
        current=build_current(hourly_periods[0]),
        forecast=build_forecast(daily_periods, hourly_periods),
    )


class NWSClient:
    """Grid-forecast provider. Uses the shared retrying HTTP client."""

    def __init__(self, client: httpx.AsyncClient, base_url: str = NWS_BASE_URL):
        self._client = client
        self.base_url = base_url.rstrip("/")

    async def _get(self, url: str) -> dict[str, Any]:
        """GET a provider document. Any 404 means NWS has no data for the location."""
        resp = await self._client.get(url, headers={"Accept": "application/geo+json"})
        if resp.status_code == 404:
            raise WeatherLookupError(
                ErrorCode.LOCATION_NOT_SUPPORTED,
                "Weather data not available for this location (NWS only covers US locations)",
            )
        resp.raise_for_status()
        return resp.json()

    async def points(self, lat: float, lon: float) -> GridPoint:
        """Resolve coordinates to forecast URLs and timezone."""
        data = await self._get(f"{self.base_url}/points/{round(lat, 4)},{round(lon, 4)}")
        props = data.get("properties", {})
        return GridPoint(
            forecast_url=props["forecast"],
            forecast_hourly_url=props["forecastHourly"],
            time_zone=props.get("timeZone"),
        )

    async def periods(self, url: str) -> list[dict[str, Any]]:
        data = await self._get(url)
        return data.get("properties", {}).get("periods", [])

    async def fetch_snapshot(self, lat: float, lon: float, location_name: str) -> WeatherSnapshot:
        grid = await self.points(lat, lon)
        daily, hourly = await asyncio.gather(
            self.periods(grid.forecast_url),
            self.periods(grid.forecast_hourly_url),
        )
        logger.info(
            "NWS forecast fetched for (%s, %s): %d daily / %d hourly periods",
            lat, lon, len(daily), len(hourly),
        )
        return build_snapshot(
            LocationInfo(name=location_name, latitude=lat, longitude=lon, timezone=grid.time_zone),
            daily,
            hourly,
        )
