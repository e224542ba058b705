"""Unit tests for the composer: summary sentence and card per intent type, imperial and metric."""
from fakes import DAILY_PERIODS, HOURLY_PERIODS
from graph.compose import (
    CurrentQuery,
    DateRangeQuery,
    DayQuery,
    HourlyWindowQuery,
    compose,
    query_for,
    summary_text,
)
from graph.intent import Intent, IntentType
from tools.base import LocationInfo
from tools.weather_api import build_snapshot

SNAPSHOT = build_snapshot(LocationInfo("Austin", 30.27, -97.74, "America/Chicago"), DAILY_PERIODS, HOURLY_PERIODS)
EMPTY_FORECAST = build_snapshot(LocationInfo("Austin", 30.27, -97.74, "America/Chicago"), [], HOURLY_PERIODS)
LOCATION = {"id": "loc-1", "name": "Austin", "region": "Texas", "country": "United States",
            "coordinates": {"lat": 30.27, "lon": -97.74}}


def _intent(intent_type, **kwargs):
    return Intent(intent_type=intent_type, location_provided=True, location="Austin", **kwargs)


class TestQueryFor:
    def test_hourly_defaults_to_whole_day(self):
        assert query_for(_intent(IntentType.HOURLY_WINDOW)) == HourlyWindowQuery(0, 23)

    def test_variants(self):
        assert query_for(_intent(IntentType.CURRENT)) == CurrentQuery()
        assert query_for(_intent(IntentType.DAY, date="2025-01-15")) == DayQuery("2025-01-15")
        assert query_for(_intent(IntentType.DATE_RANGE, start_date="a", end_date="b")) == DateRangeQuery("a", "b")


def test_current():
    result = compose(_intent(IntentType.CURRENT), SNAPSHOT, LOCATION)
    assert result.summary_text == "Austin is currently Sunny with a temperature of 60°F."
    card = result.card
    assert card["type"] == "CURRENT"
    assert card["title"] == "Austin"
    assert card["metrics"] == {
        "temperature": 60, "feelsLike": 60, "condition": "Sunny", "humidity": 40, "windSpeed": 5,
    }
    assert card["units"] == "imperial"
    assert card["location"] == LOCATION


def test_current_metric():
    result = compose(_intent(IntentType.CURRENT), SNAPSHOT, LOCATION, units="metric")
    # 60F = 15.56C, 5 mph = 8.05 km/h
    assert result.summary_text == "Austin is currently Sunny with a temperature of 16°C."
    assert result.card["metrics"]["temperature"] == 16
    assert result.card["metrics"]["windSpeed"] == 8
    assert result.card["units"] == "metric"


def test_day_uses_first_forecast_day():
    result = compose(_intent(IntentType.DAY, date="2025-01-16"), SNAPSHOT, LOCATION)
    assert result.summary_text == "Austin will be Sunny with highs around 72°F and lows around 55°F."
    assert result.card["title"] == "Austin • 2025-01-16"
    assert result.card["metrics"] == {"high": 72, "low": 55, "precipChance": 20}


def test_day_without_date_titles_today():
    assert compose(_intent(IntentType.DAY), SNAPSHOT, LOCATION).card["title"] == "Austin • Today"


def test_hourly_window_filters_by_local_hour():
    result = compose(_intent(IntentType.HOURLY_WINDOW, start_hour=9, end_hour=10), SNAPSHOT, LOCATION)
    assert result.summary_text == "Austin will average 65°F from 9:00 to 10:00."
    assert result.card["title"] == "Austin • 9:00-10:00"
    assert [h["hour"] for h in result.card["hourlyData"]] == [9, 10]
    assert result.card["hourlyData"][0] == {"hour": 9, "temp": 64, "condition": "Sunny", "precipChance": 10}


def test_hourly_window_with_no_matching_hours():
    result = compose(_intent(IntentType.HOURLY_WINDOW, start_hour=20, end_hour=23), SNAPSHOT, LOCATION)
    assert result.summary_text == "Weather data retrieved for Austin."
    assert result.card["hourlyData"] == []


def test_date_range_lists_distinct_conditions():
    result = compose(
        _intent(IntentType.DATE_RANGE, start_date="2025-01-15", end_date="2025-01-17"), SNAPSHOT, LOCATION
    )
    assert result.summary_text == "Austin will have Sunny, Partly Cloudy, Rain Showers over the next 3 days."
    assert result.card["title"] == "Austin • 2025-01-15 to 2025-01-17"
    assert [d["date"] for d in result.card["dailyData"]] == ["2025-01-15", "2025-01-16", "2025-01-17"]
    assert result.card["dailyData"][2] == {"date": "2025-01-17", "high": 60, "low": 60, "condition": "Rain Showers"}


def test_missing_forecast_falls_back():
    for intent, key in [
        (_intent(IntentType.DAY), "metrics"),
        (_intent(IntentType.DATE_RANGE), "dailyData"),
    ]:
        result = compose(intent, EMPTY_FORECAST, LOCATION)
        assert result.summary_text == "Weather data retrieved for Austin."
        assert result.card[key] is None


def test_to_wire():
    wire = compose(_intent(IntentType.CURRENT), SNAPSHOT, LOCATION).to_wire()
    assert set(wire) == {"summaryText", "card"}
    assert summary_text(CurrentQuery(), SNAPSHOT) == wire["summaryText"]
