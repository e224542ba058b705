"""
Response composer: summary sentence + intent-specific card from a WeatherSnapshot.
The intent is first narrowed to one query variant per intent type, each carrying only the
fields its branch needs; summary and card both match exhaustively over that union.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Literal, Optional, Union, assert_never

from graph.intent import Intent, IntentType
from tools.base import ForecastDay, HourlyEntry, WeatherSnapshot
from tools.conversions import round_half_up

Units = Literal["imperial", "metric"]


@dataclass(frozen=True)
class CurrentQuery:
    pass


@dataclass(frozen=True)
class DayQuery:
    date: Optional[str]


@dataclass(frozen=True)
class HourlyWindowQuery:
    start_hour: int
    end_hour: int


@dataclass(frozen=True)
class DateRangeQuery:
    start_date: Optional[str]
    end_date: Optional[str]


IntentQuery = Union[CurrentQuery, DayQuery, HourlyWindowQuery, DateRangeQuery]


@dataclass(frozen=True)
class LookupResult:
    summary_text: str
    card: dict[str, Any]

    def to_wire(self) -> dict[str, Any]:
        return {"summaryText": self.summary_text, "card": self.card}


def query_for(intent: Intent) -> IntentQuery:
    match intent.intent_type:
        case IntentType.CURRENT:
            return CurrentQuery()
        case IntentType.DAY:
            return DayQuery(date=intent.date)
        case IntentType.HOURLY_WINDOW:
            start = intent.start_hour if intent.start_hour is not None else 0
            end = intent.end_hour if intent.end_hour is not None else 23
            return HourlyWindowQuery(start_hour=start, end_hour=end)
        case IntentType.DATE_RANGE:
            return DateRangeQuery(start_date=intent.start_date, end_date=intent.end_date)
        case _:
            assert_never(intent.intent_type)


def _unit_symbol(units: Units) -> str:
    return "°C" if units == "metric" else "°F"


def _pick(units: Units, imperial: float, metric: float) -> float:
    return metric if units == "metric" else imperial


def hours_in_window(day: ForecastDay, start_hour: int, end_hour: int) -> list[HourlyEntry]:
    """Hourly entries whose local hour-of-day is within [start_hour, end_hour]."""
    return [h for h in day.hourly if start_hour <= datetime.fromisoformat(h.time).hour <= end_hour]


def summary_text(query: IntentQuery, snapshot: WeatherSnapshot, units: Units = "imperial") -> str:
    name = snapshot.location.name
    forecast = snapshot.forecast
    sym = _unit_symbol(units)

    match query:
        case CurrentQuery():
            current = snapshot.current
            temp = round_half_up(_pick(units, current.temp_f, current.temp_c))
            return f"{name} is currently {current.condition} with a temperature of {temp}{sym}."
        case DayQuery():
            if forecast:
                day = forecast[0].day
                high = round_half_up(_pick(units, day.max_temp_f, day.max_temp_c))
                low = round_half_up(_pick(units, day.min_temp_f, day.min_temp_c))
                return f"{name} will be {day.condition} with highs around {high}{sym} and lows around {low}{sym}."
        case HourlyWindowQuery(start_hour=start, end_hour=end):
            if forecast and forecast[0].hourly:
                hours = hours_in_window(forecast[0], start, end)
                if hours:
                    temps = [_pick(units, h.temp_f, h.temp_c) for h in hours]
                    avg = round_half_up(sum(temps) / len(temps))
                    return f"{name} will average {avg}{sym} from {start}:00 to {end}:00."
        case DateRangeQuery():
            if forecast:
                conditions = list(dict.fromkeys(d.day.condition for d in forecast))
                return f"{name} will have {', '.join(conditions)} over the next {len(forecast)} days."
        case _:
            assert_never(query)

    return f"Weather data retrieved for {name}."


def card_body(query: IntentQuery, snapshot: WeatherSnapshot, units: Units = "imperial") -> dict[str, Any]:
    """Intent-specific card fields; the branch payload is None when its data is absent."""
    name = snapshot.location.name
    forecast = snapshot.forecast

    match query:
        case CurrentQuery():
            current = snapshot.current
            return {
                "type": IntentType.CURRENT.value,
                "title": name,
                "metrics": {
                    "temperature": round_half_up(_pick(units, current.temp_f, current.temp_c)),
                    "feelsLike": round_half_up(_pick(units, current.feels_like_f, current.feels_like_c)),
                    "condition": current.condition,
                    "humidity": current.humidity,
                    "windSpeed": round_half_up(_pick(units, current.wind_mph, current.wind_kph)),
                },
            }
        case DayQuery(date=date):
            metrics = None
            if forecast:
                day = forecast[0].day
                metrics = {
                    "high": round_half_up(_pick(units, day.max_temp_f, day.max_temp_c)),
                    "low": round_half_up(_pick(units, day.min_temp_f, day.min_temp_c)),
                    "precipChance": day.daily_chance_of_rain,
                }
            return {"type": IntentType.DAY.value, "title": f"{name} • {date or 'Today'}", "metrics": metrics}
        case HourlyWindowQuery(start_hour=start, end_hour=end):
            hourly_data = None
            if forecast and forecast[0].hourly:
                hourly_data = [
                    {
                        "hour": datetime.fromisoformat(h.time).hour,
                        "temp": round_half_up(_pick(units, h.temp_f, h.temp_c)),
                        "condition": h.condition,
                        "precipChance": h.chance_of_rain,
                    }
                    for h in hours_in_window(forecast[0], start, end)
                ]
            return {
                "type": IntentType.HOURLY_WINDOW.value,
                "title": f"{name} • {start}:00-{end}:00",
                "hourlyData": hourly_data,
            }
        case DateRangeQuery(start_date=start_date, end_date=end_date):
            daily_data = None
            if forecast:
                daily_data = [
                    {
                        "date": d.date,
                        "high": round_half_up(_pick(units, d.day.max_temp_f, d.day.max_temp_c)),
                        "low": round_half_up(_pick(units, d.day.min_temp_f, d.day.min_temp_c)),
                        "condition": d.day.condition,
                    }
                    for d in forecast
                ]
            return {
                "type": IntentType.DATE_RANGE.value,
                "title": f"{name} • {start_date} to {end_date}",
                "dailyData": daily_data,
            }
        case _:
            assert_never(query)


def compose(
    intent: Intent,
    snapshot: WeatherSnapshot,
    location: dict[str, Any],
    units: Units = "imperial",
) -> LookupResult:
    query = query_for(intent)
    card = {**card_body(query, snapshot, units), "units": units, "location": location}
    return LookupResult(summary_text=summary_text(query, snapshot, units), card=card)
