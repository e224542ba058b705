"""Shared types for tool inputs/outputs. Geocoding results, stored locations and the normalized weather snapshot."""

from dataclasses import asdict, dataclass, field
from typing import Any, Optional

from pydantic.alias_generators import to_camel


@dataclass(frozen=True)
class Address:
    """Address components returned by the geocoding provider."""
    city: str = ""
    town: str = ""
    village: str = ""
    county: str = ""
    state: str = ""
    country: str = ""

    @property
    def settlement(self) -> str:
        """City, town or village (in that order); empty when none is present."""
        return self.city or self.town or self.village

    @property
    def place_name(self) -> str:
        return self.settlement or self.county


@dataclass(frozen=True)
class GeocodeCandidate:
    """Single search/reverse result. Ephemeral: never persisted as-is."""
    display_name: str
    lat: float
    lon: float
    address: Address = field(default_factory=Address)
    place_id: Optional[str] = None
    importance: Optional[float] = None
    type: str = ""
    osm_type: str = ""
    addresstype: str = ""

    @classmethod
    def from_provider(cls, raw: dict[str, Any]) -> "GeocodeCandidate":
        addr = raw.get("address") or {}
        place_id = raw.get("place_id")
        importance = raw.get("importance")
        return cls(
            display_name=raw.get("display_name", ""),
            lat=float(raw["lat"]),
            lon=float(raw["lon"]),
            address=Address(
                city=addr.get("city", ""),
                town=addr.get("town", ""),
                village=addr.get("village", ""),
                county=addr.get("county", ""),
                state=addr.get("state", ""),
                country=addr.get("country", ""),
            ),
            place_id=str(place_id) if place_id is not None else None,
            importance=float(importance) if importance is not None else None,
            type=raw.get("type", "") or "",
            osm_type=raw.get("osm_type", "") or "",
            addresstype=raw.get("addresstype", "") or "",
        )

    @property
    def external_id(self) -> str:
        """Durable dedup key: provider place id, or "lat,lon" when the provider has none."""
        return self.place_id or f"{self.lat},{self.lon}"


@dataclass(frozen=True)
class NewLocation:
    """Values for a ResolvedLocation row before it has an id."""
    external_id: str
    name: str
    region: str
    country: str
    latitude: float
    longitude: float
    timezone: str


@dataclass(frozen=True)
class StoredLocation:
    """Durable ResolvedLocation row."""
    id: str
    external_id: str
    name: str
    region: str
    country: str
    latitude: float
    longitude: float
    timezone: str


@dataclass
class LocationInfo:
    name: str
    latitude: float
    longitude: float
    timezone: Optional[str]


@dataclass
class CurrentConditions:
    """Derived from the first hourly period."""
    temp_f: float
    temp_c: float
    condition: str
    condition_icon: str
    wind_mph: int
    wind_kph: float
    wind_dir: str
    humidity: float
    feels_like_f: float
    feels_like_c: float
    precip_chance: float
    dew_point_f: Optional[float]
    dew_point_c: Optional[float]


@dataclass
class DayAggregate:
    max_temp_f: float
    max_temp_c: float
    min_temp_f: float
    min_temp_c: float
    avg_temp_f: float
    avg_temp_c: float
    condition: str
    condition_icon: str
    detailed_forecast: str
    wind_speed: str
    wind_direction: str
    daily_chance_of_rain: float


@dataclass
class HourlyEntry:
    time: str  # ISO timestamp with the provider's local offset
    temp_f: float
    temp_c: float
    condition: str
    condition_icon: str
    wind_speed: str
    wind_direction: str
    humidity: float
    chance_of_rain: float
    dew_point_f: Optional[float]
    dew_point_c: Optional[float]


@dataclass
class ForecastDay:
    date: str  # YYYY-MM-DD
    day: DayAggregate
    hourly: list[HourlyEntry] = field(default_factory=list)


@dataclass
class WeatherSnapshot:
    """Normalized weather for one location. Always recomputed, never cached."""
    location: LocationInfo
    current: CurrentConditions
    forecast: list[ForecastDay]

    def to_wire(self) -> dict[str, Any]:
        """camelCase keys at every level (temp_f -> tempF)."""
        return _camelize(asdict(self))


def _camelize(value: Any) -> Any:
    if isinstance(value, dict):
        return {to_camel(k): _camelize(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_camelize(v) for v in value]
    return value
