"""
Disambiguation classifier. Pure functions over normalized inputs: decides whether a geocoding
result set is a whole state (offer cities), several distinct places (offer candidates), or
can proceed with a single selection.
"""
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from app.errors import ErrorCode, WeatherLookupError
from tools.base import GeocodeCandidate

DEFAULT_IMPORTANCE_THRESHOLD = 0.7
DEFAULT_CANDIDATE_LIMIT = 5

US_STATE_ABBREVIATIONS = {
    "alabama": "al", "alaska": "ak", "arizona": "az", "arkansas": "ar", "california": "ca",
    "colorado": "co", "connecticut": "ct", "delaware": "de", "florida": "fl", "georgia": "ga",
    "hawaii": "hi", "idaho": "id", "illinois": "il", "indiana": "in", "iowa": "ia",
    "kansas": "ks", "kentucky": "ky", "louisiana": "la", "maine": "me", "maryland": "md",
    "massachusetts": "ma", "michigan": "mi", "minnesota": "mn", "mississippi": "ms",
    "missouri": "mo", "montana": "mt", "nebraska": "ne", "nevada": "nv", "new hampshire": "nh",
    "new jersey": "nj", "new mexico": "nm", "new york": "ny", "north carolina": "nc",
    "north dakota": "nd", "ohio": "oh", "oklahoma": "ok", "oregon": "or", "pennsylvania": "pa",
    "rhode island": "ri", "south carolina": "sc", "south dakota": "sd", "tennessee": "tn",
    "texas": "tx", "utah": "ut", "vermont": "vt", "virginia": "va", "washington": "wa",
    "west virginia": "wv", "wisconsin": "wi", "wyoming": "wy",
    "district of columbia": "dc",
}

_WHITESPACE = re.compile(r"\s+")

BOUNDARY_TYPES = ("administrative", "boundary")


def normalize_location_text(value: Optional[str]) -> str:
    """Trim, lowercase, strip periods, collapse whitespace."""
    return _WHITESPACE.sub(" ", str(value or "").strip().lower().replace(".", ""))


@dataclass(frozen=True)
class PlaceFacts:
    """The query and the top match, normalized. Input to the state-level test."""
    query: str
    state: str
    city: str
    county: str
    addresstype: str
    place_type: str
    osm_type: str
    importance: Optional[float]

    @classmethod
    def from_candidate(cls, query: str, candidate: GeocodeCandidate) -> "PlaceFacts":
        addr = candidate.address
        return cls(
            query=normalize_location_text(query),
            state=normalize_location_text(addr.state),
            city=normalize_location_text(addr.settlement),
            county=normalize_location_text(addr.county),
            addresstype=normalize_location_text(candidate.addresstype),
            place_type=candidate.type,
            osm_type=candidate.osm_type,
            importance=candidate.importance,
        )


def is_state_level_query(facts: PlaceFacts, importance_threshold: float = DEFAULT_IMPORTANCE_THRESHOLD) -> bool:
    if not facts.query or not facts.state:
        return False

    explicit_state = facts.addresstype == "state"
    looks_like_boundary = (
        (facts.place_type in BOUNDARY_TYPES or facts.osm_type == "relation")
        and facts.importance is not None
        and facts.importance > importance_threshold
    )
    if not (explicit_state or looks_like_boundary):
        return False

    abbreviation = US_STATE_ABBREVIATIONS.get(facts.state)
    if facts.query != facts.state and facts.query != abbreviation:
        return False

    # A state-named query answered with a city or county match is about that place.
    return facts.query != facts.city and facts.query != facts.county


class Decision(str, Enum):
    STATE_LEVEL = "STATE_LEVEL"
    AMBIGUOUS = "AMBIGUOUS"
    SELECT = "SELECT"


def place_name(candidate: GeocodeCandidate) -> str:
    return candidate.address.place_name or "Unknown"


def classify(
    facts: PlaceFacts,
    candidates: list[GeocodeCandidate],
    has_selection: bool,
    importance_threshold: float = DEFAULT_IMPORTANCE_THRESHOLD,
) -> Decision:
    """facts describe candidates[0]; candidates is the full ranked result set."""
    if is_state_level_query(facts, importance_threshold):
        return Decision.STATE_LEVEL
    if not has_selection and len(candidates) > 1 and len({place_name(c) for c in candidates}) > 1:
        return Decision.AMBIGUOUS
    return Decision.SELECT


def cities_in_state(
    candidates: list[GeocodeCandidate],
    state_name: str,
    limit: int = DEFAULT_CANDIDATE_LIMIT,
) -> list[GeocodeCandidate]:
    """Results in exactly state_name that name a city/town/village, deduplicated by that name."""
    seen: set[str] = set()
    cities = []
    for candidate in candidates:
        name = candidate.address.settlement
        if not name or candidate.address.state != state_name or name in seen:
            continue
        seen.add(name)
        cities.append(candidate)
    return cities[:limit]


def select_candidate(candidates: list[GeocodeCandidate], index: int) -> GeocodeCandidate:
    if not 0 <= index < len(candidates):
        raise WeatherLookupError(ErrorCode.INVALID_SELECTION, "Selected location index is out of range")
    return candidates[index]


@dataclass(frozen=True)
class LocationOption:
    index: int
    name: str
    region: str
    country: str
    display_name: str
    lat: float
    lon: float

    @classmethod
    def from_candidate(cls, index: int, candidate: GeocodeCandidate) -> "LocationOption":
        addr = candidate.address
        return cls(
            index=index,
            name=place_name(candidate),
            region=addr.state,
            country=addr.country or "USA",
            display_name=candidate.display_name,
            lat=candidate.lat,
            lon=candidate.lon,
        )

    def to_wire(self) -> dict[str, Any]:
        return {
            "index": self.index,
            "name": self.name,
            "region": self.region,
            "country": self.country,
            "displayName": self.display_name,
            "lat": self.lat,
            "lon": self.lon,
        }


@dataclass(frozen=True)
class DisambiguationResponse:
    """Terminal response for the current request; the caller resumes with selectedLocationIndex + intent."""
    original_query: str
    intent: Any  # graph.intent.Intent, echoed verbatim
    locations: list[LocationOption] = field(default_factory=list)
    state_name: Optional[str] = None

    @classmethod
    def build(
        cls,
        original_query: str,
        intent: Any,
        candidates: list[GeocodeCandidate],
        limit: int = DEFAULT_CANDIDATE_LIMIT,
        state_name: Optional[str] = None,
    ) -> "DisambiguationResponse":
        options = [LocationOption.from_candidate(i, c) for i, c in enumerate(candidates[:limit])]
        return cls(original_query=original_query, intent=intent, locations=options, state_name=state_name)

    def to_wire(self) -> dict[str, Any]:
        body = {
            "requiresDisambiguation": True,
            "originalQuery": self.original_query,
            "intent": self.intent.to_wire(),
            "locations": [o.to_wire() for o in self.locations],
        }
        if self.state_name:
            body["stateName"] = self.state_name
        return body
