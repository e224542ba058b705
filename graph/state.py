"""
LangGraph state for one lookup request: inputs, extracted intent, resolved location, and the terminal output
(either a disambiguation response or a composed result).
"""
import datetime
from typing import Optional, TypedDict

from graph.compose import LookupResult
from graph.disambiguation import DisambiguationResponse
from graph.intent import Intent
from tools.base import GeocodeCandidate, StoredLocation, WeatherSnapshot


class LookupState(TypedDict, total=False):
    """State passed between nodes. Nothing here outlives the request."""
    query: str
    reference_date: datetime.date
    current_location: Optional[tuple[float, float]]
    selected_index: Optional[int]
    units: str
    intent: Optional[Intent]
    latitude: float
    longitude: float
    location_name: str
    candidate: Optional[GeocodeCandidate]
    disambiguation: Optional[DisambiguationResponse]
    snapshot: Optional[WeatherSnapshot]
    stored_location: Optional[StoredLocation]
    result: Optional[LookupResult]
