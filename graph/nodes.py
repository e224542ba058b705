"""
LangGraph nodes: ExtractIntent, ResolveLocation, FetchWeather, PersistLocation and Compose.
Each node has a single responsibility. Collaborators arrive through config["configurable"]["services"].
"""
import asyncio
import re
import time
from dataclasses import dataclass
from typing import Any, Optional

import httpx
import structlog
from langchain_core.runnables import RunnableConfig

from app.errors import ErrorCode, WeatherLookupError
from graph.compose import compose
from graph.disambiguation import (
    DEFAULT_CANDIDATE_LIMIT,
    DEFAULT_IMPORTANCE_THRESHOLD,
    Decision,
    DisambiguationResponse,
    PlaceFacts,
    cities_in_state,
    classify,
    select_candidate,
)
from graph.intent import IntentExtractor
from graph.state import LookupState
from tools.base import GeocodeCandidate, NewLocation
from tools.geocoding import NominatimClient
from tools.location_store import LocationStore, estimate_timezone
from tools.weather_api import NWSClient

log = structlog.get_logger()

CURRENT_LOCATION_NAME = "Current Location"

_CURRENT_LOCATION_PHRASE = re.compile(r"\b(here|my location|current location|where i am|where i'?m at)\b")
_PUNCTUATION = re.compile(r"[^\w\s']")
_WHITESPACE = re.compile(r"\s+")


@dataclass
class LookupServices:
    """Everything the pipeline talks to. Built once at startup; tests pass fakes."""
    geocoder: NominatimClient
    weather: NWSClient
    store: LocationStore
    extractor: Optional[IntentExtractor] = None
    importance_threshold: float = DEFAULT_IMPORTANCE_THRESHOLD
    candidate_limit: int = DEFAULT_CANDIDATE_LIMIT
    state_city_search_limit: int = 10


def _services(config: RunnableConfig) -> LookupServices:
    return config["configurable"]["services"]


def is_current_location_phrase(text: Optional[str]) -> bool:
    """'here', 'my location', 'where I'm at', ... anywhere in the text; case and punctuation ignored."""
    cleaned = _PUNCTUATION.sub(" ", (text or "").lower().replace("’", "'"))
    return bool(_CURRENT_LOCATION_PHRASE.search(_WHITESPACE.sub(" ", cleaned)))


async def reverse_best_effort(geocoder: NominatimClient, lat: float, lon: float) -> Optional[GeocodeCandidate]:
    """Display name lookup for device coordinates. Failure degrades to a placeholder name."""
    try:
        return await geocoder.reverse(lat, lon)
    except (httpx.HTTPError, ValueError) as exc:
        log.warning("reverse_geocode_failed", lat=lat, lon=lon, error=str(exc)[:200])
        return None


async def extract_intent_node(state: LookupState, config: RunnableConfig) -> dict[str, Any]:
    """ExtractIntent: delegated structured extraction. Only reached when the caller sent no intent."""
    services = _services(config)
    if services.extractor is None:
        raise WeatherLookupError(ErrorCode.CONFIGURATION_ERROR, "OpenAI API key not configured")
    start = time.perf_counter()
    intent = await services.extractor.extract(state["query"], state["reference_date"])
    log.info(
        "extract_intent_node",
        intent_type=intent.intent_type.value,
        location_provided=intent.location_provided,
        duration_sec=round(time.perf_counter() - start, 3),
    )
    return {"intent": intent}


async def resolve_location_node(state: LookupState, config: RunnableConfig) -> dict[str, Any]:
    """
    ResolveLocation: device coordinates for current-location queries, otherwise forward geocode
    and classify. Ends the request with a disambiguation response when the match is a whole state
    or several distinct places and the caller has not picked one yet.
    """
    services = _services(config)
    intent = state["intent"]
    token = (intent.location or "").strip()
    selected = state.get("selected_index")

    if not intent.location_provided or is_current_location_phrase(token):
        coords = state.get("current_location")
        if coords is None:
            raise WeatherLookupError(
                ErrorCode.CURRENT_LOCATION_REQUIRED,
                "No location was provided. Enable location services or include a location in your query.",
            )
        lat, lon = coords
        candidate = await reverse_best_effort(services.geocoder, lat, lon)
        name = (candidate.address.place_name if candidate else "") or CURRENT_LOCATION_NAME
        log.info("resolve_location_node", decision="CURRENT_LOCATION", name=name)
        return {"latitude": lat, "longitude": lon, "location_name": name, "candidate": candidate}

    if not token:
        raise WeatherLookupError(ErrorCode.LOCATION_REQUIRED, "Please include a location in your query.")

    results = await services.geocoder.search(token, limit=services.candidate_limit)
    if not results:
        raise WeatherLookupError(ErrorCode.LOCATION_NOT_FOUND, f"Could not find location: {token}")

    facts = PlaceFacts.from_candidate(token, results[0])
    decision = classify(facts, results, selected is not None, services.importance_threshold)
    log.info("resolve_location_node", decision=decision.value, candidates=len(results), selected=selected)

    if decision is Decision.STATE_LEVEL:
        state_name = results[0].address.state or token
        city_results = await services.geocoder.search(
            f"city in {state_name}", limit=services.state_city_search_limit
        )
        cities = cities_in_state(city_results, state_name, services.candidate_limit)
        if not cities:
            raise WeatherLookupError(
                ErrorCode.LOCATION_TOO_BROAD,
                f'Could not find cities in "{token}". Please specify a city or town.',
            )
        if selected is None:
            return {"disambiguation": DisambiguationResponse.build(
                token, intent, cities, services.candidate_limit, state_name=state_name,
            )}
        results = cities
    elif decision is Decision.AMBIGUOUS:
        return {"disambiguation": DisambiguationResponse.build(token, intent, results, services.candidate_limit)}

    candidate = select_candidate(results, selected if selected is not None else 0)
    return {
        "latitude": candidate.lat,
        "longitude": candidate.lon,
        "location_name": candidate.address.place_name or token,
        "candidate": candidate,
    }


async def fetch_weather_node(state: LookupState, config: RunnableConfig) -> dict[str, Any]:
    services = _services(config)
    start = time.perf_counter()
    snapshot = await services.weather.fetch_snapshot(state["latitude"], state["longitude"], state["location_name"])
    log.info(
        "fetch_weather_node",
        forecast_days=len(snapshot.forecast),
        duration_sec=round(time.perf_counter() - start, 3),
    )
    return {"snapshot": snapshot}


def new_location(candidate: GeocodeCandidate, timezone: Optional[str]) -> NewLocation:
    addr = candidate.address
    return NewLocation(
        external_id=candidate.external_id,
        name=addr.place_name or "Unknown",
        region=addr.state,
        country=addr.country or "USA",
        latitude=candidate.lat,
        longitude=candidate.lon,
        timezone=timezone or estimate_timezone(candidate.lon),
    )


async def persist_location_node(state: LookupState, config: RunnableConfig) -> dict[str, Any]:
    """PersistLocation: upsert the selected place. Skipped when reverse geocoding found nothing."""
    candidate = state.get("candidate")
    if candidate is None:
        return {"stored_location": None}
    store = _services(config).store
    stored = await asyncio.to_thread(store.upsert, new_location(candidate, state["snapshot"].location.timezone))
    log.info("persist_location_node", location_id=stored.id, external_id=stored.external_id)
    return {"stored_location": stored}


def compose_node(state: LookupState) -> dict[str, Any]:
    snapshot = state["snapshot"]
    stored = state.get("stored_location")
    location = {
        "id": stored.id if stored else None,
        "name": snapshot.location.name,
        "region": stored.region if stored else "",
        "country": stored.country if stored else "",
        "coordinates": {"lat": state["latitude"], "lon": state["longitude"]},
    }
    result = compose(state["intent"], snapshot, location, state.get("units") or "imperial")
    log.info("compose_node", card_type=result.card["type"])
    return {"result": result}
