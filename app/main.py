"""
FastAPI backend: natural-language weather lookup, coordinate weather, location search, health checks.
Logs are structured (request_id, duration); every error renders as {"error": {"code", "message"}}.
"""
import asyncio
import logging
import secrets
import time
import uuid
from contextlib import asynccontextmanager
from typing import Literal, Optional

import httpx
from fastapi import Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from sqlalchemy import text

from app.config import Settings, get_settings
from app.errors import ErrorCode, WeatherLookupError
from graph.graph import get_graph, run_lookup
from graph.intent import Intent, IntentExtractor, get_llm
from graph.nodes import LookupServices, new_location, reverse_best_effort
from tools.base import GeocodeCandidate, StoredLocation
from tools.geocoding import NominatimClient
from tools.http_client import build_http_client
from tools.location_store import LocationStore, estimate_timezone
from tools.weather_api import NWSClient

# Structured logging: use standard logging with extra dict (JSON-safe; no secrets)
log = logging.getLogger(__name__)
logging.basicConfig(level=getattr(logging, get_settings().log_level.upper(), logging.INFO))

logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("openai").setLevel(logging.WARNING)

LOCATION_SEARCH_LIMIT = 10


def build_services(settings: Settings, http_client: httpx.AsyncClient) -> LookupServices:
    """Wire every collaborator to the one shared HTTP client."""
    store = LocationStore.from_url(settings.database_url)
    store.create_schema()
    extractor = None
    if settings.extraction_configured:
        extractor = IntentExtractor(get_llm(settings, http_client))
    else:
        log.warning("OPENAI_API_KEY not set; /lookup only accepts requests that carry an intent")
    return LookupServices(
        geocoder=NominatimClient(http_client, settings.nominatim_base_url, settings.supported_country),
        weather=NWSClient(http_client, settings.nws_base_url),
        store=store,
        extractor=extractor,
        importance_threshold=settings.state_importance_threshold,
        candidate_limit=settings.disambiguation_limit,
        state_city_search_limit=settings.state_city_search_limit,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the shared client and services on startup; close the client on shutdown."""
    settings = get_settings()
    http_client = build_http_client(settings)
    app.state.services = build_services(settings, http_client)
    get_graph()
    yield
    await http_client.aclose()


app = FastAPI(title="WeatherLookup", lifespan=lifespan)
app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])


class Coordinates(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lon: float = Field(..., ge=-180, le=180)


class LookupRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    query: str = Field(..., min_length=1, max_length=500)
    current_location: Optional[Coordinates] = None
    selected_location_index: Optional[int] = Field(default=None, description="Pick from a previous disambiguation response")
    intent: Optional[Intent] = Field(default=None, description="Intent echoed from a previous disambiguation response")
    units: Literal["imperial", "metric"] = "imperial"


@app.exception_handler(WeatherLookupError)
async def lookup_error_handler(request: Request, exc: WeatherLookupError):
    log.info(
        "lookup_error",
        extra={"request_id": getattr(request.state, "request_id", None), "code": exc.code.value},
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_body())


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    details = [{"field": " -> ".join(str(p) for p in e["loc"]), "message": e["msg"]} for e in exc.errors()]
    return JSONResponse(
        status_code=400,
        content={"error": {"code": ErrorCode.VALIDATION_ERROR.value, "message": "Invalid request data", "details": details}},
    )


@app.middleware("http")
async def add_request_id(request: Request, call_next):
    rid = request.headers.get("x-request-id") or str(uuid.uuid4())
    request.state.request_id = rid
    response = await call_next(request)
    response.headers["x-request-id"] = rid
    return response


def get_services(request: Request) -> LookupServices:
    return request.app.state.services


_bearer = HTTPBearer(auto_error=False)


def require_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
    settings: Settings = Depends(get_settings),
) -> None:
    """No-op unless API_TOKEN is configured."""
    if not settings.api_token:
        return
    if credentials is None or not secrets.compare_digest(credentials.credentials, settings.api_token):
        raise WeatherLookupError(ErrorCode.UNAUTHORIZED, "Missing or invalid access token")


@app.post("/lookup", dependencies=[Depends(require_token)])
async def lookup(req: LookupRequest, request: Request, services: LookupServices = Depends(get_services)):
    """Natural-language weather query: final summary + card, or a disambiguation response."""
    request_id = getattr(request.state, "request_id", str(uuid.uuid4()))
    start = time.perf_counter()
    log.info(
        "lookup_start",
        extra={"request_id": request_id, "intent_echoed": req.intent is not None, "selected": req.selected_location_index},
    )
    coords = (req.current_location.lat, req.current_location.lon) if req.current_location else None
    try:
        outcome = await run_lookup(
            services,
            req.query,
            intent=req.intent,
            current_location=coords,
            selected_index=req.selected_location_index,
            units=req.units,
        )
    except WeatherLookupError:
        raise
    except Exception as e:
        log.error("lookup_failed", extra={"request_id": request_id, "error": str(e)[:200]}, exc_info=True)
        raise WeatherLookupError(
            ErrorCode.LOOKUP_ERROR, "Failed to process weather lookup. Please try again."
        ) from e
    duration = time.perf_counter() - start
    log.info("lookup_done", extra={"request_id": request_id, "duration_sec": round(duration, 3)})
    return outcome.to_wire()


@app.get("/weather", dependencies=[Depends(require_token)])
async def weather_by_coords(
    lat: float = Query(..., ge=-90, le=90),
    lon: float = Query(..., ge=-180, le=180),
    services: LookupServices = Depends(get_services),
):
    """Full normalized snapshot for device coordinates."""
    candidate = await reverse_best_effort(services.geocoder, lat, lon)
    name = (candidate.address.place_name if candidate else "") or "Unknown Location"
    try:
        snapshot = await services.weather.fetch_snapshot(lat, lon, name)
    except WeatherLookupError:
        raise
    except Exception as e:
        log.error("weather_failed", extra={"error": str(e)[:200]})
        raise WeatherLookupError(ErrorCode.WEATHER_API_ERROR, "Failed to fetch weather data") from e
    return snapshot.to_wire()


async def _timezone_for(services: LookupServices, lat: float, lon: float) -> str:
    try:
        grid = await services.weather.points(lat, lon)
    except (WeatherLookupError, httpx.HTTPError) as e:
        log.warning("timezone_lookup_failed", extra={"error": str(e)[:200]})
        return estimate_timezone(lon)
    return grid.time_zone or estimate_timezone(lon)


async def _store_candidate(services: LookupServices, candidate: GeocodeCandidate) -> StoredLocation:
    existing = await asyncio.to_thread(services.store.get_by_external_id, candidate.external_id)
    if existing is not None:
        return existing
    tz = await _timezone_for(services, candidate.lat, candidate.lon)
    return await asyncio.to_thread(services.store.upsert, new_location(candidate, tz))


def _location_body(stored: StoredLocation) -> dict:
    return {
        "id": stored.id,
        "name": stored.name,
        "region": stored.region,
        "country": stored.country,
        "latitude": stored.latitude,
        "longitude": stored.longitude,
        "timezone": stored.timezone,
    }


@app.get("/locations/search", dependencies=[Depends(require_token)])
async def search_locations(q: str = Query(..., min_length=1), services: LookupServices = Depends(get_services)):
    """Forward geocode and store every match."""
    try:
        candidates = await services.geocoder.search(q, limit=LOCATION_SEARCH_LIMIT)
        stored = await asyncio.gather(*(_store_candidate(services, c) for c in candidates))
    except Exception as e:
        log.error("location_search_failed", extra={"error": str(e)[:200]})
        raise WeatherLookupError(ErrorCode.GEOCODING_ERROR, "Failed to search locations") from e
    return {"locations": [_location_body(s) for s in stored]}


@app.get("/locations/reverse", dependencies=[Depends(require_token)])
async def reverse_location(
    lat: float = Query(..., ge=-90, le=90),
    lon: float = Query(..., ge=-180, le=180),
    services: LookupServices = Depends(get_services),
):
    try:
        candidate = await services.geocoder.reverse(lat, lon)
    except Exception as e:
        log.error("reverse_geocode_failed", extra={"error": str(e)[:200]})
        raise WeatherLookupError(ErrorCode.GEOCODING_ERROR, "Failed to reverse geocode coordinates") from e
    if candidate is None:
        raise WeatherLookupError(ErrorCode.LOCATION_NOT_FOUND, "No location found for these coordinates")
    stored = await _store_candidate(services, candidate)
    return {"location": _location_body(stored)}


@app.get("/health")
async def health():
    """Basic health check."""
    return {"status": "ok"}


@app.get("/health/ready")
async def health_ready(services: LookupServices = Depends(get_services)):
    """Readiness: location store connectivity."""
    checks = {}
    try:
        with services.store.engine.connect() as c:
            c.execute(text("SELECT 1"))
        checks["database"] = "ok"
    except Exception as e:
        checks["database"] = str(e)[:100]
    return {"status": "ok" if all(v == "ok" for v in checks.values()) else "degraded", "checks": checks}
