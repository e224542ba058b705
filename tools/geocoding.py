"""
Geocoding tool: Nominatim (OpenStreetMap) forward search and reverse lookup.
Forward search is restricted to the supported country and returns ranked candidates with address details.
"""
import logging
from typing import Optional

import httpx

from tools.base import GeocodeCandidate

logger = logging.getLogger(__name__)

NOMINATIM_BASE_URL = "https://nominatim.openstreetmap.org"


class NominatimClient:
    """Thin wrapper over the shared HTTP client. HTTP errors propagate to the caller."""

    def __init__(self, client: httpx.AsyncClient, base_url: str = NOMINATIM_BASE_URL, country: str = "us"):
        self._client = client
        self.base_url = base_url.rstrip("/")
        self.country = country

    async def search(self, query: str, limit: int = 5) -> list[GeocodeCandidate]:
        params = {
            "q": query,
            "format": "json",
            "addressdetails": 1,
            "limit": limit,
            "countrycodes": self.country,
        }
        resp = await self._client.get(f"{self.base_url}/search", params=params)
        resp.raise_for_status()
        results = resp.json() or []
        logger.debug(
            "Geocoding results for %r: %s",
            query,
            [(r.get("display_name"), r.get("type"), r.get("osm_type"), r.get("importance")) for r in results],
        )
        return [GeocodeCandidate.from_provider(r) for r in results]

    async def reverse(self, lat: float, lon: float) -> Optional[GeocodeCandidate]:
        """Single best match for coordinates, or None when the provider has nothing there."""
        params = {"lat": lat, "lon": lon, "format": "json", "addressdetails": 1}
        resp = await self._client.get(f"{self.base_url}/reverse", params=params)
        resp.raise_for_status()
        data = resp.json()
        if not data or data.get("error"):
            return None
        # Reverse results echo the snapped point; keep the caller's coordinates.
        data = {**data, "lat": lat, "lon": lon}
        return GeocodeCandidate.from_provider(data)
