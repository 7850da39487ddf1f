"""Client for the Google Places Web Service (text search + place details)."""
import logging
from typing import Any, Dict, List, Optional, Protocol, Sequence

import httpx

from trip_importer.config import settings

logger = logging.getLogger(__name__)

DETAILS_FIELDS = (
    "place_id",
    "name",
    "formatted_address",
    "rating",
    "user_ratings_total",
    "price_level",
    "photos",
    "geometry",
    "address_components",
    "opening_hours",
)


class PlacesProviderError(Exception):
    """The places provider answered with a non-OK status."""

    def __init__(self, endpoint: str, status: Optional[str], message: Optional[str] = None):
        self.endpoint = endpoint
        self.status = status
        super().__init__(f"{endpoint} returned status {status}: {message or 'no details'}")


class PlaceSearchProvider(Protocol):
    """Geocoding/places backend used by the enrichment service."""

    async def text_search(self, query: str) -> List[Dict[str, Any]]:
        ...

    async def get_details(self, place_id: str, fields: Sequence[str] = DETAILS_FIELDS) -> Dict[str, Any]:
        ...


class GooglePlacesClient:
    """HTTP client wrapper for the Google Places API.

    Both calls raise on transport errors and on provider statuses other than
    ``OK`` / ``ZERO_RESULTS``; callers decide how tolerant to be.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.api_key = api_key if api_key is not None else settings.google_places_api_key
        self.base_url = (base_url or settings.google_places_base_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.google_places_timeout
        self.transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    async def _get(self, endpoint: str, params: Dict[str, Any]) -> Dict[str, Any]:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            response = await client.get(
                f"{self.base_url}/{endpoint}",
                params={**params, "key": self.api_key},
            )
            response.raise_for_status()
            data = response.json()

        status = data.get("status")
        if status not in ("OK", "ZERO_RESULTS"):
            raise PlacesProviderError(endpoint, status, data.get("error_message"))
        return data

    async def text_search(self, query: str) -> List[Dict[str, Any]]:
        """Return the raw text-search hits (each carrying a ``place_id``)."""
        data = await self._get("textsearch/json", {"query": query})
        results = data.get("results") or []
        logger.info(f"[GooglePlaces] Text search '{query}' returned {len(results)} results")
        return results

    async def get_details(self, place_id: str, fields: Sequence[str] = DETAILS_FIELDS) -> Dict[str, Any]:
        """Return the ``result`` object of a place details request."""
        data = await self._get(
            "details/json",
            {"place_id": place_id, "fields": ",".join(fields)},
        )
        return data.get("result") or {}


# Global instance
google_places_client = GooglePlacesClient()
