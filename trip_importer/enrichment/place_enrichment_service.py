"""
Enrichment service for resolving extracted places against Google Places.

Given a candidate name and an optional location hint, finds the canonical
place and returns its id, rating, address, coordinates, photos, opening
hours and a human-readable area name. Enrichment is best-effort: every
failure results in ``None`` and the caller saves the bare candidate.
"""

from typing import Any, Dict, List, Optional
import logging

from pydantic import ValidationError

from trip_importer.config import settings
from trip_importer.models.places import (
    MAX_PHOTOS,
    Coordinates,
    EnrichmentResult,
    OpeningHours,
    PhotoRef,
)
from trip_importer.services.google_places import DETAILS_FIELDS, PlaceSearchProvider

logger = logging.getLogger(__name__)

# Checked in order; the first component carrying the type wins
AREA_COMPONENT_PRIORITY = ("locality", "sublocality", "administrative_area_level_2")


def _component_has_type(types: List[str], wanted: str) -> bool:
    if wanted == "sublocality":
        return any(t == "sublocality" or t.startswith("sublocality_level_") for t in types)
    return wanted in types


def parse_area_name(address_components: Any) -> str:
    """
    Derive the area name from Google address components.

    Priority: locality, then any sublocality level, then
    administrative_area_level_2. Returns "" when nothing matches or the
    components are malformed.
    """
    if not isinstance(address_components, list):
        return ""

    for wanted in AREA_COMPONENT_PRIORITY:
        for component in address_components:
            if not isinstance(component, dict):
                continue
            types = component.get("types")
            if not isinstance(types, list):
                continue
            if _component_has_type(types, wanted):
                name = str(component.get("long_name") or component.get("short_name") or "").strip()
                if name:
                    return name
    return ""


def _parse_coordinates(details: Dict[str, Any]) -> Optional[Coordinates]:
    location = (details.get("geometry") or {}).get("location") or {}
    try:
        return Coordinates(lat=float(location["lat"]), lng=float(location["lng"]))
    except (KeyError, TypeError, ValueError):
        return None


def _parse_photos(details: Dict[str, Any]) -> List[PhotoRef]:
    photos: List[PhotoRef] = []
    for raw in details.get("photos") or []:
        if len(photos) >= MAX_PHOTOS:
            break
        if not isinstance(raw, dict) or not raw.get("photo_reference"):
            continue
        try:
            photos.append(PhotoRef(**raw))
        except ValidationError:
            continue
    return photos


def _parse_opening_hours(details: Dict[str, Any]) -> Optional[OpeningHours]:
    raw = details.get("opening_hours")
    if not isinstance(raw, dict):
        return None
    try:
        return OpeningHours(
            open_now=raw.get("open_now"),
            weekday_text=raw.get("weekday_text") or [],
            periods=raw.get("periods") or [],
        )
    except ValidationError:
        return None


def _parse_price_level(value: Any) -> Optional[int]:
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value if 0 <= value <= 4 else None


def build_enrichment_result(details: Dict[str, Any], place_id: str) -> EnrichmentResult:
    """Map a Place Details ``result`` object onto an EnrichmentResult."""
    rating = details.get("rating")
    rating_count = details.get("user_ratings_total")
    return EnrichmentResult(
        provider_place_id=details.get("place_id") or place_id,
        name=details.get("name"),
        rating=float(rating) if isinstance(rating, (int, float)) else None,
        rating_count=int(rating_count) if isinstance(rating_count, int) else None,
        price_level=_parse_price_level(details.get("price_level")),
        formatted_address=details.get("formatted_address"),
        area_name=parse_area_name(details.get("address_components")),
        coordinates=_parse_coordinates(details),
        photos=_parse_photos(details),
        opening_hours=_parse_opening_hours(details),
    )


class PlaceEnrichmentService:
    """Service for enriching candidates with places provider data."""

    def __init__(
        self,
        provider: PlaceSearchProvider,
        default_region: Optional[str] = None,
        cache=None,
        cache_ttl: Optional[int] = None,
    ):
        self.provider = provider
        self.default_region = (
            default_region if default_region is not None else settings.enrichment_default_region
        )
        self.cache = cache
        self.cache_ttl = cache_ttl if cache_ttl is not None else settings.cache_ttl_seconds

    def build_query(self, name: str, location_hint: Optional[str] = None) -> str:
        hint = (location_hint or "").strip() or self.default_region.strip()
        return f"{name.strip()} {hint}" if hint else name.strip()

    async def enrich(self, name: str, location_hint: Optional[str] = None) -> Optional[EnrichmentResult]:
        """
        Resolve a candidate to a canonical place.

        Args:
            name: Candidate name
            location_hint: City/area from the content, if any

        Returns:
            EnrichmentResult, or None when nothing was found or any step failed
        """
        if getattr(self.provider, "configured", True) is False:
            logger.warning("[Enrichment] Places API key missing, skipping enrichment")
            return None

        query = self.build_query(name, location_hint)
        cache_key = f"enrich:{query.lower()}"

        if self.cache is not None:
            try:
                cached = await self.cache.get(cache_key)
            except Exception as exc:
                logger.warning(f"[Enrichment] Cache read failed for '{query}': {exc}")
                cached = None
            if cached:
                try:
                    return EnrichmentResult.model_validate(cached)
                except ValidationError:
                    logger.warning(f"[Enrichment] Ignoring malformed cache entry for '{query}'")

        logger.info(f"[Enrichment] Searching for: '{query}'")
        try:
            results = await self.provider.text_search(query)
            if not results:
                logger.info(f"[Enrichment] No results for '{query}'")
                return None

            # First hit wins
            place_id = results[0].get("place_id") if isinstance(results[0], dict) else None
            if not place_id:
                logger.warning(f"[Enrichment] First result for '{query}' has no place_id")
                return None

            details = await self.provider.get_details(place_id, DETAILS_FIELDS)
            if not details:
                logger.warning(f"[Enrichment] No details for place {place_id}")
                return None

            result = build_enrichment_result(details, place_id)
        except Exception as exc:
            logger.error(f"[Enrichment] Failed for '{query}': {exc}")
            return None

        logger.info(
            f"[Enrichment] '{name}' -> {result.provider_place_id} "
            f"(rating={result.rating}, area='{result.area_name}')"
        )
        if self.cache is not None:
            try:
                await self.cache.set(cache_key, result.model_dump(mode="json"), ttl=self.cache_ttl)
            except Exception as exc:
                logger.warning(f"[Enrichment] Cache write failed for '{query}': {exc}")
        return result
