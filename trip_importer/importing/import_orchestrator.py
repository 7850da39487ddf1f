"""
Import orchestrator.

Runs the per-candidate pipeline for one import request: duplicate check,
enrichment, persistence. Candidates are processed one after another so a
place saved for candidate N is visible to the duplicate check of N+1, and
so enrichment calls can be paced under the provider's rate limit.

Every per-candidate problem lands in the summary. The only error that
escapes ``run`` is ``PreconditionFailure``: the trip's items could not be
read at all.
"""
import asyncio
import logging
import re
from typing import Awaitable, Callable, Dict, List, Optional, Sequence

from trip_importer.config import settings
from trip_importer.dedup.duplicate_resolver import DuplicateResolver
from trip_importer.enrichment.place_enrichment_service import PlaceEnrichmentService
from trip_importer.errors import PersistenceConflict, PreconditionFailure
from trip_importer.models.items import (
    ExistingItemRef,
    ImportFailure,
    ImportSummary,
    SavedItemCreate,
    SourceAttribution,
)
from trip_importer.models.places import Candidate, CategoryEnum, EnrichmentResult
from trip_importer.services.item_store import ItemStore

logger = logging.getLogger(__name__)

_TOKEN_RE = re.compile(r"\w+", re.UNICODE)

# Categories without a physical location are saved without an enrichment lookup
UNENRICHED_CATEGORIES = {CategoryEnum.TIP}


def name_tokens(name: str) -> set:
    return {token for token in _TOKEN_RE.findall(name.lower()) if len(token) > 1}


def shares_name_token(a: str, b: str) -> bool:
    return bool(name_tokens(a) & name_tokens(b))


def merge_enrichment(item: SavedItemCreate, enrichment: Optional[EnrichmentResult]) -> SavedItemCreate:
    """
    Add enrichment data to an item built from a candidate.

    Only non-empty enrichment values are applied, so fields the enrichment
    did not return keep what extraction produced. Name and description
    always stay as extracted.
    """
    if enrichment is None:
        return item

    updates: Dict[str, object] = {}
    scalar_fields = {
        "provider_place_id": enrichment.provider_place_id,
        "rating": enrichment.rating,
        "rating_count": enrichment.rating_count,
        "price_level": enrichment.price_level,
        "formatted_address": enrichment.formatted_address,
        "area_name": enrichment.area_name,
        "opening_hours": enrichment.opening_hours,
    }
    for field, value in scalar_fields.items():
        if value is None or value == "":
            continue
        updates[field] = value

    if enrichment.coordinates is not None:
        updates["location_lat"] = enrichment.coordinates.lat
        updates["location_lng"] = enrichment.coordinates.lng
    if enrichment.photos:
        updates["photos"] = list(enrichment.photos)
    if not item.location_name and enrichment.area_name:
        updates["location_name"] = enrichment.area_name

    return item.model_copy(update=updates)


class ImportOrchestrator:
    """Drives an import of user-selected candidates into a trip."""

    def __init__(
        self,
        item_store: ItemStore,
        duplicate_resolver: DuplicateResolver,
        enrichment_service: PlaceEnrichmentService,
        enrich_delay: Optional[float] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.item_store = item_store
        self.duplicate_resolver = duplicate_resolver
        self.enrichment_service = enrichment_service
        self.enrich_delay = enrich_delay if enrich_delay is not None else settings.enrichment_delay_seconds
        self._sleep = sleep

    async def _existing_items(
        self,
        trip_id: str,
        candidate: Candidate,
        created_this_run: Sequence[ExistingItemRef],
    ) -> List[ExistingItemRef]:
        """Persisted look-alikes, plus items this run created that share a name token."""
        persisted = await self.item_store.find_duplicate_candidates(
            trip_id, candidate.name, candidate.location_hint
        )
        existing = list(persisted)
        seen_ids = {item.id for item in existing}
        for item in created_this_run:
            if item.id not in seen_ids and shares_name_token(item.name, candidate.name):
                existing.append(item)
                seen_ids.add(item.id)
        return existing

    @staticmethod
    def _record_failure(summary: ImportSummary, candidate: Candidate, error: Exception) -> None:
        summary.failed_count += 1
        summary.failures.append(ImportFailure(name=candidate.name, error=str(error) or type(error).__name__))

    async def run(
        self,
        trip_id: str,
        candidates: Sequence[Candidate],
        source: SourceAttribution,
    ) -> ImportSummary:
        """
        Import candidates into a trip.

        Args:
            trip_id: Target trip
            candidates: User-selected candidates, processed in order
            source: Link the candidates were extracted from

        Returns:
            ImportSummary with saved/skipped/failed counts

        Raises:
            PreconditionFailure: the trip does not exist or its existing items
                could not be read
        """
        summary = ImportSummary()
        created_this_run: List[ExistingItemRef] = []
        enriched_before = False

        logger.info(f"[Import] Importing {len(candidates)} places into trip {trip_id}")

        try:
            await self.item_store.ensure_trip_exists(trip_id)
        except PreconditionFailure:
            raise
        except Exception as exc:
            logger.error(f"[Import] Cannot read trip {trip_id}: {exc}")
            raise PreconditionFailure(f"Cannot read trip {trip_id}: {exc}") from exc

        for position, candidate in enumerate(candidates):
            try:
                existing = await self._existing_items(trip_id, candidate, created_this_run)
            except Exception as exc:
                if position == 0:
                    logger.error(f"[Import] Cannot read items of trip {trip_id}: {exc}")
                    if isinstance(exc, PreconditionFailure):
                        raise
                    raise PreconditionFailure(f"Cannot read items of trip {trip_id}: {exc}") from exc
                logger.error(f"[Import] Duplicate lookup failed for '{candidate.name}': {exc}")
                self._record_failure(summary, candidate, exc)
                continue

            try:
                decision = await self.duplicate_resolver.resolve(candidate.name, existing)
                if decision.is_duplicate:
                    logger.info(f"[Import] Skipping duplicate: {candidate.name}")
                    summary.skipped_duplicate_count += 1
                    continue

                item = SavedItemCreate.from_candidate(candidate, source)
                if candidate.category not in UNENRICHED_CATEGORIES:
                    if enriched_before and self.enrich_delay > 0:
                        await self._sleep(self.enrich_delay)
                    enriched_before = True
                    enrichment = await self.enrichment_service.enrich(candidate.name, candidate.location_hint)
                    item = merge_enrichment(item, enrichment)

                saved = await self.item_store.create(trip_id, item)
            except PersistenceConflict as exc:
                logger.warning(f"[Import] '{candidate.name}' already saved by another import: {exc}")
                self._record_failure(summary, candidate, exc)
                continue
            except Exception as exc:
                logger.error(f"[Import] Error saving place '{candidate.name}': {exc}")
                self._record_failure(summary, candidate, exc)
                continue

            summary.saved_count += 1
            summary.saved_items.append(saved)
            created_this_run.append(ExistingItemRef(id=saved.id, name=saved.name))
            logger.info(f"[Import] Saved: {candidate.name}")

        logger.info(
            f"[Import] Complete for trip {trip_id}: {summary.saved_count} saved, "
            f"{summary.skipped_duplicate_count} duplicates, {summary.failed_count} failed "
            f"of {len(candidates)}"
        )
        return summary
