"""Dependencies for FastAPI routes: wiring of the import pipeline."""
from functools import lru_cache
import logging

from fastapi import Depends

from trip_importer.config import settings
from trip_importer.dedup.duplicate_resolver import DuplicateResolver
from trip_importer.enrichment.place_enrichment_service import PlaceEnrichmentService
from trip_importer.extraction.content_extraction_agent import ContentExtractionAgent
from trip_importer.importing.import_orchestrator import ImportOrchestrator
from trip_importer.services.google_places import google_places_client
from trip_importer.services.item_store import ItemStore, SQLAlchemyItemStore
from trip_importer.services.llm_client import default_model_tiers
from trip_importer.services.notifications import NotificationSink, notification_sink
from trip_importer.services.redis_client import redis_client

logger = logging.getLogger(__name__)


@lru_cache
def get_item_store() -> ItemStore:
    return SQLAlchemyItemStore()


@lru_cache
def get_extraction_agent() -> ContentExtractionAgent:
    return ContentExtractionAgent(default_model_tiers())


@lru_cache
def get_enrichment_service() -> PlaceEnrichmentService:
    cache = redis_client if settings.enrichment_cache_enabled else None
    if not google_places_client.configured:
        logger.warning("GOOGLE_PLACES_API_KEY not set; imports will be saved without enrichment")
    return PlaceEnrichmentService(google_places_client, cache=cache)


def get_duplicate_resolver() -> DuplicateResolver:
    # Arbitration uses the primary tier only; failures fail open
    return DuplicateResolver(default_model_tiers()[0])


def get_import_orchestrator(
    item_store: ItemStore = Depends(get_item_store),
    duplicate_resolver: DuplicateResolver = Depends(get_duplicate_resolver),
    enrichment_service: PlaceEnrichmentService = Depends(get_enrichment_service),
) -> ImportOrchestrator:
    return ImportOrchestrator(item_store, duplicate_resolver, enrichment_service)


def get_notification_sink() -> NotificationSink:
    return notification_sink
