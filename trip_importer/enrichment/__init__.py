"""
Enrichment Module
=================

Resolves extracted candidates against the places provider and derives the
fields saved items carry (provider place id, rating, address, area name,
coordinates, photos, opening hours).
"""

from .place_enrichment_service import (
    PlaceEnrichmentService,
    build_enrichment_result,
    parse_area_name,
)

__all__ = [
    "PlaceEnrichmentService",
    "build_enrichment_result",
    "parse_area_name",
]
