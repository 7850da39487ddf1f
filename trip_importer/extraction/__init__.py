"""Extraction of place candidates from shared content."""

from .content_extraction_agent import ContentExtractionAgent, candidate_from_raw

__all__ = ["ContentExtractionAgent", "candidate_from_raw"]
