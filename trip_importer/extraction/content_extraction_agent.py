"""
Content extraction agent.

Turns the plain text of a shared post/video/thread into structured place
candidates using a language model, falling back to the next model tier when
a tier fails or answers with something that is not valid JSON.
"""
import logging
from typing import Any, Dict, List, Optional, Sequence

from pydantic import ValidationError

from trip_importer.config import settings
from trip_importer.errors import ExtractionError
from trip_importer.models.places import Candidate, CategoryEnum, SourceTypeEnum
from trip_importer.services.llm_client import (
    LLMError,
    TextGenerator,
    default_model_tiers,
    parse_json_response,
)

logger = logging.getLogger(__name__)

CATEGORY_CHOICES = "|".join(c.value for c in CategoryEnum)

SYSTEM_PROMPT = (
    "You extract travel places from content people share with their trip. "
    "Only report places that the content actually names; never invent or suggest places. "
    "Respond with JSON only."
)

SOURCE_LABELS = {
    SourceTypeEnum.YOUTUBE: "YouTube video transcript/description",
    SourceTypeEnum.INSTAGRAM: "Instagram post caption",
    SourceTypeEnum.REDDIT: "Reddit discussion",
}

MULTI_PLACE_PROMPT = """Analyze this {source_label} and extract the MAJOR places (restaurants, hotels, sights, shops, activities) it recommends or visits.

RULES FOR EXTRACTION:
1. ONE ENTRY PER COMPLEX: spots inside a single complex (e.g. stalls inside a market) go into the description of ONE entry for the parent place.
2. RICH DESCRIPTIONS: put dishes, prices and tips into "description" (2-3 sentences or bullet points).
3. IGNORE TRANSIT POINTS such as airports or meeting spots unless they are a destination.
4. "category" must be exactly one of: {categories}.
5. "location" is the city/area named for the place, or null.

Content:
{content}

RESPOND ONLY WITH VALID JSON:
{{
  "places": [
    {{
      "name": "specific place name",
      "category": "{categories}",
      "description": "why it is worth visiting",
      "location": "area, city or null"
    }}
  ]
}}"""

SINGLE_ITEM_PROMPT = """Analyze the following {source_label} and extract key information.

Content:
{content}

Extract:
1. Name of the place/restaurant/activity (be specific)
2. Category (choose one: {categories})
3. Brief description (2-3 sentences highlighting key features)
4. Location name (city/area if mentioned)

Respond ONLY with a valid JSON object in this exact format:
{{
  "name": "extracted name",
  "category": "one of: {categories}",
  "description": "brief description",
  "location": "location if mentioned or null"
}}"""


class _InvalidOutput(Exception):
    """The model answered, but not with the shape we asked for."""


def _source_label(source_type: SourceTypeEnum) -> str:
    return SOURCE_LABELS.get(source_type, f"{source_type.value} content")


def candidate_from_raw(raw: Any, original_content: Optional[str] = None) -> Candidate:
    """Validate one model-produced item into a Candidate.

    Raises ``ValueError`` when ``name``, ``category`` or ``description`` is
    missing/blank or the category is outside the fixed set.
    """
    if not isinstance(raw, dict):
        raise ValueError(f"Expected an object, got {type(raw).__name__}")

    missing = [key for key in ("name", "category", "description") if not str(raw.get(key) or "").strip()]
    if missing:
        raise ValueError(f"Missing required fields: {', '.join(missing)}")

    category = str(raw["category"]).strip().lower()
    try:
        category_enum = CategoryEnum(category)
    except ValueError:
        raise ValueError(f"Unknown category '{raw['category']}'")

    hint = raw.get("location") or raw.get("location_name") or raw.get("location_hint")
    try:
        return Candidate(
            name=str(raw["name"]).strip(),
            category=category_enum,
            description=str(raw["description"]).strip(),
            location_hint=str(hint).strip() if hint and str(hint).strip().lower() != "null" else None,
            original_content=original_content,
        )
    except ValidationError as exc:
        raise ValueError(str(exc)) from exc


class ContentExtractionAgent:
    """Extracts place candidates from shared content.

    Stateless: every call is independent, and each model tier is tried at
    most once per call.
    """

    def __init__(
        self,
        generators: Optional[Sequence[TextGenerator]] = None,
        max_content_chars: Optional[int] = None,
    ):
        self.generators = list(generators) if generators is not None else default_model_tiers()
        self.max_content_chars = max_content_chars or settings.extraction_max_content_chars

    def _prepare(self, content_text: str) -> str:
        content = (content_text or "").strip()
        if not content:
            raise ExtractionError("No content to analyze")
        if len(content) > self.max_content_chars:
            logger.info(f"Truncating content from {len(content)} to {self.max_content_chars} chars")
            content = content[: self.max_content_chars]
        return content

    async def _run_tiers(self, prompt: str, parse) -> Any:
        """Try each tier in order; return the first successfully parsed answer."""
        if not self.generators:
            raise ExtractionError("No language model configured")

        last_error: Optional[Exception] = None
        for generator in self.generators:
            tier = getattr(generator, "name", type(generator).__name__)
            try:
                text = await generator.generate(prompt, system_prompt=SYSTEM_PROMPT, json_mode=True)
                return parse(text)
            except (LLMError, _InvalidOutput, ValueError) as exc:
                logger.warning(f"[Extraction] Model tier '{tier}' failed: {exc}")
                last_error = exc
            except Exception as exc:
                logger.error(f"[Extraction] Unexpected error from model tier '{tier}': {exc}")
                last_error = exc

        raise ExtractionError(f"All model tiers failed: {last_error}") from last_error

    async def extract(self, content_text: str, source_type: SourceTypeEnum) -> List[Candidate]:
        """
        Extract every place the content mentions.

        Invalid items (missing fields, category outside the fixed set) are
        dropped one by one; the call only fails when no tier returns parsable
        JSON with a ``places`` list.
        """
        content = self._prepare(content_text)
        prompt = MULTI_PLACE_PROMPT.format(
            source_label=_source_label(source_type),
            categories=CATEGORY_CHOICES,
            content=content,
        )

        def parse(text: str) -> List[Dict[str, Any]]:
            data = parse_json_response(text)
            places = data.get("places") if isinstance(data, dict) else data
            if not isinstance(places, list):
                raise _InvalidOutput("Response has no 'places' list")
            return places

        raw_places = await self._run_tiers(prompt, parse)

        candidates: List[Candidate] = []
        for index, raw in enumerate(raw_places):
            try:
                candidates.append(candidate_from_raw(raw, original_content=content))
            except ValueError as exc:
                logger.warning(f"[Extraction] Dropping item {index + 1}: {exc}")

        logger.info(
            f"[Extraction] {source_type.value}: {len(candidates)}/{len(raw_places)} candidates extracted"
        )
        return candidates

    async def extract_single(self, content_text: str, source_type: SourceTypeEnum) -> Candidate:
        """Extract exactly one item; an invalid item fails the tier, not just the item."""
        content = self._prepare(content_text)
        prompt = SINGLE_ITEM_PROMPT.format(
            source_label=_source_label(source_type),
            categories=CATEGORY_CHOICES,
            content=content,
        )

        def parse(text: str) -> Candidate:
            try:
                return candidate_from_raw(parse_json_response(text), original_content=content)
            except ValueError as exc:
                raise _InvalidOutput(str(exc)) from exc

        return await self._run_tiers(prompt, parse)
