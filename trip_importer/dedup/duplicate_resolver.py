"""
Duplicate resolution for imported places.

Decides whether a candidate name is the same real-world place as one of the
trip's saved items. Arbitration is a single model call; any failure of that
call maps to "not a duplicate" (fail open).
"""
import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from trip_importer.errors import ResolutionError
from trip_importer.models.items import DuplicateDecision, ExistingItemRef
from trip_importer.services.llm_client import TextGenerator, parse_json_response

logger = logging.getLogger(__name__)

ARBITRATION_PROMPT = """Check if "{name}" is the same place/item as any of these:
{numbered_items}

Respond with JSON:
{{
  "is_duplicate": true/false,
  "matched_index": index number if duplicate (null if not)
}}"""

NOT_DUPLICATE = DuplicateDecision(is_duplicate=False)


@dataclass(frozen=True)
class ResolutionResult:
    """Either a decision or the error that prevented one."""

    decision: Optional[DuplicateDecision] = None
    error: Optional[ResolutionError] = None

    @classmethod
    def ok(cls, decision: DuplicateDecision) -> "ResolutionResult":
        return cls(decision=decision)

    @classmethod
    def failed(cls, error: ResolutionError) -> "ResolutionResult":
        return cls(error=error)


def fail_open(result: ResolutionResult) -> DuplicateDecision:
    """The one place resolution errors are turned into a decision."""
    if result.error is not None or result.decision is None:
        logger.warning(f"Duplicate check unavailable, treating as new place: {result.error}")
        return NOT_DUPLICATE
    return result.decision


def decision_from_verdict(verdict: object, existing_items: Sequence[ExistingItemRef]) -> DuplicateDecision:
    """
    Map the model's JSON verdict onto the presented list.

    ``matched_index`` is 1-based. A duplicate verdict without a usable index
    (null, 0, out of range, not an integer) counts as not duplicate.
    """
    if not isinstance(verdict, dict):
        raise ResolutionError(f"Verdict is not an object: {verdict!r}")

    if verdict.get("is_duplicate") is not True:
        return NOT_DUPLICATE

    index = verdict.get("matched_index")
    if isinstance(index, bool) or not isinstance(index, int):
        return NOT_DUPLICATE
    if not 1 <= index <= len(existing_items):
        return NOT_DUPLICATE

    return DuplicateDecision(is_duplicate=True, matched_item_id=existing_items[index - 1].id)


class DuplicateResolver:
    def __init__(self, generator: TextGenerator):
        self.generator = generator

    async def arbitrate(self, candidate_name: str, existing_items: Sequence[ExistingItemRef]) -> ResolutionResult:
        """Ask the model for a verdict; never raises."""
        numbered_items = "\n".join(f"{i}. {item.name}" for i, item in enumerate(existing_items, start=1))
        prompt = ARBITRATION_PROMPT.format(name=candidate_name, numbered_items=numbered_items)

        try:
            text = await self.generator.generate(prompt, json_mode=True)
            decision = decision_from_verdict(parse_json_response(text), existing_items)
        except ResolutionError as exc:
            return ResolutionResult.failed(exc)
        except Exception as exc:
            return ResolutionResult.failed(ResolutionError(f"Arbitration call failed: {exc}"))
        return ResolutionResult.ok(decision)

    async def resolve(self, candidate_name: str, existing_items: Sequence[ExistingItemRef]) -> DuplicateDecision:
        if not existing_items:
            return NOT_DUPLICATE

        decision = fail_open(await self.arbitrate(candidate_name, existing_items))
        if decision.is_duplicate:
            logger.info(f"'{candidate_name}' matches saved item {decision.matched_item_id}")
        return decision
