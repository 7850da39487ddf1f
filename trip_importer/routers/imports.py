"""Imports router - turn shared content into saved trip places."""
import logging

from fastapi import APIRouter, Depends, HTTPException, status

from trip_importer.dependencies import (
    get_extraction_agent,
    get_import_orchestrator,
    get_item_store,
    get_notification_sink,
)
from trip_importer.errors import ExtractionError, PreconditionFailure, TripNotFound
from trip_importer.extraction.content_extraction_agent import ContentExtractionAgent
from trip_importer.importing.import_orchestrator import ImportOrchestrator
from trip_importer.models.items import (
    ExtractRequest,
    ExtractResponse,
    ImportLocationsRequest,
    ImportLocationsResponse,
    ProcessContentRequest,
    ProcessContentResponse,
    TripItemsResponse,
)
from trip_importer.services.item_store import ItemStore
from trip_importer.services.notifications import NotificationSink
from trip_importer.utils.messages import build_import_confirmation, build_item_confirmation

router = APIRouter(prefix="/trips", tags=["imports"])
logger = logging.getLogger(__name__)

EXTRACTION_FAILED_DETAIL = "Couldn't understand this link. Try sharing it again or pick another one."


async def _run_import(orchestrator: ImportOrchestrator, trip_id: str, candidates, source):
    try:
        return await orchestrator.run(trip_id, candidates, source)
    except TripNotFound:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Trip not found")
    except PreconditionFailure as exc:
        logger.error(f"Import aborted for trip {trip_id}: {exc}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Failed to read trip items",
        )


async def _notify(sink: NotificationSink, trip_id: str, message: str) -> None:
    try:
        await sink.send(trip_id, message)
    except Exception as exc:
        logger.error(f"Failed to send import confirmation to trip {trip_id}: {exc}")


@router.post("/{trip_id}/extract", response_model=ExtractResponse)
async def extract_places(
    trip_id: str,
    payload: ExtractRequest,
    agent: ContentExtractionAgent = Depends(get_extraction_agent),
):
    """
    Extract place candidates from the text of a shared link.

    The client shows the candidates for selection and posts the chosen ones
    to ``/import-locations``.
    """
    try:
        candidates = await agent.extract(payload.content, payload.source_type)
    except ExtractionError as exc:
        logger.warning(f"Extraction failed for trip {trip_id}: {exc}")
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=EXTRACTION_FAILED_DETAIL,
        )
    return ExtractResponse(candidates=candidates)


@router.post("/{trip_id}/import-locations", response_model=ImportLocationsResponse)
async def import_locations(
    trip_id: str,
    payload: ImportLocationsRequest,
    orchestrator: ImportOrchestrator = Depends(get_import_orchestrator),
    sink: NotificationSink = Depends(get_notification_sink),
):
    """Import selected places into a trip and post a confirmation to its chat."""
    summary = await _run_import(orchestrator, trip_id, payload.selected_places, payload.source)

    message = build_import_confirmation(summary)
    await _notify(sink, trip_id, message)

    return ImportLocationsResponse(
        summary=summary,
        total_selected=len(payload.selected_places),
        message=message,
    )


@router.post("/{trip_id}/process-content", response_model=ProcessContentResponse)
async def process_content(
    trip_id: str,
    payload: ProcessContentRequest,
    agent: ContentExtractionAgent = Depends(get_extraction_agent),
    orchestrator: ImportOrchestrator = Depends(get_import_orchestrator),
    sink: NotificationSink = Depends(get_notification_sink),
):
    """Extract a single item from shared content and save it straight away."""
    try:
        candidate = await agent.extract_single(payload.content, payload.source.source_type)
    except ExtractionError as exc:
        logger.warning(f"Single-item extraction failed for trip {trip_id}: {exc}")
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=EXTRACTION_FAILED_DETAIL,
        )

    summary = await _run_import(orchestrator, trip_id, [candidate], payload.source)

    if summary.saved_items:
        item = summary.saved_items[0]
        message = build_item_confirmation(item.name, item.category, item.description)
    else:
        item = None
        message = build_import_confirmation(summary)
    await _notify(sink, trip_id, message)

    return ProcessContentResponse(item=item, summary=summary, message=message)


@router.get("/{trip_id}/items", response_model=TripItemsResponse)
async def list_trip_items(
    trip_id: str,
    item_store: ItemStore = Depends(get_item_store),
):
    """Saved items of a trip, newest first."""
    try:
        items = await item_store.list_by_trip(trip_id)
    except TripNotFound:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Trip not found")
    return TripItemsResponse(items=items, total=len(items))
