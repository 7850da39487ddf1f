import asyncio
import json
from unittest.mock import AsyncMock

import pytest

from trip_importer.dedup import DuplicateResolver
from trip_importer.enrichment import PlaceEnrichmentService
from trip_importer.errors import PreconditionFailure, TripNotFound
from trip_importer.importing import ImportOrchestrator, merge_enrichment
from trip_importer.models.items import SavedItem, SavedItemCreate, SourceAttribution
from trip_importer.models.places import (
    Candidate,
    CategoryEnum,
    Coordinates,
    EnrichmentResult,
    PhotoRef,
    SourceTypeEnum,
)
from trip_importer.services.llm_client import LLMError
from trip_importer.services.item_store import SQLAlchemyItemStore

from tests.conftest import TRIP_ID
from tests.fakes import FakeGenerator, FakePlacesProvider, make_details

DUPLICATE_OF_FIRST = json.dumps({"is_duplicate": True, "matched_index": 1})


def _candidate(name, category=CategoryEnum.FOOD, hint=None):
    return Candidate(name=name, category=category, description=f"{name} from the video", location_hint=hint)


def _enrichment(provider=None):
    return PlaceEnrichmentService(provider or FakePlacesProvider(), default_region="")


def _orchestrator(item_store, generator=None, enrichment=None, sleeps=None):
    async def record_sleep(seconds):
        if sleeps is not None:
            sleeps.append(seconds)

    return ImportOrchestrator(
        item_store,
        DuplicateResolver(generator or FakeGenerator()),
        enrichment or _enrichment(),
        enrich_delay=0.3,
        sleep=record_sleep,
    )


def _saved(item_id, name, **extra):
    return SavedItem(
        id=item_id,
        trip_id=TRIP_ID,
        name=name,
        category=CategoryEnum.FOOD,
        description="saved earlier",
        source_type=SourceTypeEnum.YOUTUBE,
        **extra,
    )


@pytest.mark.asyncio
async def test_second_mention_of_same_place_is_skipped(item_store, youtube_source):
    provider = FakePlacesProvider(
        search_results={"Ichiran Ramen Shibuya Shibuya": [{"place_id": "ChIJ-ichiran"}]},
        details={"ChIJ-ichiran": make_details("ChIJ-ichiran", "Ichiran Shibuya", photo_count=7)},
    )
    generator = FakeGenerator([DUPLICATE_OF_FIRST])
    orchestrator = _orchestrator(item_store, generator, _enrichment(provider))

    summary = await orchestrator.run(
        TRIP_ID,
        [_candidate("Ichiran Ramen Shibuya", hint="Shibuya"), _candidate("Ichiran", hint="Shibuya")],
        youtube_source,
    )

    assert summary.saved_count == 1
    assert summary.skipped_duplicate_count == 1
    assert summary.failed_count == 0
    assert summary.processed_count == 2
    # Only the second candidate had anything to compare against
    assert len(generator.calls) == 1
    assert "1. Ichiran Ramen Shibuya" in generator.calls[0]["prompt"]

    saved = summary.saved_items[0]
    assert saved.provider_place_id == "ChIJ-ichiran"
    assert saved.area_name == "Shibuya City"
    assert len(saved.photos) == 5
    assert saved.source_url == youtube_source.url
    assert saved.source_title == youtube_source.title
    assert len(await item_store.list_by_trip(TRIP_ID)) == 1


@pytest.mark.asyncio
async def test_reimport_of_saved_place_creates_nothing(item_store, youtube_source):
    await item_store.create(
        TRIP_ID,
        SavedItemCreate(
            name="Ichiran Ramen Shibuya",
            category=CategoryEnum.FOOD,
            description="Solo booths.",
            source_type=SourceTypeEnum.YOUTUBE,
            provider_place_id="ChIJ-ichiran",
        ),
    )
    provider = FakePlacesProvider(
        search_results={"Ichiran Tenjin": [{"place_id": "ChIJ-ichiran"}]},
        details={"ChIJ-ichiran": make_details("ChIJ-ichiran", "Ichiran Shibuya")},
    )
    orchestrator = _orchestrator(
        item_store, FakeGenerator([DUPLICATE_OF_FIRST]), _enrichment(provider)
    )

    # Prefilter hit, resolver says duplicate
    skipped = await orchestrator.run(TRIP_ID, [_candidate("Ichiran")], youtube_source)
    # No prefilter hit, enrichment lands on the same place id
    conflicted = await orchestrator.run(TRIP_ID, [_candidate("Ichiran Tenjin")], youtube_source)

    assert skipped.skipped_duplicate_count == 1
    assert skipped.saved_count == 0
    assert conflicted.saved_count == 0
    assert conflicted.failed_count == 1
    assert "ChIJ-ichiran" in conflicted.failures[0].error
    assert len(await item_store.list_by_trip(TRIP_ID)) == 1


@pytest.mark.asyncio
async def test_failures_are_isolated_per_candidate(item_store, youtube_source):
    enrichment = AsyncMock()
    enrichment.enrich.side_effect = [None, RuntimeError("places exploded"), None]
    orchestrator = _orchestrator(item_store, enrichment=enrichment)

    summary = await orchestrator.run(
        TRIP_ID,
        [_candidate("Afuri"), _candidate("Fuunji"), _candidate("Tsuta")],
        youtube_source,
    )

    assert summary.saved_count == 2
    assert summary.failed_count == 1
    assert summary.failures[0].name == "Fuunji"
    assert "places exploded" in summary.failures[0].error
    assert [item.name for item in summary.saved_items] == ["Afuri", "Tsuta"]


@pytest.mark.asyncio
async def test_unavailable_resolver_saves_the_candidate(item_store, youtube_source):
    await item_store.create(
        TRIP_ID,
        SavedItemCreate(
            name="Afuri Ebisu",
            category=CategoryEnum.FOOD,
            description="Yuzu ramen.",
            source_type=SourceTypeEnum.YOUTUBE,
        ),
    )
    generator = FakeGenerator([LLMError("HTTP 503")])

    summary = await _orchestrator(item_store, generator).run(
        TRIP_ID, [_candidate("Afuri")], youtube_source
    )

    assert len(generator.calls) == 1
    assert summary.saved_count == 1
    assert summary.skipped_duplicate_count == 0
    assert len(await item_store.list_by_trip(TRIP_ID)) == 2


@pytest.mark.asyncio
async def test_items_created_earlier_in_the_run_are_checked():
    store = AsyncMock()
    store.find_duplicate_candidates.return_value = []
    store.create.side_effect = [_saved("new-afuri", "Afuri Ebisu"), _saved("new-jangara", "Kyushu Jangara")]
    generator = FakeGenerator([DUPLICATE_OF_FIRST])
    source = SourceAttribution(url="https://www.instagram.com/p/xyz", source_type=SourceTypeEnum.INSTAGRAM)

    summary = await _orchestrator(store, generator).run(
        TRIP_ID,
        [_candidate("Afuri Ebisu"), _candidate("AFURI"), _candidate("Kyushu Jangara")],
        source,
    )

    assert summary.saved_count == 2
    assert summary.skipped_duplicate_count == 1
    # "Kyushu Jangara" shares no token with "Afuri Ebisu", so no arbitration
    assert len(generator.calls) == 1
    assert "1. Afuri Ebisu" in generator.calls[0]["prompt"]


@pytest.mark.asyncio
async def test_enrichment_calls_are_paced_and_tips_skip_enrichment(item_store, youtube_source):
    sleeps = []
    enrichment = AsyncMock()
    enrichment.enrich.return_value = None
    orchestrator = _orchestrator(item_store, enrichment=enrichment, sleeps=sleeps)

    summary = await orchestrator.run(
        TRIP_ID,
        [
            _candidate("Afuri"),
            _candidate("Carry cash for ticket machines", category=CategoryEnum.TIP),
            _candidate("Fuunji"),
            _candidate("Meiji Jingu", category=CategoryEnum.PLACE),
        ],
        youtube_source,
    )

    assert summary.saved_count == 4
    assert enrichment.enrich.await_count == 3
    assert sleeps == [0.3, 0.3]


@pytest.mark.asyncio
async def test_unknown_trip_aborts_the_batch(item_store, youtube_source):
    with pytest.raises(TripNotFound):
        await _orchestrator(item_store).run("no-such-trip", [_candidate("Afuri")], youtube_source)


@pytest.mark.asyncio
async def test_unreadable_items_abort_before_any_save(youtube_source):
    store = AsyncMock()
    store.find_duplicate_candidates.side_effect = RuntimeError("connection refused")

    with pytest.raises(PreconditionFailure) as exc_info:
        await _orchestrator(store).run(TRIP_ID, [_candidate("Afuri"), _candidate("Fuunji")], youtube_source)

    assert not isinstance(exc_info.value, TripNotFound)
    store.create.assert_not_awaited()


@pytest.mark.asyncio
async def test_later_lookup_failure_is_a_per_item_failure(youtube_source):
    store = AsyncMock()
    store.find_duplicate_candidates.side_effect = [[], RuntimeError("connection reset"), []]
    store.create.side_effect = [_saved("a", "Afuri"), _saved("t", "Tsuta")]
    enrichment = AsyncMock()
    enrichment.enrich.return_value = None

    summary = await _orchestrator(store, enrichment=enrichment).run(
        TRIP_ID, [_candidate("Afuri"), _candidate("Fuunji"), _candidate("Tsuta")], youtube_source
    )

    assert summary.saved_count == 2
    assert summary.failed_count == 1
    assert summary.failures[0].name == "Fuunji"


@pytest.mark.asyncio
async def test_empty_selection_is_an_empty_summary(item_store, youtube_source):
    summary = await _orchestrator(item_store).run(TRIP_ID, [], youtube_source)

    assert summary.processed_count == 0


def test_merge_enrichment_only_adds_data():
    item = SavedItemCreate(
        name="Ichiran",
        category=CategoryEnum.FOOD,
        description="Solo booths, order on a paper sheet.",
        location_name="Shibuya",
        source_type=SourceTypeEnum.YOUTUBE,
    )
    enrichment = EnrichmentResult(
        provider_place_id="ChIJ-ichiran",
        name="Ichiran Shibuya",
        rating=4.4,
        formatted_address="1-22-7 Jinnan, Shibuya City, Tokyo",
        area_name="Shibuya City",
        coordinates=Coordinates(lat=35.66, lng=139.70),
        photos=[PhotoRef(photo_reference="ref-1")],
    )

    merged = merge_enrichment(item, enrichment)

    assert merged.name == "Ichiran"
    assert merged.description == item.description
    assert merged.location_name == "Shibuya"
    assert merged.provider_place_id == "ChIJ-ichiran"
    assert merged.area_name == "Shibuya City"
    assert (merged.location_lat, merged.location_lng) == (35.66, 139.70)
    assert merged.photos[0].photo_reference == "ref-1"
    assert merged.price_level is None
    assert merged.opening_hours is None


def test_merge_enrichment_fills_missing_location_and_skips_empty_values():
    item = SavedItemCreate(
        name="Fuunji",
        category=CategoryEnum.FOOD,
        description="Tsukemen.",
        source_type=SourceTypeEnum.REDDIT,
    )

    merged = merge_enrichment(item, EnrichmentResult(area_name="Shinjuku City", formatted_address=""))

    assert merged.location_name == "Shinjuku City"
    assert merged.formatted_address is None
    assert merge_enrichment(item, None) is item


@pytest.mark.asyncio
async def test_store_write_timeout_is_a_per_item_failure(session_factory, youtube_source):
    store = SQLAlchemyItemStore(session_factory, timeout=0.05)

    async def stalled_create(trip_id, item):
        await asyncio.Event().wait()

    store._create = stalled_create
    enrichment = AsyncMock()
    enrichment.enrich.return_value = None

    summary = await _orchestrator(store, enrichment=enrichment).run(
        TRIP_ID, [_candidate("Afuri"), _candidate("Fuunji")], youtube_source
    )

    assert summary.saved_count == 0
    assert summary.failed_count == 2
    assert "timed out" in summary.failures[0].error


@pytest.mark.asyncio
async def test_empty_selection_for_unknown_trip_is_rejected(item_store, youtube_source):
    with pytest.raises(TripNotFound):
        await _orchestrator(item_store).run("no-such-trip", [], youtube_source)


@pytest.mark.asyncio
async def test_failing_trip_check_aborts_the_batch(youtube_source):
    store = AsyncMock()
    store.ensure_trip_exists.side_effect = TimeoutError("Item store trip lookup timed out")

    with pytest.raises(PreconditionFailure):
        await _orchestrator(store).run(TRIP_ID, [_candidate("Afuri")], youtube_source)

    store.find_duplicate_candidates.assert_not_awaited()
