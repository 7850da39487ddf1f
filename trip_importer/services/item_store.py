"""Item store: persistence boundary for saved trip items."""
import asyncio
import logging
from typing import Any, Awaitable, Dict, List, Optional, Protocol, TypeVar

from sqlalchemy import String, func, literal, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from trip_importer.config import settings
from trip_importer.database import AsyncSessionLocal
from trip_importer.errors import ItemNotFound, PersistenceConflict, TripNotFound
from trip_importer.models.items import ExistingItemRef, SavedItem, SavedItemCreate
from trip_importer.models.orm import SavedItemRecord, TripGroup

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Model field name -> saved_items column, where they differ
FIELD_TO_COLUMN = {
    "source_type": "original_source_type",
    "source_url": "original_source_url",
    "provider_place_id": "google_place_id",
    "rating_count": "user_ratings_total",
    "photos": "photos_json",
    "opening_hours": "opening_hours_json",
}

DUPLICATE_CANDIDATE_LIMIT = 5


class ItemStore(Protocol):
    """Storage collaborator consumed by the import pipeline."""

    async def ensure_trip_exists(self, trip_id: str) -> None:
        ...

    async def find_duplicate_candidates(
        self, trip_id: str, name: str, location_hint: Optional[str] = None
    ) -> List[ExistingItemRef]:
        ...

    async def list_by_trip(self, trip_id: str) -> List[SavedItem]:
        ...

    async def create(self, trip_id: str, item: SavedItemCreate) -> SavedItem:
        ...

    async def update(self, item_id: str, fields: Dict[str, Any]) -> SavedItem:
        ...


def _column_values(fields: Dict[str, Any]) -> Dict[str, Any]:
    values = {}
    for field, value in fields.items():
        if field == "photos":
            value = [p.model_dump() if hasattr(p, "model_dump") else p for p in value or []]
        elif field == "opening_hours" and value is not None and hasattr(value, "model_dump"):
            value = value.model_dump()
        elif hasattr(value, "value"):
            # str enums are stored as their plain value
            value = value.value
        values[FIELD_TO_COLUMN.get(field, field)] = value
    return values


def _to_saved_item(record: SavedItemRecord) -> SavedItem:
    return SavedItem(
        id=record.id,
        trip_id=record.trip_group_id,
        name=record.name,
        category=record.category,
        description=record.description,
        location_name=record.location_name,
        location_lat=record.location_lat,
        location_lng=record.location_lng,
        source_type=record.original_source_type,
        source_url=record.original_source_url,
        source_title=record.source_title,
        original_content=record.original_content,
        provider_place_id=record.google_place_id,
        rating=record.rating,
        rating_count=record.user_ratings_total,
        price_level=record.price_level,
        formatted_address=record.formatted_address,
        area_name=record.area_name,
        photos=record.photos_json or [],
        opening_hours=record.opening_hours_json,
        status=record.status,
        created_at=record.created_at,
        updated_at=record.updated_at,
    )


def _escape_like(column):
    """Escape LIKE wildcards stored in a column value (escape char: backslash)."""
    escaped = func.replace(column, "\\", "\\\\", type_=String)
    escaped = func.replace(escaped, "%", "\\%", type_=String)
    return func.replace(escaped, "_", "\\_", type_=String)


class SQLAlchemyItemStore:
    """ItemStore on the async SQLAlchemy engine.

    The (trip, provider place id) uniqueness invariant is enforced by the
    ``uq_saved_items_trip_place`` constraint; a violating insert surfaces as
    ``PersistenceConflict`` so callers can treat it as a per-item failure.
    Every operation is bounded by ``timeout`` seconds and raises
    ``TimeoutError`` when it runs over.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker = AsyncSessionLocal,
        timeout: Optional[float] = None,
    ):
        self.session_factory = session_factory
        self.timeout = timeout if timeout is not None else settings.database_timeout

    async def _bounded(self, operation: str, coro: Awaitable[T]) -> T:
        try:
            return await asyncio.wait_for(coro, timeout=self.timeout)
        except asyncio.TimeoutError as exc:
            logger.error(f"Item store {operation} exceeded {self.timeout}s")
            raise TimeoutError(f"Item store {operation} timed out after {self.timeout}s") from exc

    async def _ensure_trip(self, session: AsyncSession, trip_id: str) -> None:
        trip = await session.get(TripGroup, trip_id)
        if trip is None:
            raise TripNotFound(trip_id)

    async def ensure_trip_exists(self, trip_id: str) -> None:
        """Raise ``TripNotFound`` unless the trip exists."""
        await self._bounded("trip lookup", self._check_trip(trip_id))

    async def _check_trip(self, trip_id: str) -> None:
        async with self.session_factory() as session:
            await self._ensure_trip(session, trip_id)

    async def find_duplicate_candidates(
        self, trip_id: str, name: str, location_hint: Optional[str] = None
    ) -> List[ExistingItemRef]:
        """
        Return saved items in the trip that could be the same place as ``name``.

        Cheap prefilter only: substring match on the name in either direction,
        or on the location name when a hint is given. Newest first, at most 5.
        """
        return await self._bounded(
            "duplicate lookup", self._find_duplicate_candidates(trip_id, name, location_hint)
        )

    async def _find_duplicate_candidates(
        self, trip_id: str, name: str, location_hint: Optional[str]
    ) -> List[ExistingItemRef]:
        async with self.session_factory() as session:
            await self._ensure_trip(session, trip_id)

            conditions = [
                SavedItemRecord.name.icontains(name, autoescape=True),
                literal(name).ilike("%" + _escape_like(SavedItemRecord.name) + "%", escape="\\"),
            ]
            if location_hint:
                conditions.append(
                    SavedItemRecord.location_name.icontains(location_hint, autoescape=True)
                )

            result = await session.execute(
                select(SavedItemRecord.id, SavedItemRecord.name)
                .where(SavedItemRecord.trip_group_id == trip_id)
                .where(or_(*conditions))
                .order_by(SavedItemRecord.created_at.desc())
                .limit(DUPLICATE_CANDIDATE_LIMIT)
            )
            return [ExistingItemRef(id=row.id, name=row.name) for row in result]

    async def list_by_trip(self, trip_id: str) -> List[SavedItem]:
        return await self._bounded("list", self._list_by_trip(trip_id))

    async def _list_by_trip(self, trip_id: str) -> List[SavedItem]:
        async with self.session_factory() as session:
            await self._ensure_trip(session, trip_id)
            result = await session.execute(
                select(SavedItemRecord)
                .where(SavedItemRecord.trip_group_id == trip_id)
                .order_by(SavedItemRecord.created_at.desc())
            )
            return [_to_saved_item(record) for record in result.scalars()]

    async def create(self, trip_id: str, item: SavedItemCreate) -> SavedItem:
        return await self._bounded("create", self._create(trip_id, item))

    async def _create(self, trip_id: str, item: SavedItemCreate) -> SavedItem:
        async with self.session_factory() as session:
            await self._ensure_trip(session, trip_id)

            record = SavedItemRecord(trip_group_id=trip_id, **_column_values(dict(item)))
            session.add(record)
            try:
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                if item.provider_place_id:
                    logger.warning(
                        f"Uniqueness conflict saving '{item.name}' to trip {trip_id}: {exc.orig}"
                    )
                    raise PersistenceConflict(trip_id, item.provider_place_id) from exc
                raise

            await session.refresh(record)
            logger.info(f"Saved item {record.id} ('{record.name}') to trip {trip_id}")
            return _to_saved_item(record)

    async def update(self, item_id: str, fields: Dict[str, Any]) -> SavedItem:
        """Update an item in place; only the given model fields are written.

        Raises ``ValueError`` for keys that are not ``SavedItemCreate`` fields.
        """
        unknown = sorted(set(fields) - set(SavedItemCreate.model_fields))
        if unknown:
            raise ValueError(f"Unknown item fields: {', '.join(unknown)}")
        return await self._bounded("update", self._update(item_id, fields))

    async def _update(self, item_id: str, fields: Dict[str, Any]) -> SavedItem:
        async with self.session_factory() as session:
            record = await session.get(SavedItemRecord, item_id)
            if record is None:
                raise ItemNotFound(item_id)

            trip_id = record.trip_group_id
            for column, value in _column_values(fields).items():
                setattr(record, column, value)
            try:
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                raise PersistenceConflict(trip_id, fields.get("provider_place_id") or "") from exc

            await session.refresh(record)
            return _to_saved_item(record)
