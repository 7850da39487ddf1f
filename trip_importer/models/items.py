"""Pydantic models for saved trip items and import runs."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from trip_importer.models.places import (
    Candidate,
    CategoryEnum,
    OpeningHours,
    PhotoRef,
    SourceTypeEnum,
)


class SourceAttribution(BaseModel):
    """The shared link an import came from."""

    url: str
    source_type: SourceTypeEnum
    title: Optional[str] = None


class ExistingItemRef(BaseModel):
    """Minimal view of a saved item used for duplicate checks."""

    id: str
    name: str


class DuplicateDecision(BaseModel):
    is_duplicate: bool = False
    matched_item_id: Optional[str] = None


class SavedItemCreate(BaseModel):
    """Fields written when a candidate is persisted."""

    name: str
    category: CategoryEnum
    description: str
    location_name: Optional[str] = None
    location_lat: Optional[float] = None
    location_lng: Optional[float] = None
    source_type: SourceTypeEnum
    source_url: Optional[str] = None
    source_title: Optional[str] = None
    original_content: Optional[str] = None

    # Places provider enrichment
    provider_place_id: Optional[str] = None
    rating: Optional[float] = None
    rating_count: Optional[int] = None
    price_level: Optional[int] = None
    formatted_address: Optional[str] = None
    area_name: Optional[str] = None
    photos: List[PhotoRef] = Field(default_factory=list)
    opening_hours: Optional[OpeningHours] = None

    @classmethod
    def from_candidate(cls, candidate: Candidate, source: SourceAttribution) -> "SavedItemCreate":
        return cls(
            name=candidate.name,
            category=candidate.category,
            description=candidate.description,
            location_name=candidate.location_hint,
            source_type=source.source_type,
            source_url=source.url,
            source_title=source.title,
            original_content=candidate.original_content,
        )


class SavedItem(SavedItemCreate):
    """A persisted item as returned by the item store."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    trip_id: str
    status: str = "saved"
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ImportFailure(BaseModel):
    name: str
    error: str


class ImportSummary(BaseModel):
    """Outcome of one import run."""

    saved_count: int = 0
    skipped_duplicate_count: int = 0
    failed_count: int = 0
    saved_items: List[SavedItem] = Field(default_factory=list)
    failures: List[ImportFailure] = Field(default_factory=list)

    @property
    def processed_count(self) -> int:
        return self.saved_count + self.skipped_duplicate_count + self.failed_count


# Request / response payloads for the imports router

class ExtractRequest(BaseModel):
    content: str = Field(..., min_length=1, description="Plain text of the shared content")
    source_type: SourceTypeEnum


class ExtractResponse(BaseModel):
    candidates: List[Candidate]


class ImportLocationsRequest(BaseModel):
    source: SourceAttribution
    selected_places: List[Candidate] = Field(..., min_length=1)


class ImportLocationsResponse(BaseModel):
    summary: ImportSummary
    total_selected: int
    message: str


class ProcessContentRequest(BaseModel):
    """Single-item flow: one shared piece of content becomes one saved item."""

    content: str = Field(..., min_length=1)
    source: SourceAttribution


class ProcessContentResponse(BaseModel):
    item: Optional[SavedItem] = None
    summary: ImportSummary
    message: str


class TripItemsResponse(BaseModel):
    items: List[SavedItem]
    total: int
