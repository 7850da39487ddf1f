"""Pydantic models for extracted candidates and place enrichment."""
from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any
from enum import Enum

MAX_PHOTOS = 5


class CategoryEnum(str, Enum):
    """Saved item categories."""
    FOOD = "food"
    ACCOMMODATION = "accommodation"
    PLACE = "place"
    SHOPPING = "shopping"
    ACTIVITY = "activity"
    TIP = "tip"


class SourceTypeEnum(str, Enum):
    """Where shared content came from."""
    YOUTUBE = "youtube"
    INSTAGRAM = "instagram"
    REDDIT = "reddit"
    URL = "url"
    PHOTO = "photo"
    VOICE = "voice"
    TEXT = "text"


class Candidate(BaseModel):
    """A place extracted from shared content, not yet persisted."""
    name: str = Field(..., min_length=1)
    category: CategoryEnum
    description: str
    location_hint: Optional[str] = Field(None, description="City/area mentioned in the content")
    original_content: Optional[str] = None


class Coordinates(BaseModel):
    lat: float
    lng: float


class PhotoRef(BaseModel):
    """Reference to a provider photo; the bytes are fetched by clients."""
    photo_reference: str
    width: Optional[int] = None
    height: Optional[int] = None
    html_attributions: List[str] = []


class OpeningHours(BaseModel):
    open_now: Optional[bool] = None
    weekday_text: List[str] = []
    periods: List[Dict[str, Any]] = []


class EnrichmentResult(BaseModel):
    """Canonical place data resolved from the places provider."""
    provider_place_id: Optional[str] = None
    name: Optional[str] = None
    rating: Optional[float] = None
    rating_count: Optional[int] = None
    price_level: Optional[int] = Field(None, ge=0, le=4)
    formatted_address: Optional[str] = None
    area_name: Optional[str] = None
    coordinates: Optional[Coordinates] = None
    photos: List[PhotoRef] = Field(default_factory=list, max_length=MAX_PHOTOS)
    opening_hours: Optional[OpeningHours] = None
