"""SQLAlchemy tables backing the item store."""

from datetime import datetime
from uuid import uuid4

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)

from trip_importer.database import Base


class TripGroup(Base):
    """Trip owned by the host application; only read here for existence checks."""

    __tablename__ = "trip_groups"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    name = Column(String(255), nullable=False)
    destination = Column(String(255), nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)


class SavedItemRecord(Base):
    __tablename__ = "saved_items"
    # A provider place can be saved once per trip; NULL place ids never collide
    __table_args__ = (
        UniqueConstraint("trip_group_id", "google_place_id", name="uq_saved_items_trip_place"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    trip_group_id = Column(
        String(36), ForeignKey("trip_groups.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name = Column(String(500), nullable=False)
    category = Column(String(20), nullable=False, index=True)
    description = Column(Text, nullable=False)
    location_name = Column(String(500), nullable=True)
    location_lat = Column(Float, nullable=True)
    location_lng = Column(Float, nullable=True)
    original_source_type = Column(String(20), nullable=False)
    original_source_url = Column(Text, nullable=True)
    source_title = Column(String(500), nullable=True)
    original_content = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default="saved", index=True)

    # Google Places enrichment fields
    google_place_id = Column(String(255), nullable=True, index=True)
    rating = Column(Float, nullable=True)
    user_ratings_total = Column(Integer, nullable=True)
    price_level = Column(Integer, nullable=True)
    formatted_address = Column(Text, nullable=True)
    area_name = Column(String(255), nullable=True, index=True)
    photos_json = Column(JSON, nullable=False, default=list)
    opening_hours_json = Column(JSON, nullable=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)
