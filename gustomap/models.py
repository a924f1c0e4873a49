from sqlmodel import Field, SQLModel, Relationship
from sqlalchemy import Column, DateTime, JSON
from datetime import date, datetime, timezone
from typing import Optional, List
from enum import Enum
import uuid


"""
This file contains the models for the database tables.

We have 2 tables:
    - User (with the profile shown in the app header: names and avatar)
    - Review

A review belongs to the user who wrote it. Image references are stored as an
ordered JSON list; each entry is either an absolute URL or a storage key in the
review images bucket.
"""

class PlaceCategory(str, Enum):
    RESTAURANT = "restaurant"
    BAR = "bar"
    CAFE = "cafe"

class VisitStatus(str, Enum):
    VISITED = "visited"
    WISHLIST = "wishlist"


def new_review_id() -> str:
    return uuid.uuid4().hex


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    username: str = Field(unique=True, index=True)
    hashed_password: str
    full_name: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    avatar_key: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))
    updated_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))

    # Relationships with cascade delete
    reviews: List["Review"] = Relationship(back_populates="user", sa_relationship_kwargs={"cascade": "all, delete-orphan"})

class Review(SQLModel, table=True):
    id: str = Field(default_factory=new_review_id, primary_key=True)
    user_id: int = Field(foreign_key="user.id", nullable=False, index=True)

    # Venue
    name: str
    category: PlaceCategory
    cuisine: Optional[str] = None
    location: str
    city: Optional[str] = None
    province: Optional[str] = None
    region: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    # Experience
    rating: int = Field(default=0, ge=0, le=5)
    description: str = Field(default="")
    price_per_person: Optional[float] = None
    visit_status: VisitStatus = Field(default=VisitStatus.VISITED)
    visit_date: Optional[date] = None

    image_refs: List[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    is_public: bool = Field(default=False)

    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))
    updated_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))

    # Relationships
    user: User = Relationship(back_populates="reviews")
