from pydantic import BaseModel, Field, ValidationInfo, confloat, field_validator, model_validator
from typing import Optional, List, Dict
from datetime import date, datetime
from ..models import PlaceCategory, VisitStatus

MAX_IMAGES = 5


class ReviewBase(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    category: PlaceCategory
    cuisine: Optional[str] = Field(None, max_length=50)
    location: str = Field(min_length=1, max_length=100)
    city: Optional[str] = None
    province: Optional[str] = None
    region: Optional[str] = None
    latitude: Optional[confloat(ge=-90, le=90)] = None
    longitude: Optional[confloat(ge=-180, le=180)] = None
    rating: int = Field(0, ge=0, le=5)
    description: str = Field("", max_length=500)
    price_per_person: Optional[float] = Field(None, ge=0)
    visit_status: VisitStatus = VisitStatus.VISITED
    visit_date: Optional[date] = None
    image_refs: List[str] = Field(default_factory=list, max_length=MAX_IMAGES)
    is_public: bool = False


class ReviewCreate(ReviewBase):
    """
    A review as submitted by the client.

    Field rules live on ReviewBase; the cross-field rules below only apply to
    incoming data. Pass ``context={"allow_empty_images": True}`` when
    validating an edit of an entry that never had images.
    """

    @field_validator("name", "location")
    @classmethod
    def not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value

    @model_validator(mode="after")
    def check_visit_rules(self, info: ValidationInfo) -> "ReviewCreate":
        if self.visit_status == VisitStatus.VISITED:
            if self.rating == 0:
                raise ValueError("A visited place needs a rating between 1 and 5")
            allow_empty = bool(info.context and info.context.get("allow_empty_images"))
            if not self.image_refs and not allow_empty:
                raise ValueError("Add at least one photo of a visited place")
        if (self.latitude is None) != (self.longitude is None):
            raise ValueError("Latitude and longitude must be given together")
        return self


class ReviewRead(ReviewBase):
    id: str
    user_id: int
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ReviewUpdate(BaseModel):
    name: Optional[str] = None
    category: Optional[PlaceCategory] = None
    cuisine: Optional[str] = None
    location: Optional[str] = None
    city: Optional[str] = None
    province: Optional[str] = None
    region: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    rating: Optional[int] = None
    description: Optional[str] = None
    price_per_person: Optional[float] = None
    visit_status: Optional[VisitStatus] = None
    visit_date: Optional[date] = None
    image_refs: Optional[List[str]] = None
    is_public: Optional[bool] = None


class ReviewVisibility(BaseModel):
    is_public: bool


class PublicReviewRead(BaseModel):
    """What an unauthenticated viewer of a share link gets to see."""
    id: str
    name: str
    category: PlaceCategory
    rating: int
    location: str
    description: str
    image_urls: List[str]
    created_at: datetime


class ReviewStats(BaseModel):
    visited: int
    wishlist: int
    restaurants: int
    bars: int
    by_category: Dict[PlaceCategory, int]
    average_rating: float


class ListRow(BaseModel):
    id: str
    name: str
    category: PlaceCategory
    location: str
    visit_status: VisitStatus
    rating: Optional[int] = None
    cover: Optional[str] = None


class MapMarker(BaseModel):
    id: str
    name: str
    category: PlaceCategory
    latitude: float
    longitude: float
    rating: Optional[int] = None
    cover: Optional[str] = None
