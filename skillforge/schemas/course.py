from datetime import datetime
from typing import List, Literal, Optional

from pydantic import ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from skillforge.models.base import CamelModel
from skillforge.models.course import CourseLevel, Module
from skillforge.models.user import CourseProgress

# ==================== Course Schemas ====================


class CourseBase(CamelModel):
    title: str = Field(..., min_length=5, max_length=200)
    description: str = Field(..., min_length=50, max_length=2000)
    short_description: str = Field(..., min_length=20, max_length=300)
    category: str = Field(..., min_length=1)
    subcategory: str = Field(..., min_length=1)
    level: CourseLevel
    price: float = Field(..., ge=0)
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    thumbnail: Optional[str] = None
    preview_video: Optional[str] = None
    duration: int = Field(0, ge=0)
    modules: List[Module] = Field(default_factory=list)
    requirements: List[str] = Field(default_factory=list)
    learning_outcomes: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)


class CourseCreate(CourseBase):
    pass


class CourseUpdate(CamelModel):
    title: Optional[str] = Field(None, min_length=5, max_length=200)
    description: Optional[str] = Field(None, min_length=50, max_length=2000)
    short_description: Optional[str] = Field(None, min_length=20, max_length=300)
    category: Optional[str] = Field(None, min_length=1)
    subcategory: Optional[str] = Field(None, min_length=1)
    level: Optional[CourseLevel] = None
    price: Optional[float] = Field(None, ge=0)
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    thumbnail: Optional[str] = None
    preview_video: Optional[str] = None
    duration: Optional[int] = Field(None, ge=0)
    modules: Optional[List[Module]] = None
    requirements: Optional[List[str]] = None
    learning_outcomes: Optional[List[str]] = None
    tags: Optional[List[str]] = None


class CourseStatsCorrection(CamelModel):
    rating: Optional[float] = Field(None, ge=0, le=5)
    review_count: Optional[int] = Field(None, ge=0)
    enrollment_count: Optional[int] = Field(None, ge=0)


class CourseResponse(CourseBase):
    model_config = ConfigDict(
        from_attributes=True, alias_generator=to_camel, populate_by_name=True
    )

    # Stored records were validated on write; do not re-apply create bounds
    title: str
    description: str
    short_description: str
    currency: str
    thumbnail: str

    id: str
    instructor_id: str
    instructor_name: str
    rating: float
    review_count: int
    enrollment_count: int
    is_published: bool
    created_at: datetime
    updated_at: datetime


class CourseDetailResponse(CourseResponse):
    is_enrolled: bool = False
    progress: Optional[CourseProgress] = None


class EnrollRequest(CamelModel):
    payment_intent_id: Optional[str] = None


# ==================== Filters ====================


class CourseFilter(CamelModel):
    category: Optional[str] = None
    subcategory: Optional[str] = None
    level: Optional[CourseLevel] = None
    instructor_id: Optional[str] = None
    search: Optional[str] = Field(None, min_length=1, max_length=100)
    tags: Optional[List[str]] = None
    price_min: Optional[float] = Field(None, ge=0)
    price_max: Optional[float] = Field(None, ge=0)
    rating: Optional[float] = Field(None, ge=0, le=5)

    @model_validator(mode="after")
    def check_price_range(self):
        if (
            self.price_min is not None
            and self.price_max is not None
            and self.price_min > self.price_max
        ):
            raise ValueError("priceMin must not exceed priceMax")
        return self


CourseSortField = Literal["title", "price", "rating", "enrollmentCount", "createdAt"]


class CourseSort(CamelModel):
    sort_by: CourseSortField = "createdAt"
    sort_order: Literal["asc", "desc"] = "desc"
