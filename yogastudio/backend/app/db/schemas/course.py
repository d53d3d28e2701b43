from datetime import datetime
from decimal import Decimal
from pydantic import BaseModel, Field

from ..models.course import CourseLevel


class CourseBase(BaseModel):
    title: str = Field(min_length=3, max_length=100)
    description: str | None = Field(default=None, max_length=1000)
    level: CourseLevel = CourseLevel.all_levels
    price: Decimal = Field(ge=0, le=1000, decimal_places=2)
    duration_min: int = Field(default=60, ge=15, le=180)
    capacity: int = Field(ge=1, le=50)


class CourseCreate(CourseBase):
    is_active: bool = True


class CourseUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=3, max_length=100)
    description: str | None = Field(default=None, max_length=1000)
    level: CourseLevel | None = None
    price: Decimal | None = Field(default=None, ge=0, le=1000, decimal_places=2)
    duration_min: int | None = Field(default=None, ge=15, le=180)
    capacity: int | None = Field(default=None, ge=1, le=50)
    is_active: bool | None = None


class Course(CourseBase):
    id: int
    is_active: bool
    created_at: datetime | None = None

    class Config:
        from_attributes = True
