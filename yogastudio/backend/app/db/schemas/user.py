from datetime import datetime
from pydantic import BaseModel, Field

from ..models.user import UserRole


class UserBase(BaseModel):
    email: str = Field(pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$", max_length=255)
    name: str | None = Field(default=None, max_length=255)


class UserCreate(UserBase):
    password: str = Field(min_length=8, max_length=72)


class User(UserBase):
    id: int
    role: UserRole
    created_at: datetime | None = None

    class Config:
        from_attributes = True
