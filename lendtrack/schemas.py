"""Request and response bodies for the JSON API."""

from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from lendtrack.models import ItemStatus, UserRole


class LendRequest(BaseModel):
    user_id: uuid.UUID
    condition_notes: str | None = Field(default=None, max_length=1000)


class ReturnRequest(BaseModel):
    return_condition_notes: str | None = Field(default=None, max_length=1000)


class LendingLogOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    item_id: uuid.UUID
    borrower_id: uuid.UUID
    borrower_name: str
    borrower_email: str
    date_lent: datetime
    date_returned: datetime | None
    condition_notes: str | None
    return_condition_notes: str | None
    is_open: bool


class ItemCreate(BaseModel):
    name: str
    category_id: uuid.UUID
    description: str | None = Field(default=None, max_length=500)


class ItemUpdate(BaseModel):
    name: str | None = None
    description: str | None = Field(default=None, max_length=500)
    category_id: uuid.UUID | None = None


class ItemStatusUpdate(BaseModel):
    status: ItemStatus


class ItemOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    description: str | None
    category_id: uuid.UUID
    status: ItemStatus
    current_borrower_id: uuid.UUID | None
    created_at: datetime
    updated_at: datetime


class CategoryIn(BaseModel):
    name: str


class CategoryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    item_count: int | None = None
    created_at: datetime
    updated_at: datetime


class UserCreate(BaseModel):
    name: str
    email: str
    role: UserRole = UserRole.STANDARD


class UserUpdate(BaseModel):
    name: str | None = None
    email: str | None = None
    role: UserRole | None = None


class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    email: str
    role: UserRole
    is_active: bool
    created_at: datetime
    updated_at: datetime


class TopBorrowerOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    name: str
    email: str
    count: int


class AnalyticsOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    status_distribution: dict[str, int]
    category_distribution: dict[str, int]
    top_borrower: TopBorrowerOut | None
