"""Pydantic schemas for thread records.

Learn: ThreadUpdate has every field optional — routes pass
model_dump(exclude_unset=True) to the service, so only the fields the
client actually sent are merged into the record (PATCH semantics, also
used for PUT).
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class ThreadCreate(BaseModel):
    thread_id: str = Field(..., min_length=1, max_length=100)
    is_e: bool = False
    is_c: bool = False
    is_s: bool = False
    brand: str = Field(default="", max_length=100)
    thread_count: int = Field(default=0, ge=0)


class ThreadUpdate(BaseModel):
    thread_id: Optional[str] = Field(None, min_length=1, max_length=100)
    is_e: Optional[bool] = None
    is_c: Optional[bool] = None
    is_s: Optional[bool] = None
    brand: Optional[str] = Field(None, max_length=100)
    thread_count: Optional[int] = Field(None, ge=0)


class ThreadBulkUpdateItem(ThreadUpdate):
    """One entry of a bulk update: which row, plus the fields to change."""
    id: int


class ThreadIds(BaseModel):
    ids: list[int] = Field(..., min_length=1)


class ThreadRead(BaseModel):
    id: int
    user_id: int
    thread_id: str
    is_e: bool
    is_c: bool
    is_s: bool
    brand: str
    thread_count: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}
