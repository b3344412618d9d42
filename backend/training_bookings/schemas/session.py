"""Pydantic schemas for training sessions."""
from __future__ import annotations
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field, model_validator


class SessionCreate(BaseModel):
    course_id: str
    starts_at: datetime
    ends_at: Optional[datetime] = None
    confirm_deadline: Optional[datetime] = None
    capacity: int = Field(..., ge=1)
    status: str = "PUBLISHED"
    location: Optional[str] = None
    notes: Optional[str] = None
    company_id: Optional[str] = None  # admins only; others use their own company

    @model_validator(mode="after")
    def _check_dates(self):
        if self.ends_at is not None and self.ends_at < self.starts_at:
            raise ValueError("ends_at must not be before starts_at")
        if self.confirm_deadline is not None and self.confirm_deadline > self.starts_at:
            raise ValueError("confirm_deadline must not be after starts_at")
        return self


class SessionStatsOut(BaseModel):
    capacity: int
    priority_holds: int
    confirmed_non_priority: int
    general_remaining: int
    used: int
    is_full: bool

    model_config = {"from_attributes": True}


class SessionOut(BaseModel):
    id: str
    company_id: str
    course_id: str
    starts_at: datetime
    ends_at: Optional[datetime] = None
    confirm_deadline: Optional[datetime] = None
    capacity: int
    status: str
    location: Optional[str] = None
    notes: Optional[str] = None
    version: int
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class SessionWithStatsOut(SessionOut):
    stats: SessionStatsOut
