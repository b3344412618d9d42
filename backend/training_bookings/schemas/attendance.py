"""Pydantic schemas for attendance operations, rosters and suggestions."""
from __future__ import annotations
from datetime import date, datetime
from typing import Optional
from pydantic import BaseModel, Field, model_validator

from training_bookings.schemas.session import SessionOut, SessionStatsOut


class AttendanceStatusOut(BaseModel):
    session_id: str
    user_id: str
    status: str


class InviteRequest(BaseModel):
    user_ids: list[str] = Field(..., min_length=1)
    priority_user_ids: list[str] = []

    @model_validator(mode="after")
    def _priority_subset(self):
        extra = set(self.priority_user_ids) - set(self.user_ids)
        if extra:
            raise ValueError(f"priority_user_ids must be a subset of user_ids: {sorted(extra)}")
        return self


class InviteOut(BaseModel):
    inserted: int
    reinvited: int
    unchanged: int
    priority: int


class ForcePlaceRequest(BaseModel):
    user_id: str


class AttendeeOut(BaseModel):
    session_id: str
    user_id: str
    status: str
    source: str
    invited_at: Optional[datetime] = None
    booked_at: Optional[datetime] = None
    confirmed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    attended_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class RosterEntryOut(BaseModel):
    user_id: str
    name: str
    status: str
    source: str


class RosterOut(BaseModel):
    session_id: str
    stats: SessionStatsOut
    attendees: list[RosterEntryOut]


class PriorityCandidateOut(BaseModel):
    user_id: str
    name: str
    status: str
    next_due_date: Optional[date] = None
    score: int
    reason: str


class MyBookingOut(BaseModel):
    attendance: AttendeeOut
    session: SessionOut


class MyBookingsOut(BaseModel):
    upcoming: list[MyBookingOut]
    history: list[MyBookingOut]
