from pydantic import BaseModel, Field, field_validator
from datetime import datetime
from typing import Optional, List
import re

from ..services.lifecycle import BookingStatus, Venue
from ..services.verification import ScanOutcome

_OID = re.compile(r"^[0-9a-fA-F]{24}$")

class BookingCreate(BaseModel):
    provider_id: str
    plan_id: str
    dates: List[str] = Field(..., min_length=1, max_length=31)
    start_time: str = Field(..., description="HH:MM o hh:mm AM/PM")
    duration_hours: int = Field(..., ge=1, le=24)
    venue: Venue = Venue.outside
    location: str = Field("", max_length=300)
    headcount: int = Field(1, ge=1, le=10)
    notes: Optional[str] = Field(None, max_length=1000)

    @field_validator("provider_id", "plan_id")
    @classmethod
    def validate_object_id(cls, v: str) -> str:
        if not _OID.match(v):
            raise ValueError("Formato de id inválido")
        return v

class BookingOut(BaseModel):
    id: str
    requester_id: str
    provider_id: str
    date: str
    start_time: str
    duration_hours: int
    location: str = ""
    venue: Venue
    headcount: int = 1
    status: BookingStatus
    total_price: float
    plan_category: Optional[str] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

class QuoteOut(BaseModel):
    total: float
    per_date: float
    date_amounts: List[float]
    hourly_rate: float
    surcharge: float
    hours_per_date: int
    date_count: int
    headcount: int
    currency: str

class TokenOut(BaseModel):
    booking_id: str
    token: str

class ScanIn(BaseModel):
    payload: str = Field(..., min_length=1, max_length=500)

class ScanOut(BaseModel):
    outcome: ScanOutcome
    booking: BookingOut
