from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime

class RuleCreate(BaseModel):
    is_recurring: bool
    day_of_week: Optional[int] = Field(None, description="0 = domingo ... 6 = sábado (solo reglas semanales)")
    date: Optional[str] = Field(None, description="YYYY-MM-DD (solo reglas de fecha)")
    start_time: str = Field(..., description="HH:MM")
    end_time: str = Field(..., description="HH:MM")

class RulesCreate(BaseModel):
    rules: List[RuleCreate] = Field(..., min_length=1, max_length=100)

class RulesClear(BaseModel):
    dates: List[str] = Field(..., min_length=1)

class RuleOut(BaseModel):
    id: str
    provider_id: str
    is_recurring: bool
    day_of_week: Optional[int] = None
    date: Optional[str] = None
    start_time: str
    end_time: str
    created_at: Optional[datetime] = None

class TimeRangeOut(BaseModel):
    start: str
    end: str

class DayAvailabilityOut(BaseModel):
    provider_id: str
    date: str
    bookable: bool
    ranges: List[TimeRangeOut] = []
    start_hours: List[int] = []
