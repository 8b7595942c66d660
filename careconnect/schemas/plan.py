from pydantic import BaseModel, Field
from enum import Enum
from typing import Optional, List

class PlanCategory(str, Enum):
    single_session = "single_session"
    weekly = "weekly"
    monthly = "monthly"

class PlanCreate(BaseModel):
    category: PlanCategory
    hourly_rate: float = Field(..., ge=0, le=10000)
    minimum_hours: int = Field(1, ge=1, le=12)
    description: Optional[str] = Field(None, max_length=500)
    features: List[str] = []
    active: bool = True

class PlanPatch(BaseModel):
    hourly_rate: Optional[float] = Field(None, ge=0, le=10000)
    minimum_hours: Optional[int] = Field(None, ge=1, le=12)
    description: Optional[str] = Field(None, max_length=500)
    features: Optional[List[str]] = None
    active: Optional[bool] = None

class PlanToggle(BaseModel):
    active: bool = True

class PlanOut(BaseModel):
    id: str
    provider_id: str
    category: PlanCategory
    hourly_rate: float
    minimum_hours: int
    description: Optional[str] = None
    features: List[str] = []
    active: bool = True
