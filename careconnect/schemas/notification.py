from pydantic import BaseModel
from datetime import datetime
from typing import Optional, Dict, Any

class NotificationOut(BaseModel):
    id: str
    user_id: str
    type: str
    title: str
    message: str
    is_read: bool = False
    data: Dict[str, Any] = {}
    created_at: Optional[datetime] = None
