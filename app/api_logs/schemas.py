# app/api_logs/schemas.py

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class APILogCreate(BaseModel):
    """Payload handed to the sink for every provider call"""
    endpoint: str
    method: str
    invoice_no: Optional[str] = None
    entry_no: Optional[int] = None
    request_body: Optional[str] = None
    response_body: Optional[str] = None
    status_code: int = 0
    duration_ms: int = 0
    email: Optional[str] = None


class APILogResponse(APILogCreate):
    model_config = ConfigDict(from_attributes=True)

    id: int
    created_at: datetime
