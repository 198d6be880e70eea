"""File response schemas."""
from pydantic import BaseModel
from datetime import datetime


class FileRecordResponse(BaseModel):
    id: int
    name: str
    type: str
    size: int
    url: str
    uploaded_at: datetime

    model_config = {"from_attributes": True}
