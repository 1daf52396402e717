from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field


class AuditLogResponse(BaseModel):
    id: int
    action: str
    performed_by: str = Field(..., alias="performedBy")
    category: str
    details: Optional[str] = None
    timestamp: datetime

    class Config:
        from_attributes = True
        populate_by_name = True


class AuditLogPage(BaseModel):
    items: List[AuditLogResponse]
    page: int
    size: int
    total_items: int = Field(..., alias="totalItems")

    class Config:
        populate_by_name = True
