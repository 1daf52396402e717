from datetime import datetime, time
from typing import List, Optional
from pydantic import BaseModel, Field, field_validator, model_validator


class PacCreate(BaseModel):
    """PAC submission as posted by the check form"""
    store: str = Field(..., min_length=1, max_length=100)
    start_time: time = Field(..., alias="startTime")
    end_time: time = Field(..., alias="endTime")
    pouches_checked: int = Field(..., alias="pouchesChecked", ge=0)

    class Config:
        populate_by_name = True

    @field_validator("store")
    @classmethod
    def store_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Store is required")
        return value

    @field_validator("start_time", "end_time", mode="before")
    @classmethod
    def strip_date_part(cls, value):
        # The form sends datetime-local values such as "2024-05-01T08:30:00"
        if isinstance(value, str) and "T" in value:
            value = value.split("T", 1)[1]
        if isinstance(value, datetime):
            value = value.time()
        return value

    @model_validator(mode="after")
    def end_not_before_start(self):
        if self.end_time < self.start_time:
            raise ValueError("End time cannot be before start time")
        return self


class PacRecord(BaseModel):
    """Check record as read back from storage, owner resolved to a username"""
    id: Optional[int] = None
    username: str
    store: str
    start_time: time
    end_time: time
    pouches_checked: int
    submission_date: Optional[datetime] = None

    class Config:
        frozen = True


class PacResponse(BaseModel):
    id: int
    username: str
    store: str
    start_time: time = Field(..., alias="startTime")
    end_time: time = Field(..., alias="endTime")
    pouches_checked: int = Field(..., alias="pouchesChecked")
    submission_date: datetime = Field(..., alias="submissionDate")

    class Config:
        populate_by_name = True


class PacPage(BaseModel):
    items: List[PacResponse]
    page: int
    size: int
    total_items: int = Field(..., alias="totalItems")
    total_pages: int = Field(..., alias="totalPages")

    class Config:
        populate_by_name = True
