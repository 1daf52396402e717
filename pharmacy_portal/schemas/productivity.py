from typing import List, Optional
from pydantic import BaseModel, Field

OVERALL_USERNAME = "Overall"
UNKNOWN_USERNAME = "Unknown"


class UserProductivity(BaseModel):
    """Productivity snapshot for one user, or the Overall aggregate"""
    username: str
    total_submissions: int = Field(0, alias="totalSubmissions")
    total_pouches_checked: int = Field(0, alias="totalPouchesChecked")
    avg_time_per_pouch: float = Field(0.0, alias="avgTimePerPouch")
    avg_pouches_per_hour: float = Field(0.0, alias="avgPouchesPerHour")

    class Config:
        populate_by_name = True
        frozen = True


class UserProductivityStreamItem(BaseModel):
    """Per-user stream representation: average time per pouch as an H:MM string"""
    username: str
    total_submissions: int = Field(..., alias="totalSubmissions")
    total_pouches_checked: int = Field(..., alias="totalPouchesChecked")
    avg_time_duration: str = Field(..., alias="avgTimeDuration")
    avg_pouches_per_hour: float = Field(..., alias="avgPouchesPerHour")

    class Config:
        populate_by_name = True


class ChartData(BaseModel):
    labels: List[str]
    pouches_checked: List[int] = Field(..., alias="pouchesChecked")

    class Config:
        populate_by_name = True


class OverallProductivityResponse(UserProductivity):
    chart_data: Optional[ChartData] = Field(None, alias="chartData")


class ProductivityPage(BaseModel):
    content: List[UserProductivity]
    page: int
    size: int
    total_elements: int = Field(..., alias="totalElements")
    total_pages: int = Field(..., alias="totalPages")

    class Config:
        populate_by_name = True
        frozen = True
