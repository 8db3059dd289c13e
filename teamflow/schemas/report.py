# teamflow/schemas/report.py
from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import date, datetime

from teamflow.schemas.user import UserBasic

class ReportCreate(BaseModel):
    report_date: date
    content: str = Field(..., min_length=10)
    completed_tasks: List[int] = []

class ReportOut(BaseModel):
    id: int
    user_id: int
    report_date: date
    content: str
    completed_tasks: List[int]
    created_at: datetime
    user: Optional[UserBasic] = None

    class Config:
        from_attributes = True
