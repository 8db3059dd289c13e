# teamflow/schemas/checklist.py
from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime

class TemplateCreate(BaseModel):
    title: str = Field(..., min_length=1)
    category: str = Field(..., min_length=1)

class TemplateOut(BaseModel):
    id: int
    title: str
    category: str
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True

class TemplateActivate(BaseModel):
    # Defaults to the caller; managers may activate for someone else
    assigned_to: Optional[int] = None
