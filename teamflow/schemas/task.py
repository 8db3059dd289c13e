# teamflow/schemas/task.py
from pydantic import BaseModel, Field, field_validator
from datetime import datetime
from typing import Optional, List

from teamflow.models.task import TaskStatus, TaskPriority
from teamflow.models.user import StaffRole
from teamflow.schemas.user import UserBasic, normalize_role
from teamflow.utils.clock import to_naive_utc


def normalize_priority(value):
    """'High', 'HIGH' and 'high' all mean TaskPriority.HIGH"""
    if value is None or isinstance(value, TaskPriority):
        return value
    try:
        return TaskPriority(str(value).strip().upper())
    except ValueError:
        raise ValueError(f"Unknown priority '{value}'")


def normalize_status(value):
    if value is None or isinstance(value, TaskStatus):
        return value
    key = str(value).strip().upper().replace(" ", "_").replace("-", "_")
    try:
        return TaskStatus(key)
    except ValueError:
        raise ValueError(f"Unknown status '{value}'")


def normalize_deadline(value):
    if isinstance(value, datetime):
        return to_naive_utc(value)
    return value


class TaskCreate(BaseModel):
    title: str = Field(..., min_length=1)
    purpose: str = Field(..., min_length=1)
    description: str = ""
    role: StaffRole
    priority: TaskPriority = TaskPriority.MEDIUM
    deadline: datetime
    assigned_to: int

    @field_validator('role', mode='before')
    @classmethod
    def _role(cls, v):
        return normalize_role(v)

    @field_validator('priority', mode='before')
    @classmethod
    def _priority(cls, v):
        return normalize_priority(v)

    @field_validator('deadline', mode='after')
    @classmethod
    def _deadline(cls, v):
        return normalize_deadline(v)


class TaskUpdate(BaseModel):
    """Partial update; only the fields actually sent are considered"""
    title: Optional[str] = None
    purpose: Optional[str] = None
    description: Optional[str] = None
    role: Optional[StaffRole] = None
    priority: Optional[TaskPriority] = None
    assigned_to: Optional[int] = None
    status: Optional[TaskStatus] = None
    progress: Optional[int] = Field(None, ge=0, le=100)
    deadline: Optional[datetime] = None
    blocker_reason: Optional[str] = None
    blocker_related_to: Optional[str] = None

    # Committed together with the field changes, one history entry each
    comments: List[str] = []
    # Version the client edited; omit for last-write-wins
    expected_version: Optional[int] = None

    @field_validator('role', mode='before')
    @classmethod
    def _role(cls, v):
        return normalize_role(v)

    @field_validator('priority', mode='before')
    @classmethod
    def _priority(cls, v):
        return normalize_priority(v)

    @field_validator('status', mode='before')
    @classmethod
    def _status(cls, v):
        return normalize_status(v)

    @field_validator('deadline', mode='after')
    @classmethod
    def _deadline(cls, v):
        return normalize_deadline(v)

    def field_changes(self) -> dict:
        data = self.model_dump(exclude_unset=True)
        data.pop('comments', None)
        data.pop('expected_version', None)
        return data


class StatusUpdate(BaseModel):
    status: TaskStatus
    blocker_reason: Optional[str] = None
    blocker_related_to: Optional[str] = None
    expected_version: Optional[int] = None

    @field_validator('status', mode='before')
    @classmethod
    def _status(cls, v):
        return normalize_status(v)


class CommentCreate(BaseModel):
    text: str = Field(..., min_length=1)


class UpdateLogOut(BaseModel):
    id: int
    task_id: int
    timestamp: datetime
    field: str
    old_value: str
    new_value: str
    details: Optional[str] = None
    actor_id: Optional[int] = None

    class Config:
        from_attributes = True


class TaskOut(BaseModel):
    id: int
    title: str
    purpose: str
    description: str
    role: StaffRole
    priority: TaskPriority
    status: TaskStatus
    progress: int
    deadline: datetime
    assigned_to: int
    created_by: int
    template_id: Optional[int] = None
    blocker_reason: Optional[str] = None
    blocker_related_to: Optional[str] = None
    version: int
    created_at: datetime
    updated_at: datetime
    assignee: Optional[UserBasic] = None
    creator: Optional[UserBasic] = None

    class Config:
        from_attributes = True


class TaskDetail(TaskOut):
    history: List[UpdateLogOut] = []
