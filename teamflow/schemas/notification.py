# teamflow/schemas/notification.py
from pydantic import BaseModel
from typing import Dict, Optional
from datetime import datetime
from teamflow.models.notification import NotificationType

class NotificationOut(BaseModel):
    id: int
    user_id: int
    task_id: Optional[int] = None
    notification_type: NotificationType
    title: str
    message: str
    sent: bool
    error: Optional[str] = None
    is_read: bool
    created_at: datetime
    read_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class NotificationStats(BaseModel):
    total_notifications: int
    unread_count: int
    read_count: int
    by_type: Dict[str, int]
