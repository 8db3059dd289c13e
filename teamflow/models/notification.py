# teamflow/models/notification.py
from sqlalchemy import Column, Integer, String, Text, DateTime, Boolean, ForeignKey, Enum
from sqlalchemy.orm import relationship
import enum

from teamflow.database import Base
from teamflow.utils.clock import utcnow


class NotificationType(str, enum.Enum):
    TASK_ASSIGNED = "task_assigned"
    STATUS_CHANGED = "status_changed"
    TASK_OVERDUE = "task_overdue"
    DEADLINE_APPROACHING = "deadline_approaching"
    DAILY_REPORT_REMINDER = "daily_report_reminder"
    TASK_BLOCKED = "task_blocked"


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    # No FK: the delivery record outlives a hard-deleted task
    task_id = Column(Integer, nullable=True, index=True)
    notification_type = Column(Enum(NotificationType), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)

    # Delivery bookkeeping
    sent = Column(Boolean, default=False, nullable=False)
    error = Column(Text, nullable=True)

    is_read = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)
    read_at = Column(DateTime, nullable=True)

    user = relationship("User", back_populates="notifications")

    def __repr__(self):
        return f"<Notification(id={self.id}, user_id={self.user_id}, type='{self.notification_type}')>"
