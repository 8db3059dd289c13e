# teamflow/models/task.py
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Enum, Text, CheckConstraint, event
from sqlalchemy.orm import relationship
import enum

from teamflow.database import Base
from teamflow.models.user import StaffRole
from teamflow.utils.clock import utcnow


class TaskStatus(str, enum.Enum):
    TODO = "TODO"
    IN_PROGRESS = "IN_PROGRESS"
    BLOCKER = "BLOCKER"
    DONE = "DONE"
    OVERDUE = "OVERDUE"


class TaskPriority(str, enum.Enum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


class LogField(str, enum.Enum):
    STATUS = "Status"
    ASSIGNED_TO = "Assigned To"
    DEADLINE = "Deadline"
    PROGRESS = "Progress"
    COMMENT = "Comment"
    TASK = "Task"
    SYSTEM = "System"
    TITLE = "Title"
    PURPOSE = "Purpose"
    DESCRIPTION = "Description"
    PRIORITY = "Priority"
    ROLE = "Role"
    BLOCKER = "Blocker"


# Roles a task can be classified under; MANAGER never owns a task
TASK_ROLES = (StaffRole.DESIGNER, StaffRole.SELLER, StaffRole.CS)


class Task(Base):
    __tablename__ = "tasks"
    __table_args__ = (
        CheckConstraint("progress >= 0 AND progress <= 100", name="ck_tasks_progress_range"),
    )

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String, nullable=False, index=True)
    purpose = Column(Text, nullable=False)
    description = Column(Text, nullable=False, default="")
    role = Column(Enum(StaffRole), nullable=False, index=True)
    priority = Column(Enum(TaskPriority), default=TaskPriority.MEDIUM, nullable=False)

    status = Column(Enum(TaskStatus), default=TaskStatus.TODO, nullable=False, index=True)
    progress = Column(Integer, default=0, nullable=False)
    deadline = Column(DateTime, nullable=False, index=True)

    assigned_to = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=False)
    template_id = Column(Integer, ForeignKey("daily_task_templates.id"), nullable=True)

    # Only meaningful while status is BLOCKER
    blocker_reason = Column(Text, nullable=True)
    blocker_related_to = Column(String, nullable=True)

    # Optimistic concurrency token, bumped on every committed field mutation
    version = Column(Integer, default=1, nullable=False)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, nullable=False)

    creator = relationship("User", foreign_keys=[created_by], back_populates="created_tasks")
    assignee = relationship("User", foreign_keys=[assigned_to], back_populates="assigned_tasks")
    template = relationship("DailyTaskTemplate", back_populates="tasks")
    history = relationship(
        "UpdateLog",
        back_populates="task",
        cascade="all, delete-orphan",
        order_by=lambda: [UpdateLog.timestamp, UpdateLog.id],
    )

    def __repr__(self):
        return f"<Task(id={self.id}, title='{self.title}', status='{self.status}')>"


class UpdateLog(Base):
    __tablename__ = "update_logs"

    id = Column(Integer, primary_key=True, index=True)
    task_id = Column(Integer, ForeignKey("tasks.id"), nullable=False, index=True)
    timestamp = Column(DateTime, default=utcnow, nullable=False, index=True)
    field = Column(String(50), nullable=False)
    old_value = Column(Text, nullable=False, default="")
    new_value = Column(Text, nullable=False, default="")
    details = Column(Text, nullable=True)
    actor_id = Column(Integer, ForeignKey("users.id"), nullable=True)

    task = relationship("Task", back_populates="history")
    actor = relationship("User", foreign_keys=[actor_id])

    def __repr__(self):
        return f"<UpdateLog(id={self.id}, task_id={self.task_id}, field='{self.field}')>"


class ImmutableLogError(RuntimeError):
    pass


@event.listens_for(UpdateLog, "before_update")
def _reject_log_update(mapper, connection, target):
    raise ImmutableLogError(f"Update log {target.id} is append-only and cannot be modified")
