from .user import User, StaffRole
from .task import Task, UpdateLog, TaskStatus, TaskPriority, LogField, TASK_ROLES, ImmutableLogError
from .notification import Notification, NotificationType
from .checklist import DailyTaskTemplate
from .report import DailyReport
