from .user import UserCreate, UserLogin, UserOut, UserBasic
from .tokens import Token
from .task import TaskCreate, TaskUpdate, StatusUpdate, CommentCreate, TaskOut, TaskDetail, UpdateLogOut
from .notification import NotificationOut, NotificationStats
from .checklist import TemplateCreate, TemplateOut, TemplateActivate
from .dashboard import DashboardStats
from .report import ReportCreate, ReportOut
