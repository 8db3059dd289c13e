# teamflow/models/user.py
from sqlalchemy import Column, Integer, String, Boolean, DateTime, Enum
from sqlalchemy.orm import relationship
from teamflow.utils.clock import utcnow
import enum

from teamflow.database import Base


class StaffRole(str, enum.Enum):
    MANAGER = "MANAGER"
    DESIGNER = "DESIGNER"
    SELLER = "SELLER"
    CS = "CS"


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=False)
    role = Column(Enum(StaffRole), nullable=False, index=True)
    avatar = Column(String, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    created_tasks = relationship("Task", back_populates="creator", foreign_keys="Task.created_by")
    assigned_tasks = relationship("Task", back_populates="assignee", foreign_keys="Task.assigned_to")
    notifications = relationship("Notification", back_populates="user", cascade="all, delete-orphan")
    reports = relationship("DailyReport", back_populates="user", cascade="all, delete-orphan")

    @property
    def is_manager(self) -> bool:
        return self.role == StaffRole.MANAGER

    def __repr__(self):
        return f"<User(id={self.id}, email='{self.email}', role='{self.role}')>"
