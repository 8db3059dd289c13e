# teamflow/models/checklist.py
from sqlalchemy import Column, Integer, String, Boolean, DateTime
from sqlalchemy.orm import relationship

from teamflow.database import Base
from teamflow.utils.clock import utcnow


class DailyTaskTemplate(Base):
    __tablename__ = "daily_task_templates"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String, nullable=False)
    category = Column(String, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    tasks = relationship("Task", back_populates="template")
