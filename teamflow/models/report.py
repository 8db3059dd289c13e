# teamflow/models/report.py
from sqlalchemy import Column, Integer, Date, DateTime, ForeignKey, Text, JSON, UniqueConstraint
from sqlalchemy.orm import relationship

from teamflow.database import Base
from teamflow.utils.clock import utcnow


class DailyReport(Base):
    __tablename__ = "daily_reports"
    __table_args__ = (
        # One report per staff member per day
        UniqueConstraint("user_id", "report_date", name="uq_daily_reports_user_date"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    report_date = Column(Date, nullable=False, index=True)
    content = Column(Text, nullable=False)
    completed_tasks = Column(JSON, nullable=False, default=list)  # task ids
    created_at = Column(DateTime, default=utcnow, nullable=False)

    user = relationship("User", back_populates="reports")

    def __repr__(self):
        return f"<DailyReport(id={self.id}, user_id={self.user_id}, date={self.report_date})>"
