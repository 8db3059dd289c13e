# teamflow/schemas/dashboard.py
from pydantic import BaseModel
from typing import Dict

class DashboardStats(BaseModel):
    total_tasks: int
    by_status: Dict[str, int]
    by_role: Dict[str, int]
    by_priority: Dict[str, int]
    overdue_tasks: int
    blocked_tasks: int
    completion_rate: float
