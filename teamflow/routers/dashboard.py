# teamflow/routers/dashboard.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from teamflow.database import get_db
from teamflow.models import TaskPriority, TaskStatus, User, TASK_ROLES
from teamflow.schemas.dashboard import DashboardStats
from teamflow.services.task_service import TaskService
from teamflow.utils.auth import get_current_user

router = APIRouter(prefix="/dashboard", tags=["dashboard"])

@router.get("/stats", response_model=DashboardStats)
def get_dashboard_stats(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Task counts over everything the current user can see"""
    tasks = TaskService(db).list_tasks(current_user)

    by_status = {status.value: 0 for status in TaskStatus}
    by_role = {role.value: 0 for role in TASK_ROLES}
    by_priority = {priority.value: 0 for priority in TaskPriority}
    for task in tasks:
        by_status[task.status.value] += 1
        by_role[task.role.value] += 1
        by_priority[task.priority.value] += 1

    total = len(tasks)
    return {
        "total_tasks": total,
        "by_status": by_status,
        "by_role": by_role,
        "by_priority": by_priority,
        "overdue_tasks": by_status[TaskStatus.OVERDUE.value],
        "blocked_tasks": by_status[TaskStatus.BLOCKER.value],
        "completion_rate": round(by_status[TaskStatus.DONE.value] / total * 100, 1) if total else 0.0,
    }
