# teamflow/routers/task.py
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List, Optional
import logging

from teamflow.database import get_db
from teamflow.models import NotificationType, TaskStatus, User
from teamflow.schemas import task as task_schema
from teamflow.schemas.user import UserBasic, normalize_role
from teamflow.services.exceptions import TaskValidationError
from teamflow.services.notification_service import NotificationService
from teamflow.services.task_service import TaskChange, TaskService
from teamflow.utils.auth import get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tasks")


def _role_param(role: Optional[str]):
    if role is None:
        return None
    try:
        return normalize_role(role)
    except ValueError as e:
        raise TaskValidationError(str(e))


async def _dispatch(db: Session, change: TaskChange, actor: User):
    """Tell the people involved about a committed change"""
    if not change.changed:
        return
    if change.reassigned:
        await NotificationService.notify(db, NotificationType.TASK_ASSIGNED, change.task, actor)
    await NotificationService.notify_status_change(db, change.task, change.old_status, change.new_status, actor)


@router.get("/", response_model=List[task_schema.TaskOut])
def list_tasks(
    role: Optional[str] = Query(None),
    status: Optional[TaskStatus] = Query(None),
    assigned_to: Optional[int] = Query(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return TaskService(db).list_tasks(current_user, role=_role_param(role), status=status, assigned_to=assigned_to)


@router.post("/", response_model=task_schema.TaskDetail, status_code=201)
async def create_task(
    task: task_schema.TaskCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    db_task = TaskService(db).create_task(current_user, task.model_dump())
    await NotificationService.notify(db, NotificationType.TASK_ASSIGNED, db_task, current_user)
    return db_task


@router.get("/{task_id}", response_model=task_schema.TaskDetail)
def get_task(
    task_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return TaskService(db).get_task(current_user, task_id)


@router.put("/{task_id}", response_model=task_schema.TaskDetail)
async def update_task(
    task_id: int,
    task_update: task_schema.TaskUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Partial update; comments in the body are committed with the field changes"""
    change = TaskService(db).update_task(
        current_user,
        task_id,
        task_update.field_changes(),
        comments=task_update.comments,
        expected_version=task_update.expected_version,
    )
    await _dispatch(db, change, current_user)
    return change.task


@router.patch("/{task_id}/status", response_model=task_schema.TaskDetail)
async def update_task_status(
    task_id: int,
    status_update: task_schema.StatusUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    change = TaskService(db).change_status(
        current_user,
        task_id,
        status_update.status,
        blocker_reason=status_update.blocker_reason,
        blocker_related_to=status_update.blocker_related_to,
        expected_version=status_update.expected_version,
    )
    await _dispatch(db, change, current_user)
    return change.task


@router.post("/{task_id}/comments", response_model=task_schema.UpdateLogOut, status_code=201)
def add_comment(
    task_id: int,
    comment: task_schema.CommentCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return TaskService(db).add_comment(current_user, task_id, comment.text)


@router.get("/{task_id}/history", response_model=List[task_schema.UpdateLogOut])
def get_task_history(
    task_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return TaskService(db).get_task(current_user, task_id).history


@router.get("/{task_id}/assignee-candidates", response_model=List[UserBasic])
def get_assignee_candidates(
    task_id: int,
    role: Optional[str] = Query(None, description="Pending department role change"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return TaskService(db).assignee_candidates(current_user, task_id, role=_role_param(role))


@router.delete("/{task_id}", status_code=204)
def delete_task(
    task_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    TaskService(db).delete_task(current_user, task_id)
