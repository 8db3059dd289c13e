# teamflow/routers/checklist.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List, Optional

from teamflow.database import get_db
from teamflow.models import NotificationType, User
from teamflow.schemas.checklist import TemplateActivate, TemplateCreate, TemplateOut
from teamflow.schemas.task import TaskDetail
from teamflow.services import checklist
from teamflow.services.notification_service import NotificationService
from teamflow.utils.auth import get_current_user

router = APIRouter(prefix="/checklist")

@router.get("/templates", response_model=List[TemplateOut])
def list_templates(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return checklist.list_templates(db)

@router.post("/templates", response_model=TemplateOut, status_code=201)
def create_template(
    template: TemplateCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return checklist.create_template(db, current_user, template.title, template.category)

@router.post("/templates/{template_id}/activate", response_model=TaskDetail, status_code=201)
async def activate_template(
    template_id: int,
    body: Optional[TemplateActivate] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Create today's task from a checklist template"""
    assignee_id = body.assigned_to if body is not None else None
    task = checklist.activate_template(db, current_user, template_id, assignee_id=assignee_id)
    await NotificationService.notify(db, NotificationType.TASK_ASSIGNED, task, current_user)
    return task
