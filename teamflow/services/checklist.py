# teamflow/services/checklist.py
"""
Daily checklist factory.

Activating a template creates a fresh task for today. It never touches an
existing task, so it sits outside the transition engine.
"""

import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from teamflow.models import DailyTaskTemplate, LogField, Task, TaskPriority, TaskStatus, User, TASK_ROLES
from teamflow.services.audit_log import LogEntry
from teamflow.services.exceptions import (
    TaskConflictError,
    TaskPermissionError,
    TaskValidationError,
    TemplateNotFoundError,
)
from teamflow.services.task_store import TaskStore
from teamflow.utils.clock import end_of_day, start_of_day, utcnow
from teamflow.utils.permissions import PermissionGate

logger = logging.getLogger(__name__)


def list_templates(db: Session, include_inactive: bool = False) -> List[DailyTaskTemplate]:
    query = db.query(DailyTaskTemplate)
    if not include_inactive:
        query = query.filter(DailyTaskTemplate.is_active == True)  # noqa: E712
    return query.order_by(DailyTaskTemplate.category, DailyTaskTemplate.id).all()


def create_template(db: Session, actor: User, title: str, category: str) -> DailyTaskTemplate:
    if not actor.is_manager:
        raise TaskPermissionError("Only managers can create checklist templates")
    if not (title or "").strip() or not (category or "").strip():
        raise TaskValidationError("Template title and category are required")

    template = DailyTaskTemplate(title=title.strip(), category=category.strip(), is_active=True)
    try:
        db.add(template)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(template)
    logger.info(f"Checklist template created: {template.id} by {actor.email}")
    return template


def activate_template(
    db: Session,
    actor: User,
    template_id: int,
    assignee_id: Optional[int] = None,
    now: Optional[datetime] = None,
) -> Task:
    """Create today's task from a checklist template.

    The task starts IN_PROGRESS with a deadline at the end of the current
    day and a single System history entry. Activating the same template for
    the same person twice on one day is a conflict.
    """
    now = now or utcnow()
    template = db.query(DailyTaskTemplate).filter(DailyTaskTemplate.id == template_id).first()
    if template is None or not template.is_active:
        raise TemplateNotFoundError(template_id)

    assignee = actor
    if assignee_id is not None and assignee_id != actor.id:
        assignee = db.query(User).filter(User.id == assignee_id).first()
        if assignee is None or not assignee.is_active:
            raise TaskValidationError("Assigned user not found or inactive")

    PermissionGate(db).authorize_activation(actor, assignee)
    if assignee.role not in TASK_ROLES:
        raise TaskValidationError("Checklist tasks can only be activated for department staff")

    existing = db.query(Task).filter(
        Task.template_id == template.id,
        Task.assigned_to == assignee.id,
        Task.created_at >= start_of_day(now),
        Task.created_at <= end_of_day(now),
    ).first()
    if existing is not None:
        raise TaskConflictError(
            f"'{template.title}' was already activated today for {assignee.name} (task {existing.id})",
            current_version=existing.version,
        )

    fields = {
        "title": template.title,
        "purpose": f"Daily checklist: {template.category}",
        "description": "",
        "role": assignee.role,
        "priority": TaskPriority.MEDIUM,
        "status": TaskStatus.IN_PROGRESS,
        "progress": 0,
        "deadline": end_of_day(now),
        "assigned_to": assignee.id,
        "created_by": actor.id,
        "template_id": template.id,
    }
    entry = LogEntry(
        field=LogField.SYSTEM.value,
        old_value="Template",
        new_value=TaskStatus.IN_PROGRESS.value,
        details=f"Activated by {actor.name}",
        actor_id=actor.id,
    )
    task = TaskStore(db).create_task(fields, [entry], now=now)
    logger.info(f"Checklist template {template.id} activated as task {task.id} for {assignee.email}")
    return task
