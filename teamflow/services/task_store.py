# teamflow/services/task_store.py
"""
Task record store.

Thin layer over the SQLAlchemy session giving the task core the storage
contract it relies on: each mutating call is one transaction that either
commits the field changes together with their history rows, or rolls back
and leaves nothing behind.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.orm import Session, joinedload, selectinload

from teamflow.models import Task, TaskStatus, StaffRole, UpdateLog
from teamflow.services.audit_log import LogEntry, attach_entries
from teamflow.services.exceptions import TaskConflictError, TaskNotFoundError
from teamflow.utils.clock import utcnow

logger = logging.getLogger(__name__)


@dataclass
class TaskFilter:
    role: Optional[StaffRole] = None
    status: Optional[TaskStatus] = None
    assigned_to: Optional[int] = None
    # Restrict to tasks visible to a non-manager: own tasks or same department
    visible_to_user_id: Optional[int] = None
    visible_to_role: Optional[StaffRole] = None


class TaskStore:
    def __init__(self, db: Session):
        self.db = db

    def _query(self):
        return self.db.query(Task).options(
            joinedload(Task.assignee),
            joinedload(Task.creator),
            selectinload(Task.history),
        )

    def create_task(self, fields: Dict[str, Any], log_entries: Iterable[LogEntry], now: Optional[datetime] = None) -> Task:
        now = now or utcnow()
        task = Task(**fields)
        task.created_at = now
        task.updated_at = now
        task.version = 1
        try:
            self.db.add(task)
            self.db.flush()
            attach_entries(task, log_entries, now)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(task)
        return task

    def get_task(self, task_id: int, for_update: bool = False) -> Task:
        query = self._query().filter(Task.id == task_id)
        if for_update:
            # Row lock on backends that support it; SQLite serialises writers anyway
            query = self.db.query(Task).filter(Task.id == task_id).with_for_update()
        task = query.first()
        if task is None:
            raise TaskNotFoundError(task_id)
        return task

    def list_tasks(self, task_filter: Optional[TaskFilter] = None) -> List[Task]:
        task_filter = task_filter or TaskFilter()
        query = self._query()

        if task_filter.visible_to_user_id is not None:
            visibility = Task.assigned_to == task_filter.visible_to_user_id
            if task_filter.visible_to_role is not None:
                visibility = visibility | (Task.role == task_filter.visible_to_role)
            query = query.filter(visibility)

        if task_filter.role is not None:
            query = query.filter(Task.role == task_filter.role)
        if task_filter.status is not None:
            query = query.filter(Task.status == task_filter.status)
        if task_filter.assigned_to is not None:
            query = query.filter(Task.assigned_to == task_filter.assigned_to)

        return query.order_by(Task.status, Task.deadline, Task.id).all()

    def check_version(self, task: Task, expected_version: Optional[int]) -> None:
        """Reject a stale write when the caller says which version it edited"""
        if expected_version is not None and expected_version != task.version:
            raise TaskConflictError(
                f"Task {task.id} was modified by someone else "
                f"(expected version {expected_version}, current version {task.version})",
                current_version=task.version,
            )

    def update_task_fields(
        self,
        task_id: int,
        expected_version: Optional[int],
        new_fields: Dict[str, Any],
        log_entries: Iterable[LogEntry],
    ) -> Task:
        """Write field changes and their history rows in one transaction.

        The row is re-read inside the transaction so the version check runs
        against committed state.
        """
        log_entries = list(log_entries)
        try:
            task = self.get_task(task_id, for_update=True)
            self.check_version(task, expected_version)

            now = utcnow()
            for field, value in new_fields.items():
                setattr(task, field, value)
            if new_fields:
                task.version = task.version + 1
                task.updated_at = now
            attach_entries(task, log_entries, now)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(task)
        return task

    def append_log(self, task_id: int, entry: LogEntry) -> UpdateLog:
        """Append a single entry without touching task fields or the version"""
        try:
            task = self.get_task(task_id, for_update=True)
            rows = attach_entries(task, [entry], utcnow())
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(rows[0])
        return rows[0]

    def delete_task(self, task_id: int) -> None:
        try:
            task = self.get_task(task_id, for_update=True)
            self.db.delete(task)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        logger.info(f"Task {task_id} deleted together with its history")
