# teamflow/services/task_service.py
"""
Task mutations: permission gate -> transition engine -> audit log -> store.

Each public method is one atomic unit against the store. Notifications are
not sent from here; callers dispatch them after the commit using the
returned TaskChange.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from teamflow.models import Task, TaskStatus, TaskPriority, User, UpdateLog, TASK_ROLES
from teamflow.services.audit_log import AuditLogAppender, LogEntry
from teamflow.services.exceptions import TaskValidationError
from teamflow.services.task_store import TaskFilter, TaskStore
from teamflow.services.transitions import (
    check_blocker_edit,
    check_progress,
    plan_resume_on_extension,
    plan_transition,
)
from teamflow.utils.clock import utcnow
from teamflow.utils.permissions import PermissionGate

logger = logging.getLogger(__name__)

REQUIRED_TEXT_FIELDS = ("title", "purpose")

# Fields that cannot be cleared by sending null
NON_NULLABLE_FIELDS = ("title", "purpose", "description", "role", "priority", "status", "progress", "deadline", "assigned_to")


@dataclass
class TaskChange:
    """What a committed mutation did, for post-commit notification dispatch"""

    task: Task
    old_status: TaskStatus
    new_status: TaskStatus
    reassigned: bool = False
    entries: List[LogEntry] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.entries)


def _require_text(data: Dict[str, Any], name: str) -> None:
    if name in data and not (data[name] or "").strip():
        raise TaskValidationError(f"{name.capitalize()} is required")


class TaskService:
    def __init__(self, db: Session):
        self.db = db
        self.store = TaskStore(db)
        self.gate = PermissionGate(db)

    @staticmethod
    def _appender(actor: User) -> AuditLogAppender:
        return AuditLogAppender(actor_id=actor.id, actor_label=actor.email)

    def list_tasks(
        self,
        actor: User,
        role=None,
        status: Optional[TaskStatus] = None,
        assigned_to: Optional[int] = None,
    ) -> List[Task]:
        task_filter = TaskFilter(role=role, status=status, assigned_to=assigned_to)
        if not self.gate.is_manager(actor):
            task_filter.visible_to_user_id = actor.id
            task_filter.visible_to_role = actor.role
        return self.store.list_tasks(task_filter)

    def get_task(self, actor: User, task_id: int) -> Task:
        task = self.store.get_task(task_id)
        self.gate.authorize_view(actor, task)
        return task

    def assignee_candidates(self, actor: User, task_id: int, role=None) -> List[User]:
        """Staff the task may be reassigned to; follows a pending role change if given"""
        task = self.get_task(actor, task_id)
        return self.gate.assignee_candidates(role or task.role)

    def create_task(self, actor: User, data: Dict[str, Any]) -> Task:
        self.gate.authorize_create(actor)

        for name in REQUIRED_TEXT_FIELDS:
            if not (data.get(name) or "").strip():
                raise TaskValidationError(f"{name.capitalize()} is required")
        if data.get("deadline") is None:
            raise TaskValidationError("Deadline is required")

        role = data["role"]
        assignee = self.gate.validate_assignee(data["assigned_to"], role)

        fields = {
            "title": data["title"].strip(),
            "purpose": data["purpose"].strip(),
            "description": data.get("description") or "",
            "role": role,
            "priority": data.get("priority") or TaskPriority.MEDIUM,
            "status": TaskStatus.TODO,
            "progress": 0,
            "deadline": data["deadline"],
            "assigned_to": assignee.id,
            "created_by": actor.id,
        }
        task = self.store.create_task(fields, [self._appender(actor).creation_entry()])
        logger.info(f"Task created: {task.id} by {actor.email}")
        return task

    def update_task(
        self,
        actor: User,
        task_id: int,
        changes: Dict[str, Any],
        comments: Iterable[str] = (),
        expected_version: Optional[int] = None,
    ) -> TaskChange:
        """Apply a batch of field edits plus optional comments in one transaction"""
        changes = dict(changes)
        comments = [c for c in comments if c and c.strip()]

        task = self.store.get_task(task_id, for_update=True)
        if not changes and not comments:
            raise TaskValidationError("No changes supplied")

        # Outsiders are refused even when nothing would change
        self.gate.authorize_update(actor, task, ())
        self.store.check_version(task, expected_version)

        blocker_sent = "blocker_reason" in changes or "blocker_related_to" in changes
        blocker_reason = changes.pop("blocker_reason", task.blocker_reason)
        blocker_related_to = changes.pop("blocker_related_to", task.blocker_related_to)

        # Permission covers the fields that actually change, not every key sent
        appender = self._appender(actor)
        diff = appender.diff(task, changes)
        requested = set(diff)
        if blocker_sent:
            requested.update({"blocker_reason", "blocker_related_to"})
        if comments:
            requested.add("comment")
        self.gate.authorize_update(actor, task, requested)

        for name in NON_NULLABLE_FIELDS:
            if name in diff and diff[name] is None:
                raise TaskValidationError(f"{name.capitalize()} cannot be cleared")
        for name in REQUIRED_TEXT_FIELDS:
            _require_text(diff, name)
        if "progress" in diff:
            check_progress(diff["progress"])
        if "role" in diff and diff["role"] not in TASK_ROLES:
            raise TaskValidationError("Task role must be one of: DESIGNER, SELLER, CS")

        old_status = TaskStatus(task.status)
        target_status = TaskStatus(diff.get("status", old_status))

        check_blocker_edit(old_status, target_status, blocker_reason if blocker_sent else None,
                           blocker_related_to if blocker_sent else None)

        # Reassignment and department changes must keep the assignee in the task's department
        rendered = {}
        reassigned = "assigned_to" in diff
        if reassigned or "role" in diff:
            role = diff.get("role", task.role)
            new_assignee = self.gate.validate_assignee(diff.get("assigned_to", task.assigned_to), role)
            if reassigned:
                rendered["assigned_to"] = (task.assignee.name if task.assignee else task.assigned_to, new_assignee.name)

        transition = None
        blocker_entry = None
        if "status" in diff:
            new_status = diff.pop("status")
            if new_status == TaskStatus.DONE:
                # DONE forces 100; a progress value sent with it is not a separate change
                diff.pop("progress", None)
            transition = plan_transition(
                task,
                new_status,
                appender,
                blocker_reason=blocker_reason,
                blocker_related_to=blocker_related_to,
            )
        elif "deadline" in diff:
            transition = plan_resume_on_extension(task, diff["deadline"], utcnow(), appender)

        if transition is None and blocker_sent and old_status == TaskStatus.BLOCKER:
            reason = (blocker_reason or "").strip()
            related_to = (blocker_related_to or "").strip() or None
            if not reason:
                raise TaskValidationError("A blocked task needs a blocker reason")
            if reason != task.blocker_reason or related_to != task.blocker_related_to:
                blocker_entry = appender.blocker_entry(task, reason, related_to)
                diff["blocker_reason"] = reason
                diff["blocker_related_to"] = related_to

        entries = appender.field_entries(task, diff, rendered)
        if blocker_entry is not None:
            entries.append(blocker_entry)
        new_fields = dict(diff)
        if transition is not None:
            new_fields.update(transition.changes)
            entries.append(transition.entry)
        entries.extend(appender.comment_entries(comments))

        if not entries:
            return TaskChange(task=task, old_status=old_status, new_status=old_status)

        task = self.store.update_task_fields(task.id, expected_version, new_fields, entries)
        logger.info(f"Task updated: {task.id} by {actor.email} ({len(entries)} history entries)")
        return TaskChange(
            task=task,
            old_status=old_status,
            new_status=TaskStatus(task.status),
            reassigned=reassigned,
            entries=entries,
        )

    def change_status(
        self,
        actor: User,
        task_id: int,
        status: TaskStatus,
        blocker_reason: Optional[str] = None,
        blocker_related_to: Optional[str] = None,
        details: Optional[str] = None,
        expected_version: Optional[int] = None,
    ) -> TaskChange:
        """Explicit status transition; a request for the current status is rejected"""
        task = self.store.get_task(task_id, for_update=True)
        requested = {"status"}
        if blocker_reason is not None:
            requested.add("blocker_reason")
        if blocker_related_to is not None:
            requested.add("blocker_related_to")
        self.gate.authorize_update(actor, task, requested)
        self.store.check_version(task, expected_version)

        transition = plan_transition(
            task,
            status,
            self._appender(actor),
            blocker_reason=blocker_reason,
            blocker_related_to=blocker_related_to,
            details=details,
        )
        task = self.store.update_task_fields(task.id, expected_version, transition.changes, [transition.entry])
        logger.info(f"Task status updated: {task.id} -> {transition.new_status.value} by {actor.email}")
        return TaskChange(
            task=task,
            old_status=transition.old_status,
            new_status=transition.new_status,
            entries=[transition.entry],
        )

    def add_comment(self, actor: User, task_id: int, text: str) -> UpdateLog:
        task = self.store.get_task(task_id)
        self.gate.authorize_update(actor, task, {"comment"})
        entries = self._appender(actor).comment_entries([text])
        if not entries:
            raise TaskValidationError("Comment cannot be empty")
        return self.store.append_log(task.id, entries[0])

    def delete_task(self, actor: User, task_id: int) -> None:
        self.gate.authorize_delete(actor)
        task = self.store.get_task(task_id)
        logger.info(
            f"Deleting task {task.id} ('{task.title}') by {actor.email}; "
            f"{len(task.history)} history entries will be discarded"
        )
        self.store.delete_task(task.id)
