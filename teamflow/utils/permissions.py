# teamflow/utils/permissions.py
from typing import Iterable, List, Optional, Set

from sqlalchemy.orm import Session

from teamflow.models import User, StaffRole, Task, TASK_ROLES
from teamflow.services.exceptions import TaskPermissionError, TaskValidationError

# Every editable task field; managers may touch all of them
ALL_FIELDS = frozenset({
    "title",
    "purpose",
    "description",
    "role",
    "priority",
    "assigned_to",
    "status",
    "progress",
    "deadline",
    "blocker_reason",
    "blocker_related_to",
    "comment",
})

# What the assignee may change on their own task
ASSIGNEE_FIELDS = frozenset({
    "status",
    "progress",
    "deadline",
    "blocker_reason",
    "blocker_related_to",
    "comment",
})


class PermissionGate:
    """Decides which actor may make which change to which task.

    Decision table:
    - Manager: every field on every task, plus creation, deletion and
      reassignment
    - Assignee: status, progress, deadline, blocker fields and comments on
      their own task
    - Anyone else: read-only
    """

    def __init__(self, db: Session):
        self.db = db

    @staticmethod
    def is_manager(actor: User) -> bool:
        return actor.role == StaffRole.MANAGER

    @staticmethod
    def is_assignee(actor: User, task: Task) -> bool:
        return task.assigned_to == actor.id

    def allowed_fields(self, actor: User, task: Task) -> frozenset:
        """Fields the actor may change on this task"""
        if self.is_manager(actor):
            return ALL_FIELDS
        if self.is_assignee(actor, task):
            return ASSIGNEE_FIELDS
        return frozenset()

    def can_view_task(self, actor: User, task: Task) -> bool:
        """Managers see everything; staff see their own tasks and their department's"""
        if self.is_manager(actor):
            return True
        return self.is_assignee(actor, task) or task.role == actor.role

    def authorize_view(self, actor: User, task: Task) -> None:
        if not self.can_view_task(actor, task):
            raise TaskPermissionError("You don't have permission to view this task")

    def authorize_update(self, actor: User, task: Task, fields: Iterable[str]) -> None:
        """Reject the whole request if any requested field is off-limits"""
        requested: Set[str] = set(fields)
        allowed = self.allowed_fields(actor, task)
        if not allowed:
            raise TaskPermissionError("You don't have permission to modify this task")
        denied = requested - allowed
        if denied:
            raise TaskPermissionError(
                f"You don't have permission to change: {', '.join(sorted(denied))}"
            )

    def authorize_create(self, actor: User) -> None:
        if not self.is_manager(actor):
            raise TaskPermissionError("Only managers can create tasks")

    def authorize_delete(self, actor: User) -> None:
        if not self.is_manager(actor):
            raise TaskPermissionError("Only managers can delete tasks")

    def authorize_activation(self, actor: User, assignee: User) -> None:
        """Checklist items can be activated by a manager, or by staff for themselves"""
        if self.is_manager(actor) or actor.id == assignee.id:
            return
        raise TaskPermissionError("You can only activate checklist tasks for yourself")

    def assignee_candidates(self, role: StaffRole) -> List[User]:
        """Active staff eligible to own a task of the given department role"""
        if role not in TASK_ROLES:
            return []
        return (
            self.db.query(User)
            .filter(User.role == role, User.is_active == True)  # noqa: E712
            .order_by(User.name)
            .all()
        )

    def validate_assignee(self, assignee_id: int, role: StaffRole) -> User:
        """The assignee must be an active staff member of the task's department"""
        if role not in TASK_ROLES:
            raise TaskValidationError("Task role must be one of: DESIGNER, SELLER, CS")
        assignee: Optional[User] = self.db.query(User).filter(User.id == assignee_id).first()
        if assignee is None or not assignee.is_active:
            raise TaskValidationError("Assigned user not found or inactive")
        if assignee.role != role:
            raise TaskValidationError(
                f"Cannot assign a {role.value} task to {assignee.name} ({assignee.role.value})"
            )
        return assignee
