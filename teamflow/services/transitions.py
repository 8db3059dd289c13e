# teamflow/services/transitions.py
"""
Status transition engine.

Pure decision logic: given the persisted state of a task and a requested
change, work out the new field values (including side effects) and the
single Status history entry the transition produces. Nothing here touches
the database.

There is no forbidden-transition matrix. Any status may move to any other;
who may ask is decided by the permission gate.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional

from teamflow.models import LogField, TaskStatus
from teamflow.services.audit_log import AuditLogAppender, LogEntry, describe_blocker
from teamflow.services.exceptions import TaskValidationError

# Statuses the overdue sweep never touches
OVERDUE_EXEMPT = frozenset({TaskStatus.DONE, TaskStatus.OVERDUE})

# Statuses a deadline extension lifts back to IN_PROGRESS
RESUMABLE_ON_EXTENSION = frozenset({TaskStatus.OVERDUE, TaskStatus.BLOCKER})

SYSTEM_OVERDUE_DETAILS = "System: automatically moved to OVERDUE due to passed deadline"
SYSTEM_RESUMED_DETAILS = "System: deadline extended, automatically moved to IN_PROGRESS"


@dataclass
class Transition:
    old_status: TaskStatus
    new_status: TaskStatus
    changes: Dict[str, Any] = field(default_factory=dict)
    entry: Optional[LogEntry] = None


def is_overdue(status, deadline: datetime, now: datetime) -> bool:
    """Overdue predicate shared by the server sweep and the client projection"""
    return deadline < now and TaskStatus(status) not in OVERDUE_EXEMPT


def plan_transition(
    task,
    new_status: TaskStatus,
    appender: AuditLogAppender,
    blocker_reason: Optional[str] = None,
    blocker_related_to: Optional[str] = None,
    details: Optional[str] = None,
) -> Transition:
    """Plan an explicit status change.

    Raises TaskValidationError for a request to the status the task is
    already in, and for entering BLOCKER without a reason.
    """
    old_status = TaskStatus(task.status)
    new_status = TaskStatus(new_status)

    if new_status == old_status:
        raise TaskValidationError(f"Task is already {old_status.value}")

    changes: Dict[str, Any] = {"status": new_status}

    if new_status == TaskStatus.DONE:
        changes["progress"] = 100

    if new_status == TaskStatus.BLOCKER:
        reason = (blocker_reason or "").strip()
        if not reason:
            raise TaskValidationError("A blocker reason is required when marking a task as BLOCKER")
        related_to = (blocker_related_to or "").strip() or None
        changes["blocker_reason"] = reason
        changes["blocker_related_to"] = related_to
        # The reason rides on the single Status entry
        blocker_text = describe_blocker(reason, related_to)
        details = f"{details}; {blocker_text}" if details else blocker_text
    elif old_status == TaskStatus.BLOCKER:
        changes["blocker_reason"] = None
        changes["blocker_related_to"] = None

    entry = appender.entry(LogField.STATUS, old_status, new_status, details)
    return Transition(old_status=old_status, new_status=new_status, changes=changes, entry=entry)


def plan_overdue(task, now: datetime) -> Optional[Transition]:
    """Plan the sweep's automatic OVERDUE transition, or None if not eligible"""
    if not is_overdue(task.status, task.deadline, now):
        return None
    return plan_transition(
        task,
        TaskStatus.OVERDUE,
        AuditLogAppender(),
        details=SYSTEM_OVERDUE_DETAILS,
    )


def plan_resume_on_extension(task, new_deadline: datetime, now: datetime, appender: AuditLogAppender) -> Optional[Transition]:
    """Extending the deadline of an OVERDUE or BLOCKER task resumes it.

    Only an extension into the future counts. Moving the deadline earlier,
    or later but still before `now`, leaves the status alone.
    """
    if TaskStatus(task.status) not in RESUMABLE_ON_EXTENSION:
        return None
    if new_deadline <= task.deadline or new_deadline < now:
        return None
    return plan_transition(
        task,
        TaskStatus.IN_PROGRESS,
        appender,
        details=SYSTEM_RESUMED_DETAILS,
    )


def check_blocker_edit(current_status, target_status, reason: Optional[str], related_to: Optional[str]) -> None:
    """Blocker fields are only editable while the task is (or becomes) BLOCKER.

    Values sent alongside a move out of BLOCKER are ignored; the move clears them.
    """
    if TaskStatus(target_status) == TaskStatus.BLOCKER or TaskStatus(current_status) == TaskStatus.BLOCKER:
        return
    if (reason or "").strip() or (related_to or "").strip():
        raise TaskValidationError("Blocker details can only be set on a BLOCKER task")


def check_progress(progress: Any) -> int:
    if progress is None or isinstance(progress, bool) or not isinstance(progress, int):
        raise TaskValidationError("Progress must be an integer")
    if progress < 0 or progress > 100:
        raise TaskValidationError("Progress must be between 0 and 100")
    return progress
