# teamflow/services/audit_log.py
"""
Audit log appender.

Turns proposed field changes into UpdateLog entries. Every comparison is
made against the persisted task row that the caller re-read inside its
transaction, never against what the client believed the old value was.
Entries are only ever appended; nothing here edits an existing row.
"""

import enum
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from teamflow.models import LogField, UpdateLog

logger = logging.getLogger(__name__)

COMMENT_OLD_VALUE = "-"
COMMENT_NEW_VALUE = "Note Added"

# Task attribute -> history field label, in the order entries are written
FIELD_LABELS = {
    "title": LogField.TITLE,
    "purpose": LogField.PURPOSE,
    "description": LogField.DESCRIPTION,
    "role": LogField.ROLE,
    "priority": LogField.PRIORITY,
    "assigned_to": LogField.ASSIGNED_TO,
    "deadline": LogField.DEADLINE,
    "progress": LogField.PROGRESS,
    "status": LogField.STATUS,
}


def render_value(value: Any) -> str:
    """Render a field value the way it is stored in history"""
    if value is None:
        return ""
    if isinstance(value, enum.Enum):
        return str(value.value)
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


def truncate_for_display(text: Optional[str], limit: int = 80) -> str:
    """Shorten free text for list views; stored history is never truncated"""
    if not text:
        return ""
    if len(text) <= limit:
        return text
    return text[: limit - 1].rstrip() + "…"


@dataclass(frozen=True)
class LogEntry:
    """A history entry that has not been persisted yet"""

    field: str
    old_value: str
    new_value: str
    details: Optional[str] = None
    actor_id: Optional[int] = None

    def to_model(self, task_id: int, timestamp: datetime) -> UpdateLog:
        return UpdateLog(
            task_id=task_id,
            timestamp=timestamp,
            field=self.field,
            old_value=self.old_value,
            new_value=self.new_value,
            details=self.details,
            actor_id=self.actor_id,
        )


class AuditLogAppender:
    """Builds the history entries for one mutation by one actor"""

    def __init__(self, actor_id: Optional[int] = None, actor_label: Optional[str] = None):
        self.actor_id = actor_id
        self.actor_label = actor_label

    @property
    def default_details(self) -> Optional[str]:
        if self.actor_label:
            return f"Updated by {self.actor_label}"
        return None

    def diff(self, task, proposed: Dict[str, Any]) -> Dict[str, Any]:
        """Keep only the proposed values that differ from the persisted row"""
        changed = {}
        for field, new_value in proposed.items():
            if getattr(task, field) != new_value:
                changed[field] = new_value
        return changed

    def entry(self, field: LogField, old_value: Any, new_value: Any, details: Optional[str] = None) -> LogEntry:
        return LogEntry(
            field=field.value,
            old_value=render_value(old_value),
            new_value=render_value(new_value),
            details=details if details is not None else self.default_details,
            actor_id=self.actor_id,
        )

    def field_entries(
        self,
        task,
        changes: Dict[str, Any],
        rendered: Optional[Dict[str, tuple]] = None,
    ) -> List[LogEntry]:
        """One entry per changed field, in FIELD_LABELS order.

        `rendered` overrides the logged (old, new) pair for a field, e.g. to
        log staff names instead of ids for reassignment.
        """
        rendered = rendered or {}
        entries = []
        for field, label in FIELD_LABELS.items():
            if field not in changes:
                continue
            if field in rendered:
                old_value, new_value = rendered[field]
            else:
                old_value, new_value = getattr(task, field), changes[field]
            entries.append(self.entry(label, old_value, new_value))
        return entries

    def comment_entries(self, comments: Iterable[str]) -> List[LogEntry]:
        """Every comment gets its own entry, in the order given"""
        entries = []
        for text in comments:
            if text is None or not text.strip():
                continue
            entries.append(
                LogEntry(
                    field=LogField.COMMENT.value,
                    old_value=COMMENT_OLD_VALUE,
                    new_value=COMMENT_NEW_VALUE,
                    details=text,
                    actor_id=self.actor_id,
                )
            )
        return entries

    def blocker_entry(self, task, reason: Optional[str], related_to: Optional[str]) -> LogEntry:
        """Single entry for blocker edits made while the task stays BLOCKER"""
        return self.entry(
            LogField.BLOCKER,
            describe_blocker(task.blocker_reason, task.blocker_related_to),
            describe_blocker(reason, related_to),
        )

    def creation_entry(self) -> LogEntry:
        return LogEntry(
            field=LogField.TASK.value,
            old_value="None",
            new_value="Created",
            details=f"Created by {self.actor_label}" if self.actor_label else None,
            actor_id=self.actor_id,
        )


def describe_blocker(reason: Optional[str], related_to: Optional[str]) -> str:
    if not reason:
        return ""
    if related_to:
        return f"{reason} (related to: {related_to})"
    return reason


def attach_entries(task, entries: Iterable[LogEntry], timestamp: datetime) -> List[UpdateLog]:
    """Append pending entries to the task's history within the caller's session"""
    rows = []
    for entry in entries:
        row = entry.to_model(task.id, timestamp)
        task.history.append(row)
        rows.append(row)
    if rows:
        logger.debug(f"Appended {len(rows)} history entries to task {task.id}")
    return rows
