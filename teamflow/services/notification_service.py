import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from teamflow.models import Notification, NotificationType, Task, TaskStatus, User
from teamflow.services.audit_log import truncate_for_display
from teamflow.services.websocket_manager import websocket_manager
from teamflow.utils.clock import utcnow

logger = logging.getLogger(__name__)


@dataclass
class OutgoingNotification:
    """A recorded notification waiting to be pushed, and how the push went"""

    notification_id: int
    user_id: int
    body: Dict[str, Any]
    sent: bool = False
    error: Optional[str] = None


def _task_payload(task: Optional[Task]) -> dict:
    if task is None:
        return {}
    return {
        "id": task.id,
        "title": task.title,
        "status": task.status.value if hasattr(task.status, 'value') else str(task.status),
        "priority": task.priority.value if hasattr(task.priority, 'value') else str(task.priority),
        "progress": task.progress,
        "deadline": task.deadline.isoformat() if task.deadline else None,
    }


class NotificationService:
    """Records notifications and pushes them to connected clients.

    Nothing in here raises: a delivery problem is logged and written onto
    the notification record, and the task change that triggered it stays
    committed.
    """

    @staticmethod
    def recipients_for(kind: NotificationType, task: Optional[Task], actor: Optional[User] = None) -> List[int]:
        if task is None:
            return [actor.id] if actor is not None else []

        if kind == NotificationType.TASK_BLOCKED:
            recipients = [task.assigned_to, task.created_by]
        elif kind == NotificationType.STATUS_CHANGED:
            recipients = [task.created_by]
        else:
            # task_assigned, task_overdue, deadline_approaching
            recipients = [task.assigned_to]

        # Don't notify people about their own actions
        unique = []
        for user_id in recipients:
            if user_id is None or user_id in unique:
                continue
            if actor is not None and user_id == actor.id:
                continue
            unique.append(user_id)
        return unique

    @staticmethod
    def build_content(kind: NotificationType, task: Optional[Task], actor: Optional[User] = None, now: Optional[datetime] = None):
        now = now or utcnow()
        title_text = task.title if task is not None else ""
        actor_name = actor.name if actor is not None else "System"

        if kind == NotificationType.TASK_ASSIGNED:
            return "New Task Assigned", f"You have been assigned a new task: '{title_text}' by {actor_name}"
        if kind == NotificationType.STATUS_CHANGED:
            return "Task Completed", f"Task '{title_text}' was marked as {task.status.value} by {actor_name}"
        if kind == NotificationType.TASK_BLOCKED:
            reason = truncate_for_display(task.blocker_reason) or "no reason given"
            related = f" (related to: {task.blocker_related_to})" if task.blocker_related_to else ""
            return "Task Blocked", f"Task '{title_text}' is blocked: {reason}{related}"
        if kind == NotificationType.TASK_OVERDUE:
            return "Task Overdue", f"Task '{title_text}' is overdue since {task.deadline.strftime('%Y-%m-%d %H:%M')}"
        if kind == NotificationType.DEADLINE_APPROACHING:
            hours_left = max(0, round((task.deadline - now).total_seconds() / 3600))
            return (
                "Deadline Approaching",
                f"Task '{title_text}' is due in {hours_left} hours. "
                f"Current status: {task.status.value} ({task.progress}%)",
            )
        if kind == NotificationType.DAILY_REPORT_REMINDER:
            return "Daily Report Reminder", "Please submit your daily report before the end of the day"
        return "Task Notification", f"Update for task: {title_text}"

    @staticmethod
    def record(
        db: Session,
        kind: NotificationType,
        task: Optional[Task] = None,
        actor: Optional[User] = None,
        recipients: Optional[List[int]] = None,
        now: Optional[datetime] = None,
    ) -> List[OutgoingNotification]:
        """Write one notification row per recipient; nothing is pushed yet"""
        outgoing = []
        now = now or utcnow()
        try:
            if recipients is None:
                recipients = NotificationService.recipients_for(kind, task, actor)
            title, message = NotificationService.build_content(kind, task, actor, now)
            payload = _task_payload(task)
        except Exception as e:
            logger.error(f"Error preparing {kind.value} notification: {e}")
            return outgoing

        for user_id in recipients:
            try:
                notification = Notification(
                    user_id=user_id,
                    task_id=task.id if task is not None else None,
                    notification_type=kind,
                    title=title,
                    message=message,
                    sent=False,
                    created_at=now,
                )
                db.add(notification)
                db.commit()
                db.refresh(notification)
            except Exception as e:
                db.rollback()
                logger.error(f"Error recording {kind.value} notification for user {user_id}: {e}")
                continue

            outgoing.append(OutgoingNotification(
                notification_id=notification.id,
                user_id=user_id,
                body={
                    "id": notification.id,
                    "notification_type": kind.value,
                    "title": title,
                    "message": message,
                    "task": payload,
                    "created_at": notification.created_at.isoformat(),
                },
            ))
            logger.info(f"Notification {kind.value} for task {payload.get('id')} recorded for user {user_id}")

        return outgoing

    @staticmethod
    async def push(outgoing: List[OutgoingNotification]) -> List[OutgoingNotification]:
        """Push recorded notifications over WebSocket; touches no database"""
        for item in outgoing:
            try:
                item.sent = await websocket_manager.send_notification_to_user(
                    user_id=item.user_id,
                    notification=item.body,
                )
            except Exception as e:
                logger.error(f"Error delivering {item.body['notification_type']} notification to user {item.user_id}: {e}")
                item.sent = False
                item.error = str(e)
        return outgoing

    @staticmethod
    def save_delivery(db: Session, outgoing: List[OutgoingNotification]) -> List[Notification]:
        """Store each push outcome on its notification row"""
        notifications = []
        for item in outgoing:
            notification = db.get(Notification, item.notification_id)
            if notification is None:
                continue
            notification.sent = item.sent
            notification.error = item.error
            notifications.append(notification)
        try:
            db.commit()
        except Exception as e:
            db.rollback()
            logger.error(f"Error saving delivery state of {len(outgoing)} notifications: {e}")
        return notifications

    @staticmethod
    async def notify(
        db: Session,
        kind: NotificationType,
        task: Optional[Task] = None,
        actor: Optional[User] = None,
        recipients: Optional[List[int]] = None,
        now: Optional[datetime] = None,
    ) -> List[Notification]:
        """Create one notification per recipient and push it over WebSocket"""
        outgoing = NotificationService.record(db, kind, task, actor, recipients, now)
        await NotificationService.push(outgoing)
        return NotificationService.save_delivery(db, outgoing)

    @staticmethod
    async def notify_status_change(db: Session, task: Task, old_status: TaskStatus, new_status: TaskStatus, actor: Optional[User] = None) -> List[Notification]:
        """Only transitions into BLOCKER or DONE are worth a notification"""
        if new_status == old_status:
            return []
        if new_status == TaskStatus.BLOCKER:
            return await NotificationService.notify(db, NotificationType.TASK_BLOCKED, task, actor)
        if new_status == TaskStatus.DONE:
            return await NotificationService.notify(db, NotificationType.STATUS_CHANGED, task, actor)
        return []

    @staticmethod
    def recently_notified(db: Session, task_id: int, kind: NotificationType, since: datetime) -> bool:
        return db.query(Notification).filter(
            Notification.task_id == task_id,
            Notification.notification_type == kind,
            Notification.created_at >= since,
        ).first() is not None

    @staticmethod
    def cleanup_older_than(db: Session, days: int, now: Optional[datetime] = None) -> int:
        cutoff = (now or utcnow()) - timedelta(days=days)
        try:
            count = db.query(Notification).filter(Notification.created_at < cutoff).delete(synchronize_session=False)
            db.commit()
        except Exception:
            db.rollback()
            raise
        return count
