# teamflow/services/scheduler.py
"""
Scheduler service for the overdue sweep, deadline reminders and other periodic jobs
"""

import asyncio
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional
from sqlalchemy.orm import Session
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from apscheduler.triggers.cron import CronTrigger
import logging

from teamflow.config.settings import settings
from teamflow.database import SessionLocal
from teamflow.models import NotificationType, StaffRole, Task, User
from teamflow.services.notification_service import NotificationService, OutgoingNotification
from teamflow.services.sweeps import SweepResult, find_deadline_approaching, run_overdue_sweep
from teamflow.services.websocket_manager import websocket_manager
from teamflow.utils.clock import utcnow

logger = logging.getLogger(__name__)


class TaskScheduler:
    """Scheduler for the overdue sweep and task-related reminders.

    Database work runs in a worker thread with its own session so the event
    loop keeps serving requests while a sweep is in progress.
    """

    def __init__(self, session_factory: Callable[[], Session] = SessionLocal, config: Optional[Dict[str, Any]] = None):
        self.session_factory = session_factory
        self.config = config or settings.SCHEDULER
        self.scheduler = AsyncIOScheduler()
        self.is_running = False
        self.catch_up: Optional[asyncio.Task] = None

    def start(self):
        """Start the scheduler"""
        if self.is_running:
            return

        # Authoritative overdue sweep, hourly by default
        self.scheduler.add_job(
            self.check_overdue_tasks,
            trigger=IntervalTrigger(minutes=self.config['overdue_interval_minutes']),
            id='check_overdue_tasks',
            name='Overdue Reconciliation Sweep',
            replace_existing=True
        )

        # Deadline reminders for the next few hours
        self.scheduler.add_job(
            self.check_deadline_approaching,
            trigger=IntervalTrigger(minutes=self.config['deadline_interval_minutes']),
            id='check_deadline_approaching',
            name='Deadline Approaching Reminders',
            replace_existing=True
        )

        self.scheduler.add_job(
            self.send_daily_report_reminders,
            trigger=CronTrigger(hour=self.config['daily_report_hour'], minute=0),
            id='daily_report_reminder',
            name='Daily Report Reminder',
            replace_existing=True
        )

        # Cleanup of old notifications daily at midnight
        self.scheduler.add_job(
            self.cleanup_old_notifications,
            trigger=CronTrigger(hour=self.config['cleanup_hour'], minute=0),
            id='cleanup_notifications',
            name='Cleanup Old Notifications',
            replace_existing=True
        )

        self.scheduler.start()
        self.is_running = True
        logger.info("Task scheduler started successfully")

        # Catch up on anything that went overdue while the server was down
        self.catch_up = asyncio.create_task(self.check_overdue_tasks())
        self.catch_up.add_done_callback(self._catch_up_done)

    @staticmethod
    def _catch_up_done(task: asyncio.Task):
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Startup overdue sweep failed: {task.exception()}")

    def stop(self):
        """Stop the scheduler"""
        if self.catch_up is not None and not self.catch_up.done():
            self.catch_up.cancel()
        self.catch_up = None
        if self.is_running:
            self.scheduler.shutdown()
            self.is_running = False
            logger.info("Task scheduler stopped")

    def _in_session(self, work: Callable[..., Any], *args):
        """Run blocking database work with a session of its own; call via asyncio.to_thread"""
        db = self.session_factory()
        try:
            return work(db, *args)
        finally:
            db.close()

    async def _deliver(self, outgoing: List[OutgoingNotification]):
        """Push on the event loop, then store the outcomes from a worker thread"""
        if not outgoing:
            return
        await NotificationService.push(outgoing)
        await asyncio.to_thread(self._in_session, NotificationService.save_delivery, outgoing)

    @staticmethod
    def _record_overdue(db: Session, task_ids: List[int], now: datetime) -> List[OutgoingNotification]:
        outgoing = []
        for task_id in task_ids:
            task = db.get(Task, task_id)
            if task is None:
                continue
            outgoing.extend(NotificationService.record(db, NotificationType.TASK_OVERDUE, task, now=now))
        return outgoing

    async def check_overdue_tasks(self, now: Optional[datetime] = None) -> SweepResult:
        """Move tasks past their deadline to OVERDUE and tell their assignees"""
        now = now or utcnow()
        logger.info("Running overdue reconciliation sweep...")
        try:
            result = await asyncio.to_thread(self._in_session, run_overdue_sweep, now)
        except Exception as e:
            logger.error(f"Error running overdue sweep: {e}")
            return SweepResult()

        if result.transitioned:
            try:
                outgoing = await asyncio.to_thread(self._in_session, self._record_overdue, result.transitioned, now)
                await self._deliver(outgoing)
            except Exception as e:
                logger.error(f"Error sending overdue notifications: {e}")

            # Open boards refresh instead of waiting for their next poll
            await websocket_manager.broadcast_to_all({"event": "tasks_overdue", "task_ids": result.transitioned})

        return result

    def _record_deadline_reminders(self, db: Session, now: datetime):
        window = timedelta(hours=self.config['deadline_window_hours'])
        since = now - timedelta(minutes=self.config['deadline_dedupe_minutes'])
        notified = []
        outgoing = []

        tasks = find_deadline_approaching(db, now, window)
        logger.info(f"Found {len(tasks)} tasks with an approaching deadline")
        for task in tasks:
            try:
                if NotificationService.recently_notified(db, task.id, NotificationType.DEADLINE_APPROACHING, since):
                    continue
                outgoing.extend(NotificationService.record(db, NotificationType.DEADLINE_APPROACHING, task, now=now))
                notified.append(task.id)
            except Exception as e:
                db.rollback()
                logger.error(f"Error recording deadline reminder for task {task.id}: {e}")
        return notified, outgoing

    async def check_deadline_approaching(self, now: Optional[datetime] = None) -> List[int]:
        """Remind assignees of tasks due soon, at most once per task per dedupe window"""
        now = now or utcnow()
        try:
            notified, outgoing = await asyncio.to_thread(self._in_session, self._record_deadline_reminders, now)
            await self._deliver(outgoing)
        except Exception as e:
            logger.error(f"Error checking approaching deadlines: {e}")
            return []
        return notified

    @staticmethod
    def _record_daily_report_reminders(db: Session, now: datetime) -> List[OutgoingNotification]:
        staff = db.query(User).filter(
            User.role != StaffRole.MANAGER,
            User.is_active == True  # noqa: E712
        ).all()
        outgoing = []
        for user in staff:
            outgoing.extend(NotificationService.record(
                db,
                NotificationType.DAILY_REPORT_REMINDER,
                recipients=[user.id],
                now=now,
            ))
        return outgoing

    async def send_daily_report_reminders(self, now: Optional[datetime] = None) -> int:
        """Ask every active non-manager to submit their daily report"""
        now = now or utcnow()
        try:
            outgoing = await asyncio.to_thread(self._in_session, self._record_daily_report_reminders, now)
            await self._deliver(outgoing)
        except Exception as e:
            logger.error(f"Error sending daily report reminders: {e}")
            return 0
        logger.info(f"Sent {len(outgoing)} daily report reminders")
        return len(outgoing)

    async def cleanup_old_notifications(self, now: Optional[datetime] = None) -> int:
        """Delete notifications past the retention period"""
        days = settings.NOTIFICATIONS['retention_days']
        try:
            count = await asyncio.to_thread(self._in_session, NotificationService.cleanup_older_than, days, now)
            logger.info(f"Cleaned up {count} notifications older than {days} days")
            return count
        except Exception as e:
            logger.error(f"Error cleaning up old notifications: {e}")
            return 0

    async def get_scheduler_status(self) -> Dict[str, Any]:
        """Get scheduler status and job information"""
        if not self.is_running:
            return {"status": "stopped", "jobs": []}

        jobs = []
        for job in self.scheduler.get_jobs():
            jobs.append({
                "id": job.id,
                "name": job.name,
                "next_run_time": job.next_run_time.isoformat() if job.next_run_time else None,
                "trigger": str(job.trigger)
            })

        return {
            "status": "running",
            "jobs": jobs
        }


# Global scheduler instance
task_scheduler = TaskScheduler()
