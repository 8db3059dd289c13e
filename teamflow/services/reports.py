# teamflow/services/reports.py
"""
Daily report submission.

Each staff member files at most one report per day, answering the 17:00
reminder. Reports never change task state.
"""

import logging
from datetime import date
from typing import Iterable, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from teamflow.models import DailyReport, Task, User
from teamflow.services.exceptions import TaskConflictError, TaskPermissionError, TaskValidationError

logger = logging.getLogger(__name__)

MIN_CONTENT_LENGTH = 10


def _check_completed_tasks(db: Session, actor: User, task_ids: Iterable[int]) -> List[int]:
    ids = list(dict.fromkeys(task_ids))
    if not ids:
        return ids
    owned = {
        task_id for (task_id,) in db.query(Task.id).filter(
            Task.id.in_(ids),
            Task.assigned_to == actor.id,
        )
    }
    missing = [task_id for task_id in ids if task_id not in owned]
    if missing:
        raise TaskValidationError(
            f"Completed tasks must be your own tasks: {', '.join(str(i) for i in missing)}"
        )
    return ids


def submit_report(
    db: Session,
    actor: User,
    report_date: date,
    content: str,
    completed_tasks: Iterable[int] = (),
) -> DailyReport:
    """File the actor's report for `report_date`; a second one for the same day is a conflict"""
    content = (content or "").strip()
    if len(content) < MIN_CONTENT_LENGTH:
        raise TaskValidationError(f"Report content must be at least {MIN_CONTENT_LENGTH} characters")

    existing = db.query(DailyReport).filter(
        DailyReport.user_id == actor.id,
        DailyReport.report_date == report_date,
    ).first()
    if existing is not None:
        raise TaskConflictError(f"Report already submitted for {report_date.isoformat()}")

    report = DailyReport(
        user_id=actor.id,
        report_date=report_date,
        content=content,
        completed_tasks=_check_completed_tasks(db, actor, completed_tasks),
    )
    try:
        db.add(report)
        db.commit()
    except IntegrityError:
        # Lost a race with a concurrent submission for the same day
        db.rollback()
        raise TaskConflictError(f"Report already submitted for {report_date.isoformat()}")
    except Exception:
        db.rollback()
        raise
    db.refresh(report)
    logger.info(f"Daily report submitted: {report.id} by {actor.email} for {report_date.isoformat()}")
    return report


def list_reports(
    db: Session,
    actor: User,
    user_id: Optional[int] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
) -> List[DailyReport]:
    """Newest first. Staff see only their own reports; managers may filter by user"""
    query = db.query(DailyReport).options(joinedload(DailyReport.user))
    if not actor.is_manager:
        if user_id is not None and user_id != actor.id:
            raise TaskPermissionError("You can only view your own reports")
        user_id = actor.id
    if user_id is not None:
        query = query.filter(DailyReport.user_id == user_id)
    if start_date is not None:
        query = query.filter(DailyReport.report_date >= start_date)
    if end_date is not None:
        query = query.filter(DailyReport.report_date <= end_date)
    return query.order_by(DailyReport.report_date.desc(), DailyReport.id.desc()).all()
