# teamflow/services/sweeps.py
"""
Periodic reconciliation work that runs against the database.

These functions are synchronous; the scheduler runs them in a worker
thread. Each task is reconciled in its own transaction, so a failure on one
task never undoes the others and a sweep can always be re-run from scratch.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy.orm import Session

from teamflow.models import Task, TaskStatus
from teamflow.services.exceptions import TaskConflictError, TaskNotFoundError
from teamflow.services.task_store import TaskStore
from teamflow.services.transitions import OVERDUE_EXEMPT, plan_overdue
from teamflow.utils.clock import utcnow

logger = logging.getLogger(__name__)


@dataclass
class SweepResult:
    transitioned: List[int] = field(default_factory=list)
    skipped: List[int] = field(default_factory=list)
    failed: List[int] = field(default_factory=list)


def find_overdue_candidates(db: Session, now: datetime) -> List[int]:
    """Ids matching the overdue predicate at `now`"""
    rows = (
        db.query(Task.id)
        .filter(Task.deadline < now, Task.status.notin_(list(OVERDUE_EXEMPT)))
        .order_by(Task.deadline, Task.id)
        .all()
    )
    return [row.id for row in rows]


def reconcile_task(db: Session, task_id: int, now: datetime) -> bool:
    """Move one task to OVERDUE if it still qualifies.

    The row is re-read and the predicate re-checked here, so a task that was
    completed or extended after candidate selection is left alone. Returns
    True if the task transitioned.
    """
    store = TaskStore(db)
    task = store.get_task(task_id, for_update=True)
    transition = plan_overdue(task, now)
    if transition is None:
        # Nothing to write; release the row lock
        db.rollback()
        return False
    store.update_task_fields(task.id, task.version, transition.changes, [transition.entry])
    return True


def run_overdue_sweep(db: Session, now: Optional[datetime] = None) -> SweepResult:
    """Authoritative sweep: every overdue task gets one logged OVERDUE transition"""
    now = now or utcnow()
    result = SweepResult()

    candidates = find_overdue_candidates(db, now)
    logger.info(f"Overdue sweep found {len(candidates)} candidate tasks")

    for task_id in candidates:
        try:
            if reconcile_task(db, task_id, now):
                result.transitioned.append(task_id)
            else:
                result.skipped.append(task_id)
        except (TaskNotFoundError, TaskConflictError) as e:
            # Deleted or edited concurrently; the next run picks it up if still overdue
            logger.info(f"Overdue sweep skipped task {task_id}: {e}")
            result.skipped.append(task_id)
        except Exception as e:
            db.rollback()
            logger.error(f"Overdue sweep failed for task {task_id}: {e}")
            result.failed.append(task_id)

    logger.info(
        f"Overdue sweep done: {len(result.transitioned)} transitioned, "
        f"{len(result.skipped)} skipped, {len(result.failed)} failed"
    )
    return result


def find_deadline_approaching(db: Session, now: datetime, window: timedelta) -> List[Task]:
    """Open tasks whose deadline falls inside [now, now + window]"""
    return (
        db.query(Task)
        .filter(
            Task.deadline >= now,
            Task.deadline <= now + window,
            Task.status.notin_([TaskStatus.DONE, TaskStatus.OVERDUE]),
        )
        .order_by(Task.deadline, Task.id)
        .all()
    )
