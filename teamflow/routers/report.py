# teamflow/routers/report.py
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List, Optional
from datetime import date

from teamflow.database import get_db
from teamflow.models import User
from teamflow.schemas.report import ReportCreate, ReportOut
from teamflow.services import reports
from teamflow.utils.auth import get_current_user

router = APIRouter(prefix="/reports")

@router.post("/", response_model=ReportOut, status_code=201)
def submit_report(
    report: ReportCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return reports.submit_report(
        db,
        current_user,
        report.report_date,
        report.content,
        report.completed_tasks,
    )

@router.get("/", response_model=List[ReportOut])
def list_reports(
    user_id: Optional[int] = Query(None),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return reports.list_reports(db, current_user, user_id=user_id, start_date=start_date, end_date=end_date)
