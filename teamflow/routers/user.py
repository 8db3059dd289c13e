# teamflow/routers/user.py
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List, Optional

from teamflow.database import get_db
from teamflow.models import user as user_model
from teamflow.schemas.user import UserBasic, normalize_role
from teamflow.services.exceptions import TaskValidationError
from teamflow.utils.auth import get_current_user
from teamflow.utils.permissions import PermissionGate

router = APIRouter()

@router.get("/", response_model=List[UserBasic])
def get_users(
    role: Optional[str] = Query(None, description="Department role, e.g. Designer or CS"),
    db: Session = Depends(get_db),
    current_user: user_model.User = Depends(get_current_user)
):
    """Staff directory; with ?role= it returns the assignable staff of that department"""
    if role is not None:
        try:
            staff_role = normalize_role(role)
        except ValueError as e:
            raise TaskValidationError(str(e))
        if staff_role != user_model.StaffRole.MANAGER:
            return PermissionGate(db).assignee_candidates(staff_role)
        return db.query(user_model.User).filter(
            user_model.User.role == staff_role,
            user_model.User.is_active == True  # noqa: E712
        ).order_by(user_model.User.name).all()

    return db.query(user_model.User).filter(
        user_model.User.is_active == True  # noqa: E712
    ).order_by(user_model.User.name).all()
