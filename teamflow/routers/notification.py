# teamflow/routers/notification.py
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from typing import List

from teamflow.database import get_db
from teamflow.models import notification as notification_model
from teamflow.models import user as user_model
from teamflow.schemas import notification as notification_schema
from teamflow.utils.auth import get_current_user
from teamflow.utils.clock import utcnow

router = APIRouter(prefix="/notifications")

@router.get("/", response_model=List[notification_schema.NotificationOut])
def get_user_notifications(
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=100),
    unread_only: bool = Query(False),
    db: Session = Depends(get_db),
    current_user: user_model.User = Depends(get_current_user)
):
    """Get notifications for the current user, newest first"""
    query = db.query(notification_model.Notification).filter(
        notification_model.Notification.user_id == current_user.id
    )
    if unread_only:
        query = query.filter(notification_model.Notification.is_read == False)  # noqa: E712

    return query.order_by(
        notification_model.Notification.created_at.desc(),
        notification_model.Notification.id.desc()
    ).offset(skip).limit(limit).all()

@router.get("/stats", response_model=notification_schema.NotificationStats)
def get_notification_stats(
    db: Session = Depends(get_db),
    current_user: user_model.User = Depends(get_current_user)
):
    notifications = db.query(notification_model.Notification).filter(
        notification_model.Notification.user_id == current_user.id
    ).all()

    by_type = {}
    for notification in notifications:
        key = notification.notification_type.value
        by_type[key] = by_type.get(key, 0) + 1
    unread = sum(1 for n in notifications if not n.is_read)

    return {
        "total_notifications": len(notifications),
        "unread_count": unread,
        "read_count": len(notifications) - unread,
        "by_type": by_type,
    }

@router.patch("/read-all")
def mark_all_notifications_read(
    db: Session = Depends(get_db),
    current_user: user_model.User = Depends(get_current_user)
):
    now = utcnow()
    updated = db.query(notification_model.Notification).filter(
        notification_model.Notification.user_id == current_user.id,
        notification_model.Notification.is_read == False  # noqa: E712
    ).update({"is_read": True, "read_at": now}, synchronize_session=False)
    db.commit()
    return {"message": f"Marked {updated} notifications as read", "updated_count": updated}

@router.patch("/{notification_id}/read", response_model=notification_schema.NotificationOut)
def mark_notification_read(
    notification_id: int,
    db: Session = Depends(get_db),
    current_user: user_model.User = Depends(get_current_user)
):
    notification = db.query(notification_model.Notification).filter(
        notification_model.Notification.id == notification_id,
        notification_model.Notification.user_id == current_user.id
    ).first()

    if not notification:
        raise HTTPException(status_code=404, detail="Notification not found")

    if not notification.is_read:
        notification.is_read = True
        notification.read_at = utcnow()
        db.commit()
        db.refresh(notification)

    return notification
