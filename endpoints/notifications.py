from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status
from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from database import connection
from models.operations import Notification
from models.user import User
from schemas.notifications import NotificationCreate, NotificationRead, UnreadCount
from utils.dependencies import get_current_user, resolve_hotel_id, scope_hotel_ids
from utils.logging_utils import log_event, log_error
from utils.notifier import create_notification

router = APIRouter(prefix="/notifications", tags=["Notifications"])


def _commit(db: Session, user: User, action: str):
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        log_error("notifications", user.username, action, str(e))
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=f"{action} failed")


def _visible(db: Session, user: User, hotel_id: Optional[int] = None):
    """Hotel-wide notifications plus the ones addressed to this user"""
    return db.query(Notification).filter(
        Notification.hotel_id.in_(scope_hotel_ids(db, user, hotel_id)),
        or_(Notification.user_id.is_(None), Notification.user_id == user.id),
    )


def _get_notification(db: Session, user: User, notification_id: int) -> Notification:
    notification = _visible(db, user).filter(Notification.id == notification_id).first()
    if not notification:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Notification not found")
    return notification


@router.get("", response_model=List[NotificationRead])
def list_notifications(
    hotel_id: Optional[int] = Query(None),
    unread_only: bool = Query(False),
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(connection.get_db),
    current_user: User = Depends(get_current_user),
):
    query = _visible(db, current_user, hotel_id)
    if unread_only:
        query = query.filter(Notification.is_read.is_(False))
    return query.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit).all()


@router.get("/unread-count", response_model=UnreadCount)
def unread_count(
    hotel_id: Optional[int] = Query(None),
    db: Session = Depends(connection.get_db),
    current_user: User = Depends(get_current_user),
):
    return {"unread": _visible(db, current_user, hotel_id).filter(Notification.is_read.is_(False)).count()}


@router.post("", response_model=NotificationRead, status_code=status.HTTP_201_CREATED)
def create(
    payload: NotificationCreate,
    db: Session = Depends(connection.get_db),
    current_user: User = Depends(get_current_user),
):
    notification = create_notification(
        db,
        hotel_id=resolve_hotel_id(db, current_user, payload.hotel_id),
        title=payload.title,
        message=payload.message,
        type=payload.type,
        data=payload.data,
        action_url=payload.action_url,
        user_id=current_user.id if payload.for_me else None,
    )
    _commit(db, current_user, "Create notification")
    db.refresh(notification)
    log_event("notifications", current_user.username, "Create notification", f"notification_id={notification.id}")
    return notification


@router.post("/read-all")
def mark_all_read(
    hotel_id: Optional[int] = Query(None),
    db: Session = Depends(connection.get_db),
    current_user: User = Depends(get_current_user),
):
    unread = _visible(db, current_user, hotel_id).filter(Notification.is_read.is_(False)).all()
    now = datetime.utcnow()
    for notification in unread:
        notification.is_read = True
        notification.read_at = now
    _commit(db, current_user, "Mark all notifications read")
    log_event("notifications", current_user.username, "Mark all read", f"count={len(unread)}")
    return {"success": True, "updated": len(unread)}


@router.post("/{notification_id}/read", response_model=NotificationRead)
def mark_read(
    notification_id: int = Path(..., gt=0),
    db: Session = Depends(connection.get_db),
    current_user: User = Depends(get_current_user),
):
    notification = _get_notification(db, current_user, notification_id)
    if not notification.is_read:
        notification.is_read = True
        notification.read_at = datetime.utcnow()
        _commit(db, current_user, "Mark notification read")
        db.refresh(notification)
    return notification


@router.delete("/{notification_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete(
    notification_id: int = Path(..., gt=0),
    db: Session = Depends(connection.get_db),
    current_user: User = Depends(get_current_user),
):
    notification = _get_notification(db, current_user, notification_id)
    db.delete(notification)
    _commit(db, current_user, "Delete notification")
    log_event("notifications", current_user.username, "Delete notification", f"notification_id={notification_id}")
