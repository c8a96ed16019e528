from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from database import connection
from models.hotel import Guest, Reservation
from models.messaging import Message
from models.user import User
from schemas.messaging import ConversationRead, MessageCreate, MessageRead
from schemas.notifications import UnreadCount
from services.inbox_service import InboxService
from utils.dependencies import get_current_user, get_owned, scope_hotel_ids
from utils.logging_utils import log_event, log_error

router = APIRouter(prefix="/inbox", tags=["Inbox"])


# ===== HELPERS =====

def _commit(db: Session, user: User, action: str):
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        log_error("inbox", user.username, action, str(e))
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=f"{action} failed")


def _unread_from_guests(db: Session, hotel_ids: List[int]):
    return db.query(Message).filter(
        Message.hotel_id.in_(hotel_ids),
        Message.sender == "guest",
        Message.is_read.is_(False),
    )


# ===== CONVERSATIONS =====

@router.get("/conversations", response_model=List[ConversationRead])
def list_conversations(
    hotel_id: Optional[int] = Query(None),
    unread_only: bool = Query(False),
    db: Session = Depends(connection.get_db),
    current_user: User = Depends(get_current_user),
):
    """One row per guest, the most recent conversation first"""
    messages = (
        db.query(Message)
        .options(joinedload(Message.guest))
        .filter(Message.hotel_id.in_(scope_hotel_ids(db, current_user, hotel_id)))
        .all()
    )
    conversations = InboxService.conversations(messages)
    if unread_only:
        conversations = [c for c in conversations if c["unread_count"]]
    return conversations


@router.get("/unread-count", response_model=UnreadCount)
def unread_count(
    hotel_id: Optional[int] = Query(None),
    db: Session = Depends(connection.get_db),
    current_user: User = Depends(get_current_user),
):
    return {"unread": _unread_from_guests(db, scope_hotel_ids(db, current_user, hotel_id)).count()}


@router.get("/conversations/{guest_id}/messages", response_model=List[MessageRead])
def list_messages(
    guest_id: int = Path(..., gt=0),
    db: Session = Depends(connection.get_db),
    current_user: User = Depends(get_current_user),
):
    guest = get_owned(db, current_user, Guest, guest_id, "Guest not found")
    return (
        db.query(Message)
        .filter(Message.guest_id == guest.id)
        .order_by(Message.created_at, Message.id)
        .all()
    )


@router.post("/conversations/{guest_id}/messages", response_model=MessageRead, status_code=status.HTTP_201_CREATED)
def send_message(
    payload: MessageCreate,
    guest_id: int = Path(..., gt=0),
    db: Session = Depends(connection.get_db),
    current_user: User = Depends(get_current_user),
):
    """
    Adds a message to the guest's conversation.
    Staff messages are stored as sent and read; sender "guest" records a
    message that arrived by phone, email or an OTA and starts unread.
    """
    guest = get_owned(db, current_user, Guest, guest_id, "Guest not found")
    reservation = None
    if payload.reservation_id is not None:
        reservation = get_owned(db, current_user, Reservation, payload.reservation_id, "Reservation not found")

    try:
        message = InboxService.post_message(
            db,
            guest,
            payload.content,
            sender=payload.sender,
            channel=payload.channel,
            reservation=reservation,
            user=current_user,
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    _commit(db, current_user, "Send message")
    db.refresh(message)
    log_event("inbox", current_user.username, "Send message", f"guest_id={guest.id} message_id={message.id} sender={message.sender}")
    return message


@router.post("/conversations/{guest_id}/read")
def mark_conversation_read(
    guest_id: int = Path(..., gt=0),
    db: Session = Depends(connection.get_db),
    current_user: User = Depends(get_current_user),
):
    guest = get_owned(db, current_user, Guest, guest_id, "Guest not found")
    unread = _unread_from_guests(db, [guest.hotel_id]).filter(Message.guest_id == guest.id).all()
    updated = InboxService.mark_read(unread)
    if updated:
        _commit(db, current_user, "Mark conversation read")
    log_event("inbox", current_user.username, "Mark conversation read", f"guest_id={guest.id} count={updated}")
    return {"success": True, "updated": updated}
