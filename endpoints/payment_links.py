"""
Payment links: shareable URLs a guest opens to settle an amount
"""
import secrets
from datetime import datetime, timedelta
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from config import PAYMENT_LINK_BASE_URL, PAYMENT_LINK_TTL_HOURS
from database import connection
from models.finance import PaymentLink
from models.hotel import Reservation
from models.user import User
from schemas.finance import PaymentLinkCreate, PaymentLinkRead, PaymentLinkPublic, PaymentLinkPay
from services.reservation_service import PaymentService
from utils.billing_engine import money
from utils.dependencies import get_current_user, get_owned, resolve_hotel_id, scope_hotel_ids
from utils.logging_utils import log_event, log_error
from utils.timezone import to_naive_utc

router = APIRouter(prefix="/payment-links", tags=["Payment links"])


# ===== HELPERS =====

def _expire(links: List[PaymentLink], now: Optional[datetime] = None) -> int:
    """Active links past expires_at become expired. Does not commit."""
    now = now or datetime.utcnow()
    changed = 0
    for link in links:
        if link.status == "active" and link.expires_at <= now:
            link.status = "expired"
            changed += 1
    return changed


def _commit(db: Session, user: Optional[User], action: str):
    username = user.username if user else "guest"
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        log_error("payment_links", username, action, str(e))
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=f"{action} failed")


def _get_link(db: Session, user: User, link_id: int) -> PaymentLink:
    link = get_owned(db, user, PaymentLink, link_id, "Payment link not found")
    if _expire([link]):
        _commit(db, user, "Expire payment link")
    return link


def _new_token(db: Session) -> str:
    while True:
        token = secrets.token_urlsafe(24)
        if not db.query(PaymentLink.id).filter(PaymentLink.token == token).first():
            return token


def _settle(db: Session, link: PaymentLink, method: str, user: Optional[User] = None):
    if link.status != "active":
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=f"Payment link is {link.status}")

    if link.reservation is not None:
        try:
            PaymentService.record_payment(
                db,
                link.reservation,
                link.amount,
                method=method,
                notes=f"Payment link {link.token[:8]}",
                user=user,
            )
        except ValueError as e:
            db.rollback()
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    link.status = "paid"
    link.paid_at = datetime.utcnow()


# ===== PAYMENT LINKS =====

@router.get("", response_model=List[PaymentLinkRead])
def list_links(
    hotel_id: Optional[int] = Query(None),
    link_status: Optional[str] = Query(None, alias="status"),
    reservation_id: Optional[int] = Query(None),
    db: Session = Depends(connection.get_db),
    current_user: User = Depends(get_current_user),
):
    query = db.query(PaymentLink).filter(PaymentLink.hotel_id.in_(scope_hotel_ids(db, current_user, hotel_id)))
    if reservation_id:
        query = query.filter(PaymentLink.reservation_id == reservation_id)
    links = query.order_by(PaymentLink.created_at.desc(), PaymentLink.id.desc()).all()

    if _expire(links):
        _commit(db, current_user, "Expire payment links")

    if link_status:
        links = [link for link in links if link.status == link_status]
    return links


@router.post("", response_model=PaymentLinkRead, status_code=status.HTTP_201_CREATED)
def create_link(
    payload: PaymentLinkCreate,
    db: Session = Depends(connection.get_db),
    current_user: User = Depends(get_current_user),
):
    if payload.reservation_id is not None:
        reservation = get_owned(db, current_user, Reservation, payload.reservation_id, "Reservation not found")
        hotel_id = reservation.hotel_id
        if reservation.status in ("cancelled", "no_show", "checked_out"):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Cannot request payment for a reservation in status '{reservation.status}'",
            )
    else:
        hotel_id = resolve_hotel_id(db, current_user, payload.hotel_id)

    if payload.expires_at is not None:
        expires_at = to_naive_utc(payload.expires_at)
    else:
        expires_at = datetime.utcnow() + timedelta(hours=payload.expires_in_hours or PAYMENT_LINK_TTL_HOURS)
    if expires_at <= datetime.utcnow():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="expires_at must be in the future")

    token = _new_token(db)
    link = PaymentLink(
        hotel_id=hotel_id,
        reservation_id=payload.reservation_id,
        amount=money(payload.amount),
        description=payload.description,
        token=token,
        url=f"{PAYMENT_LINK_BASE_URL}/{token}",
        status="active",
        expires_at=expires_at,
    )
    db.add(link)
    _commit(db, current_user, "Create payment link")
    db.refresh(link)
    log_event("payment_links", current_user.username, "Create payment link", f"link_id={link.id} amount={link.amount}")
    return link


@router.get("/public/{token}", response_model=PaymentLinkPublic)
def public_link(token: str, db: Session = Depends(connection.get_db)):
    """Guest bill page lookup, no authentication"""
    link = db.query(PaymentLink).filter(PaymentLink.token == token).first()
    if not link or link.status == "cancelled":
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Payment link not found")
    if _expire([link]):
        _commit(db, None, "Expire payment link")
    return link


@router.get("/{link_id}", response_model=PaymentLinkRead)
def get_link(
    link_id: int = Path(..., gt=0),
    db: Session = Depends(connection.get_db),
    current_user: User = Depends(get_current_user),
):
    return _get_link(db, current_user, link_id)


@router.post("/{link_id}/cancel", response_model=PaymentLinkRead)
def cancel_link(
    link_id: int = Path(..., gt=0),
    db: Session = Depends(connection.get_db),
    current_user: User = Depends(get_current_user),
):
    link = _get_link(db, current_user, link_id)
    if link.status != "active":
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=f"Payment link is {link.status}")

    link.status = "cancelled"
    _commit(db, current_user, "Cancel payment link")
    db.refresh(link)
    log_event("payment_links", current_user.username, "Cancel payment link", f"link_id={link_id}")
    return link


@router.post("/{link_id}/pay", response_model=PaymentLinkRead)
def pay_link(
    link_id: int = Path(..., gt=0),
    payload: Optional[PaymentLinkPay] = None,
    db: Session = Depends(connection.get_db),
    current_user: User = Depends(get_current_user),
):
    """Marks the link paid; a linked booking gets the income receipt"""
    link = _get_link(db, current_user, link_id)
    _settle(db, link, (payload or PaymentLinkPay()).method, current_user)
    _commit(db, current_user, "Pay payment link")
    db.refresh(link)
    log_event("payment_links", current_user.username, "Pay payment link", f"link_id={link_id} amount={link.amount}")
    return link


@router.delete("/{link_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_link(
    link_id: int = Path(..., gt=0),
    db: Session = Depends(connection.get_db),
    current_user: User = Depends(get_current_user),
):
    link = get_owned(db, current_user, PaymentLink, link_id, "Payment link not found")
    db.delete(link)
    _commit(db, current_user, "Delete payment link")
    log_event("payment_links", current_user.username, "Delete payment link", f"link_id={link_id}")
