from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from database import connection
from models.finance import Receipt
from models.hotel import Reservation
from models.user import User
from schemas.finance import ReceiptCreate, ReceiptRead, ReceiptTotals
from services.reservation_service import PaymentService
from utils.billing_engine import money, receipt_totals
from utils.dependencies import get_current_user, get_owned, resolve_hotel_id, scope_hotel_ids
from utils.logging_utils import log_event, log_error
from utils.timezone import get_hotel_today

router = APIRouter(prefix="/receipts", tags=["Receipts"])


def _filtered(
    db: Session,
    user: User,
    hotel_id: Optional[int],
    receipt_type: Optional[str],
    date_from: Optional[date],
    date_to: Optional[date],
    reservation_id: Optional[int],
):
    query = (
        db.query(Receipt)
        .options(joinedload(Receipt.created_by))
        .filter(Receipt.hotel_id.in_(scope_hotel_ids(db, user, hotel_id)))
    )
    if receipt_type:
        query = query.filter(Receipt.type == receipt_type)
    if date_from:
        query = query.filter(Receipt.date >= date_from)
    if date_to:
        query = query.filter(Receipt.date <= date_to)
    if reservation_id:
        query = query.filter(Receipt.reservation_id == reservation_id)
    return query


@router.get("", response_model=List[ReceiptRead])
def list_receipts(
    hotel_id: Optional[int] = Query(None),
    receipt_type: Optional[str] = Query(None, alias="type"),
    date_from: Optional[date] = Query(None, alias="from"),
    date_to: Optional[date] = Query(None, alias="to"),
    reservation_id: Optional[int] = Query(None),
    db: Session = Depends(connection.get_db),
    current_user: User = Depends(get_current_user),
):
    query = _filtered(db, current_user, hotel_id, receipt_type, date_from, date_to, reservation_id)
    return query.order_by(Receipt.date.desc(), Receipt.id.desc()).all()


@router.get("/totals", response_model=ReceiptTotals)
def totals(
    hotel_id: Optional[int] = Query(None),
    date_from: Optional[date] = Query(None, alias="from"),
    date_to: Optional[date] = Query(None, alias="to"),
    db: Session = Depends(connection.get_db),
    current_user: User = Depends(get_current_user),
):
    """Income, expense and net for the range"""
    return receipt_totals(_filtered(db, current_user, hotel_id, None, date_from, date_to, None).all())


@router.get("/{receipt_id}", response_model=ReceiptRead)
def get_receipt(
    receipt_id: int = Path(..., gt=0),
    db: Session = Depends(connection.get_db),
    current_user: User = Depends(get_current_user),
):
    return get_owned(db, current_user, Receipt, receipt_id, "Receipt not found")


@router.post("", response_model=ReceiptRead, status_code=status.HTTP_201_CREATED)
def create_receipt(
    payload: ReceiptCreate,
    db: Session = Depends(connection.get_db),
    current_user: User = Depends(get_current_user),
):
    reservation = None
    if payload.reservation_id is not None:
        reservation = get_owned(db, current_user, Reservation, payload.reservation_id, "Reservation not found")
        hotel_id = reservation.hotel_id
        if payload.hotel_id is not None and payload.hotel_id != hotel_id:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Reservation belongs to another hotel")
    else:
        hotel_id = resolve_hotel_id(db, current_user, payload.hotel_id)

    try:
        receipt = Receipt(
            hotel_id=hotel_id,
            date=payload.date or get_hotel_today(),
            type=payload.type,
            amount=money(payload.amount),
            method=payload.method,
            reservation_id=payload.reservation_id,
            notes=payload.notes,
            created_by_id=current_user.id,
        )
        db.add(receipt)
        PaymentService.apply_receipt(reservation, receipt)
        db.commit()
        db.refresh(receipt)
    except SQLAlchemyError as e:
        db.rollback()
        log_error("receipts", current_user.username, "Create receipt", str(e))
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Could not create the receipt")

    log_event("receipts", current_user.username, "Create receipt", f"receipt_id={receipt.id} type={receipt.type} amount={receipt.amount}")
    return receipt


@router.delete("/{receipt_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_receipt(
    receipt_id: int = Path(..., gt=0),
    db: Session = Depends(connection.get_db),
    current_user: User = Depends(get_current_user),
):
    receipt = get_owned(db, current_user, Receipt, receipt_id, "Receipt not found")
    try:
        PaymentService.apply_receipt(receipt.reservation, receipt, reverse=True)
        db.delete(receipt)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        log_error("receipts", current_user.username, "Delete receipt", str(e))
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Could not delete the receipt")

    log_event("receipts", current_user.username, "Delete receipt", f"receipt_id={receipt_id}")
