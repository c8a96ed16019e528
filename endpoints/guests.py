from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status
from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from database import connection
from models.hotel import Guest, Reservation
from models.user import User
from schemas.guests import GuestCreate, GuestUpdate, GuestRead
from utils.dependencies import get_current_user, get_owned, resolve_hotel_id, scope_hotel_ids
from utils.logging_utils import log_event, log_error

router = APIRouter(prefix="/guests", tags=["Guests"])


@router.get("", response_model=List[GuestRead])
def list_guests(
    q: Optional[str] = Query(None, description="Search by name, email or phone"),
    hotel_id: Optional[int] = Query(None),
    limit: int = Query(100, ge=1, le=500),
    db: Session = Depends(connection.get_db),
    current_user: User = Depends(get_current_user),
):
    query = db.query(Guest).filter(Guest.hotel_id.in_(scope_hotel_ids(db, current_user, hotel_id)))
    if q:
        pattern = f"%{q.strip()}%"
        query = query.filter(or_(
            Guest.first_name.ilike(pattern),
            Guest.last_name.ilike(pattern),
            Guest.email.ilike(pattern),
            Guest.phone.ilike(pattern),
        ))
    return query.order_by(Guest.created_at.desc(), Guest.id.desc()).limit(limit).all()


@router.get("/{guest_id}", response_model=GuestRead)
def get_guest(
    guest_id: int = Path(..., gt=0),
    db: Session = Depends(connection.get_db),
    current_user: User = Depends(get_current_user),
):
    return get_owned(db, current_user, Guest, guest_id, "Guest not found")


@router.post("", response_model=GuestRead, status_code=status.HTTP_201_CREATED)
def create_guest(
    payload: GuestCreate,
    db: Session = Depends(connection.get_db),
    current_user: User = Depends(get_current_user),
):
    hotel_id = resolve_hotel_id(db, current_user, payload.hotel_id)
    try:
        guest = Guest(hotel_id=hotel_id, **payload.model_dump(exclude={"hotel_id"}))
        db.add(guest)
        db.commit()
        db.refresh(guest)
    except SQLAlchemyError as e:
        db.rollback()
        log_error("guests", current_user.username, "Create guest", str(e))
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Could not create the guest")

    log_event("guests", current_user.username, "Create guest", f"guest_id={guest.id}")
    return guest


@router.put("/{guest_id}", response_model=GuestRead)
def update_guest(
    payload: GuestUpdate,
    guest_id: int = Path(..., gt=0),
    db: Session = Depends(connection.get_db),
    current_user: User = Depends(get_current_user),
):
    guest = get_owned(db, current_user, Guest, guest_id, "Guest not found")
    try:
        for field, value in payload.model_dump(exclude_unset=True).items():
            setattr(guest, field, value)
        db.commit()
        db.refresh(guest)
    except SQLAlchemyError as e:
        db.rollback()
        log_error("guests", current_user.username, "Update guest", str(e))
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Could not update the guest")

    log_event("guests", current_user.username, "Update guest", f"guest_id={guest_id}")
    return guest


@router.delete("/{guest_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_guest(
    guest_id: int = Path(..., gt=0),
    db: Session = Depends(connection.get_db),
    current_user: User = Depends(get_current_user),
):
    guest = get_owned(db, current_user, Guest, guest_id, "Guest not found")

    bookings = db.query(Reservation).filter(Reservation.guest_id == guest_id).count()
    if bookings:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Cannot delete: the guest has {bookings} reservation(s)",
        )

    try:
        db.delete(guest)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        log_error("guests", current_user.username, "Delete guest", str(e))
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Could not delete the guest")

    log_event("guests", current_user.username, "Delete guest", f"guest_id={guest_id}")
