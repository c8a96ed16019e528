from typing import List

from fastapi import APIRouter, Depends, HTTPException, Path, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from database import connection
from models.hotel import Hotel, Unit
from models.user import User
from schemas.hotels import HotelCreate, HotelUpdate, HotelRead
from utils.dependencies import get_current_user
from utils.logging_utils import log_event, log_error

router = APIRouter(prefix="/hotels", tags=["Hotels"])


def _get_hotel(db: Session, user: User, hotel_id: int) -> Hotel:
    hotel = db.query(Hotel).filter(Hotel.id == hotel_id, Hotel.owner_id == user.id).first()
    if not hotel:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Hotel not found")
    return hotel


@router.get("", response_model=List[HotelRead])
def list_hotels(
    db: Session = Depends(connection.get_db),
    current_user: User = Depends(get_current_user),
):
    return db.query(Hotel).filter(Hotel.owner_id == current_user.id).order_by(Hotel.id).all()


@router.get("/{hotel_id}", response_model=HotelRead)
def get_hotel(
    hotel_id: int = Path(..., gt=0),
    db: Session = Depends(connection.get_db),
    current_user: User = Depends(get_current_user),
):
    return _get_hotel(db, current_user, hotel_id)


@router.post("", response_model=HotelRead, status_code=status.HTTP_201_CREATED)
def create_hotel(
    payload: HotelCreate,
    db: Session = Depends(connection.get_db),
    current_user: User = Depends(get_current_user),
):
    try:
        hotel = Hotel(owner_id=current_user.id, **payload.model_dump())
        db.add(hotel)
        db.commit()
        db.refresh(hotel)
    except SQLAlchemyError as e:
        db.rollback()
        log_error("hotels", current_user.username, "Create hotel", str(e))
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Could not create the hotel")

    log_event("hotels", current_user.username, "Create hotel", f"hotel_id={hotel.id} name={hotel.name}")
    return hotel


@router.put("/{hotel_id}", response_model=HotelRead)
def update_hotel(
    payload: HotelUpdate,
    hotel_id: int = Path(..., gt=0),
    db: Session = Depends(connection.get_db),
    current_user: User = Depends(get_current_user),
):
    hotel = _get_hotel(db, current_user, hotel_id)
    try:
        for field, value in payload.model_dump(exclude_unset=True).items():
            setattr(hotel, field, value)
        db.commit()
        db.refresh(hotel)
    except SQLAlchemyError as e:
        db.rollback()
        log_error("hotels", current_user.username, "Update hotel", str(e))
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Could not update the hotel")

    log_event("hotels", current_user.username, "Update hotel", f"hotel_id={hotel_id}")
    return hotel


@router.delete("/{hotel_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_hotel(
    hotel_id: int = Path(..., gt=0),
    db: Session = Depends(connection.get_db),
    current_user: User = Depends(get_current_user),
):
    hotel = _get_hotel(db, current_user, hotel_id)

    units = db.query(Unit).filter(Unit.hotel_id == hotel_id).count()
    if units:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Cannot delete: the hotel still has {units} unit(s)",
        )

    try:
        db.delete(hotel)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        log_error("hotels", current_user.username, "Delete hotel", str(e))
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Could not delete the hotel")

    log_event("hotels", current_user.username, "Delete hotel", f"hotel_id={hotel_id}")
