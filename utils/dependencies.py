"""
Authentication and hotel ownership dependencies
"""
from typing import List, Optional, Type

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from database import connection
from models.hotel import Hotel
from models.user import User, RevokedToken
from utils.auth import verify_token


# OAuth2 scheme reading the bearer token from the header
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")


# ========== AUTHENTICATION ==========

async def get_token_payload(token: str = Depends(oauth2_scheme)) -> dict:
    return verify_token(token, token_type="access")


async def get_current_user(
    payload: dict = Depends(get_token_payload),
    db: Session = Depends(connection.get_db),
) -> User:
    """
    Loads the user behind the access token

    Raises:
        HTTPException: if the token was revoked or the user is missing, inactive or locked
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    username = payload.get("sub")
    user_id = payload.get("user_id")
    if username is None or user_id is None:
        raise credentials_exception

    revoked = db.query(RevokedToken).filter(RevokedToken.jti == payload["jti"]).first()
    if revoked:
        raise credentials_exception

    user = db.query(User).filter(User.id == user_id, User.username == username).first()
    if user is None:
        raise credentials_exception

    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="User is disabled")

    if user.is_locked():
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="User is temporarily locked")

    return user


# ========== HOTEL OWNERSHIP ==========

def owned_hotel_ids(db: Session, user: User) -> List[int]:
    """Ids of every hotel the user owns, oldest first"""
    rows = db.query(Hotel.id).filter(Hotel.owner_id == user.id).order_by(Hotel.id).all()
    return [row[0] for row in rows]


def resolve_hotel_id(db: Session, user: User, hotel_id: Optional[int] = None) -> int:
    """
    Returns the hotel to write into.
    An explicit id must be owned by the user (404 otherwise); with no id the
    user's first hotel is used (400 when the user owns none).
    """
    hotel_ids = owned_hotel_ids(db, user)
    if hotel_id is not None:
        if hotel_id not in hotel_ids:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Hotel not found")
        return hotel_id
    if not hotel_ids:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Create a hotel first")
    return hotel_ids[0]


def scope_hotel_ids(db: Session, user: User, hotel_id: Optional[int] = None) -> List[int]:
    """Hotel ids a read is allowed to see, optionally narrowed to one hotel"""
    hotel_ids = owned_hotel_ids(db, user)
    if hotel_id is None:
        return hotel_ids
    if hotel_id not in hotel_ids:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Hotel not found")
    return [hotel_id]


def get_owned(db: Session, user: User, model: Type, obj_id: int, detail: str):
    """Loads a hotel-scoped row, answering 404 for missing rows and rows of other owners"""
    obj = (
        db.query(model)
        .filter(model.id == obj_id, model.hotel_id.in_(owned_hotel_ids(db, user)))
        .first()
    )
    if not obj:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=detail)
    return obj
