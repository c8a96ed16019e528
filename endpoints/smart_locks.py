from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from database import connection
from models.hotel import Reservation, Unit
from models.locks import AccessKey, SmartLock
from models.user import User
from schemas.locks import (
    SmartLockCreate,
    SmartLockUpdate,
    SmartLockRead,
    AccessKeyCreate,
    AccessKeyRead,
    AccessVerifyRequest,
    AccessVerifyResult,
)
from services.access_service import AccessKeyService
from utils import lock_adapter
from utils.dependencies import get_current_user, get_owned, scope_hotel_ids
from utils.logging_utils import log_event, log_error

router = APIRouter(prefix="/smart-locks", tags=["Smart locks"])


# ===== HELPERS =====

def _commit(db: Session, user: User, action: str):
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        log_error("locks", user.username, action, str(e))
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=f"{action} failed")


def _get_lock(db: Session, user: User, lock_id: int) -> SmartLock:
    return get_owned(db, user, SmartLock, lock_id, "Smart lock not found")


def _expire_and_return(db: Session, user: User, keys: List[AccessKey]) -> List[AccessKey]:
    if AccessKeyService.refresh_expired(keys):
        _commit(db, user, "Expire access keys")
    return keys


# ===== ACCESS KEYS =====

@router.get("/access-keys", response_model=List[AccessKeyRead])
def list_access_keys(
    hotel_id: Optional[int] = Query(None),
    lock_id: Optional[int] = Query(None),
    reservation_id: Optional[int] = Query(None),
    key_status: Optional[str] = Query(None, alias="status"),
    db: Session = Depends(connection.get_db),
    current_user: User = Depends(get_current_user),
):
    query = db.query(AccessKey).filter(AccessKey.hotel_id.in_(scope_hotel_ids(db, current_user, hotel_id)))
    if lock_id:
        query = query.filter(AccessKey.lock_id == lock_id)
    if reservation_id:
        query = query.filter(AccessKey.reservation_id == reservation_id)
    keys = _expire_and_return(
        db, current_user, query.order_by(AccessKey.created_at.desc(), AccessKey.id.desc()).all()
    )
    if key_status:
        keys = [key for key in keys if key.status == key_status]
    return keys


@router.post("/access-keys/{key_id}/revoke", response_model=AccessKeyRead)
def revoke_access_key(
    key_id: int = Path(..., gt=0),
    db: Session = Depends(connection.get_db),
    current_user: User = Depends(get_current_user),
):
    """Revoking an already revoked key is a no-op"""
    key = get_owned(db, current_user, AccessKey, key_id, "Access key not found")
    if AccessKeyService.revoke(key):
        _commit(db, current_user, "Revoke access key")
        log_event("locks", current_user.username, "Revoke access key", f"key_id={key_id} lock_id={key.lock_id}")
    db.refresh(key)
    return key


# ===== SMART LOCKS =====

@router.get("", response_model=List[SmartLockRead])
def list_locks(
    hotel_id: Optional[int] = Query(None),
    lock_status: Optional[str] = Query(None, alias="status"),
    db: Session = Depends(connection.get_db),
    current_user: User = Depends(get_current_user),
):
    query = db.query(SmartLock).filter(SmartLock.hotel_id.in_(scope_hotel_ids(db, current_user, hotel_id)))
    if lock_status:
        query = query.filter(SmartLock.status == lock_status)
    return query.order_by(SmartLock.id).all()


@router.get("/{lock_id}", response_model=SmartLockRead)
def get_lock(
    lock_id: int = Path(..., gt=0),
    db: Session = Depends(connection.get_db),
    current_user: User = Depends(get_current_user),
):
    return _get_lock(db, current_user, lock_id)


@router.post("", response_model=SmartLockRead, status_code=status.HTTP_201_CREATED)
def create_lock(
    payload: SmartLockCreate,
    db: Session = Depends(connection.get_db),
    current_user: User = Depends(get_current_user),
):
    unit = get_owned(db, current_user, Unit, payload.unit_id, "Unit not found")
    if db.query(SmartLock.id).filter(SmartLock.unit_id == unit.id).first():
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Unit already has a smart lock")

    lock = SmartLock(
        hotel_id=unit.hotel_id,
        unit_id=unit.id,
        name=payload.name or f"Lock {unit.number}",
        provider=payload.provider,
        device_id=payload.device_id,
        credentials=payload.credentials,
        status="offline",
    )
    db.add(lock)
    _commit(db, current_user, "Create smart lock")
    db.refresh(lock)
    log_event("locks", current_user.username, "Create smart lock", f"lock_id={lock.id} unit_id={unit.id} provider={lock.provider}")
    return lock


@router.put("/{lock_id}", response_model=SmartLockRead)
def update_lock(
    payload: SmartLockUpdate,
    lock_id: int = Path(..., gt=0),
    db: Session = Depends(connection.get_db),
    current_user: User = Depends(get_current_user),
):
    lock = _get_lock(db, current_user, lock_id)
    for field, value in payload.model_dump(exclude_unset=True).items():
        setattr(lock, field, value)
    _commit(db, current_user, "Update smart lock")
    db.refresh(lock)
    log_event("locks", current_user.username, "Update smart lock", f"lock_id={lock_id}")
    return lock


@router.delete("/{lock_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_lock(
    lock_id: int = Path(..., gt=0),
    db: Session = Depends(connection.get_db),
    current_user: User = Depends(get_current_user),
):
    """Deleting a lock drops its access keys"""
    lock = _get_lock(db, current_user, lock_id)
    db.delete(lock)
    _commit(db, current_user, "Delete smart lock")
    log_event("locks", current_user.username, "Delete smart lock", f"lock_id={lock_id}")


@router.post("/{lock_id}/sync", response_model=SmartLockRead)
def sync_lock(
    lock_id: int = Path(..., gt=0),
    db: Session = Depends(connection.get_db),
    current_user: User = Depends(get_current_user),
):
    lock = _get_lock(db, current_user, lock_id)
    state = lock_adapter.sync_device_status(lock)
    lock.status = state["status"]
    lock.battery_level = state["battery_level"]
    lock.last_sync = state["last_sync"]
    _commit(db, current_user, "Sync smart lock")
    db.refresh(lock)
    log_event("locks", current_user.username, "Sync smart lock", f"lock_id={lock_id} status={lock.status} battery={lock.battery_level}")
    return lock


# ===== LOCK ACCESS KEYS =====

@router.get("/{lock_id}/access-keys", response_model=List[AccessKeyRead])
def list_lock_keys(
    lock_id: int = Path(..., gt=0),
    key_status: Optional[str] = Query(None, alias="status"),
    db: Session = Depends(connection.get_db),
    current_user: User = Depends(get_current_user),
):
    lock = _get_lock(db, current_user, lock_id)
    keys = (
        db.query(AccessKey)
        .filter(AccessKey.lock_id == lock.id)
        .order_by(AccessKey.created_at.desc(), AccessKey.id.desc())
        .all()
    )
    keys = _expire_and_return(db, current_user, keys)
    if key_status:
        keys = [key for key in keys if key.status == key_status]
    return keys


@router.post("/{lock_id}/access-keys", response_model=AccessKeyRead, status_code=status.HTTP_201_CREATED)
def create_access_key(
    payload: AccessKeyCreate,
    lock_id: int = Path(..., gt=0),
    db: Session = Depends(connection.get_db),
    current_user: User = Depends(get_current_user),
):
    lock = _get_lock(db, current_user, lock_id)

    reservation = None
    if payload.reservation_id is not None:
        reservation = get_owned(db, current_user, Reservation, payload.reservation_id, "Reservation not found")
        if reservation.unit_id != lock.unit_id:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Reservation is for another unit")

    try:
        key = AccessKeyService.issue(
            db,
            lock,
            payload.valid_from,
            payload.valid_to,
            reservation=reservation,
            guest_name=payload.guest_name,
        )
    except lock_adapter.AccessCodeExhaustedError as e:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except lock_adapter.LockAdapterError as e:
        db.rollback()
        log_error("locks", current_user.username, "Create access key", str(e))
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))
    except ValueError as e:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    _commit(db, current_user, "Create access key")
    db.refresh(key)
    log_event("locks", current_user.username, "Create access key", f"key_id={key.id} lock_id={lock_id}")
    return key


@router.post("/{lock_id}/verify", response_model=AccessVerifyResult)
def verify_code(
    payload: AccessVerifyRequest,
    lock_id: int = Path(..., gt=0),
    db: Session = Depends(connection.get_db),
    current_user: User = Depends(get_current_user),
):
    """A code opens the lock only while its key is active and inside its window"""
    lock = _get_lock(db, current_user, lock_id)
    reason, key = AccessKeyService.verify(db, lock, payload.code)
    _commit(db, current_user, "Verify access code")
    log_event("locks", current_user.username, "Verify access code", f"lock_id={lock_id} result={reason}")
    return AccessVerifyResult(
        valid=reason == "ok",
        reason=reason,
        access_key_id=key.id if key else None,
        usage_count=key.usage_count if key else None,
    )
