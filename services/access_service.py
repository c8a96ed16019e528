"""
Access key service: issuing, expiring, revoking and verifying smart lock codes
"""

from datetime import datetime
from typing import Iterable, List, Optional, Tuple

from sqlalchemy.orm import Session

from models.hotel import Reservation
from models.locks import AccessKey, SmartLock
from utils import lock_adapter
from utils.logging_utils import log_event
from utils.timezone import to_naive_utc


class AccessKeyService:
    """Every access key state change goes through here"""

    @staticmethod
    def active_codes(db: Session, lock_id: int) -> List[str]:
        rows = db.query(AccessKey.code).filter(
            AccessKey.lock_id == lock_id,
            AccessKey.status == "active",
        ).all()
        return [row[0] for row in rows]

    @staticmethod
    def refresh_expired(keys: Iterable[AccessKey], now: Optional[datetime] = None) -> int:
        """Active keys past valid_to become expired. Does not commit."""
        now = now or datetime.utcnow()
        changed = 0
        for key in keys:
            if key.status == "active" and key.valid_to <= now:
                key.status = "expired"
                changed += 1
        return changed

    @staticmethod
    def issue(
        db: Session,
        lock: SmartLock,
        valid_from: datetime,
        valid_to: datetime,
        reservation: Optional[Reservation] = None,
        guest_name: Optional[str] = None,
    ) -> AccessKey:
        """
        Generates a code unique among the lock's active codes and stores it.

        Raises:
            ValueError, lock_adapter.AccessCodeExhaustedError, lock_adapter.LockAdapterError
        """
        valid_from = to_naive_utc(valid_from)
        valid_to = to_naive_utc(valid_to)

        # Stale codes do not block new ones
        AccessKeyService.refresh_expired(
            db.query(AccessKey).filter(AccessKey.lock_id == lock.id, AccessKey.status == "active").all()
        )
        db.flush()

        result = lock_adapter.generate_access_code(
            lock,
            valid_from,
            valid_to,
            existing_codes=AccessKeyService.active_codes(db, lock.id),
        )

        key = AccessKey(
            hotel_id=lock.hotel_id,
            lock_id=lock.id,
            reservation_id=reservation.id if reservation else None,
            guest_name=guest_name or (reservation.guest_name if reservation else None),
            code=result.code,
            valid_from=valid_from,
            valid_to=valid_to,
            status="active",
            usage_count=0,
            provider_response=result.provider_response,
        )
        db.add(key)
        return key

    @staticmethod
    def revoke(key: AccessKey) -> bool:
        """Returns False when the key was already revoked"""
        if key.status == "revoked":
            return False
        lock_adapter.revoke_access_code(key.lock, key.code)
        key.status = "revoked"
        key.revoked_at = datetime.utcnow()
        return True

    @staticmethod
    def revoke_for_reservation(db: Session, reservation: Reservation) -> int:
        keys = db.query(AccessKey).filter(
            AccessKey.reservation_id == reservation.id,
            AccessKey.status == "active",
        ).all()
        revoked = sum(1 for key in keys if AccessKeyService.revoke(key))
        if revoked:
            log_event("locks", "system", "Revoke reservation codes", f"reservation_id={reservation.id} count={revoked}")
        return revoked

    @staticmethod
    def verify(db: Session, lock: SmartLock, code: str, now: Optional[datetime] = None) -> Tuple[str, Optional[AccessKey]]:
        """
        Checks a code entered at the lock.

        Returns:
            (reason, key) where reason is ok | not_found | expired | not_yet_valid | revoked.
            A successful check increments usage_count.
        """
        now = now or datetime.utcnow()
        keys = (
            db.query(AccessKey)
            .filter(AccessKey.lock_id == lock.id, AccessKey.code == code)
            .order_by(AccessKey.created_at.desc(), AccessKey.id.desc())
            .all()
        )
        if not keys:
            return "not_found", None

        AccessKeyService.refresh_expired(keys, now)

        active = [key for key in keys if key.status == "active"]
        if not active:
            latest = keys[0]
            return latest.status, latest

        key = active[0]
        if now < key.valid_from:
            return "not_yet_valid", key

        key.usage_count = (key.usage_count or 0) + 1
        return "ok", key
