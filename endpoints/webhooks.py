import json
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from config import CHANNEL_WEBHOOK_SECRET
from database import connection
from models.messaging import WebhookLog
from schemas.channel import ChannelBookingEvent, ChannelWebhookResult
from services.channel_service import ChannelImportService, NoFreeUnitError, verify_signature
from services.reservation_service import ReservationConflictError
from utils.logging_utils import log_event, log_error

router = APIRouter(prefix="/webhooks", tags=["Webhooks"])

SIGNATURE_HEADER = "X-Channel-Signature"


def _fail(db: Session, log_id: int, status_code: int, detail: str):
    """Rolls back the booking work, keeps the log row as failed and answers with the error"""
    db.rollback()
    log = db.get(WebhookLog, log_id)
    log.status = "failed"
    log.error = detail[:2000]
    log.processed_at = datetime.utcnow()
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        log_error("webhooks", "channel", "Save webhook log", str(e))
    log_error("webhooks", "channel", "Booking webhook failed", f"log_id={log_id} {detail}")
    raise HTTPException(status_code=status_code, detail=detail)


@router.post("/channel/booking", response_model=ChannelWebhookResult)
async def channel_booking_webhook(request: Request, db: Session = Depends(connection.get_db)):
    """
    Called by the channel manager when an OTA booking is made, modified or cancelled.

    The raw body is signed with HMAC-SHA256 using CHANNEL_WEBHOOK_SECRET,
    hex encoded in the X-Channel-Signature header. Every verified call is kept
    in webhook_logs with its outcome.
    """
    if not CHANNEL_WEBHOOK_SECRET:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Channel webhook is not configured")

    body = await request.body()
    if not verify_signature(body, request.headers.get(SIGNATURE_HEADER), CHANNEL_WEBHOOK_SECRET):
        log_event("webhooks", "channel", "Invalid signature", f"bytes={len(body)}")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid signature")

    try:
        data = json.loads(body)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid JSON payload")
    if not isinstance(data, dict):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid JSON payload")

    log = WebhookLog(
        provider="channel",
        event_type=str(data.get("event") or "unknown")[:50],
        external_id=str(data.get("booking_id") or "")[:100] or None,
        payload=data,
        status="received",
    )
    try:
        db.add(log)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        log_error("webhooks", "channel", "Save webhook log", str(e))
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Could not record the webhook")
    log_id = log.id

    try:
        event = ChannelBookingEvent.model_validate(data)
        action, reservation = ChannelImportService.apply(db, event)
        log.hotel_id = event.hotel_id
        log.status = "processed"
        log.processed_at = datetime.utcnow()
        db.commit()
    except ValidationError as e:
        _fail(db, log_id, status.HTTP_422_UNPROCESSABLE_ENTITY, f"Invalid booking payload: {e.error_count()} error(s)")
    except (ReservationConflictError, NoFreeUnitError) as e:
        _fail(db, log_id, status.HTTP_409_CONFLICT, str(e))
    except ValueError as e:
        _fail(db, log_id, status.HTTP_400_BAD_REQUEST, str(e))
    except LookupError as e:
        _fail(db, log_id, status.HTTP_404_NOT_FOUND, str(e))
    except SQLAlchemyError as e:
        log_error("webhooks", "channel", "Process booking", str(e))
        _fail(db, log_id, status.HTTP_500_INTERNAL_SERVER_ERROR, "Could not process the booking")

    log_event(
        "webhooks",
        "channel",
        "Booking webhook",
        f"log_id={log_id} event={event.event} booking_id={event.booking_id} action={action}",
    )
    return {
        "status": "processed",
        "action": action,
        "reservation_id": reservation.id if reservation else None,
        "log_id": log_id,
    }
