from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from database import connection
from models.finance import Invoice, Receipt
from models.hotel import Guest, Reservation
from models.user import User
from schemas.finance import (
    InvoiceCreate,
    InvoiceFromReservation,
    InvoiceUpdate,
    InvoiceRead,
    InvoiceSummary,
)
from utils.billing_engine import (
    compute_invoice_amounts,
    default_due_date,
    invoice_from_payment,
    invoice_summary,
    next_invoice_number,
    refresh_overdue,
)
from utils.dependencies import get_current_user, get_owned, resolve_hotel_id, scope_hotel_ids
from utils.logging_utils import log_event, log_error
from utils.timezone import get_hotel_today

router = APIRouter(prefix="/invoices", tags=["Invoices"])


# ===== HELPERS =====

def _get_invoice(db: Session, user: User, invoice_id: int) -> Invoice:
    return get_owned(db, user, Invoice, invoice_id, "Invoice not found")


def _save(db: Session, user: User, action: str):
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        log_error("invoices", user.username, action, str(e))
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=f"{action} failed")


def _refresh_overdue(db: Session, user: User, invoices: List[Invoice]):
    changed = refresh_overdue(invoices, get_hotel_today())
    if changed:
        _save(db, user, "Mark overdue invoices")
        log_event("invoices", user.username, "Mark overdue", f"count={changed}")


def _insert_invoice(db: Session, user: User, invoice: Invoice) -> Invoice:
    """Adds the invoice with the next free number; one retry covers a concurrent insert"""
    for attempt in range(2):
        invoice.invoice_number = next_invoice_number(db, invoice.hotel_id, invoice.issue_date)
        db.add(invoice)
        try:
            db.commit()
            db.refresh(invoice)
            return invoice
        except IntegrityError:
            db.rollback()
            if attempt:
                raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Invoice number already taken, retry")
        except SQLAlchemyError as e:
            db.rollback()
            log_error("invoices", user.username, "Create invoice", str(e))
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Could not create the invoice")


def _amounts_or_400(subtotal, vat=None):
    try:
        return compute_invoice_amounts(subtotal, vat)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


# ===== INVOICES =====

@router.get("", response_model=List[InvoiceRead])
def list_invoices(
    hotel_id: Optional[int] = Query(None),
    invoice_status: Optional[str] = Query(None, alias="status"),
    guest_id: Optional[int] = Query(None),
    include_payments: bool = Query(False, description="Also list income receipts that were never invoiced"),
    db: Session = Depends(connection.get_db),
    current_user: User = Depends(get_current_user),
):
    hotel_ids = scope_hotel_ids(db, current_user, hotel_id)
    invoices = (
        db.query(Invoice)
        .options(joinedload(Invoice.guest))
        .filter(Invoice.hotel_id.in_(hotel_ids))
        .order_by(Invoice.issue_date.desc(), Invoice.id.desc())
        .all()
    )
    _refresh_overdue(db, current_user, invoices)

    if invoice_status:
        invoices = [i for i in invoices if i.status == invoice_status]
    if guest_id:
        invoices = [i for i in invoices if i.guest_id == guest_id]

    result = [InvoiceRead.model_validate(i) for i in invoices]

    if include_payments and invoice_status in (None, "paid"):
        invoiced = [
            row[0]
            for row in db.query(Invoice.reservation_id).filter(
                Invoice.hotel_id.in_(hotel_ids),
                Invoice.reservation_id.isnot(None),
            )
        ]
        payments = (
            db.query(Receipt)
            .options(joinedload(Receipt.reservation).joinedload(Reservation.guest))
            .filter(
                Receipt.hotel_id.in_(hotel_ids),
                Receipt.type == "income",
                Receipt.reservation_id.isnot(None),
                Receipt.reservation_id.notin_(invoiced),
            )
            .order_by(Receipt.date.desc(), Receipt.id.desc())
            .all()
        )
        rows = [invoice_from_payment(p) for p in payments]
        if guest_id:
            rows = [row for row in rows if row["guest_id"] == guest_id]
        result.extend(InvoiceRead(**row) for row in rows)

    return result


@router.get("/summary", response_model=InvoiceSummary)
def summary(
    hotel_id: Optional[int] = Query(None),
    db: Session = Depends(connection.get_db),
    current_user: User = Depends(get_current_user),
):
    invoices = db.query(Invoice).filter(Invoice.hotel_id.in_(scope_hotel_ids(db, current_user, hotel_id))).all()
    _refresh_overdue(db, current_user, invoices)
    return invoice_summary(invoices)


@router.get("/{invoice_id}", response_model=InvoiceRead)
def get_invoice(
    invoice_id: int = Path(..., gt=0),
    db: Session = Depends(connection.get_db),
    current_user: User = Depends(get_current_user),
):
    invoice = _get_invoice(db, current_user, invoice_id)
    _refresh_overdue(db, current_user, [invoice])
    return invoice


@router.post("", response_model=InvoiceRead, status_code=status.HTTP_201_CREATED)
def create_invoice(
    payload: InvoiceCreate,
    db: Session = Depends(connection.get_db),
    current_user: User = Depends(get_current_user),
):
    reservation = None
    if payload.reservation_id is not None:
        reservation = get_owned(db, current_user, Reservation, payload.reservation_id, "Reservation not found")
        hotel_id = reservation.hotel_id
    else:
        hotel_id = resolve_hotel_id(db, current_user, payload.hotel_id)

    guest_id = payload.guest_id or (reservation.guest_id if reservation else None)
    if guest_id is not None:
        guest = get_owned(db, current_user, Guest, guest_id, "Guest not found")
        if guest.hotel_id != hotel_id:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Guest belongs to another hotel")

    amounts = _amounts_or_400(payload.subtotal, payload.vat)
    issue_date = payload.issue_date or get_hotel_today()

    invoice = Invoice(
        hotel_id=hotel_id,
        contract_number=payload.contract_number,
        guest_id=guest_id,
        reservation_id=payload.reservation_id,
        issue_date=issue_date,
        due_date=payload.due_date or default_due_date(issue_date),
        subtotal=amounts.subtotal,
        vat=amounts.vat,
        total=amounts.total,
        status="pending",
        notes=payload.notes,
    )
    invoice = _insert_invoice(db, current_user, invoice)
    log_event("invoices", current_user.username, "Create invoice", f"invoice={invoice.invoice_number} total={invoice.total}")
    return invoice


@router.post("/from-reservation/{reservation_id}", response_model=InvoiceRead, status_code=status.HTTP_201_CREATED)
def create_invoice_from_reservation(
    reservation_id: int = Path(..., gt=0),
    payload: Optional[InvoiceFromReservation] = None,
    db: Session = Depends(connection.get_db),
    current_user: User = Depends(get_current_user),
):
    """Bills the booking total; the booking keeps a single open invoice"""
    payload = payload or InvoiceFromReservation()
    reservation = get_owned(db, current_user, Reservation, reservation_id, "Reservation not found")
    if reservation.status in ("cancelled", "no_show"):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Cannot invoice a cancelled reservation")

    existing = db.query(Invoice).filter(
        Invoice.reservation_id == reservation.id,
        Invoice.status != "paid",
    ).first()
    if existing:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Reservation already has open invoice {existing.invoice_number}",
        )

    amounts = _amounts_or_400(reservation.total_amount)
    issue_date = payload.issue_date or get_hotel_today()
    invoice = Invoice(
        hotel_id=reservation.hotel_id,
        contract_number=payload.contract_number or f"RES-{reservation.id:05d}",
        guest_id=reservation.guest_id,
        reservation_id=reservation.id,
        issue_date=issue_date,
        due_date=payload.due_date or default_due_date(issue_date),
        subtotal=amounts.subtotal,
        vat=amounts.vat,
        total=amounts.total,
        status="pending",
        notes=payload.notes,
    )
    invoice = _insert_invoice(db, current_user, invoice)
    log_event("invoices", current_user.username, "Invoice reservation", f"reservation_id={reservation_id} invoice={invoice.invoice_number}")
    return invoice


@router.put("/{invoice_id}", response_model=InvoiceRead)
def update_invoice(
    payload: InvoiceUpdate,
    invoice_id: int = Path(..., gt=0),
    db: Session = Depends(connection.get_db),
    current_user: User = Depends(get_current_user),
):
    invoice = _get_invoice(db, current_user, invoice_id)
    if invoice.status == "paid":
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Paid invoices cannot be edited")

    data = payload.model_dump(exclude_unset=True)
    if data.get("guest_id") is not None:
        guest = get_owned(db, current_user, Guest, data["guest_id"], "Guest not found")
        if guest.hotel_id != invoice.hotel_id:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Guest belongs to another hotel")
    if data.get("due_date") and data["due_date"] < invoice.issue_date:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="due_date cannot be before issue_date")

    if "subtotal" in data or "vat" in data:
        amounts = _amounts_or_400(data.pop("subtotal", invoice.subtotal), data.pop("vat", None))
        invoice.subtotal = amounts.subtotal
        invoice.vat = amounts.vat
        invoice.total = amounts.total

    for field, value in data.items():
        setattr(invoice, field, value)

    # A new due date can bring an overdue invoice back to pending
    if invoice.status == "overdue" and invoice.due_date >= get_hotel_today():
        invoice.status = "pending"

    _save(db, current_user, "Update invoice")
    db.refresh(invoice)
    log_event("invoices", current_user.username, "Update invoice", f"invoice_id={invoice_id}")
    return invoice


@router.post("/{invoice_id}/pay", response_model=InvoiceRead)
def mark_paid(
    invoice_id: int = Path(..., gt=0),
    db: Session = Depends(connection.get_db),
    current_user: User = Depends(get_current_user),
):
    invoice = _get_invoice(db, current_user, invoice_id)
    if invoice.status == "paid":
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Invoice is already paid")

    invoice.status = "paid"
    invoice.paid_at = datetime.utcnow()
    _save(db, current_user, "Mark invoice paid")
    db.refresh(invoice)
    log_event("invoices", current_user.username, "Mark paid", f"invoice={invoice.invoice_number}")
    return invoice


@router.delete("/{invoice_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_invoice(
    invoice_id: int = Path(..., gt=0),
    db: Session = Depends(connection.get_db),
    current_user: User = Depends(get_current_user),
):
    invoice = _get_invoice(db, current_user, invoice_id)
    if invoice.status == "paid":
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Paid invoices cannot be deleted")

    db.delete(invoice)
    _save(db, current_user, "Delete invoice")
    log_event("invoices", current_user.username, "Delete invoice", f"invoice_id={invoice_id}")
