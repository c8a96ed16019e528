"""
Owner statements: monthly payout to a property owner
net_payout is always recomputed here, never taken from the client
"""
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from database import connection
from models.finance import OwnerStatement, Receipt
from models.user import User
from schemas.finance import (
    OwnerStatementCreate,
    OwnerStatementGenerate,
    OwnerStatementUpdate,
    OwnerStatementRead,
    OwnerStatementSummary,
)
from utils.billing_engine import (
    apply_statement_amounts,
    can_transition_statement,
    period_bounds,
    statement_amounts_from_receipts,
    statement_summary,
)
from utils.dependencies import get_current_user, get_owned, resolve_hotel_id, scope_hotel_ids
from utils.logging_utils import log_event, log_error

router = APIRouter(prefix="/owner-statements", tags=["Owner statements"])


# ===== HELPERS =====

def _commit(db: Session, user: User, action: str):
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        log_error("statements", user.username, action, str(e))
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=f"{action} failed")


def _get_statement(db: Session, user: User, statement_id: int) -> OwnerStatement:
    return get_owned(db, user, OwnerStatement, statement_id, "Statement not found")


def _require_draft(statement: OwnerStatement, action: str):
    if statement.status != "draft":
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Only draft statements can be {action} (status: {statement.status})",
        )


def _move(db: Session, user: User, statement: OwnerStatement, target: str) -> OwnerStatement:
    if not can_transition_statement(statement.status, target):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Statement cannot go from {statement.status} to {target}",
        )
    statement.status = target
    if target == "sent":
        statement.sent_at = datetime.utcnow()
    elif target == "paid":
        statement.paid_at = datetime.utcnow()
    _commit(db, user, f"Mark statement {target}")
    db.refresh(statement)
    log_event("statements", user.username, f"Statement {target}", f"statement_id={statement.id} net={statement.net_payout}")
    return statement


# ===== OWNER STATEMENTS =====

@router.get("", response_model=List[OwnerStatementRead])
def list_statements(
    hotel_id: Optional[int] = Query(None),
    statement_status: Optional[str] = Query(None, alias="status"),
    period: Optional[str] = Query(None),
    db: Session = Depends(connection.get_db),
    current_user: User = Depends(get_current_user),
):
    query = db.query(OwnerStatement).filter(
        OwnerStatement.hotel_id.in_(scope_hotel_ids(db, current_user, hotel_id))
    )
    if statement_status:
        query = query.filter(OwnerStatement.status == statement_status)
    if period:
        query = query.filter(OwnerStatement.period == period)
    return query.order_by(OwnerStatement.period.desc(), OwnerStatement.id.desc()).all()


@router.get("/summary", response_model=OwnerStatementSummary)
def summary(
    hotel_id: Optional[int] = Query(None),
    db: Session = Depends(connection.get_db),
    current_user: User = Depends(get_current_user),
):
    statements = db.query(OwnerStatement).filter(
        OwnerStatement.hotel_id.in_(scope_hotel_ids(db, current_user, hotel_id))
    ).all()
    return statement_summary(statements)


@router.get("/{statement_id}", response_model=OwnerStatementRead)
def get_statement(
    statement_id: int = Path(..., gt=0),
    db: Session = Depends(connection.get_db),
    current_user: User = Depends(get_current_user),
):
    return _get_statement(db, current_user, statement_id)


@router.post("", response_model=OwnerStatementRead, status_code=status.HTTP_201_CREATED)
def create_statement(
    payload: OwnerStatementCreate,
    db: Session = Depends(connection.get_db),
    current_user: User = Depends(get_current_user),
):
    hotel_id = resolve_hotel_id(db, current_user, payload.hotel_id)
    statement = OwnerStatement(hotel_id=hotel_id, status="draft", **payload.model_dump(exclude={"hotel_id"}))
    apply_statement_amounts(statement)
    db.add(statement)
    _commit(db, current_user, "Create statement")
    db.refresh(statement)
    log_event("statements", current_user.username, "Create statement", f"statement_id={statement.id} period={statement.period}")
    return statement


@router.post("/generate", response_model=OwnerStatementRead, status_code=status.HTTP_201_CREATED)
def generate_statement(
    payload: OwnerStatementGenerate,
    db: Session = Depends(connection.get_db),
    current_user: User = Depends(get_current_user),
):
    """Draft built from the month's income and expense receipts"""
    hotel_id = resolve_hotel_id(db, current_user, payload.hotel_id)
    start, end = period_bounds(payload.period)
    receipts = db.query(Receipt).filter(
        Receipt.hotel_id == hotel_id,
        Receipt.date >= start,
        Receipt.date <= end,
    ).all()
    amounts = statement_amounts_from_receipts(receipts, payload.commission_rate)

    statement = OwnerStatement(
        hotel_id=hotel_id,
        owner_name=payload.owner_name,
        owner_id=payload.owner_id,
        period=payload.period,
        status="draft",
        **amounts,
    )
    db.add(statement)
    _commit(db, current_user, "Generate statement")
    db.refresh(statement)
    log_event(
        "statements",
        current_user.username,
        "Generate statement",
        f"statement_id={statement.id} period={statement.period} receipts={len(receipts)}",
    )
    return statement


@router.put("/{statement_id}", response_model=OwnerStatementRead)
def update_statement(
    payload: OwnerStatementUpdate,
    statement_id: int = Path(..., gt=0),
    db: Session = Depends(connection.get_db),
    current_user: User = Depends(get_current_user),
):
    statement = _get_statement(db, current_user, statement_id)
    _require_draft(statement, "edited")
    for field, value in payload.model_dump(exclude_unset=True).items():
        setattr(statement, field, value)
    apply_statement_amounts(statement)
    _commit(db, current_user, "Update statement")
    db.refresh(statement)
    log_event("statements", current_user.username, "Update statement", f"statement_id={statement_id}")
    return statement


@router.post("/{statement_id}/send", response_model=OwnerStatementRead)
def send_statement(
    statement_id: int = Path(..., gt=0),
    db: Session = Depends(connection.get_db),
    current_user: User = Depends(get_current_user),
):
    return _move(db, current_user, _get_statement(db, current_user, statement_id), "sent")


@router.post("/{statement_id}/pay", response_model=OwnerStatementRead)
def pay_statement(
    statement_id: int = Path(..., gt=0),
    db: Session = Depends(connection.get_db),
    current_user: User = Depends(get_current_user),
):
    return _move(db, current_user, _get_statement(db, current_user, statement_id), "paid")


@router.delete("/{statement_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_statement(
    statement_id: int = Path(..., gt=0),
    db: Session = Depends(connection.get_db),
    current_user: User = Depends(get_current_user),
):
    statement = _get_statement(db, current_user, statement_id)
    _require_draft(statement, "deleted")
    db.delete(statement)
    _commit(db, current_user, "Delete statement")
    log_event("statements", current_user.username, "Delete statement", f"statement_id={statement_id}")
