import datetime as dt
from typing import Annotated, Optional, Literal, Dict

from pydantic import AfterValidator, BaseModel, Field, ConfigDict, model_validator

from schemas.common import PartialUpdate
from schemas.reservations import PaymentMethod


# ===== RECEIPTS =====

class ReceiptCreate(BaseModel):
    hotel_id: Optional[int] = None
    date: Optional[dt.date] = None
    type: Literal["income", "expense"]
    amount: float = Field(..., gt=0)
    method: PaymentMethod = "cash"
    reservation_id: Optional[int] = None
    notes: Optional[str] = None


class ReceiptRead(BaseModel):
    id: int
    hotel_id: int
    date: dt.date
    type: str
    amount: float
    method: str
    reservation_id: Optional[int] = None
    reservation_number: Optional[str] = None
    notes: Optional[str] = None
    user: str
    created_at: dt.datetime

    model_config = ConfigDict(from_attributes=True)


class ReceiptTotals(BaseModel):
    count: int
    income: float
    expense: float
    net: float


# ===== INVOICES =====

InvoiceStatus = Literal["pending", "paid", "overdue"]


class InvoiceCreate(BaseModel):
    hotel_id: Optional[int] = None
    guest_id: Optional[int] = None
    reservation_id: Optional[int] = None
    contract_number: Optional[str] = Field(None, max_length=60)
    issue_date: Optional[dt.date] = None
    due_date: Optional[dt.date] = None
    subtotal: float = Field(..., ge=0)
    vat: Optional[float] = Field(None, ge=0)
    notes: Optional[str] = None

    @model_validator(mode="after")
    def _check_due_date(self):
        if self.issue_date and self.due_date and self.due_date < self.issue_date:
            raise ValueError("due_date cannot be before issue_date")
        return self


class InvoiceFromReservation(BaseModel):
    issue_date: Optional[dt.date] = None
    due_date: Optional[dt.date] = None
    contract_number: Optional[str] = Field(None, max_length=60)
    notes: Optional[str] = None


class InvoiceUpdate(PartialUpdate):
    # a null vat is recomputed at the default rate
    nullable_fields = ("contract_number", "guest_id", "vat", "notes")

    contract_number: Optional[str] = Field(None, max_length=60)
    guest_id: Optional[int] = None
    due_date: Optional[dt.date] = None
    subtotal: Optional[float] = Field(None, ge=0)
    vat: Optional[float] = Field(None, ge=0)
    notes: Optional[str] = None


class InvoiceRead(BaseModel):
    id: Optional[int] = None
    source: Literal["invoice", "payment"] = "invoice"
    hotel_id: int
    invoice_number: str
    contract_number: Optional[str] = None
    guest_id: Optional[int] = None
    guest_name: str = "Guest"
    reservation_id: Optional[int] = None
    issue_date: dt.date
    due_date: dt.date
    subtotal: float
    vat: float
    total: float
    status: InvoiceStatus
    paid_at: Optional[dt.datetime] = None
    notes: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class InvoiceSummary(BaseModel):
    count: int
    total_amount: float
    paid_amount: float
    pending_amount: float
    overdue_amount: float
    paid_count: int
    pending_count: int
    overdue_count: int


# ===== PAYMENT LINKS =====

class PaymentLinkCreate(BaseModel):
    hotel_id: Optional[int] = None
    reservation_id: Optional[int] = None
    amount: float = Field(..., gt=0)
    description: Optional[str] = Field(None, max_length=255)
    expires_at: Optional[dt.datetime] = None
    expires_in_hours: Optional[int] = Field(None, gt=0, le=24 * 90)


class PaymentLinkRead(BaseModel):
    id: int
    hotel_id: int
    reservation_id: Optional[int] = None
    amount: float
    description: Optional[str] = None
    token: str
    url: str
    status: Literal["active", "paid", "expired", "cancelled"]
    expires_at: dt.datetime
    paid_at: Optional[dt.datetime] = None
    created_at: dt.datetime

    model_config = ConfigDict(from_attributes=True)


class PaymentLinkPublic(BaseModel):
    """What the guest sees on the bill page"""
    amount: float
    description: Optional[str] = None
    status: str
    expires_at: dt.datetime

    model_config = ConfigDict(from_attributes=True)


class PaymentLinkPay(BaseModel):
    method: PaymentMethod = "online"


# ===== OWNER STATEMENTS =====

def _validate_period(value: str) -> str:
    try:
        year, month = value.split("-")
        if len(year) != 4 or not 1 <= int(month) <= 12:
            raise ValueError
        int(year)
    except ValueError:
        raise ValueError("period must look like YYYY-MM")
    return f"{year}-{int(month):02d}"


Period = Annotated[str, AfterValidator(_validate_period)]


class OwnerStatementCreate(BaseModel):
    hotel_id: Optional[int] = None
    owner_name: str = Field(..., min_length=1, max_length=120)
    owner_id: Optional[str] = Field(None, max_length=60)
    period: Period
    total_revenue: float = Field(0, ge=0)
    expenses: float = Field(0, ge=0)
    commission: float = Field(0, ge=0)


class OwnerStatementGenerate(BaseModel):
    hotel_id: Optional[int] = None
    owner_name: str = Field(..., min_length=1, max_length=120)
    owner_id: Optional[str] = Field(None, max_length=60)
    period: Period
    commission_rate: Optional[float] = Field(None, ge=0, le=1)


class OwnerStatementUpdate(PartialUpdate):
    nullable_fields = ("owner_id",)

    owner_name: Optional[str] = Field(None, min_length=1, max_length=120)
    owner_id: Optional[str] = Field(None, max_length=60)
    period: Optional[Period] = None
    total_revenue: Optional[float] = Field(None, ge=0)
    expenses: Optional[float] = Field(None, ge=0)
    commission: Optional[float] = Field(None, ge=0)


class OwnerStatementRead(BaseModel):
    id: int
    hotel_id: int
    owner_name: str
    owner_id: Optional[str] = None
    period: Period
    total_revenue: float
    expenses: float
    commission: float
    net_payout: float
    status: Literal["draft", "sent", "paid"]
    sent_at: Optional[dt.datetime] = None
    paid_at: Optional[dt.datetime] = None
    created_at: dt.datetime

    model_config = ConfigDict(from_attributes=True)


class OwnerStatementSummary(BaseModel):
    pending_total: float
    paid_total: float
    counts: Dict[str, int]
