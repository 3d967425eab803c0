"""
Record Create-Requests

These are what the ActionExecutor hands to the record store. They hold
the AUTHORITATIVE numbers, recomputed at execution time.

CRITICAL: InvoiceRecord has no status field and forbids extra keys.
The store alone decides an invoice's initial lifecycle status.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field

from ledgerchat.models.entities import CategoryKind


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RecordKind(str, Enum):
    INCOME = "income"
    EXPENSE = "expense"
    INVOICE = "invoice"


class _RecordBase(BaseModel):
    model_config = ConfigDict(extra="forbid")

    user_id: str


class IncomeRecord(_RecordBase):
    amount: Decimal = Field(..., description="NET amount, excluding tax")
    description: Optional[str] = None
    entry_date: date
    category_id: Optional[UUID] = None
    client_id: Optional[UUID] = None
    project_id: Optional[UUID] = None
    currency: str
    exchange_rate: Decimal
    base_amount: Decimal
    tax_rate: Optional[float] = None
    tax_amount: Optional[Decimal] = None
    base_tax_amount: Decimal = Decimal("0.00")
    reference_number: Optional[str] = None


class ExpenseRecord(_RecordBase):
    amount: Decimal
    description: Optional[str] = None
    entry_date: date
    category_id: Optional[UUID] = None
    vendor_id: Optional[UUID] = None
    vendor_name: Optional[str] = None
    client_id: Optional[UUID] = None
    project_id: Optional[UUID] = None
    currency: str
    exchange_rate: Decimal
    base_amount: Decimal
    tax_rate: Optional[float] = None
    tax_amount: Optional[Decimal] = None
    base_tax_amount: Decimal = Decimal("0.00")
    reference_number: Optional[str] = None


class InvoiceLineRecord(BaseModel):
    model_config = ConfigDict(extra="forbid")

    description: str
    quantity: Decimal
    rate: Decimal
    amount: Decimal


class InvoiceRecord(_RecordBase):
    client_id: UUID
    invoice_date: date
    due_date: Optional[date] = None
    notes: Optional[str] = None
    project_id: Optional[UUID] = None
    income_category_id: Optional[UUID] = None
    currency: str
    exchange_rate: Decimal
    tax_rate: float
    subtotal: Decimal
    tax_amount: Decimal
    total: Decimal
    base_amount: Decimal
    base_tax_amount: Decimal
    items: list[InvoiceLineRecord] = Field(default_factory=list)


class ProjectRecord(_RecordBase):
    name: str
    description: Optional[str] = None
    client_id: Optional[UUID] = None
    budget_amount: Optional[Decimal] = None
    budget_currency: Optional[str] = None
    base_budget_amount: Optional[Decimal] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    color: Optional[str] = None


class ClientRecord(_RecordBase):
    name: str
    company_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    phone_country_code: str = "+1"
    address: Optional[str] = None


class CategoryRecord(_RecordBase):
    name: str
    kind: CategoryKind
    color: Optional[str] = None


class TaxRateRecord(_RecordBase):
    """``is_default`` is decided by the store, not the caller."""

    name: str
    rate: float = Field(..., ge=0.0, le=100.0)


class VendorRecord(_RecordBase):
    name: str
    email: Optional[str] = None


class StoredRecord(BaseModel):
    """
    A transaction record as the store persisted it.

    ``status`` is assigned by the store (invoices only).
    """

    id: UUID = Field(default_factory=uuid4)
    kind: RecordKind
    user_id: str
    record_date: date
    status: Optional[str] = None
    invoice_number: Optional[str] = None
    data: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=_utcnow)

    @property
    def base_amount(self) -> Decimal:
        return Decimal(str(self.data.get("base_amount", "0")))

    def searchable_text(self) -> str:
        """Text fields a free-text query is matched against."""
        parts = [
            self.data.get("description"),
            self.data.get("notes"),
            self.data.get("reference_number"),
            self.data.get("vendor_name"),
            self.invoice_number,
        ]
        return " ".join(str(p) for p in parts if p).lower()
