"""
Draft Action Payloads

Every staged action carries exactly one of these payloads, selected by
its ``action_type`` tag. Raw dicts coming from the conversational layer
are validated into this union at the boundary (``parse_payload``) before
they reach validation or the pending-action store.

Each payload carries two kinds of reference fields:
- ``*_name`` fields: what the user said ("Acme", "Consulting")
- ``*_id`` fields: filled in by the validation pipeline once a name
  resolves to exactly one entity

DESIGN DECISION: Unknown keys are dropped at the boundary. Lifecycle
fields such as an invoice ``status`` have no place in any payload, so a
conversational payload cannot carry them forward.
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, model_validator

from ledgerchat.models.money import CurrencyCode


class ActionType(str, Enum):
    """Kinds of action the assistant can stage."""
    INCOME = "income"
    EXPENSE = "expense"
    INVOICE = "invoice"
    PROJECT = "project"
    CLIENT = "client"


class _PayloadBase(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")

    def with_resolved(self, **changes: Any) -> '_PayloadBase':
        """Return a copy with resolved references filled in."""
        return self.model_copy(update=changes)


class IncomePayload(_PayloadBase):
    """Income received, amount is NET of tax."""

    action_type: Literal["income"] = "income"
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    entry_date: date
    description: Optional[str] = Field(default=None, max_length=500)
    currency: Optional[CurrencyCode] = None
    tax_rate: Optional[float] = Field(default=None, ge=0, le=100)
    reference_number: Optional[str] = Field(default=None, max_length=100)

    category_name: Optional[str] = None
    client_name: Optional[str] = None
    project_name: Optional[str] = None

    category_id: Optional[UUID] = None
    client_id: Optional[UUID] = None
    project_id: Optional[UUID] = None
    tax_rate_id: Optional[UUID] = None


class ExpensePayload(_PayloadBase):
    """Money paid out, optionally to a known vendor."""

    action_type: Literal["expense"] = "expense"
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    entry_date: date
    description: Optional[str] = Field(default=None, max_length=500)
    currency: Optional[CurrencyCode] = None
    tax_rate: Optional[float] = Field(default=None, ge=0, le=100)
    reference_number: Optional[str] = Field(default=None, max_length=100)

    category_name: Optional[str] = None
    vendor_name: Optional[str] = None
    client_name: Optional[str] = None
    project_name: Optional[str] = None

    category_id: Optional[UUID] = None
    vendor_id: Optional[UUID] = None
    client_id: Optional[UUID] = None
    project_id: Optional[UUID] = None
    tax_rate_id: Optional[UUID] = None


class InvoiceLineItem(BaseModel):
    """A single billable line. Amount is always quantity x rate."""
    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")

    description: str = Field(..., min_length=1, max_length=500)
    quantity: Decimal = Field(default=Decimal("1"), gt=0)
    rate: Decimal = Field(default=Decimal("0"), ge=0)


class InvoicePayload(_PayloadBase):
    """An invoice to a client. Totals are derived, never supplied."""

    action_type: Literal["invoice"] = "invoice"
    invoice_date: date
    due_date: Optional[date] = None
    items: list[InvoiceLineItem] = Field(default_factory=list)
    currency: Optional[CurrencyCode] = None
    tax_rate: Optional[float] = Field(default=None, ge=0, le=100)
    notes: Optional[str] = Field(default=None, max_length=1000)

    client_name: Optional[str] = None
    project_name: Optional[str] = None
    category_name: Optional[str] = None

    client_id: Optional[UUID] = None
    project_id: Optional[UUID] = None
    category_id: Optional[UUID] = None
    tax_rate_id: Optional[UUID] = None


class ProjectPayload(_PayloadBase):
    """A new project, optionally linked to a client."""

    action_type: Literal["project"] = "project"
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=1000)
    budget_amount: Optional[Decimal] = None
    budget_currency: Optional[CurrencyCode] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    color: str = Field(default="#6366F1", max_length=20)

    client_name: Optional[str] = None
    client_id: Optional[UUID] = None

    @property
    def currency(self) -> Optional[str]:
        return self.budget_currency


class ClientPayload(_PayloadBase):
    """A new client."""

    action_type: Literal["client"] = "client"
    name: str = Field(..., min_length=1, max_length=200)
    company_name: Optional[str] = Field(default=None, max_length=200)
    email: Optional[str] = Field(default=None, max_length=200)
    phone: Optional[str] = Field(default=None, max_length=50)
    phone_country_code: str = Field(default="+1", max_length=6)
    address: Optional[str] = Field(default=None, max_length=500)

    @property
    def currency(self) -> Optional[str]:
        return None


ActionPayload = Annotated[
    Union[IncomePayload, ExpensePayload, InvoicePayload, ProjectPayload, ClientPayload],
    Field(discriminator="action_type"),
]

_PAYLOAD_ADAPTER: TypeAdapter = TypeAdapter(ActionPayload)


def parse_payload(data: Any) -> ActionPayload:
    """
    Validate a raw dict into the matching payload variant.

    Raises:
        pydantic.ValidationError: if the tag is unknown or the variant's
            schema rejects the data
    """
    if isinstance(data, BaseModel):
        data = data.model_dump()
    return _PAYLOAD_ADAPTER.validate_python(data)


# =============================================================================
# VALIDATION RESULT
# =============================================================================

class ValidationResult(BaseModel):
    """
    Result of validating a draft payload.

    ``valid`` is true exactly when ``errors`` is empty. Missing optional
    fields are reported separately and never block.
    """

    valid: bool
    errors: list[str] = Field(default_factory=list)
    missing_fields: list[str] = Field(default_factory=list)
    resolved: Optional[ActionPayload] = Field(
        default=None,
        description="The payload with resolved entity ids filled in"
    )

    @model_validator(mode='after')
    def check_valid_flag(self) -> 'ValidationResult':
        if self.valid != (len(self.errors) == 0):
            raise ValueError("valid must be true exactly when there are no errors")
        return self

    @classmethod
    def from_checks(
        cls,
        errors: list[str],
        missing_fields: list[str],
        resolved: Optional[ActionPayload] = None,
    ) -> 'ValidationResult':
        return cls(
            valid=not errors,
            errors=errors,
            missing_fields=missing_fields,
            resolved=resolved if not errors else None,
        )

    @property
    def error_count(self) -> int:
        return len(self.errors)
