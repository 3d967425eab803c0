"""
Named Entity Models

Clients, categories, projects, tax rates and vendors are owned by the
record store. This package only READS them (and may ask the store to
create new ones). Entities are frozen so nothing here can mutate a
record the store handed out.

Every entity exposes a primary name and an optional secondary name;
entity resolution compares against both.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, model_validator


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class EntityKind(str, Enum):
    """Kinds of named entity that can be referenced from a draft."""
    CLIENT = "client"
    CATEGORY = "category"
    PROJECT = "project"
    TAX_RATE = "tax_rate"
    VENDOR = "vendor"


class CategoryKind(str, Enum):
    """Categories are scoped to one side of the ledger."""
    INCOME = "income"
    EXPENSE = "expense"


class ProjectStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    ON_HOLD = "on_hold"
    CANCELLED = "cancelled"


class NamedEntity(BaseModel):
    """
    Base for anything a user can refer to by name.

    Subclasses decide what their primary/secondary names are.
    """
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    id: UUID = Field(default_factory=uuid4)
    user_id: Optional[str] = Field(
        default=None,
        description="Owner of the entity"
    )
    name: str = Field(
        ...,
        min_length=1,
        max_length=200,
    )
    created_at: datetime = Field(default_factory=_utcnow)

    @property
    def primary_name(self) -> str:
        return self.name

    @property
    def secondary_name(self) -> Optional[str]:
        return None

    @property
    def display_name(self) -> str:
        return self.primary_name

    def describe(self) -> str:
        """One-line description used in candidate lists."""
        return self.display_name


class Client(NamedEntity):
    """A customer. Matched on personal name or company name."""

    company_name: Optional[str] = Field(default=None, max_length=200)
    email: Optional[str] = Field(default=None, max_length=200)
    phone: Optional[str] = Field(default=None, max_length=50)
    phone_country_code: str = Field(default="+1", max_length=6)
    address: Optional[str] = Field(default=None, max_length=500)

    @property
    def secondary_name(self) -> Optional[str]:
        return self.company_name or None

    @property
    def display_name(self) -> str:
        return self.company_name or self.name

    def describe(self) -> str:
        if self.company_name:
            return f"{self.name} ({self.company_name})"
        return self.name


class Category(NamedEntity):
    """Income or expense category."""

    kind: CategoryKind
    color: Optional[str] = Field(default=None, max_length=20)


class Project(NamedEntity):
    """A piece of client work that income and invoices can be linked to."""

    client_id: Optional[UUID] = None
    status: ProjectStatus = ProjectStatus.ACTIVE
    description: Optional[str] = Field(default=None, max_length=1000)
    budget_amount: Optional[Decimal] = Field(default=None, ge=0)
    budget_currency: Optional[str] = Field(default=None, max_length=3)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    color: Optional[str] = Field(default=None, max_length=20)


class TaxRate(NamedEntity):
    """A configured named tax rate, stored as a percentage (e.g. 20.0)."""

    rate: float = Field(..., ge=0.0, le=100.0)
    is_default: bool = False

    def describe(self) -> str:
        return f"{self.name} ({self.rate:g}%)"


class Vendor(NamedEntity):
    """A supplier that expenses are paid to."""

    email: Optional[str] = Field(default=None, max_length=200)

    def describe(self) -> str:
        if self.email:
            return f"{self.name} ({self.email})"
        return self.name


class ResolutionResult(BaseModel):
    """
    Outcome of resolving a text reference against candidates.

    INVARIANT: an exact match and a non-empty similar list never coexist.
    Both empty means nothing matched at all.
    """
    model_config = ConfigDict(frozen=True)

    exact_match: Optional[NamedEntity] = None
    similar_matches: list[NamedEntity] = Field(default_factory=list)

    @model_validator(mode='after')
    def check_exclusive(self) -> 'ResolutionResult':
        if self.exact_match is not None and self.similar_matches:
            raise ValueError("exact_match and similar_matches are mutually exclusive")
        return self

    @property
    def is_resolved(self) -> bool:
        return self.exact_match is not None

    @property
    def is_ambiguous(self) -> bool:
        return self.exact_match is None and len(self.similar_matches) > 0

    @property
    def is_not_found(self) -> bool:
        return self.exact_match is None and not self.similar_matches


class CreationResult(BaseModel):
    """
    Outcome of creating a category, tax rate or vendor on request.

    A refusal carries the message to show the user; nothing was written.
    """

    success: bool
    entity: Optional[NamedEntity] = None
    error: Optional[str] = None

    @classmethod
    def created(cls, entity: NamedEntity) -> 'CreationResult':
        return cls(success=True, entity=entity)

    @classmethod
    def refused(cls, error: str) -> 'CreationResult':
        return cls(success=False, error=error)
