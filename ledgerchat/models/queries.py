"""
Record Query Models

CRITICAL: The conversational layer turns a question into a RecordQuery.
The query is then executed DETERMINISTICALLY on stored records, and only
what the store returns is ever shown to the user.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from ledgerchat.models.records import RecordKind


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RecordQuery(BaseModel):
    """
    A structured lookup of income, expense or invoice records.

    ``date_query`` is free text ("last month", "march 1 to march 15")
    and goes through the date parser before the store is asked.
    """

    query_id: UUID = Field(default_factory=uuid4)
    kind: RecordKind
    date_query: Optional[str] = None
    client_name: Optional[str] = None
    category_name: Optional[str] = None
    text: Optional[str] = Field(
        default=None,
        description="Free text matched against descriptions, notes and numbers"
    )
    limit: int = Field(default=10, ge=1, le=100)


class QueryResult(BaseModel):
    """Result of executing a RecordQuery."""

    query_id: UUID
    executed_at: datetime = Field(default_factory=_utcnow)

    success: bool
    error_message: Optional[str] = None

    data_found: bool = Field(
        ...,
        description="Was any data found?"
    )
    result_count: int = Field(ge=0)
    results: list[dict[str, Any]] = Field(default_factory=list)

    date_from: Optional[date] = None
    date_to: Optional[date] = None
    total_base_amount: Optional[Decimal] = Field(
        default=None,
        description="Sum of base-currency amounts over the returned records"
    )

    query_description: str = Field(
        ...,
        description="Human-readable description of what was queried"
    )
