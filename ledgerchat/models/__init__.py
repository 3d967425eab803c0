"""
Data Models Package

This package contains all Pydantic models used in ledgerchat.
All data flowing through the staging pipeline must conform to these schemas.
"""

from ledgerchat.models.actions import (
    ALLOWED_TRANSITIONS,
    ActionState,
    ExecutionOutcome,
    PendingAction,
    can_transition,
)
from ledgerchat.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from ledgerchat.models.entities import (
    Category,
    CategoryKind,
    Client,
    CreationResult,
    EntityKind,
    NamedEntity,
    Project,
    ProjectStatus,
    ResolutionResult,
    TaxRate,
    Vendor,
)
from ledgerchat.models.money import (
    DateQueryResult,
    DateRange,
    Money,
    quantize_money,
)
from ledgerchat.models.payloads import (
    ActionPayload,
    ActionType,
    ClientPayload,
    ExpensePayload,
    IncomePayload,
    InvoiceLineItem,
    InvoicePayload,
    ProjectPayload,
    ValidationResult,
    parse_payload,
)
from ledgerchat.models.queries import QueryResult, RecordQuery
from ledgerchat.models.records import (
    CategoryRecord,
    ClientRecord,
    ExpenseRecord,
    IncomeRecord,
    InvoiceLineRecord,
    InvoiceRecord,
    ProjectRecord,
    RecordKind,
    StoredRecord,
    TaxRateRecord,
    VendorRecord,
)
from ledgerchat.models.settings import UserSettings

__all__ = [
    # Pending actions
    "ALLOWED_TRANSITIONS",
    "ActionState",
    "ExecutionOutcome",
    "PendingAction",
    "can_transition",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
    # Entities
    "Category",
    "CategoryKind",
    "Client",
    "CreationResult",
    "EntityKind",
    "NamedEntity",
    "Project",
    "ProjectStatus",
    "ResolutionResult",
    "TaxRate",
    "Vendor",
    # Money and dates
    "DateQueryResult",
    "DateRange",
    "Money",
    "quantize_money",
    # Payloads
    "ActionPayload",
    "ActionType",
    "ClientPayload",
    "ExpensePayload",
    "IncomePayload",
    "InvoiceLineItem",
    "InvoicePayload",
    "ProjectPayload",
    "ValidationResult",
    "parse_payload",
    # Queries
    "QueryResult",
    "RecordQuery",
    # Records
    "CategoryRecord",
    "ClientRecord",
    "ExpenseRecord",
    "IncomeRecord",
    "InvoiceLineRecord",
    "InvoiceRecord",
    "ProjectRecord",
    "RecordKind",
    "StoredRecord",
    "TaxRateRecord",
    "VendorRecord",
    # User settings
    "UserSettings",
]
