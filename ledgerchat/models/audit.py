"""
Audit Models for ledgerchat

Every significant step of the staging pipeline is logged for audit purposes.
This provides:
1. Complete traceability from a user's sentence to a committed record
2. Debugging information when a commit is rejected
3. A visible record of every degraded rate computation
4. Ability to reconstruct what the user was shown and what they agreed to

Events are append-only: nothing here is updated or removed.
Cancelled pending actions are deleted, but the cancellation event stays here.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuditEventType(str, Enum):
    """
    Types of events we audit.

    Every step in the staging pipeline has its own event type.
    """
    # Parsing
    DATES_PARSED = "dates_parsed"

    # Validation
    VALIDATION_FAILED = "validation_failed"

    # Pending action lifecycle
    ACTION_STAGED = "action_staged"
    ACTION_CONFIRMED = "action_confirmed"
    ACTION_CANCELLED = "action_cancelled"
    ACTION_EXECUTED = "action_executed"
    EXECUTION_FAILED = "execution_failed"
    ACTION_RETRIED = "action_retried"

    # Currency
    RATE_DEGRADED = "rate_degraded"

    # Query operations
    QUERY_EXECUTED = "query_executed"

    # System events
    SYSTEM_ERROR = "system_error"
    EXTERNAL_SERVICE_ERROR = "external_service_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    One entry in the audit trail.

    ``entity_id`` usually points at a PendingAction; rate events carry
    the currency pair in ``details`` instead.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=_utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'pending_action', 'record', 'rate')"
    )
    entity_id: Optional[UUID] = None

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., one conversational turn)"
    )

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)

    # Error information (if applicable)
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user decision?"
    )

    def to_log_dict(self) -> dict:
        """Flatten for structlog keyword arguments."""
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.action_staged(action_id, "income", correlation_id)
        event = AuditEventBuilder.action_confirmed(action_id, correlation_id)
    """

    @staticmethod
    def dates_parsed(
        query: str,
        start: Optional[str],
        end: Optional[str],
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DATES_PARSED,
            severity=AuditSeverity.DEBUG,
            entity_type="date_query",
            correlation_id=correlation_id,
            description=f"Date query parsed: {query!r}",
            details={
                "query": query,
                "start_date": start,
                "end_date": end,
            },
        )

    @staticmethod
    def validation_failed(
        action_type: str,
        errors: list[str],
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="draft",
            correlation_id=correlation_id,
            description=f"{action_type.capitalize()} draft failed validation with {len(errors)} errors",
            details={
                "action_type": action_type,
                "errors": errors,
            },
        )

    @staticmethod
    def action_staged(
        action_id: UUID,
        action_type: str,
        missing_fields: list[str],
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACTION_STAGED,
            entity_type="pending_action",
            entity_id=action_id,
            correlation_id=correlation_id,
            description=f"{action_type.capitalize()} staged for confirmation",
            details={
                "action_type": action_type,
                "missing_fields": missing_fields,
            },
        )

    @staticmethod
    def action_confirmed(
        action_id: UUID,
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACTION_CONFIRMED,
            entity_type="pending_action",
            entity_id=action_id,
            correlation_id=correlation_id,
            description="User confirmed staged action",
            is_user_action=True,
        )

    @staticmethod
    def action_cancelled(
        action_id: UUID,
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACTION_CANCELLED,
            entity_type="pending_action",
            entity_id=action_id,
            correlation_id=correlation_id,
            description="User cancelled staged action",
            is_user_action=True,
        )

    @staticmethod
    def action_executed(
        action_id: UUID,
        action_type: str,
        result_id: Optional[str],
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACTION_EXECUTED,
            entity_type="pending_action",
            entity_id=action_id,
            correlation_id=correlation_id,
            description=f"{action_type.capitalize()} committed to record store",
            details={
                "action_type": action_type,
                "result_id": result_id,
            },
        )

    @staticmethod
    def execution_failed(
        action_id: UUID,
        action_type: str,
        error_message: str,
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXECUTION_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="pending_action",
            entity_id=action_id,
            correlation_id=correlation_id,
            description=f"{action_type.capitalize()} was rejected by the record store",
            error_message=error_message,
            details={
                "action_type": action_type,
            },
        )

    @staticmethod
    def action_retried(
        action_id: UUID,
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACTION_RETRIED,
            entity_type="pending_action",
            entity_id=action_id,
            correlation_id=correlation_id,
            description="Failed action re-queued for execution",
            is_user_action=True,
        )

    @staticmethod
    def rate_degraded(
        from_currency: str,
        to_currency: str,
        reason: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RATE_DEGRADED,
            severity=AuditSeverity.WARNING,
            entity_type="rate",
            correlation_id=correlation_id,
            description=f"Using identity rate for {from_currency}->{to_currency}",
            error_message=reason,
            details={
                "from_currency": from_currency,
                "to_currency": to_currency,
            },
        )

    @staticmethod
    def query_executed(
        query_id: UUID,
        kind: str,
        result_count: int,
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.QUERY_EXECUTED,
            entity_type="query",
            entity_id=query_id,
            correlation_id=correlation_id,
            description=f"Query executed: {kind} returned {result_count} results",
            details={
                "kind": kind,
                "result_count": result_count,
            },
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )

    @staticmethod
    def external_service_error(
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"External service error: {service}",
            error_message=error_message,
            details={
                "service": service,
            },
            correlation_id=correlation_id,
        )
