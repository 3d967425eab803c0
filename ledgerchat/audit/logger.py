"""
Audit Logger

DESIGN DECISION: Every significant step of the staging pipeline is logged.
This provides:
1. Complete traceability from draft to committed record
2. Debugging capability when a commit is rejected
3. Visibility of degraded (identity-rate) money computations

The audit logger:
- Is async to not block the conversational turn
- Gracefully handles failures (doesn't crash the flow if logging fails)
- Supports correlation IDs to trace related events
"""

import logging
from typing import Optional
from uuid import UUID, uuid4

import structlog

from ledgerchat.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from ledgerchat.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


def configure_logging(level: str = "INFO") -> None:
    """Route stdlib logging (and therefore structlog) at the given level."""
    logging.basicConfig(format="%(message)s", level=getattr(logging, level.upper()))


class AuditLogger:
    """
    Writes staging, execution and rate events.

    Every event goes to the structlog stream; it is also appended to
    the audit storage backend when one was supplied.
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        self._storage = storage
        self._logger = structlog.get_logger("ledgerchat.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Record one event.

        Returns False only when the storage backend rejected or failed
        the write; a logger without storage always returns True.
        """
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        elif event.severity == AuditSeverity.DEBUG:
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # audit trouble must not break the turn
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_dates_parsed(
        self,
        query: str,
        start: Optional[str],
        end: Optional[str],
        correlation_id: Optional[UUID],
    ) -> None:
        event = AuditEventBuilder.dates_parsed(
            query=query,
            start=start,
            end=end,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_validation_failed(
        self,
        action_type: str,
        errors: list[str],
        correlation_id: Optional[UUID],
    ) -> None:
        """Log a draft that did not pass validation."""
        event = AuditEventBuilder.validation_failed(
            action_type=action_type,
            errors=errors,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_action_staged(
        self,
        action_id: UUID,
        action_type: str,
        missing_fields: list[str],
        correlation_id: Optional[UUID],
    ) -> None:
        event = AuditEventBuilder.action_staged(
            action_id=action_id,
            action_type=action_type,
            missing_fields=missing_fields,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_action_confirmed(
        self,
        action_id: UUID,
        correlation_id: Optional[UUID],
    ) -> None:
        """Log user confirmation."""
        event = AuditEventBuilder.action_confirmed(
            action_id=action_id,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_action_cancelled(
        self,
        action_id: UUID,
        correlation_id: Optional[UUID],
    ) -> None:
        """Log user cancellation."""
        event = AuditEventBuilder.action_cancelled(
            action_id=action_id,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_action_executed(
        self,
        action_id: UUID,
        action_type: str,
        result_id: Optional[str],
        correlation_id: Optional[UUID],
    ) -> None:
        event = AuditEventBuilder.action_executed(
            action_id=action_id,
            action_type=action_type,
            result_id=result_id,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_execution_failed(
        self,
        action_id: UUID,
        action_type: str,
        error_message: str,
        correlation_id: Optional[UUID],
    ) -> None:
        """Log a commit the record store rejected."""
        event = AuditEventBuilder.execution_failed(
            action_id=action_id,
            action_type=action_type,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_action_retried(
        self,
        action_id: UUID,
        correlation_id: Optional[UUID],
    ) -> None:
        event = AuditEventBuilder.action_retried(
            action_id=action_id,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_rate_degraded(
        self,
        from_currency: str,
        to_currency: str,
        reason: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an identity-rate fallback."""
        event = AuditEventBuilder.rate_degraded(
            from_currency=from_currency,
            to_currency=to_currency,
            reason=reason,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_query_executed(
        self,
        query_id: UUID,
        kind: str,
        result_count: int,
        correlation_id: Optional[UUID],
    ) -> None:
        """Log query execution."""
        event = AuditEventBuilder.query_executed(
            query_id=query_id,
            kind=kind,
            result_count=result_count,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        event = AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_external_service_error(
        self,
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log external service error."""
        event = AuditEventBuilder.external_service_error(
            service=service,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)


def create_correlation_id() -> UUID:
    """New id tying together the events of one conversational turn."""
    return uuid4()
