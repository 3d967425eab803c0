"""
Main Orchestrator for ledgerchat

This module ties together all the components and defines the
end-to-end flow for a conversational transaction:

    draft payload → validate → stage (draft) → preview
        → user confirms → execute → executed | execution_failed
        → user cancels  → deleted

DESIGN DECISION: The orchestrator enforces the boundaries:
- Nothing is staged unless validation passed
- Nothing is recorded without human confirmation
- Every step is audited under one correlation id

This is the "glue" that keeps the system correct even when the
conversational layer behaves unexpectedly.
"""

from typing import Optional, Union
from uuid import UUID

import structlog

from ledgerchat.actions import ActionExecutor, EntityCreator, PendingActionManager
from ledgerchat.audit import AuditLogger, configure_logging, create_correlation_id
from ledgerchat.config import get_settings
from ledgerchat.dates import DateQueryParser
from ledgerchat.models.actions import ExecutionOutcome, PendingAction
from ledgerchat.models.payloads import ActionPayload, ValidationResult
from ledgerchat.queries import RecordQueryExecutor
from ledgerchat.services.rates import CurrencyConverter, HttpRateService, RateService, RateServiceError
from ledgerchat.services.storage import (
    AuditStorageInterface,
    InMemoryAuditStorage,
    InMemoryPendingActionStore,
    InMemoryRecordStore,
    PendingActionStoreInterface,
    RecordStoreInterface,
)
from ledgerchat.validation import ValidationPipeline


logger = structlog.get_logger(__name__)


class TransactionStagingFlow:
    """
    Orchestrates staging, confirmation and execution of actions.

    Flow:
    1. Validate → every problem collected, nothing staged on failure
    2. Stage → PendingAction in draft, preview shown to the user
    3. Confirm → user explicitly approves
    4. Execute → record created, action marked executed
       (or execution_failed, retryable)

    Human confirmation (step 3) is MANDATORY.
    The system NEVER auto-executes.
    """

    def __init__(
        self,
        pipeline: ValidationPipeline,
        manager: PendingActionManager,
        executor: ActionExecutor,
        audit_logger: Optional[AuditLogger] = None,
        creator: Optional[EntityCreator] = None,
    ):
        self._pipeline = pipeline
        self._manager = manager
        self._executor = executor
        self._audit_logger = audit_logger
        self._creator = creator

    @property
    def manager(self) -> PendingActionManager:
        return self._manager

    @property
    def creator(self) -> Optional[EntityCreator]:
        """Creates the categories, tax rates and vendors validation offered."""
        return self._creator

    async def stage(
        self,
        conversation_id: str,
        user_id: str,
        payload: Union[ActionPayload, dict],
        confidence_score: Optional[float] = None,
        correlation_id: Optional[UUID] = None,
    ) -> tuple[ValidationResult, Optional[PendingAction]]:
        """
        Validate a draft and, if it passes, stage it for confirmation.

        Returns:
            (validation_result, pending_action)

        pending_action is None when validation failed; the result's
        errors are what the user needs to see.
        """
        correlation_id = correlation_id or create_correlation_id()

        result = await self._pipeline.validate(user_id, payload)

        if not result.valid:
            if self._audit_logger:
                await self._audit_logger.log_validation_failed(
                    action_type=_action_type_of(payload),
                    errors=result.errors,
                    correlation_id=correlation_id,
                )
            return result, None

        action = await self._manager.create(
            conversation_id=conversation_id,
            user_id=user_id,
            payload=result.resolved,
            confidence_score=confidence_score,
            missing_fields=result.missing_fields,
            correlation_id=correlation_id,
        )
        return result, action

    async def confirm_and_execute(
        self,
        action_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> ExecutionOutcome:
        """
        Confirm a draft and commit it.

        CRITICAL: This is called ONLY after explicit user confirmation.

        Raises:
            ActionNotFoundError: unknown or cancelled id
            InvalidTransitionError: the action is not a draft
            ConcurrentModificationError: another transition won the race
        """
        correlation_id = correlation_id or create_correlation_id()
        action = await self._manager.confirm(action_id, correlation_id)
        return await self._execute(action, correlation_id)

    async def confirm_latest_and_execute(
        self,
        conversation_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> Optional[ExecutionOutcome]:
        """
        Confirm whatever the user was last shown.

        Returns None when the conversation has nothing pending.
        """
        action = await self._manager.latest_pending(conversation_id)
        if action is None:
            logger.info("nothing_pending", conversation_id=conversation_id)
            return None
        return await self.confirm_and_execute(action.id, correlation_id)

    async def retry_and_execute(
        self,
        action_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> ExecutionOutcome:
        """Run a failed action again, after the user fixed the cause."""
        correlation_id = correlation_id or create_correlation_id()
        action = await self._manager.retry(action_id, correlation_id)
        return await self._execute(action, correlation_id)

    async def cancel(
        self,
        action_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> bool:
        correlation_id = correlation_id or create_correlation_id()
        return await self._manager.cancel(action_id, correlation_id)

    async def cancel_latest(
        self,
        conversation_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> bool:
        """Cancel the most recent draft. False if there was none."""
        action = await self._manager.latest_pending(conversation_id)
        if action is None:
            return False
        return await self.cancel(action.id, correlation_id)

    async def _execute(
        self,
        action: PendingAction,
        correlation_id: UUID,
    ) -> ExecutionOutcome:
        outcome = await self._executor.execute(action, correlation_id)

        if outcome.success:
            await self._manager.mark_executed(
                action.id,
                result_id=(outcome.result or {}).get("id"),
                correlation_id=correlation_id,
            )
        else:
            await self._manager.mark_failed(
                action.id,
                outcome.error or "Execution failed",
                correlation_id=correlation_id,
            )
        return outcome


def _action_type_of(payload: Union[ActionPayload, dict]) -> str:
    if isinstance(payload, dict):
        return str(payload.get("action_type") or "unknown")
    return payload.action_type


def create_app_components(
    record_store: Optional[RecordStoreInterface] = None,
    pending_store: Optional[PendingActionStoreInterface] = None,
    audit_storage: Optional[AuditStorageInterface] = None,
    rate_service: Optional[RateService] = None,
) -> tuple[TransactionStagingFlow, RecordQueryExecutor]:
    """
    Factory function to create all application components.

    Stores default to the in-memory implementations. The remote rate
    service is only used when RATES_SERVICE_URL is set; without it the
    converter works from cached and caller-supplied rates.

    Returns:
        (staging_flow, query_executor)
    """
    settings = get_settings()
    configure_logging(settings.app.log_level)

    record_store = record_store or InMemoryRecordStore(
        default_base_currency=settings.app.default_base_currency,
    )
    pending_store = pending_store or InMemoryPendingActionStore()
    audit_logger = AuditLogger(audit_storage or InMemoryAuditStorage())

    if rate_service is None:
        try:
            rate_service = HttpRateService.from_settings(settings.rates)
        except RateServiceError as e:
            # Rate service not configured - continue without it
            logger.warning("rate_service_not_configured", reason=str(e))

    converter = CurrencyConverter.from_settings(
        settings.rates,
        rate_service=rate_service,
        audit_logger=audit_logger,
    )

    matching = settings.matching
    flow = TransactionStagingFlow(
        pipeline=ValidationPipeline(record_store, matching),
        manager=PendingActionManager(pending_store, audit_logger),
        executor=ActionExecutor(record_store, converter),
        audit_logger=audit_logger,
        creator=EntityCreator(record_store, matching),
    )
    query_executor = RecordQueryExecutor(
        record_store,
        date_parser=DateQueryParser(max_range_depth=matching.max_range_depth),
        audit_logger=audit_logger,
    )
    return flow, query_executor
