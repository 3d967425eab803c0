"""
Pending Action Manager

The state machine behind "here's what I'll record, shall I go ahead?".

TRANSITIONS (see ALLOWED_TRANSITIONS):
    draft            -> confirmed | cancelled
    confirmed        -> executed | execution_failed
    execution_failed -> confirmed (retry) | cancelled

CRITICAL: Every transition is a compare-and-set on (state, version).
Reading the action, checking the transition and writing it back is not
enough on its own: a confirm racing a cancel would both pass the check.
The store only applies a change if nobody moved the action in between.
"""

from datetime import datetime, timezone
from typing import Any, Optional, Union
from uuid import UUID

import structlog

from ledgerchat.actions.errors import (
    ActionNotFoundError,
    ConcurrentModificationError,
    InvalidTransitionError,
)
from ledgerchat.audit import AuditLogger
from ledgerchat.models.actions import ActionState, PendingAction, can_transition
from ledgerchat.models.payloads import ActionPayload, ActionType, parse_payload
from ledgerchat.services.storage import PendingActionStoreInterface


logger = structlog.get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PendingActionManager:
    """
    Creates, confirms, cancels and tracks staged actions.

    Usage:
        action = await manager.create(conversation_id, user_id, payload)
        ...user says yes...
        action = await manager.confirm(action.id)
    """

    def __init__(
        self,
        store: PendingActionStoreInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._store = store
        self._audit = audit_logger

    async def create(
        self,
        conversation_id: str,
        user_id: str,
        payload: Union[ActionPayload, dict],
        confidence_score: Optional[float] = None,
        missing_fields: Optional[list[str]] = None,
        correlation_id: Optional[UUID] = None,
    ) -> PendingAction:
        """
        Persist a new draft.

        Raises:
            pydantic.ValidationError: if a raw dict payload is not storable
        """
        if isinstance(payload, dict):
            payload = parse_payload(payload)

        action = PendingAction(
            conversation_id=conversation_id,
            user_id=user_id,
            action_type=ActionType(payload.action_type),
            payload=payload,
            confidence_score=confidence_score,
        )
        await self._store.insert(action)

        if self._audit:
            await self._audit.log_action_staged(
                action_id=action.id,
                action_type=action.action_type.value,
                missing_fields=missing_fields or [],
                correlation_id=correlation_id,
            )
        return action

    async def get(self, action_id: UUID) -> PendingAction:
        """
        Raises:
            ActionNotFoundError: if the id is unknown or was cancelled
        """
        action = await self._store.get(action_id)
        if action is None:
            raise ActionNotFoundError(action_id)
        return action

    async def confirm(
        self,
        action_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> PendingAction:
        """
        Move a draft to confirmed.

        Does not create the financial record; that is ActionExecutor's job.

        Raises:
            ActionNotFoundError: unknown or cancelled id
            InvalidTransitionError: action is not a draft
            ConcurrentModificationError: lost a race with another transition
        """
        action = await self._transition(
            action_id,
            ActionState.CONFIRMED,
            {"resolved_at": _utcnow()},
            allowed_from={ActionState.DRAFT},
        )
        if self._audit:
            await self._audit.log_action_confirmed(action.id, correlation_id)
        return action

    async def cancel(
        self,
        action_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> bool:
        """
        Cancel and delete an action.

        Idempotent: cancelling an id that no longer exists is a no-op.

        Returns:
            True if something was cancelled, False if nothing was there

        Raises:
            InvalidTransitionError: action is confirmed or already executed
            ConcurrentModificationError: lost a race with another transition
        """
        current = await self._store.get(action_id)
        if current is None:
            logger.debug("cancel_noop", action_id=str(action_id))
            return False

        await self._transition(
            action_id,
            ActionState.CANCELLED,
            {"resolved_at": _utcnow()},
            current=current,
        )
        await self._store.delete(action_id)

        if self._audit:
            await self._audit.log_action_cancelled(action_id, correlation_id)
        return True

    async def latest_pending(self, conversation_id: str) -> Optional[PendingAction]:
        """
        The most recently created action still awaiting a decision.

        This is what "yes, do it" refers to when no id is given.
        """
        drafts = await self._store.list_by_conversation(
            conversation_id,
            state=ActionState.DRAFT,
        )
        return drafts[0] if drafts else None

    async def list_pending(self, conversation_id: str) -> list[PendingAction]:
        """All drafts for a conversation, newest first."""
        return await self._store.list_by_conversation(
            conversation_id,
            state=ActionState.DRAFT,
        )

    async def mark_executed(
        self,
        action_id: UUID,
        result_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> PendingAction:
        action = await self._transition(
            action_id,
            ActionState.EXECUTED,
            {"last_error": None},
        )
        if self._audit:
            await self._audit.log_action_executed(
                action_id=action.id,
                action_type=action.action_type.value,
                result_id=result_id,
                correlation_id=correlation_id,
            )
        return action

    async def mark_failed(
        self,
        action_id: UUID,
        error: str,
        correlation_id: Optional[UUID] = None,
    ) -> PendingAction:
        """Record a rejected commit. The action stays retryable."""
        action = await self._transition(
            action_id,
            ActionState.EXECUTION_FAILED,
            {"last_error": error},
        )
        if self._audit:
            await self._audit.log_execution_failed(
                action_id=action.id,
                action_type=action.action_type.value,
                error_message=error,
                correlation_id=correlation_id,
            )
        return action

    async def retry(
        self,
        action_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> PendingAction:
        """
        Put a failed action back to confirmed so it can be executed again.

        Raises:
            InvalidTransitionError: action has not failed
        """
        action = await self._transition(
            action_id,
            ActionState.CONFIRMED,
            {},
            allowed_from={ActionState.EXECUTION_FAILED},
        )
        if self._audit:
            await self._audit.log_action_retried(action.id, correlation_id)
        return action

    async def _transition(
        self,
        action_id: UUID,
        target: ActionState,
        changes: dict[str, Any],
        allowed_from: Optional[set[ActionState]] = None,
        current: Optional[PendingAction] = None,
    ) -> PendingAction:
        if current is None:
            current = await self.get(action_id)

        permitted = can_transition(current.state, target)
        if allowed_from is not None:
            permitted = permitted and current.state in allowed_from
        if not permitted:
            raise InvalidTransitionError(action_id, current.state, target)

        updated = await self._store.compare_and_set(
            action_id,
            expected_state=current.state,
            expected_version=current.version,
            changes={"state": target, **changes},
        )
        if updated is None:
            logger.warning(
                "pending_action_race_lost",
                action_id=str(action_id),
                expected_state=current.state.value,
                target=target.value,
            )
            raise ConcurrentModificationError(action_id)

        logger.info(
            "pending_action_transition",
            action_id=str(action_id),
            from_state=current.state.value,
            to_state=target.value,
            version=updated.version,
        )
        return updated
