"""
Pending Action Models

A PendingAction is a staged, not-yet-committed transaction proposal.

LIFECYCLE:
    draft ──confirm──▶ confirmed ──executed──▶ executed
      │                    │
      │                    └──failed──▶ execution_failed ──retry──▶ confirmed
      │                                        │
      └──cancel──▶ cancelled ◀──────cancel─────┘

CRITICAL: Only an explicit user confirmation of a specific action id moves
it out of draft. Cancelled actions are deleted, not archived.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field, model_validator

from ledgerchat.models.payloads import ActionPayload, ActionType


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ActionState(str, Enum):
    """Where a pending action is in its lifecycle."""
    DRAFT = "draft"                        # Awaiting user decision
    CONFIRMED = "confirmed"                # User said yes, not yet committed
    CANCELLED = "cancelled"                # User said no (record is deleted)
    EXECUTED = "executed"                  # Committed to the record store
    EXECUTION_FAILED = "execution_failed"  # Commit rejected, can be retried


ALLOWED_TRANSITIONS: dict[ActionState, set[ActionState]] = {
    ActionState.DRAFT: {ActionState.CONFIRMED, ActionState.CANCELLED},
    ActionState.CONFIRMED: {ActionState.EXECUTED, ActionState.EXECUTION_FAILED},
    ActionState.EXECUTION_FAILED: {ActionState.CONFIRMED, ActionState.CANCELLED},
    ActionState.CANCELLED: set(),
    ActionState.EXECUTED: set(),
}


def can_transition(current: ActionState, target: ActionState) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, set())


class PendingAction(BaseModel):
    """
    A staged action owned by the conversation that created it.

    ``version`` increases on every state change; stores use it for
    compare-and-set so two racing transitions cannot both win.
    """

    id: UUID = Field(default_factory=uuid4)
    conversation_id: str = Field(..., min_length=1)
    user_id: str = Field(..., min_length=1)
    action_type: ActionType
    payload: ActionPayload
    state: ActionState = ActionState.DRAFT
    version: int = Field(default=0, ge=0)

    confidence_score: Optional[float] = Field(
        default=None,
        ge=0.0,
        le=1.0,
        description="How sure the assistant was about its interpretation"
    )
    last_error: Optional[str] = Field(
        default=None,
        description="Most recent execution failure, kept for the retry prompt"
    )

    created_at: datetime = Field(default_factory=_utcnow)
    resolved_at: Optional[datetime] = None

    @model_validator(mode='after')
    def check_payload_type(self) -> 'PendingAction':
        if self.payload.action_type != self.action_type.value:
            raise ValueError(
                f"Payload type '{self.payload.action_type}' does not match "
                f"action type '{self.action_type.value}'"
            )
        return self

    @property
    def is_open(self) -> bool:
        """Still waiting on the user (addressable as 'the thing just proposed')."""
        return self.state == ActionState.DRAFT


class ExecutionOutcome(BaseModel):
    """
    Result of committing a confirmed action.

    Failures carry the store's message verbatim.
    """

    action_id: UUID
    action_type: ActionType
    success: bool
    result: Optional[dict[str, Any]] = None
    error: Optional[str] = None

    @classmethod
    def ok(cls, action: PendingAction, result: dict[str, Any]) -> 'ExecutionOutcome':
        return cls(
            action_id=action.id,
            action_type=action.action_type,
            success=True,
            result=result,
        )

    @classmethod
    def failed(cls, action: PendingAction, error: str) -> 'ExecutionOutcome':
        return cls(
            action_id=action.id,
            action_type=action.action_type,
            success=False,
            error=error,
        )
