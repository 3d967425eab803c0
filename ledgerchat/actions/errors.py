"""Exceptions raised by the pending action state machine and executor."""

from typing import Optional
from uuid import UUID

from ledgerchat.models.actions import ActionState


class ActionError(Exception):
    """Base exception for pending action operations."""
    pass


class ActionNotFoundError(ActionError):
    """No pending action with this id (never created, or cancelled)."""

    def __init__(self, action_id: UUID):
        self.action_id = action_id
        super().__init__(f"Pending action {action_id} not found")


class InvalidTransitionError(ActionError):
    """The action's current state does not allow the requested transition."""

    def __init__(self, action_id: UUID, current: ActionState, target: ActionState):
        self.action_id = action_id
        self.current = current
        self.target = target
        super().__init__(
            f"Pending action {action_id} cannot move from {current.value} to {target.value}"
        )


class ConcurrentModificationError(ActionError):
    """Another caller changed the action between read and write."""

    def __init__(self, action_id: UUID, message: Optional[str] = None):
        self.action_id = action_id
        super().__init__(message or f"Pending action {action_id} was modified concurrently")


class UnsupportedActionError(ActionError):
    """No executor handler for this action type. A wiring error, not a user error."""
    pass
