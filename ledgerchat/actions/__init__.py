"""Pending action lifecycle and execution."""

from ledgerchat.actions.creation import EntityCreator
from ledgerchat.actions.errors import (
    ActionError,
    ActionNotFoundError,
    ConcurrentModificationError,
    InvalidTransitionError,
    UnsupportedActionError,
)
from ledgerchat.actions.executor import ActionExecutor, tax_for
from ledgerchat.actions.pending import PendingActionManager

__all__ = [
    # State machine
    "PendingActionManager",
    # Execution
    "ActionExecutor",
    "EntityCreator",
    "tax_for",
    # Exceptions
    "ActionError",
    "ActionNotFoundError",
    "ConcurrentModificationError",
    "InvalidTransitionError",
    "UnsupportedActionError",
]
