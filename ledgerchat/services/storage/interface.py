"""
Abstract Storage Interface

DESIGN DECISION: We define abstract interfaces for storage operations.
This allows us to:
1. Plug in whatever record store the host application already has
2. Use in-memory storage for testing
3. Keep the staging pipeline decoupled from persistence

The interfaces are intentionally small - only the operations the staging
pipeline actually needs.
"""

from abc import ABC, abstractmethod
from datetime import date
from typing import Any, Collection, Optional
from uuid import UUID

from ledgerchat.models.actions import ActionState, PendingAction
from ledgerchat.models.audit import AuditEvent
from ledgerchat.models.entities import (
    Category,
    CategoryKind,
    Client,
    Project,
    TaxRate,
    Vendor,
)
from ledgerchat.models.records import (
    CategoryRecord,
    ClientRecord,
    ExpenseRecord,
    IncomeRecord,
    InvoiceRecord,
    ProjectRecord,
    RecordKind,
    StoredRecord,
    TaxRateRecord,
    VendorRecord,
)
from ledgerchat.models.settings import UserSettings


class RecordStoreInterface(ABC):
    """
    Abstract interface for the accounting record store.

    Reads named entities, creates records, and answers the name-uniqueness
    questions the validation pipeline asks before any creation.
    """

    # --- user settings -----------------------------------------------------

    @abstractmethod
    async def get_user_settings(self, user_id: str) -> UserSettings:
        """
        Get a user's base currency, enabled currencies and tax defaults.

        Returns defaults if the user has never configured anything.
        """
        pass

    # --- named entities ----------------------------------------------------

    @abstractmethod
    async def list_clients(self, user_id: str) -> list[Client]:
        pass

    @abstractmethod
    async def list_categories(
        self,
        user_id: str,
        kind: Optional[CategoryKind] = None,
    ) -> list[Category]:
        pass

    @abstractmethod
    async def list_projects(
        self,
        user_id: str,
        client_id: Optional[UUID] = None,
    ) -> list[Project]:
        """
        List projects, optionally only those linked to one client.
        """
        pass

    @abstractmethod
    async def list_tax_rates(self, user_id: str) -> list[TaxRate]:
        pass

    @abstractmethod
    async def list_vendors(self, user_id: str) -> list[Vendor]:
        pass

    @abstractmethod
    async def name_exists(
        self,
        user_id: str,
        entity: str,
        name: str,
        exclude_id: Optional[UUID] = None,
    ) -> bool:
        """
        Case-insensitive name uniqueness check before creation.

        Args:
            entity: 'client', 'category', 'project' or 'vendor'
            name: The proposed name
            exclude_id: Ignore this entity (for renames)
        """
        pass

    # --- creation ----------------------------------------------------------

    @abstractmethod
    async def create_client(self, record: ClientRecord) -> Client:
        """
        Raises:
            DuplicateError: If a client with that name already exists
        """
        pass

    @abstractmethod
    async def create_project(self, record: ProjectRecord) -> Project:
        """
        Raises:
            DuplicateError: If a project with that name already exists
            NotFoundError: If the linked client no longer exists
        """
        pass

    @abstractmethod
    async def create_category(self, record: CategoryRecord) -> Category:
        """
        Raises:
            DuplicateError: If a category of the same kind has that name
        """
        pass

    @abstractmethod
    async def create_tax_rate(self, record: TaxRateRecord) -> TaxRate:
        """
        The user's first tax rate becomes their default.

        Raises:
            DuplicateError: If a rate with that percentage already exists
        """
        pass

    @abstractmethod
    async def create_vendor(self, record: VendorRecord) -> Vendor:
        """
        Raises:
            DuplicateError: If a vendor with that name already exists
        """
        pass

    @abstractmethod
    async def create_income(self, record: IncomeRecord) -> StoredRecord:
        """
        Raises:
            NotFoundError: If a referenced entity no longer exists
        """
        pass

    @abstractmethod
    async def create_expense(self, record: ExpenseRecord) -> StoredRecord:
        pass

    @abstractmethod
    async def create_invoice(self, record: InvoiceRecord) -> StoredRecord:
        """
        Create an invoice and its line items in one atomic call.

        The store assigns the invoice number and the initial status.
        """
        pass

    # --- queries -----------------------------------------------------------

    @abstractmethod
    async def query_records(
        self,
        kind: RecordKind,
        user_id: str,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        text: Optional[str] = None,
        limit: int = 100,
        client_ids: Optional[Collection[str]] = None,
        category_ids: Optional[Collection[str]] = None,
    ) -> list[StoredRecord]:
        """
        Query records by owner, inclusive date range and free text.

        ``client_ids`` and ``category_ids`` (string ids) restrict to
        records referencing one of them; an empty collection matches
        nothing. The limit applies after every filter. Returns newest first.
        """
        pass


class PendingActionStoreInterface(ABC):
    """
    Abstract interface for pending action persistence.

    State changes go through ``compare_and_set`` only, so two racing
    transitions on the same action cannot both succeed.
    """

    @abstractmethod
    async def insert(self, action: PendingAction) -> PendingAction:
        pass

    @abstractmethod
    async def get(self, action_id: UUID) -> Optional[PendingAction]:
        pass

    @abstractmethod
    async def delete(self, action_id: UUID) -> bool:
        """
        Returns:
            True if something was deleted, False if it did not exist
        """
        pass

    @abstractmethod
    async def list_by_conversation(
        self,
        conversation_id: str,
        state: Optional[ActionState] = None,
    ) -> list[PendingAction]:
        """
        List actions for a conversation, newest first.
        """
        pass

    @abstractmethod
    async def compare_and_set(
        self,
        action_id: UUID,
        expected_state: ActionState,
        expected_version: int,
        changes: dict[str, Any],
    ) -> Optional[PendingAction]:
        """
        Apply ``changes`` only if the stored action is still in
        ``expected_state`` at ``expected_version``. Bumps the version.

        Returns:
            The updated action, or None if the precondition did not hold
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """
        Returns:
            List of related events in chronological order
        """
        pass

    @abstractmethod
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Returns:
            List of recent events (newest first)
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass
