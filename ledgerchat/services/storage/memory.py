"""
In-Memory Storage Implementation

Implements every storage interface in process memory. Used by the test
suite and as the default wiring when the host application does not
inject its own stores.

Writes are guarded by an asyncio.Lock so compare-and-set transitions and
invoice numbering stay atomic across interleaved coroutines.
"""

import asyncio
import itertools
from datetime import date
from typing import Any, Collection, Iterable, Optional
from uuid import UUID

import structlog

from ledgerchat.models.actions import ActionState, PendingAction
from ledgerchat.models.audit import AuditEvent
from ledgerchat.models.entities import (
    Category,
    CategoryKind,
    Client,
    NamedEntity,
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
from ledgerchat.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    NotFoundError,
    PendingActionStoreInterface,
    RecordStoreInterface,
)


logger = structlog.get_logger(__name__)

DEFAULT_INVOICE_STATUS = "draft"
TAX_RATE_EPSILON = 0.01


class InMemoryRecordStore(RecordStoreInterface):
    """
    Record store held in dictionaries.

    Seed it with ``add_*`` helpers; the staging pipeline only reads
    entities and creates records through the interface methods.
    """

    def __init__(self, default_base_currency: str = "USD"):
        self._default_base_currency = default_base_currency
        self._settings: dict[str, UserSettings] = {}
        self._clients: dict[UUID, Client] = {}
        self._categories: dict[UUID, Category] = {}
        self._projects: dict[UUID, Project] = {}
        self._tax_rates: dict[UUID, TaxRate] = {}
        self._vendors: dict[UUID, Vendor] = {}
        self._records: list[StoredRecord] = []
        self._invoice_counter = itertools.count(1)
        self._lock = asyncio.Lock()

    # --- seeding -----------------------------------------------------------

    def set_user_settings(self, settings: UserSettings) -> None:
        self._settings[settings.user_id] = settings

    def add_client(self, client: Client) -> Client:
        self._clients[client.id] = client
        return client

    def add_category(self, category: Category) -> Category:
        self._categories[category.id] = category
        return category

    def add_project(self, project: Project) -> Project:
        self._projects[project.id] = project
        return project

    def add_tax_rate(self, tax_rate: TaxRate) -> TaxRate:
        self._tax_rates[tax_rate.id] = tax_rate
        return tax_rate

    def add_vendor(self, vendor: Vendor) -> Vendor:
        self._vendors[vendor.id] = vendor
        return vendor

    def remove_client(self, client_id: UUID) -> None:
        self._clients.pop(client_id, None)

    @property
    def records(self) -> list[StoredRecord]:
        return list(self._records)

    # --- reads -------------------------------------------------------------

    async def get_user_settings(self, user_id: str) -> UserSettings:
        settings = self._settings.get(user_id)
        if settings is None:
            return UserSettings(
                user_id=user_id,
                base_currency=self._default_base_currency,
            )
        return settings

    async def list_clients(self, user_id: str) -> list[Client]:
        return _owned(self._clients.values(), user_id)

    async def list_categories(
        self,
        user_id: str,
        kind: Optional[CategoryKind] = None,
    ) -> list[Category]:
        categories = _owned(self._categories.values(), user_id)
        if kind is not None:
            categories = [c for c in categories if c.kind == kind]
        return categories

    async def list_projects(
        self,
        user_id: str,
        client_id: Optional[UUID] = None,
    ) -> list[Project]:
        projects = _owned(self._projects.values(), user_id)
        if client_id is not None:
            projects = [p for p in projects if p.client_id == client_id]
        return projects

    async def list_tax_rates(self, user_id: str) -> list[TaxRate]:
        return _owned(self._tax_rates.values(), user_id)

    async def list_vendors(self, user_id: str) -> list[Vendor]:
        return _owned(self._vendors.values(), user_id)

    async def name_exists(
        self,
        user_id: str,
        entity: str,
        name: str,
        exclude_id: Optional[UUID] = None,
    ) -> bool:
        pools: dict[str, Iterable[NamedEntity]] = {
            "client": self._clients.values(),
            "category": self._categories.values(),
            "project": self._projects.values(),
            "vendor": self._vendors.values(),
        }
        if entity not in pools:
            raise ValueError(f"Unsupported entity for name check: {entity}")

        wanted = name.strip().lower()
        return any(
            item.name.lower() == wanted and item.id != exclude_id
            for item in _owned(pools[entity], user_id)
        )

    # --- creation ----------------------------------------------------------

    async def create_client(self, record: ClientRecord) -> Client:
        async with self._lock:
            if await self.name_exists(record.user_id, "client", record.name):
                raise DuplicateError(f'Client "{record.name}" already exists.')
            client = Client(**record.model_dump())
            self._clients[client.id] = client
        logger.info("client_created", client_id=str(client.id))
        return client

    async def create_project(self, record: ProjectRecord) -> Project:
        async with self._lock:
            if await self.name_exists(record.user_id, "project", record.name):
                raise DuplicateError(f'A project named "{record.name}" already exists.')
            self._require(self._clients, record.client_id, "Client")
            data = record.model_dump(exclude={"base_budget_amount"})
            project = Project(**data)
            self._projects[project.id] = project
        logger.info("project_created", project_id=str(project.id))
        return project

    async def create_category(self, record: CategoryRecord) -> Category:
        async with self._lock:
            wanted = record.name.strip().lower()
            for existing in await self.list_categories(record.user_id, kind=record.kind):
                if existing.name.lower() == wanted:
                    raise DuplicateError(
                        f'A {record.kind.value} category named "{record.name}" already exists.'
                    )
            category = Category(**record.model_dump())
            self._categories[category.id] = category
        logger.info("category_created", category_id=str(category.id), kind=category.kind.value)
        return category

    async def create_tax_rate(self, record: TaxRateRecord) -> TaxRate:
        async with self._lock:
            existing = await self.list_tax_rates(record.user_id)
            for rate in existing:
                if abs(rate.rate - record.rate) < TAX_RATE_EPSILON:
                    raise DuplicateError(
                        f"A tax rate of {record.rate:g}% already exists ({rate.name})."
                    )
            tax_rate = TaxRate(**record.model_dump(), is_default=not existing)
            self._tax_rates[tax_rate.id] = tax_rate
        logger.info("tax_rate_created", tax_rate_id=str(tax_rate.id), is_default=tax_rate.is_default)
        return tax_rate

    async def create_vendor(self, record: VendorRecord) -> Vendor:
        async with self._lock:
            if await self.name_exists(record.user_id, "vendor", record.name):
                raise DuplicateError(f'Vendor "{record.name}" already exists.')
            vendor = Vendor(**record.model_dump())
            self._vendors[vendor.id] = vendor
        logger.info("vendor_created", vendor_id=str(vendor.id))
        return vendor

    async def create_income(self, record: IncomeRecord) -> StoredRecord:
        async with self._lock:
            self._require(self._categories, record.category_id, "Category")
            self._require(self._clients, record.client_id, "Client")
            self._require(self._projects, record.project_id, "Project")
            stored = StoredRecord(
                kind=RecordKind.INCOME,
                user_id=record.user_id,
                record_date=record.entry_date,
                data=record.model_dump(mode="json"),
            )
            self._records.append(stored)
        return stored

    async def create_expense(self, record: ExpenseRecord) -> StoredRecord:
        async with self._lock:
            self._require(self._categories, record.category_id, "Category")
            self._require(self._vendors, record.vendor_id, "Vendor")
            self._require(self._clients, record.client_id, "Client")
            self._require(self._projects, record.project_id, "Project")
            stored = StoredRecord(
                kind=RecordKind.EXPENSE,
                user_id=record.user_id,
                record_date=record.entry_date,
                data=record.model_dump(mode="json"),
            )
            self._records.append(stored)
        return stored

    async def create_invoice(self, record: InvoiceRecord) -> StoredRecord:
        async with self._lock:
            self._require(self._clients, record.client_id, "Client")
            self._require(self._projects, record.project_id, "Project")
            self._require(self._categories, record.income_category_id, "Category")
            number = next(self._invoice_counter)
            stored = StoredRecord(
                kind=RecordKind.INVOICE,
                user_id=record.user_id,
                record_date=record.invoice_date,
                status=DEFAULT_INVOICE_STATUS,
                invoice_number=f"INV-{number:04d}",
                data=record.model_dump(mode="json"),
            )
            self._records.append(stored)
        return stored

    # --- queries -----------------------------------------------------------

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
        needle = text.strip().lower() if text else None
        matches = []
        for position, record in enumerate(self._records):
            if record.kind != kind or record.user_id != user_id:
                continue
            if date_from and record.record_date < date_from:
                continue
            if date_to and record.record_date > date_to:
                continue
            if needle and needle not in record.searchable_text():
                continue
            if client_ids is not None and record.data.get("client_id") not in client_ids:
                continue
            if category_ids is not None and _category_of(record) not in category_ids:
                continue
            matches.append((record.record_date, position, record))

        matches.sort(key=lambda item: (item[0], item[1]), reverse=True)
        return [record for _, _, record in matches[:limit]]

    @staticmethod
    def _require(pool: dict, entity_id: Optional[UUID], label: str) -> None:
        if entity_id is not None and entity_id not in pool:
            raise NotFoundError(f"{label} {entity_id} no longer exists.")


class InMemoryPendingActionStore(PendingActionStoreInterface):
    """Pending actions keyed by id, with insertion order as a tie-break."""

    def __init__(self):
        self._actions: dict[UUID, PendingAction] = {}
        self._sequence: dict[UUID, int] = {}
        self._counter = itertools.count()
        self._lock = asyncio.Lock()

    async def insert(self, action: PendingAction) -> PendingAction:
        async with self._lock:
            self._actions[action.id] = action.model_copy(deep=True)
            self._sequence[action.id] = next(self._counter)
        return action

    async def get(self, action_id: UUID) -> Optional[PendingAction]:
        action = self._actions.get(action_id)
        return action.model_copy(deep=True) if action else None

    async def delete(self, action_id: UUID) -> bool:
        async with self._lock:
            self._sequence.pop(action_id, None)
            return self._actions.pop(action_id, None) is not None

    async def list_by_conversation(
        self,
        conversation_id: str,
        state: Optional[ActionState] = None,
    ) -> list[PendingAction]:
        actions = [
            a for a in self._actions.values()
            if a.conversation_id == conversation_id
            and (state is None or a.state == state)
        ]
        actions.sort(
            key=lambda a: (a.created_at, self._sequence.get(a.id, 0)),
            reverse=True,
        )
        return [a.model_copy(deep=True) for a in actions]

    async def compare_and_set(
        self,
        action_id: UUID,
        expected_state: ActionState,
        expected_version: int,
        changes: dict[str, Any],
    ) -> Optional[PendingAction]:
        async with self._lock:
            current = self._actions.get(action_id)
            if current is None:
                return None
            if current.state != expected_state or current.version != expected_version:
                return None
            updated = current.model_copy(
                update={**changes, "version": current.version + 1},
                deep=True,
            )
            self._actions[action_id] = updated
        return updated.model_copy(deep=True)


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of audit events."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        return [e for e in self._events if e.correlation_id == correlation_id]

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        return [
            e for e in self._events
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        return list(reversed(self._events))[:limit]


def _owned(items: Iterable[NamedEntity], user_id: str) -> list:
    """Entities owned by the user (unowned seed data is visible to everyone)."""
    return [item for item in items if item.user_id in (None, user_id)]


def _category_of(record: StoredRecord) -> Optional[str]:
    return record.data.get("category_id") or record.data.get("income_category_id")
