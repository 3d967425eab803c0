"""
Shared fixtures.

Every test runs against the in-memory stores and fake rate services.
No network access anywhere in the suite.
"""

from datetime import date
from typing import Optional, Sequence

import pytest

from ledgerchat.audit import AuditLogger
from ledgerchat.models.entities import (
    Category,
    CategoryKind,
    Client,
    Project,
    TaxRate,
    Vendor,
)
from ledgerchat.models.settings import UserSettings
from ledgerchat.services.rates import Clock, CurrencyConverter, RateCache, RateService
from ledgerchat.services.storage import (
    InMemoryAuditStorage,
    InMemoryPendingActionStore,
    InMemoryRecordStore,
)


USER_ID = "user-1"
REFERENCE_DATE = date(2024, 11, 15)  # a Friday


class FakeClock(Clock):
    """Manually advanced clock."""

    def __init__(self, start: float = 1000.0):
        self.value = start

    def now(self) -> float:
        return self.value

    def advance(self, seconds: float) -> None:
        self.value += seconds


class FakeRateService(RateService):
    """
    Serves rates from a fixed table quoted per base currency.

    ``tables`` maps quote currency -> {currency: units per 1 quote}.
    """

    def __init__(
        self,
        tables: Optional[dict[str, dict[str, float]]] = None,
        pairs: Optional[dict[tuple[str, str], float]] = None,
        fail: bool = False,
    ):
        self.tables = tables or {}
        self.pairs = pairs or {}
        self.fail = fail
        self.get_rates_calls: list[tuple[str, list[str]]] = []
        self.convert_calls: list[tuple[str, str]] = []

    async def get_rates(self, base_currency: str, currencies: Sequence[str]) -> dict[str, float]:
        self.get_rates_calls.append((base_currency, list(currencies)))
        if self.fail:
            raise RuntimeError("rate service down")
        table = self.tables.get(base_currency, {})
        if not currencies:
            return dict(table)
        return {c: table[c] for c in currencies if c in table}

    async def convert(self, amount: float, from_currency: str, to_currency: str) -> float:
        self.convert_calls.append((from_currency, to_currency))
        if self.fail:
            raise RuntimeError("rate service down")
        return amount * self.pairs[(from_currency, to_currency)]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def audit_logger(audit_storage):
    return AuditLogger(audit_storage)


@pytest.fixture
def record_store():
    """Store seeded with one user's clients, categories, projects and rates."""
    store = InMemoryRecordStore()
    store.set_user_settings(UserSettings(
        user_id=USER_ID,
        base_currency="USD",
        enabled_currencies=["EUR", "GBP"],
        default_tax_rate=None,
    ))

    acme = store.add_client(Client(user_id=USER_ID, name="John Smith", company_name="Acme Corp"))
    store.add_client(Client(user_id=USER_ID, name="Globex"))
    store.add_client(Client(user_id=USER_ID, name="Initech"))

    store.add_category(Category(user_id=USER_ID, name="Consulting", kind=CategoryKind.INCOME))
    store.add_category(Category(user_id=USER_ID, name="Software", kind=CategoryKind.EXPENSE))
    store.add_category(Category(user_id=USER_ID, name="Travel", kind=CategoryKind.EXPENSE))

    store.add_project(Project(user_id=USER_ID, name="Website Redesign", client_id=acme.id))

    store.add_tax_rate(TaxRate(user_id=USER_ID, name="Standard VAT", rate=20.0))
    store.add_tax_rate(TaxRate(user_id=USER_ID, name="Reduced VAT", rate=5.0))

    store.add_vendor(Vendor(user_id=USER_ID, name="AWS"))
    return store


@pytest.fixture
def pending_store():
    return InMemoryPendingActionStore()


@pytest.fixture
def rate_service():
    return FakeRateService(
        tables={"USD": {"EUR": 0.92, "GBP": 0.8}},
        pairs={("EUR", "USD"): 1.0 / 0.92, ("GBP", "USD"): 1.25},
    )


@pytest.fixture
def converter(rate_service, clock, audit_logger):
    return CurrencyConverter(
        rate_service=rate_service,
        cache=RateCache(clock=clock),
        audit_logger=audit_logger,
        timeout_seconds=0.5,
    )


async def find_client(store: InMemoryRecordStore, name: str) -> Client:
    for client in await store.list_clients(USER_ID):
        if client.name == name:
            return client
    raise KeyError(name)
