"""Tests for executing confirmed actions against the record store."""

import pytest
from decimal import Decimal
from uuid import uuid4

from ledgerchat.actions import ActionExecutor, InvalidTransitionError, tax_for
from ledgerchat.models.actions import ActionState, PendingAction
from ledgerchat.models.payloads import parse_payload
from ledgerchat.models.settings import UserSettings

from conftest import USER_ID, find_client


@pytest.fixture
def executor(record_store, converter):
    return ActionExecutor(record_store, converter)


def confirmed(data: dict, **resolved) -> PendingAction:
    payload = parse_payload(data).with_resolved(**resolved)
    return PendingAction(
        conversation_id="conv-1",
        user_id=USER_ID,
        action_type=payload.action_type,
        payload=payload,
        state=ActionState.CONFIRMED,
    )


class TestTaxHelper:
    """Tests for the tax helper."""

    def test_tax_rounds_to_cents(self):
        """Test tax is amount x rate / 100, half-up to cents."""
        assert tax_for(Decimal("33.33"), 7.5) == Decimal("2.50")

    def test_no_rate_no_tax(self):
        """Test a missing or zero rate gives zero."""
        assert tax_for(Decimal("100"), None) == Decimal("0.00")
        assert tax_for(Decimal("100"), 0) == Decimal("0.00")


class TestIncomeAndExpense:
    """Tests for income and expense execution."""

    @pytest.mark.asyncio
    async def test_income_in_base_currency(self, executor, record_store):
        """Test tax is recomputed and the base amount equals the amount."""
        action = confirmed({
            "action_type": "income", "amount": "500", "entry_date": "2024-11-14", "tax_rate": 20,
        })
        outcome = await executor.execute(action)

        assert outcome.success
        assert outcome.result["tax_amount"] == "100.00"
        assert outcome.result["base_amount"] == "500.00"
        stored = record_store.records[-1]
        assert stored.data["exchange_rate"] == "1"
        assert stored.data["tax_amount"] == "100.00"

    @pytest.mark.asyncio
    async def test_foreign_income_uses_one_rate(self, executor, record_store, rate_service):
        """Test principal and tax convert with the same single rate."""
        action = confirmed({
            "action_type": "income", "amount": "92", "currency": "EUR",
            "entry_date": "2024-11-14", "tax_rate": 10,
        })
        outcome = await executor.execute(action)

        data = record_store.records[-1].data
        assert outcome.result["base_amount"] == "100.00"
        assert data["exchange_rate"] == "0.92"
        assert data["base_tax_amount"] == "10.00"
        assert len(rate_service.get_rates_calls) == 1

    @pytest.mark.asyncio
    async def test_default_tax_rate(self, executor, record_store):
        """Test the user's default tax applies when the draft has none."""
        record_store.set_user_settings(UserSettings(user_id=USER_ID, default_tax_rate=10))
        action = confirmed({"action_type": "income", "amount": "200", "entry_date": "2024-11-14"})
        outcome = await executor.execute(action)
        assert outcome.result["tax_amount"] == "20.00"

    @pytest.mark.asyncio
    async def test_expense_converts(self, executor, record_store):
        """Test an expense in GBP lands in USD."""
        action = confirmed({
            "action_type": "expense", "amount": "40", "currency": "GBP", "entry_date": "2024-11-14",
        })
        outcome = await executor.execute(action)
        assert outcome.success
        assert outcome.result["base_amount"] == "50.00"
        assert record_store.records[-1].kind.value == "expense"

    @pytest.mark.asyncio
    async def test_expense_keeps_client(self, executor, record_store):
        """Test a rebillable expense stays linked to its client."""
        acme = await find_client(record_store, "John Smith")
        action = confirmed(
            {"action_type": "expense", "amount": "120", "entry_date": "2024-11-14", "client_name": "acme"},
            client_id=acme.id,
        )
        outcome = await executor.execute(action)
        assert outcome.success
        assert record_store.records[-1].data["client_id"] == str(acme.id)


class TestInvoiceExecution:
    """Tests for invoice execution."""

    @pytest.mark.asyncio
    async def test_invoice_totals_recomputed(self, executor, record_store):
        """Test lines, subtotal, tax and total come from the items."""
        globex = await find_client(record_store, "Globex")
        action = confirmed({
            "action_type": "invoice",
            "invoice_date": "2024-11-10",
            "tax_rate": 20,
            "items": [
                {"description": "Consulting", "quantity": "10", "rate": "150"},
                {"description": "Expenses", "quantity": "2", "rate": "25.50"},
            ],
        }, client_id=globex.id)

        outcome = await executor.execute(action)

        assert outcome.success
        assert outcome.result["subtotal"] == "1551.00"
        assert outcome.result["tax_amount"] == "310.20"
        assert outcome.result["total"] == "1861.20"
        assert outcome.result["invoice_number"] == "INV-0001"
        assert [item["amount"] for item in record_store.records[-1].data["items"]] == ["1500.00", "51.00"]

    @pytest.mark.asyncio
    async def test_forged_status_ignored(self, executor, record_store):
        """Test a status smuggled into the draft never reaches the store."""
        globex = await find_client(record_store, "Globex")
        action = confirmed({
            "action_type": "invoice",
            "invoice_date": "2024-11-10",
            "status": "paid",
            "items": [{"description": "Work", "quantity": "1", "rate": "100"}],
        }, client_id=globex.id)

        outcome = await executor.execute(action)

        assert outcome.result["status"] == "draft"
        assert record_store.records[-1].status == "draft"
        assert "status" not in record_store.records[-1].data

    @pytest.mark.asyncio
    async def test_vanished_client_fails_cleanly(self, executor):
        """Test a store rejection is a failed outcome with the store's message."""
        missing = uuid4()
        action = confirmed({
            "action_type": "invoice",
            "invoice_date": "2024-11-10",
            "items": [{"description": "Work", "quantity": "1", "rate": "100"}],
        }, client_id=missing)

        outcome = await executor.execute(action)

        assert not outcome.success
        assert outcome.error == f"Client {missing} no longer exists."

    @pytest.mark.asyncio
    async def test_unresolved_client_fails(self, executor):
        """Test an invoice without a client id is rejected."""
        action = confirmed({
            "action_type": "invoice",
            "invoice_date": "2024-11-10",
            "items": [{"description": "Work", "quantity": "1", "rate": "100"}],
        })
        outcome = await executor.execute(action)
        assert outcome.error == "Invoice has no resolved client."


class TestProjectAndClientExecution:
    """Tests for entity creation."""

    @pytest.mark.asyncio
    async def test_project_created(self, executor, record_store, rate_service):
        """Test a project with a foreign budget is created active."""
        globex = await find_client(record_store, "Globex")
        action = confirmed({
            "action_type": "project", "name": "Mobile App",
            "budget_amount": "920", "budget_currency": "EUR",
        }, client_id=globex.id)

        outcome = await executor.execute(action)

        assert outcome.result["status"] == "active"
        assert await record_store.name_exists(USER_ID, "project", "mobile app")
        assert len(rate_service.get_rates_calls) == 1

    @pytest.mark.asyncio
    async def test_client_created(self, executor):
        """Test a client is created and named by company."""
        action = confirmed({"action_type": "client", "name": "Gavin", "company_name": "Hooli"})
        outcome = await executor.execute(action)
        assert outcome.result["display_name"] == "Hooli"

    @pytest.mark.asyncio
    async def test_duplicate_client_rejected_by_store(self, executor):
        """Test a duplicate that slipped past validation fails cleanly."""
        action = confirmed({"action_type": "client", "name": "Globex"})
        outcome = await executor.execute(action)
        assert not outcome.success
        assert outcome.error == 'Client "Globex" already exists.'


class TestPreconditions:
    """Tests for execution preconditions."""

    @pytest.mark.asyncio
    async def test_requires_confirmed_state(self, executor):
        """Test drafts cannot be executed."""
        action = confirmed({"action_type": "client", "name": "Hooli"})
        draft = action.model_copy(update={"state": ActionState.DRAFT})
        with pytest.raises(InvalidTransitionError):
            await executor.execute(draft)
