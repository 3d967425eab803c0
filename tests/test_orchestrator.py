"""End-to-end tests for the staging flow."""

import pytest

from ledgerchat.actions import ActionExecutor, EntityCreator, PendingActionManager
from ledgerchat.config import MatchingSettings, get_settings, validate_all_settings
from ledgerchat.models.actions import ActionState
from ledgerchat.models.audit import AuditEventType
from ledgerchat.orchestrator import TransactionStagingFlow, create_app_components
from ledgerchat.queries import RecordQueryExecutor
from ledgerchat.validation import ValidationPipeline

from conftest import USER_ID, find_client


@pytest.fixture
def flow(record_store, pending_store, converter, audit_logger):
    return TransactionStagingFlow(
        pipeline=ValidationPipeline(record_store, MatchingSettings()),
        manager=PendingActionManager(pending_store, audit_logger),
        executor=ActionExecutor(record_store, converter),
        audit_logger=audit_logger,
    )


INVOICE = {
    "action_type": "invoice",
    "invoice_date": "2024-11-10",
    "client_name": "Globex",
    "items": [{"description": "Consulting", "quantity": "4", "rate": "100"}],
}


class TestStaging:
    """Tests for validate-then-stage."""

    @pytest.mark.asyncio
    async def test_invalid_draft_is_not_staged(self, flow, audit_storage):
        """Test a failing draft returns its errors and stages nothing."""
        result, action = await flow.stage("conv-1", USER_ID, {"action_type": "client", "name": "Globex"})

        assert action is None
        assert result.errors == ['Client "Globex" already exists.']
        assert await flow.manager.latest_pending("conv-1") is None
        events = await audit_storage.get_recent_events()
        assert events[0].event_type == AuditEventType.VALIDATION_FAILED

    @pytest.mark.asyncio
    async def test_valid_draft_is_staged_resolved(self, flow, record_store):
        """Test the staged payload carries resolved ids."""
        globex = await find_client(record_store, "Globex")
        result, action = await flow.stage("conv-1", USER_ID, INVOICE, confidence_score=0.9)

        assert result.valid
        assert action.state == ActionState.DRAFT
        assert action.payload.client_id == globex.id
        assert action.confidence_score == 0.9


class TestConfirmation:
    """Tests for confirm, execute and cancel."""

    @pytest.mark.asyncio
    async def test_confirm_and_execute(self, flow, record_store, audit_storage):
        """Test an approved draft is recorded and marked executed."""
        _, action = await flow.stage("conv-1", USER_ID, INVOICE)

        outcome = await flow.confirm_and_execute(action.id)

        assert outcome.success
        assert outcome.result["total"] == "400.00"
        assert (await flow.manager.get(action.id)).state == ActionState.EXECUTED
        assert len(record_store.records) == 1
        types = {e.event_type for e in await audit_storage.get_events_by_entity("pending_action", action.id)}
        assert {AuditEventType.ACTION_CONFIRMED, AuditEventType.ACTION_EXECUTED} <= types

    @pytest.mark.asyncio
    async def test_confirm_latest(self, flow):
        """Test 'yes' confirms the most recent draft."""
        await flow.stage("conv-1", USER_ID, {"action_type": "client", "name": "Hooli"})
        _, latest = await flow.stage("conv-1", USER_ID, {"action_type": "client", "name": "Pied Piper"})

        outcome = await flow.confirm_latest_and_execute("conv-1")

        assert outcome.action_id == latest.id
        assert outcome.result["name"] == "Pied Piper"

    @pytest.mark.asyncio
    async def test_confirm_latest_with_nothing_pending(self, flow):
        """Test confirming an empty conversation is a no-op."""
        assert await flow.confirm_latest_and_execute("conv-1") is None

    @pytest.mark.asyncio
    async def test_cancel_latest(self, flow, record_store):
        """Test 'no' drops the draft without touching the store."""
        await flow.stage("conv-1", USER_ID, {"action_type": "client", "name": "Hooli"})

        assert await flow.cancel_latest("conv-1") is True
        assert await flow.cancel_latest("conv-1") is False
        names = [c.name for c in await record_store.list_clients(USER_ID)]
        assert "Hooli" not in names


class TestExecutionFailure:
    """Tests for store rejections after confirmation."""

    @pytest.mark.asyncio
    async def test_failure_then_retry(self, flow, record_store):
        """Test a rejected commit is kept and can be retried."""
        globex = await find_client(record_store, "Globex")
        _, action = await flow.stage("conv-1", USER_ID, INVOICE)
        record_store.remove_client(globex.id)

        outcome = await flow.confirm_and_execute(action.id)

        assert not outcome.success
        failed = await flow.manager.get(action.id)
        assert failed.state == ActionState.EXECUTION_FAILED
        assert failed.last_error == f"Client {globex.id} no longer exists."
        assert record_store.records == []

        record_store.add_client(globex)
        retried = await flow.retry_and_execute(action.id)

        assert retried.success
        assert (await flow.manager.get(action.id)).state == ActionState.EXECUTED


class TestAppComponents:
    """Tests for the component factory."""

    def test_builds_flow_and_query_executor(self, monkeypatch, record_store):
        """Test the factory wires everything without a rate service URL."""
        monkeypatch.delenv("RATES_SERVICE_URL", raising=False)
        get_settings.cache_clear()
        try:
            flow, query_executor = create_app_components(record_store=record_store)
        finally:
            get_settings.cache_clear()

        assert isinstance(flow, TransactionStagingFlow)
        assert isinstance(query_executor, RecordQueryExecutor)
        assert isinstance(flow.creator, EntityCreator)

    def test_settings_health_check(self, monkeypatch):
        """Test a bad log level is reported for its section only."""
        monkeypatch.setenv("LOG_LEVEL", "chatty")
        get_settings.cache_clear()
        try:
            health = validate_all_settings()
        finally:
            get_settings.cache_clear()

        assert health["rates"] is True
        assert health["matching"] is True
        assert health["app"] is False
        assert "app_error" in health
