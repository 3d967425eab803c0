"""
Tests for ledgerchat models

Test strategy:
1. Unit tests for individual components (models, parsers, resolvers)
2. Integration tests for flows (in-memory stores, fake rate services)
3. No real API calls in tests
"""

import pytest
from datetime import date
from decimal import Decimal
from uuid import uuid4

from pydantic import ValidationError

from ledgerchat.models.actions import (
    ALLOWED_TRANSITIONS,
    ActionState,
    PendingAction,
    can_transition,
)
from ledgerchat.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from ledgerchat.models.entities import Client, ResolutionResult, TaxRate
from ledgerchat.models.money import DateQueryResult, DateRange, Money, quantize_money
from ledgerchat.models.payloads import (
    ClientPayload,
    IncomePayload,
    InvoicePayload,
    ValidationResult,
    parse_payload,
)
from ledgerchat.models.records import InvoiceRecord
from ledgerchat.models.settings import UserSettings


class TestMoneyModels:
    """Tests for money and date range models."""

    def test_quantize_money_rounds_half_up(self):
        """Test cents rounding is half-up, not banker's."""
        assert quantize_money("2.345") == Decimal("2.35")
        assert quantize_money(Decimal("2.344")) == Decimal("2.34")

    def test_money_from_rate_divides_by_rate(self):
        """Test base amount is native / rate."""
        money = Money.from_rate(Decimal("92.00"), "EUR", "USD", 0.92)
        assert money.base_amount == Decimal("100.00")
        assert money.exchange_rate == Decimal("0.92")

    def test_money_same_currency_forces_rate_one(self):
        """Test that same-currency amounts ignore the supplied rate."""
        money = Money.from_rate(Decimal("50"), "usd", "USD", 3.0)
        assert money.exchange_rate == Decimal("1")
        assert money.base_amount == money.native_amount == Decimal("50.00")

    def test_money_rejects_inconsistent_same_currency(self):
        """Test the same-currency invariant is enforced on construction."""
        with pytest.raises(ValidationError):
            Money(
                native_amount=Decimal("10"),
                native_currency="USD",
                exchange_rate=Decimal("2"),
                base_amount=Decimal("5"),
                base_currency="USD",
            )

    def test_date_range_rejects_inverted(self):
        """Test end cannot be before start."""
        with pytest.raises(ValidationError):
            DateRange(start=date(2024, 3, 2), end=date(2024, 3, 1))

    def test_date_range_days_inclusive(self):
        """Test day count includes both ends."""
        assert DateRange(start=date(2024, 3, 1), end=date(2024, 3, 31)).days == 31

    def test_date_query_result_without_dates(self):
        """Test an unmatched result has no range but keeps the reference."""
        result = DateQueryResult(reference_date=date(2024, 1, 5), reference_year=2024)
        assert not result.matched
        assert result.date_range is None

    def test_date_query_result_requires_both_ends(self):
        """Test start and end must be set together."""
        with pytest.raises(ValidationError):
            DateQueryResult(
                start_date=date(2024, 1, 1),
                reference_date=date(2024, 1, 5),
                reference_year=2024,
            )


class TestEntityModels:
    """Tests for named entities and resolution results."""

    def test_client_matches_on_company_name(self):
        """Test that a client's company is its secondary name."""
        client = Client(name="  John Smith ", company_name="Acme Corp")
        assert client.name == "John Smith"
        assert client.secondary_name == "Acme Corp"
        assert client.describe() == "John Smith (Acme Corp)"

    def test_tax_rate_describe(self):
        """Test tax rates describe themselves with the percentage."""
        assert TaxRate(name="VAT", rate=20.0).describe() == "VAT (20%)"

    def test_resolution_result_is_exclusive(self):
        """Test exact match and similar matches cannot coexist."""
        client = Client(name="Acme")
        with pytest.raises(ValidationError):
            ResolutionResult(exact_match=client, similar_matches=[client])

    def test_resolution_result_states(self):
        """Test resolved / ambiguous / not found flags."""
        client = Client(name="Acme")
        assert ResolutionResult(exact_match=client).is_resolved
        assert ResolutionResult(similar_matches=[client]).is_ambiguous
        assert ResolutionResult().is_not_found


class TestPayloadModels:
    """Tests for draft payloads and the tagged union."""

    def test_parse_payload_selects_variant(self):
        """Test the action_type tag picks the payload class."""
        payload = parse_payload({
            "action_type": "income",
            "amount": "500",
            "entry_date": "2024-11-14",
            "client_name": "Acme",
        })
        assert isinstance(payload, IncomePayload)
        assert payload.amount == Decimal("500")

    def test_parse_payload_unknown_tag(self):
        """Test unknown action types are rejected."""
        with pytest.raises(ValidationError):
            parse_payload({"action_type": "refund", "amount": "5"})

    def test_income_amount_must_be_positive(self):
        """Test zero and negative amounts are rejected."""
        with pytest.raises(ValidationError):
            IncomePayload(amount=Decimal("0"), entry_date=date(2024, 1, 1))

    def test_invoice_payload_drops_status(self):
        """Test a lifecycle status cannot ride along on a payload."""
        payload = parse_payload({
            "action_type": "invoice",
            "invoice_date": "2024-11-01",
            "status": "paid",
            "items": [{"description": "Work", "quantity": "2", "rate": "50"}],
        })
        assert isinstance(payload, InvoicePayload)
        assert "status" not in payload.model_dump()

    def test_currency_is_normalized(self):
        """Test currency codes are upper-cased."""
        payload = IncomePayload(amount=Decimal("1"), entry_date=date(2024, 1, 1), currency="eur")
        assert payload.currency == "EUR"

    def test_with_resolved_fills_ids(self):
        """Test resolved ids are copied onto a new payload."""
        client_id = uuid4()
        resolved = IncomePayload(
            amount=Decimal("1"), entry_date=date(2024, 1, 1)
        ).with_resolved(client_id=client_id)
        assert resolved.client_id == client_id
        assert resolved.amount == Decimal("1")

    def test_invoice_record_has_no_status(self):
        """Test the create-request refuses a status field outright."""
        with pytest.raises(ValidationError):
            InvoiceRecord(
                user_id="u",
                client_id=uuid4(),
                invoice_date=date(2024, 1, 1),
                currency="USD",
                exchange_rate=Decimal("1"),
                tax_rate=0.0,
                subtotal=Decimal("1"),
                tax_amount=Decimal("0"),
                total=Decimal("1"),
                base_amount=Decimal("1"),
                base_tax_amount=Decimal("0"),
                status="paid",
            )


class TestValidationResult:
    """Tests for ValidationResult."""

    def test_valid_iff_no_errors(self):
        """Test valid flag must agree with the error list."""
        with pytest.raises(ValidationError):
            ValidationResult(valid=True, errors=["boom"])

    def test_from_checks_missing_fields_do_not_block(self):
        """Test missing fields alone leave the result valid."""
        result = ValidationResult.from_checks([], ["description"])
        assert result.valid
        assert result.missing_fields == ["description"]

    def test_from_checks_drops_resolved_on_error(self):
        """Test an invalid result never carries a payload to stage."""
        payload = ClientPayload(name="Acme")
        result = ValidationResult.from_checks(["bad"], [], payload)
        assert not result.valid
        assert result.resolved is None
        assert result.error_count == 1


class TestPendingActionModels:
    """Tests for the pending action model and transition table."""

    def test_default_state_is_draft(self):
        """Test new actions start as drafts at version 0."""
        action = PendingAction(
            conversation_id="c1",
            user_id="u1",
            action_type="client",
            payload=ClientPayload(name="Acme"),
        )
        assert action.state == ActionState.DRAFT
        assert action.version == 0
        assert action.is_open

    def test_payload_type_must_match(self):
        """Test a payload of another type is rejected."""
        with pytest.raises(ValidationError):
            PendingAction(
                conversation_id="c1",
                user_id="u1",
                action_type="income",
                payload=ClientPayload(name="Acme"),
            )

    def test_transition_table(self):
        """Test the allowed lifecycle moves."""
        assert can_transition(ActionState.DRAFT, ActionState.CONFIRMED)
        assert can_transition(ActionState.EXECUTION_FAILED, ActionState.CONFIRMED)
        assert not can_transition(ActionState.CONFIRMED, ActionState.CANCELLED)
        assert not can_transition(ActionState.EXECUTED, ActionState.CANCELLED)
        assert ALLOWED_TRANSITIONS[ActionState.CANCELLED] == set()


class TestUserSettings:
    """Tests for per-user settings."""

    def test_base_currency_always_enabled(self):
        """Test the base currency is added to the enabled list."""
        settings = UserSettings(user_id="u1", base_currency="gbp", enabled_currencies=["EUR"])
        assert settings.enabled_currencies == ["GBP", "EUR"]
        assert settings.is_enabled("gbp")
        assert not settings.is_enabled("JPY")


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        """Test AuditEvent model creation."""
        event = AuditEvent(
            event_type=AuditEventType.ACTION_CONFIRMED,
            description="Test event",
        )
        assert event.event_type == AuditEventType.ACTION_CONFIRMED
        assert event.severity == AuditSeverity.INFO
        assert event.event_id is not None

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        event = AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description="Test error",
            error_message="Something went wrong",
        )
        log_dict = event.to_log_dict()
        assert log_dict["event_type"] == "system_error"
        assert log_dict["severity"] == "error"
        assert log_dict["error_message"] == "Something went wrong"

    def test_audit_event_builder_action_staged(self):
        """Test AuditEventBuilder for staged actions."""
        action_id = uuid4()
        correlation_id = uuid4()
        event = AuditEventBuilder.action_staged(
            action_id=action_id,
            action_type="income",
            missing_fields=["description"],
            correlation_id=correlation_id,
        )
        assert event.event_type == AuditEventType.ACTION_STAGED
        assert event.entity_id == action_id
        assert event.correlation_id == correlation_id
        assert event.details["missing_fields"] == ["description"]

    def test_audit_event_builder_action_confirmed(self):
        """Test confirmation is marked as a user action."""
        event = AuditEventBuilder.action_confirmed(action_id=uuid4(), correlation_id=None)
        assert event.is_user_action is True

    def test_audit_event_builder_rate_degraded(self):
        """Test degraded rates are warnings carrying the reason."""
        event = AuditEventBuilder.rate_degraded("EUR", "USD", reason="timed out")
        assert event.severity == AuditSeverity.WARNING
        assert event.error_message == "timed out"
        assert event.details == {"from_currency": "EUR", "to_currency": "USD"}
