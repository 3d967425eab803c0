"""
Action Executor

Commits a CONFIRMED pending action to the record store.

DESIGN DECISION: Derived numbers are recomputed here, at execution time,
from the validated payload. Whatever the preview showed is not trusted.
- income / expense: tax = amount x rate / 100
- invoice: line = quantity x rate, subtotal = sum(lines),
  tax = subtotal x rate / 100, total = subtotal + tax
- base-currency amounts all use ONE rate, resolved once per record

CRITICAL: An invoice's lifecycle status is never taken from the draft.
InvoiceRecord has no status field at all; the store assigns its default.

Store rejections come back as a failed ExecutionOutcome with the store's
message verbatim. Nothing is retried automatically.
"""

from decimal import Decimal
from typing import Any, Awaitable, Callable, Optional
from uuid import UUID

import structlog

from ledgerchat.actions.errors import InvalidTransitionError, UnsupportedActionError
from ledgerchat.models.actions import ActionState, ExecutionOutcome, PendingAction
from ledgerchat.models.money import quantize_money
from ledgerchat.models.payloads import (
    ActionType,
    ClientPayload,
    ExpensePayload,
    IncomePayload,
    InvoicePayload,
    ProjectPayload,
)
from ledgerchat.models.records import (
    ClientRecord,
    ExpenseRecord,
    IncomeRecord,
    InvoiceLineRecord,
    InvoiceRecord,
    ProjectRecord,
)
from ledgerchat.models.settings import UserSettings
from ledgerchat.services.rates import CurrencyConverter
from ledgerchat.services.storage import RecordStoreInterface, StorageError


logger = structlog.get_logger(__name__)

Handler = Callable[[PendingAction, Optional[UUID]], Awaitable[dict[str, Any]]]


def tax_for(amount: Decimal, rate_percent: Optional[float]) -> Decimal:
    """Tax on a net amount, rounded to cents."""
    if not rate_percent:
        return Decimal("0.00")
    return quantize_money(amount * Decimal(str(rate_percent)) / Decimal("100"))


class ActionExecutor:
    """
    Executes confirmed actions, one handler per action type.

    Usage:
        outcome = await executor.execute(confirmed_action)
        if not outcome.success:
            show(outcome.error)
    """

    def __init__(
        self,
        record_store: RecordStoreInterface,
        converter: CurrencyConverter,
    ):
        self._store = record_store
        self._converter = converter
        self._handlers: dict[ActionType, Handler] = {
            ActionType.INCOME: self._execute_income,
            ActionType.EXPENSE: self._execute_expense,
            ActionType.INVOICE: self._execute_invoice,
            ActionType.PROJECT: self._execute_project,
            ActionType.CLIENT: self._execute_client,
        }

    async def execute(
        self,
        action: PendingAction,
        correlation_id: Optional[UUID] = None,
    ) -> ExecutionOutcome:
        """
        Commit a confirmed action.

        Raises:
            InvalidTransitionError: the action is not confirmed
            UnsupportedActionError: no handler for the action type
        """
        if action.state != ActionState.CONFIRMED:
            raise InvalidTransitionError(action.id, action.state, ActionState.EXECUTED)

        handler = self._handlers.get(action.action_type)
        if handler is None:
            raise UnsupportedActionError(f"No executor for action type {action.action_type!r}")

        try:
            result = await handler(action, correlation_id)
        except StorageError as e:
            logger.warning(
                "execution_rejected",
                action_id=str(action.id),
                action_type=action.action_type.value,
                error=str(e),
            )
            return ExecutionOutcome.failed(action, str(e))

        logger.info(
            "execution_succeeded",
            action_id=str(action.id),
            action_type=action.action_type.value,
            result_id=result.get("id"),
        )
        return ExecutionOutcome.ok(action, result)

    # --- money helpers ---------------------------------------------------------

    async def _resolve_currency(
        self,
        action: PendingAction,
        currency: Optional[str],
        correlation_id: Optional[UUID],
    ) -> tuple[UserSettings, str, float]:
        settings = await self._store.get_user_settings(action.user_id)
        native = currency or settings.base_currency
        rate = await self._converter.rate(
            native,
            settings.base_currency,
            correlation_id=correlation_id,
        )
        return settings, native, rate

    async def _base(self, amount: Decimal, currency: str, base: str, rate: float) -> Decimal:
        money = await self._converter.money(amount, currency, base, rate=rate)
        return money.base_amount

    @staticmethod
    def _stored_rate(currency: str, base: str, rate: float) -> Decimal:
        return Decimal("1") if currency == base else Decimal(str(rate))

    # --- handlers --------------------------------------------------------------

    async def _execute_income(
        self,
        action: PendingAction,
        correlation_id: Optional[UUID],
    ) -> dict[str, Any]:
        payload: IncomePayload = action.payload
        settings, currency, rate = await self._resolve_currency(action, payload.currency, correlation_id)
        base = settings.base_currency

        tax_rate = payload.tax_rate if payload.tax_rate is not None else settings.default_tax_rate
        amount = quantize_money(payload.amount)
        tax_amount = tax_for(amount, tax_rate)

        record = IncomeRecord(
            user_id=action.user_id,
            amount=amount,
            description=payload.description,
            entry_date=payload.entry_date,
            category_id=payload.category_id,
            client_id=payload.client_id,
            project_id=payload.project_id,
            currency=currency,
            exchange_rate=self._stored_rate(currency, base, rate),
            base_amount=await self._base(amount, currency, base, rate),
            tax_rate=tax_rate,
            tax_amount=tax_amount if tax_rate else None,
            base_tax_amount=await self._base(tax_amount, currency, base, rate),
            reference_number=payload.reference_number,
        )
        stored = await self._store.create_income(record)
        return {
            "id": str(stored.id),
            "kind": "income",
            "amount": str(record.amount),
            "currency": currency,
            "tax_amount": str(tax_amount),
            "base_amount": str(record.base_amount),
            "base_currency": base,
        }

    async def _execute_expense(
        self,
        action: PendingAction,
        correlation_id: Optional[UUID],
    ) -> dict[str, Any]:
        payload: ExpensePayload = action.payload
        settings, currency, rate = await self._resolve_currency(action, payload.currency, correlation_id)
        base = settings.base_currency

        tax_rate = payload.tax_rate if payload.tax_rate is not None else settings.default_tax_rate
        amount = quantize_money(payload.amount)
        tax_amount = tax_for(amount, tax_rate)

        record = ExpenseRecord(
            user_id=action.user_id,
            amount=amount,
            description=payload.description,
            entry_date=payload.entry_date,
            category_id=payload.category_id,
            vendor_id=payload.vendor_id,
            vendor_name=payload.vendor_name,
            client_id=payload.client_id,
            project_id=payload.project_id,
            currency=currency,
            exchange_rate=self._stored_rate(currency, base, rate),
            base_amount=await self._base(amount, currency, base, rate),
            tax_rate=tax_rate,
            tax_amount=tax_amount if tax_rate else None,
            base_tax_amount=await self._base(tax_amount, currency, base, rate),
            reference_number=payload.reference_number,
        )
        stored = await self._store.create_expense(record)
        return {
            "id": str(stored.id),
            "kind": "expense",
            "amount": str(record.amount),
            "currency": currency,
            "base_amount": str(record.base_amount),
            "base_currency": base,
        }

    async def _execute_invoice(
        self,
        action: PendingAction,
        correlation_id: Optional[UUID],
    ) -> dict[str, Any]:
        payload: InvoicePayload = action.payload
        if payload.client_id is None:
            raise StorageError("Invoice has no resolved client.")

        settings, currency, rate = await self._resolve_currency(action, payload.currency, correlation_id)
        base = settings.base_currency

        lines = [
            InvoiceLineRecord(
                description=item.description,
                quantity=item.quantity,
                rate=item.rate,
                amount=quantize_money(item.quantity * item.rate),
            )
            for item in payload.items
        ]
        subtotal = quantize_money(sum((line.amount for line in lines), Decimal("0")))
        tax_rate = payload.tax_rate if payload.tax_rate is not None else (settings.default_tax_rate or 0.0)
        tax_amount = tax_for(subtotal, tax_rate)
        total = subtotal + tax_amount

        record = InvoiceRecord(
            user_id=action.user_id,
            client_id=payload.client_id,
            invoice_date=payload.invoice_date,
            due_date=payload.due_date,
            notes=payload.notes,
            project_id=payload.project_id,
            income_category_id=payload.category_id,
            currency=currency,
            exchange_rate=self._stored_rate(currency, base, rate),
            tax_rate=tax_rate,
            subtotal=subtotal,
            tax_amount=tax_amount,
            total=total,
            base_amount=await self._base(subtotal, currency, base, rate),
            base_tax_amount=await self._base(tax_amount, currency, base, rate),
            items=lines,
        )
        stored = await self._store.create_invoice(record)
        return {
            "id": str(stored.id),
            "kind": "invoice",
            "invoice_number": stored.invoice_number,
            "status": stored.status,
            "subtotal": str(subtotal),
            "tax_amount": str(tax_amount),
            "total": str(total),
            "currency": currency,
            "base_amount": str(record.base_amount),
            "base_currency": base,
        }

    async def _execute_project(
        self,
        action: PendingAction,
        correlation_id: Optional[UUID],
    ) -> dict[str, Any]:
        payload: ProjectPayload = action.payload

        base_budget = None
        if payload.budget_amount is not None:
            settings, currency, rate = await self._resolve_currency(
                action, payload.budget_currency, correlation_id
            )
            base_budget = await self._base(
                quantize_money(payload.budget_amount), currency, settings.base_currency, rate
            )

        record = ProjectRecord(
            user_id=action.user_id,
            name=payload.name,
            description=payload.description,
            client_id=payload.client_id,
            budget_amount=payload.budget_amount,
            budget_currency=payload.budget_currency,
            base_budget_amount=base_budget,
            start_date=payload.start_date,
            end_date=payload.end_date,
            color=payload.color,
        )
        project = await self._store.create_project(record)
        return {
            "id": str(project.id),
            "kind": "project",
            "name": project.name,
            "status": project.status.value,
        }

    async def _execute_client(
        self,
        action: PendingAction,
        correlation_id: Optional[UUID],
    ) -> dict[str, Any]:
        payload: ClientPayload = action.payload
        record = ClientRecord(
            user_id=action.user_id,
            name=payload.name,
            company_name=payload.company_name,
            email=payload.email,
            phone=payload.phone,
            phone_country_code=payload.phone_country_code,
            address=payload.address,
        )
        client = await self._store.create_client(record)
        return {
            "id": str(client.id),
            "kind": "client",
            "name": client.name,
            "display_name": client.display_name,
        }
