"""
Staged Validation Pipeline

DESIGN DECISION: A draft is validated in a FIXED order, because later
checks depend on earlier ones:

STAGE 0 - SCHEMA:
- Raw dicts are parsed into the tagged payload union
- Schema problems become errors, never exceptions

STAGE 1 - CURRENCY:
- A non-base currency must be enabled in the user's settings

STAGE 2 - INDEPENDENT REFERENCES:
- Category, tax rate, client and vendor are resolved independently
- Every failure is collected; one run surfaces every problem

STAGE 3 - PROJECT (staged on client):
- Client supplied but unresolved -> project is not checked this pass
- Project without any client -> "must be linked to a client"
- Otherwise resolved among that client's projects only

STAGE 4 - ACTION-SPECIFIC RULES:
- Invoice lines and dates, project uniqueness and dates, client duplicates

STAGE 5 - MISSING FIELDS:
- Optional-but-recommended fields that are absent. Never blocks.

IMPORTANT: Validation NEVER silently picks a candidate or creates an
entity. It reports what it found for the user to decide.
"""

from typing import Any, Optional, Sequence, Union
from uuid import UUID

import structlog
from pydantic import BaseModel, ValidationError

from ledgerchat.config import MatchingSettings, get_settings
from ledgerchat.models.entities import CategoryKind, EntityKind, NamedEntity
from ledgerchat.models.payloads import (
    ActionPayload,
    ClientPayload,
    ExpensePayload,
    IncomePayload,
    InvoicePayload,
    ProjectPayload,
    ValidationResult,
    parse_payload,
)
from ledgerchat.models.settings import UserSettings
from ledgerchat.resolution import (
    EntityResolver,
    SubstringMatch,
    TaxRateResolver,
    duplicate_name_message,
    near_duplicate_message,
    project_requires_client_message,
    resolution_error,
    tax_rate_error,
)
from ledgerchat.services.storage import RecordStoreInterface


logger = structlog.get_logger(__name__)


MISSING_FIELDS: dict[str, tuple[str, ...]] = {
    "income": ("description", "category", "client", "project", "reference_number"),
    "expense": ("description", "category", "vendor", "reference_number"),
    "invoice": ("project", "due_date", "notes"),
    "project": ("client", "description", "budget", "start_date", "end_date"),
    "client": ("company_name", "email"),
}


def currency_not_enabled_message(currency: str) -> str:
    return (
        f"{currency} is not enabled in your currency settings. "
        "Please enable it in Settings > Currency and try again."
    )


def format_schema_errors(error: ValidationError) -> list[str]:
    """Flatten a pydantic error into one readable line per problem."""
    messages = []
    for item in error.errors():
        location = ".".join(str(part) for part in item["loc"])
        if location:
            messages.append(f"{location}: {item['msg']}")
        else:
            messages.append(item["msg"])
    return messages


class _Pass:
    """Mutable state of one validation run."""

    def __init__(self, user_id: str, payload: ActionPayload, settings: UserSettings):
        self.user_id = user_id
        self.payload = payload
        self.settings = settings
        self.errors: list[str] = []
        self.missing: list[str] = []
        self.updates: dict[str, Any] = {}
        self.client: Optional[NamedEntity] = None
        self.client_failed = False


class ValidationPipeline:
    """
    Validates draft action payloads against the user's records.

    Usage:
        pipeline = ValidationPipeline(record_store)
        result = await pipeline.validate(user_id, {"action_type": "income", ...})
        if result.valid:
            staged_payload = result.resolved
    """

    def __init__(
        self,
        record_store: RecordStoreInterface,
        settings: Optional[MatchingSettings] = None,
    ):
        """
        Initialize pipeline.

        Args:
            record_store: Source of entities, user settings and name checks.
            settings: Matching thresholds. Defaults to environment settings.
        """
        self._store = record_store
        matching = settings or get_settings().matching
        self._resolvers = {
            kind: EntityResolver.for_kind(kind, matching)
            for kind in (EntityKind.CLIENT, EntityKind.CATEGORY,
                         EntityKind.PROJECT, EntityKind.VENDOR)
        }
        self._tax_resolver = TaxRateResolver.from_settings(matching)
        self._duplicate_resolver = EntityResolver(SubstringMatch())

    async def validate(
        self,
        user_id: str,
        payload: Union[ActionPayload, dict],
    ) -> ValidationResult:
        """
        Run every stage and collect all errors.

        Args:
            user_id: Owner of the records being referenced
            payload: A payload model or the raw dict from the conversational layer

        Returns:
            ValidationResult; ``resolved`` holds the payload with entity ids
            filled in when valid
        """
        if not isinstance(payload, BaseModel):
            try:
                payload = parse_payload(payload)
            except ValidationError as e:
                errors = format_schema_errors(e)
                logger.info("payload_schema_rejected", error_count=len(errors))
                return ValidationResult.from_checks(errors, [])

        settings = await self._store.get_user_settings(user_id)
        run = _Pass(user_id, payload, settings)

        self._check_currency(run)
        await self._check_references(run)
        await self._check_project_link(run)
        await self._check_action_rules(run)
        self._collect_missing(run)

        resolved = payload.with_resolved(**run.updates)
        result = ValidationResult.from_checks(run.errors, run.missing, resolved)

        logger.debug(
            "validation_completed",
            action_type=payload.action_type,
            valid=result.valid,
            error_count=result.error_count,
            missing=result.missing_fields,
        )
        return result

    # --- stage 1 -------------------------------------------------------------

    @staticmethod
    def _check_currency(run: _Pass) -> None:
        currency = run.payload.currency
        if not currency:
            return
        if currency != run.settings.base_currency and not run.settings.is_enabled(currency):
            run.errors.append(currency_not_enabled_message(currency))

    # --- stage 2 -------------------------------------------------------------

    async def _check_references(self, run: _Pass) -> None:
        payload = run.payload

        if isinstance(payload, (IncomePayload, ExpensePayload, InvoicePayload)):
            kind = CategoryKind.EXPENSE if isinstance(payload, ExpensePayload) else CategoryKind.INCOME
            await self._check_category(run, kind)
            await self._check_tax_rate(run)

        if isinstance(payload, (IncomePayload, ExpensePayload, InvoicePayload, ProjectPayload)):
            await self._check_client(run)

        if isinstance(payload, ExpensePayload) and payload.vendor_name:
            vendors = await self._store.list_vendors(run.user_id)
            entity = self._resolve(run, EntityKind.VENDOR, vendors, payload.vendor_name)
            if entity is not None:
                run.updates["vendor_id"] = entity.id
                run.updates["vendor_name"] = entity.name

    async def _check_category(self, run: _Pass, kind: CategoryKind) -> None:
        name = run.payload.category_name
        if not name:
            return
        categories = await self._store.list_categories(run.user_id, kind=kind)
        entity = self._resolve(run, EntityKind.CATEGORY, categories, name)
        if entity is not None:
            run.updates["category_id"] = entity.id

    async def _check_tax_rate(self, run: _Pass) -> None:
        percentage = run.payload.tax_rate
        if percentage is None or percentage <= 0:
            return
        rates = await self._store.list_tax_rates(run.user_id)
        result = self._tax_resolver.resolve(rates, percentage)
        if result.is_resolved:
            run.updates["tax_rate_id"] = result.exact_match.id
            run.updates["tax_rate"] = result.exact_match.rate
        else:
            run.errors.append(tax_rate_error(percentage, result))

    async def _check_client(self, run: _Pass) -> None:
        payload = run.payload
        clients = await self._store.list_clients(run.user_id)

        if payload.client_name:
            entity = self._resolve(run, EntityKind.CLIENT, clients, payload.client_name)
            if entity is None:
                run.client_failed = True
                return
            run.client = entity
            run.updates["client_id"] = entity.id
        elif payload.client_id is not None:
            run.client = _by_id(clients, payload.client_id)
            if run.client is None:
                run.client_failed = True
                run.errors.append(f"Client {payload.client_id} no longer exists.")

    # --- stage 3 -------------------------------------------------------------

    async def _check_project_link(self, run: _Pass) -> None:
        payload = run.payload
        if isinstance(payload, (ProjectPayload, ClientPayload)):
            return
        if not payload.project_name:
            return

        if run.client_failed:
            # Re-checked once the client reference is fixed
            return
        if run.client is None:
            run.errors.append(project_requires_client_message(payload.project_name))
            return

        projects = await self._store.list_projects(run.user_id, client_id=run.client.id)
        entity = self._resolve(run, EntityKind.PROJECT, projects, payload.project_name)
        if entity is not None:
            run.updates["project_id"] = entity.id

    # --- stage 4 -------------------------------------------------------------

    async def _check_action_rules(self, run: _Pass) -> None:
        payload = run.payload

        if isinstance(payload, InvoicePayload):
            if not payload.client_name and payload.client_id is None:
                run.errors.append("An invoice needs a client. Who is this invoice for?")
            if not payload.items:
                run.errors.append("An invoice needs at least one line item.")
            if payload.due_date and payload.due_date < payload.invoice_date:
                run.errors.append("Due date cannot be before the invoice date.")

        elif isinstance(payload, ProjectPayload):
            if await self._store.name_exists(run.user_id, "project", payload.name):
                run.errors.append(duplicate_name_message(EntityKind.PROJECT, payload.name))
            if payload.start_date and payload.end_date and payload.end_date < payload.start_date:
                run.errors.append("End date must be after start date.")
            if payload.budget_amount is not None and payload.budget_amount < 0:
                run.errors.append("Budget cannot be negative.")

        elif isinstance(payload, ClientPayload):
            await self._check_client_duplicates(run)

    async def _check_client_duplicates(self, run: _Pass) -> None:
        payload = run.payload
        clients = await self._store.list_clients(run.user_id)
        result = self._duplicate_resolver.resolve(clients, payload.name)

        if result.is_resolved:
            message = duplicate_name_message(EntityKind.CLIENT, payload.name)
            company = result.exact_match.secondary_name
            if company:
                message += f" Company: {company}"
            run.errors.append(message)
        elif result.is_ambiguous:
            exact = [
                c for c in result.similar_matches
                if payload.name.lower() in (c.name.lower(), (c.secondary_name or "").lower())
            ]
            if exact:
                run.errors.append(duplicate_name_message(EntityKind.CLIENT, payload.name))
            else:
                run.errors.append(
                    near_duplicate_message(EntityKind.CLIENT, payload.name, result.similar_matches)
                )

    # --- stage 5 -------------------------------------------------------------

    @staticmethod
    def _collect_missing(run: _Pass) -> None:
        payload = run.payload
        present = {
            "description": getattr(payload, "description", None),
            "category": getattr(payload, "category_name", None) or getattr(payload, "category_id", None),
            "client": getattr(payload, "client_name", None) or getattr(payload, "client_id", None),
            "project": getattr(payload, "project_name", None) or getattr(payload, "project_id", None),
            "vendor": getattr(payload, "vendor_name", None) or getattr(payload, "vendor_id", None),
            "reference_number": getattr(payload, "reference_number", None),
            "due_date": getattr(payload, "due_date", None),
            "notes": getattr(payload, "notes", None),
            "budget": getattr(payload, "budget_amount", None),
            "start_date": getattr(payload, "start_date", None),
            "end_date": getattr(payload, "end_date", None),
            "company_name": getattr(payload, "company_name", None),
            "email": getattr(payload, "email", None),
        }
        for field in MISSING_FIELDS[payload.action_type]:
            if present[field] is None or present[field] == "":
                run.missing.append(field)

    # --- helpers ---------------------------------------------------------------

    def _resolve(
        self,
        run: _Pass,
        kind: EntityKind,
        candidates: Sequence[NamedEntity],
        query: str,
    ) -> Optional[NamedEntity]:
        result = self._resolvers[kind].resolve(candidates, query)
        if result.is_resolved:
            return result.exact_match
        run.errors.append(resolution_error(kind, query, result))
        return None


def _by_id(entities: Sequence[NamedEntity], entity_id: UUID) -> Optional[NamedEntity]:
    for entity in entities:
        if entity.id == entity_id:
            return entity
    return None
