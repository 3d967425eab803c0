"""
Entity Creation

Backs the "Would you like me to create it?" offers made during
validation. Categories, tax rates and vendors are created here, directly,
once the user has said yes.

DUPLICATE POLICY (checked before the store is called):
- category: exact name within the same kind, then any similar name
- tax rate: a configured rate with the same percentage
- vendor:   exact name, then any similar name

The store re-checks exact duplicates under its lock, so a creation that
loses a race still comes back as a refusal, not an exception.
"""

from typing import Optional, Sequence

import structlog
from pydantic import ValidationError

from ledgerchat.config import MatchingSettings, get_settings
from ledgerchat.models.entities import (
    CategoryKind,
    CreationResult,
    EntityKind,
    NamedEntity,
    Vendor,
)
from ledgerchat.models.records import CategoryRecord, TaxRateRecord, VendorRecord
from ledgerchat.resolution import (
    EntityResolver,
    SubstringMatch,
    TaxRateResolver,
    near_duplicate_message,
)
from ledgerchat.services.storage import DuplicateError, RecordStoreInterface


logger = structlog.get_logger(__name__)

DEFAULT_CATEGORY_COLOR = "#3B82F6"


class EntityCreator:
    """
    Creates named entities after a duplicate check.

    Usage:
        creator = EntityCreator(record_store)
        result = await creator.create_tax_rate(user_id, "Reduced VAT", 7.5)
        if not result.success:
            show(result.error)
    """

    def __init__(
        self,
        record_store: RecordStoreInterface,
        settings: Optional[MatchingSettings] = None,
    ):
        matching = settings or get_settings().matching
        self._store = record_store
        self._names = EntityResolver(SubstringMatch())
        # Only the exact bucket matters for rates; similar rates may coexist
        self._rates = TaxRateResolver(
            exact_tolerance=matching.tax_rate_exact_tolerance,
            similar_tolerance=matching.tax_rate_exact_tolerance,
        )

    async def create_category(
        self,
        user_id: str,
        name: str,
        kind: CategoryKind,
        color: Optional[str] = None,
    ) -> CreationResult:
        name = (name or "").strip()
        if not name:
            return CreationResult.refused("A category needs a name.")

        existing = await self._store.list_categories(user_id, kind=kind)
        if _has_exact(existing, name):
            return CreationResult.refused(
                f'A {kind.value} category named "{name}" already exists.'
            )
        similar = self._names.resolve(existing, name).similar_matches
        if similar:
            return CreationResult.refused(near_duplicate_message(EntityKind.CATEGORY, name, similar))

        record = CategoryRecord(
            user_id=user_id,
            name=name,
            kind=kind,
            color=color or DEFAULT_CATEGORY_COLOR,
        )
        return await self._create(EntityKind.CATEGORY, self._store.create_category(record))

    async def create_tax_rate(
        self,
        user_id: str,
        name: str,
        rate: float,
    ) -> CreationResult:
        """
        Create a tax rate. The user's first rate becomes the default.

        Rates close to an existing one (e.g. 19.6 next to 20) are allowed;
        only the same percentage is refused.
        """
        name = (name or "").strip()
        if not name:
            return CreationResult.refused("A tax rate needs a name.")
        try:
            record = TaxRateRecord(user_id=user_id, name=name, rate=rate)
        except ValidationError:
            return CreationResult.refused("A tax rate must be between 0% and 100%.")

        existing = await self._store.list_tax_rates(user_id)
        result = self._rates.resolve(existing, rate)
        clash = result.exact_match or next(iter(result.similar_matches), None)
        if clash is not None:
            return CreationResult.refused(
                f"A tax rate of {rate:g}% already exists ({clash.name})."
            )

        return await self._create(EntityKind.TAX_RATE, self._store.create_tax_rate(record))

    async def create_vendor(
        self,
        user_id: str,
        name: str,
        email: Optional[str] = None,
    ) -> CreationResult:
        name = (name or "").strip()
        if not name:
            return CreationResult.refused("A vendor needs a name.")

        vendors = await self._store.list_vendors(user_id)
        result = self._names.resolve(vendors, name)
        if result.is_resolved or _has_exact(result.similar_matches, name):
            match = result.exact_match or result.similar_matches[0]
            message = f'Vendor "{name}" already exists.'
            if isinstance(match, Vendor) and match.email:
                message += f" Email: {match.email}"
            return CreationResult.refused(message)
        if result.similar_matches:
            return CreationResult.refused(
                near_duplicate_message(EntityKind.VENDOR, name, result.similar_matches)
            )

        record = VendorRecord(user_id=user_id, name=name, email=(email or "").strip() or None)
        return await self._create(EntityKind.VENDOR, self._store.create_vendor(record))

    @staticmethod
    async def _create(kind: EntityKind, creation) -> CreationResult:
        try:
            entity = await creation
        except DuplicateError as e:
            logger.info("entity_creation_refused", kind=kind.value, error=str(e))
            return CreationResult.refused(str(e))
        logger.info("entity_created", kind=kind.value, entity_id=str(entity.id))
        return CreationResult.created(entity)


def _has_exact(entities: Sequence[NamedEntity], name: str) -> bool:
    wanted = name.lower()
    return any(e.name.lower() == wanted for e in entities)
