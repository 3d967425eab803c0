"""Tests for creating categories, tax rates and vendors."""

import pytest

from ledgerchat.actions import EntityCreator
from ledgerchat.config import MatchingSettings
from ledgerchat.models.entities import CategoryKind
from ledgerchat.models.records import VendorRecord
from ledgerchat.services.storage import DuplicateError, InMemoryRecordStore

from conftest import USER_ID


@pytest.fixture
def creator(record_store):
    return EntityCreator(record_store, MatchingSettings())


class RacingRecordStore(InMemoryRecordStore):
    """Hides existing vendors from the pre-check, as a concurrent writer would."""

    async def list_vendors(self, user_id):
        return []


class TestCreateCategory:
    """Tests for category creation."""

    @pytest.mark.asyncio
    async def test_exact_name_refused(self, creator):
        """Test an existing name in the same kind is refused, case-insensitively."""
        result = await creator.create_category(USER_ID, "consulting", CategoryKind.INCOME)
        assert not result.success
        assert result.error == 'A income category named "consulting" already exists.'

    @pytest.mark.asyncio
    async def test_same_name_other_kind_allowed(self, creator, record_store):
        """Test income and expense categories have separate namespaces."""
        result = await creator.create_category(USER_ID, "Consulting", CategoryKind.EXPENSE)
        assert result.success
        names = [c.name for c in await record_store.list_categories(USER_ID, kind=CategoryKind.EXPENSE)]
        assert "Consulting" in names

    @pytest.mark.asyncio
    async def test_similar_name_refused(self, creator):
        """Test a near-duplicate lists the existing category."""
        result = await creator.create_category(USER_ID, "Consult", CategoryKind.INCOME)
        assert not result.success
        assert result.error.startswith("Found 1 similar category:")
        assert "Consulting" in result.error

    @pytest.mark.asyncio
    async def test_new_category_gets_default_color(self, creator):
        """Test a fresh name is created with the default color."""
        result = await creator.create_category(USER_ID, "Royalties", CategoryKind.INCOME)
        assert result.success
        assert result.entity.name == "Royalties"
        assert result.entity.color == "#3B82F6"

    @pytest.mark.asyncio
    async def test_blank_name_refused(self, creator):
        """Test whitespace is not a name."""
        result = await creator.create_category(USER_ID, "  ", CategoryKind.INCOME)
        assert result.error == "A category needs a name."


class TestCreateTaxRate:
    """Tests for tax rate creation."""

    @pytest.mark.asyncio
    async def test_same_percentage_refused(self, creator):
        """Test an existing percentage is refused whatever the name."""
        result = await creator.create_tax_rate(USER_ID, "VAT", 20)
        assert not result.success
        assert result.error == "A tax rate of 20% already exists (Standard VAT)."

    @pytest.mark.asyncio
    async def test_new_rate_is_not_default(self, creator, record_store):
        """Test later rates leave the existing default alone."""
        result = await creator.create_tax_rate(USER_ID, "Hospitality", 7.5)
        assert result.success
        assert result.entity.rate == 7.5
        assert result.entity.is_default is False
        assert len(await record_store.list_tax_rates(USER_ID)) == 3

    @pytest.mark.asyncio
    async def test_first_rate_becomes_default(self):
        """Test a user's first tax rate is their default."""
        creator = EntityCreator(InMemoryRecordStore(), MatchingSettings())
        first = await creator.create_tax_rate(USER_ID, "Standard VAT", 20)
        second = await creator.create_tax_rate(USER_ID, "Reduced VAT", 5)
        assert first.entity.is_default is True
        assert second.entity.is_default is False

    @pytest.mark.asyncio
    async def test_out_of_range_refused(self, creator):
        """Test percentages above 100 are refused."""
        result = await creator.create_tax_rate(USER_ID, "Silly", 150)
        assert result.error == "A tax rate must be between 0% and 100%."


class TestCreateVendor:
    """Tests for vendor creation."""

    @pytest.mark.asyncio
    async def test_exact_name_refused(self, creator):
        """Test an existing vendor name is refused."""
        result = await creator.create_vendor(USER_ID, "aws")
        assert not result.success
        assert result.error == 'Vendor "aws" already exists.'

    @pytest.mark.asyncio
    async def test_similar_name_refused(self, creator):
        """Test a name containing an existing vendor is a near-duplicate."""
        result = await creator.create_vendor(USER_ID, "AWS Cloud")
        assert result.error.startswith("Found 1 similar vendor:")

    @pytest.mark.asyncio
    async def test_new_vendor(self, creator, record_store):
        """Test a fresh vendor is stored with its email."""
        result = await creator.create_vendor(USER_ID, "Hetzner", email=" billing@hetzner.test ")
        assert result.success
        assert result.entity.email == "billing@hetzner.test"
        vendors = {v.name for v in await record_store.list_vendors(USER_ID)}
        assert vendors == {"AWS", "Hetzner"}

    @pytest.mark.asyncio
    async def test_store_rejects_duplicate(self, record_store):
        """Test the store refuses a duplicate even without a pre-check."""
        with pytest.raises(DuplicateError):
            await record_store.create_vendor(VendorRecord(user_id=USER_ID, name="aws"))

    @pytest.mark.asyncio
    async def test_lost_race_is_a_refusal(self):
        """Test a duplicate caught by the store comes back as a refused result."""
        store = RacingRecordStore()
        creator = EntityCreator(store, MatchingSettings())
        assert (await creator.create_vendor(USER_ID, "Stripe")).success

        result = await creator.create_vendor(USER_ID, "Stripe")

        assert not result.success
        assert result.error == 'Vendor "Stripe" already exists.'
