"""Tests for entity and tax rate resolution."""

import pytest

from ledgerchat.config import MatchingSettings
from ledgerchat.models.entities import Client, EntityKind, Project, ResolutionResult, TaxRate
from ledgerchat.resolution import (
    AnyOf,
    EditDistanceMatch,
    EntityResolver,
    SubstringMatch,
    TaxRateResolver,
    default_strategy,
    duplicate_name_message,
    resolution_error,
    tax_rate_error,
)


@pytest.fixture
def clients():
    return [
        Client(name="John Smith", company_name="Acme Corp"),
        Client(name="Acme Holdings"),
        Client(name="Globex"),
    ]


class TestMatchStrategies:
    """Tests for the pluggable fuzzy rules."""

    def test_substring_either_direction(self):
        """Test containment works both ways."""
        strategy = SubstringMatch()
        assert strategy.matches("acme", "acme corp")
        assert strategy.matches("acme corp ltd", "acme corp")
        assert not strategy.matches("globex", "acme corp")

    def test_edit_distance_bound(self):
        """Test the Levenshtein bound is inclusive."""
        strategy = EditDistanceMatch(max_distance=3)
        assert strategy.matches("webiste redesign", "website redesign")
        assert not strategy.matches("mobile app", "website redesign")

    def test_edit_distance_rejects_negative(self):
        """Test a negative bound is a configuration error."""
        with pytest.raises(ValueError):
            EditDistanceMatch(max_distance=-1)

    def test_any_of(self):
        """Test AnyOf matches when one member matches."""
        strategy = AnyOf(SubstringMatch(), EditDistanceMatch(1))
        assert strategy.matches("acme", "acme corp")
        assert strategy.matches("acne", "acme")
        assert not strategy.matches("zzz", "acme")

    def test_default_strategies(self):
        """Test projects tolerate typos and other kinds do not."""
        assert isinstance(default_strategy(EntityKind.PROJECT), AnyOf)
        assert isinstance(default_strategy(EntityKind.CLIENT), SubstringMatch)


class TestEntityResolver:
    """Tests for EntityResolver."""

    def test_exact_match_is_case_insensitive(self, clients):
        """Test an exact name match ignores case and whitespace."""
        result = EntityResolver().resolve(clients, "  GLOBEX ")
        assert result.is_resolved
        assert result.exact_match.name == "Globex"

    def test_exact_match_on_secondary_name(self, clients):
        """Test a client resolves by company name."""
        result = EntityResolver().resolve(clients, "acme corp")
        assert result.exact_match.name == "John Smith"

    def test_fuzzy_matches_are_never_picked(self, clients):
        """Test substring hits come back as similar, in source order."""
        result = EntityResolver().resolve(clients, "acme")
        assert not result.is_resolved
        assert [c.name for c in result.similar_matches] == ["John Smith", "Acme Holdings"]

    def test_exact_hit_suppresses_fuzzy_hits(self):
        """Test an exact name wins outright over names that merely contain it."""
        candidates = [Client(name="Acme"), Client(name="Acme Corp")]
        result = EntityResolver().resolve(candidates, "Acme")
        assert result.exact_match.name == "Acme"
        assert result.similar_matches == []

    def test_resolution_is_repeatable(self, clients):
        """Test the same query against the same candidates gives the same answer."""
        resolver = EntityResolver()
        assert resolver.resolve(clients, "acme") == resolver.resolve(clients, "acme")
        assert resolver.resolve(clients, "globex") == resolver.resolve(clients, "globex")

    def test_single_fuzzy_match_is_still_ambiguous(self, clients):
        """Test one fuzzy hit is not promoted to exact."""
        result = EntityResolver().resolve(clients, "glob")
        assert result.is_ambiguous
        assert len(result.similar_matches) == 1

    def test_exact_tie_degrades_to_similar(self):
        """Test duplicate exact names are ambiguous, not first-wins."""
        twins = [Client(name="Acme"), Client(name="acme")]
        result = EntityResolver().resolve(twins, "Acme")
        assert result.exact_match is None
        assert len(result.similar_matches) == 2

    def test_no_match(self, clients):
        """Test nothing matching gives an empty result."""
        assert EntityResolver().resolve(clients, "Initech").is_not_found

    def test_empty_query(self, clients):
        """Test a blank query resolves to nothing."""
        assert EntityResolver().resolve(clients, "  ").is_not_found

    def test_project_typo_tolerance(self):
        """Test project resolution uses edit distance from settings."""
        projects = [Project(name="Website Redesign"), Project(name="Mobile App")]
        resolver = EntityResolver.for_kind(EntityKind.PROJECT, MatchingSettings(max_edit_distance=2))
        result = resolver.resolve(projects, "Webiste Redesign")
        assert [p.name for p in result.similar_matches] == ["Website Redesign"]


class TestTaxRateResolver:
    """Tests for numeric tax rate resolution."""

    @pytest.fixture
    def rates(self):
        return [TaxRate(name="Standard", rate=20.0), TaxRate(name="Reduced", rate=5.0)]

    def test_exact_within_tolerance(self, rates):
        """Test 20 matches 20.0."""
        result = TaxRateResolver().resolve(rates, 20.001)
        assert result.exact_match.name == "Standard"

    def test_similar_within_half_point(self, rates):
        """Test 19.6 is offered, not picked."""
        result = TaxRateResolver().resolve(rates, 19.6)
        assert [r.name for r in result.similar_matches] == ["Standard"]

    def test_not_configured(self, rates):
        """Test an unknown percentage resolves to nothing."""
        assert TaxRateResolver().resolve(rates, 12.5).is_not_found

    def test_duplicate_rates_are_ambiguous(self):
        """Test two rates with the same percentage are not auto-picked."""
        rates = [TaxRate(name="VAT", rate=20.0), TaxRate(name="Sales", rate=20.0)]
        result = TaxRateResolver().resolve(rates, 20)
        assert len(result.similar_matches) == 2

    def test_tolerances_must_be_ordered(self):
        """Test similar tolerance cannot be below exact tolerance."""
        with pytest.raises(ValueError):
            TaxRateResolver(exact_tolerance=1.0, similar_tolerance=0.5)


class TestResolutionMessages:
    """Tests for the user-facing error text."""

    def test_not_found_offers_creation(self):
        """Test the not-found message offers to create."""
        message = resolution_error(EntityKind.CLIENT, "Initech", ResolutionResult())
        assert message == 'Client "Initech" doesn\'t exist. Would you like me to create it?'

    def test_ambiguous_lists_candidates(self, clients):
        """Test the ambiguous message names every candidate."""
        result = ResolutionResult(similar_matches=clients[:2])
        message = resolution_error(EntityKind.CLIENT, "acme", result)
        assert message.startswith('Found 2 similar clients but no exact match for "acme":')
        assert "- John Smith (Acme Corp)" in message
        assert "- Acme Holdings" in message
        assert message.endswith('Which one did you mean? Or I can create a new client "acme".')

    def test_resolved_has_no_message(self, clients):
        """Test asking for an error on a resolved result is a bug."""
        with pytest.raises(ValueError):
            resolution_error(EntityKind.CLIENT, "Globex", ResolutionResult(exact_match=clients[2]))

    def test_tax_rate_messages(self):
        """Test tax rate messages use the percentage."""
        assert "12.5% tax rate set up" in tax_rate_error(12.5, ResolutionResult())
        similar = ResolutionResult(similar_matches=[TaxRate(name="Standard", rate=20.0)])
        assert "- Standard (20%)" in tax_rate_error(19.6, similar)

    def test_duplicate_project_message(self):
        """Test the duplicate project wording."""
        assert duplicate_name_message(EntityKind.PROJECT, "Site") == (
            'A project named "Site" already exists. Please use a different name.'
        )
