"""
Entity Resolution

Turns what the user typed ("acme", "20%") into at most one entity.

CRITICAL: Resolution never picks "the closest" and never creates.
- One exact hit       -> exact_match
- Several exact hits  -> all of them as similar_matches (duplicate names
                         are ambiguous, not "take the first")
- No exact hit        -> every fuzzy hit as similar_matches, in source order
- Nothing at all      -> empty result, the caller offers creation
"""

from typing import Optional, Sequence

import structlog

from ledgerchat.config import MatchingSettings
from ledgerchat.models.entities import EntityKind, NamedEntity, ResolutionResult, TaxRate
from ledgerchat.resolution.matching import MatchStrategy, SubstringMatch, default_strategy


logger = structlog.get_logger(__name__)


def _names(entity: NamedEntity) -> list[str]:
    names = [entity.primary_name, entity.secondary_name]
    return [n.strip().lower() for n in names if n and n.strip()]


class EntityResolver:
    """
    Resolves a text reference against a list of named entities.

    Usage:
        resolver = EntityResolver.for_kind(EntityKind.PROJECT)
        result = resolver.resolve(projects, "website redesign")
    """

    def __init__(self, strategy: Optional[MatchStrategy] = None):
        self.strategy = strategy or SubstringMatch()

    @classmethod
    def for_kind(
        cls,
        kind: EntityKind,
        settings: Optional[MatchingSettings] = None,
    ) -> "EntityResolver":
        max_distance = settings.max_edit_distance if settings else 3
        return cls(default_strategy(kind, max_distance))

    def resolve(
        self,
        candidates: Sequence[NamedEntity],
        query: str,
    ) -> ResolutionResult:
        wanted = (query or "").strip().lower()
        if not wanted:
            return ResolutionResult()

        exact = [c for c in candidates if wanted in _names(c)]

        if len(exact) == 1:
            return ResolutionResult(exact_match=exact[0])

        if len(exact) > 1:
            logger.info(
                "duplicate_exact_names",
                query=query,
                count=len(exact),
            )
            return ResolutionResult(similar_matches=exact)

        similar = [
            c for c in candidates
            if any(self.strategy.matches(wanted, name) for name in _names(c))
        ]
        return ResolutionResult(similar_matches=similar)


class TaxRateResolver:
    """
    Numeric equivalent of EntityResolver for tax rates.

    Rates are compared by percentage, not by name: 20 matches a rate
    configured as 20.0 (within the exact tolerance) and 19.6 is offered
    as similar (within the similar tolerance).
    """

    def __init__(
        self,
        exact_tolerance: float = 0.01,
        similar_tolerance: float = 0.5,
    ):
        if similar_tolerance < exact_tolerance:
            raise ValueError("similar_tolerance must not be below exact_tolerance")
        self.exact_tolerance = exact_tolerance
        self.similar_tolerance = similar_tolerance

    @classmethod
    def from_settings(cls, settings: MatchingSettings) -> "TaxRateResolver":
        return cls(
            exact_tolerance=settings.tax_rate_exact_tolerance,
            similar_tolerance=settings.tax_rate_similar_tolerance,
        )

    def resolve(
        self,
        rates: Sequence[TaxRate],
        percentage: float,
    ) -> ResolutionResult:
        exact = [r for r in rates if abs(r.rate - percentage) < self.exact_tolerance]

        if len(exact) == 1:
            return ResolutionResult(exact_match=exact[0])
        if len(exact) > 1:
            return ResolutionResult(similar_matches=exact)

        similar = [r for r in rates if abs(r.rate - percentage) <= self.similar_tolerance]
        return ResolutionResult(similar_matches=similar)

