"""
Fuzzy Matching Strategies

DESIGN DECISION: Every "is this name close enough?" rule lives behind one
small interface. The resolver only ever asks ``strategy.matches(query, name)``
so thresholds can be tuned or strategies swapped per entity kind without
touching any caller.

Inputs are already lower-cased and trimmed by the resolver.
"""

from abc import ABC, abstractmethod

from rapidfuzz.distance import Levenshtein

from ledgerchat.models.entities import EntityKind


class MatchStrategy(ABC):
    """Decides whether a candidate name is a plausible fuzzy hit."""

    @abstractmethod
    def matches(self, query: str, name: str) -> bool:
        pass


class SubstringMatch(MatchStrategy):
    """Containment in either direction ("acme" ~ "acme corp", "acme corp ltd" ~ "acme corp")."""

    def matches(self, query: str, name: str) -> bool:
        if not query or not name:
            return False
        return query in name or name in query

    def __repr__(self) -> str:
        return "SubstringMatch()"


class EditDistanceMatch(MatchStrategy):
    """
    Bounded Levenshtein distance.

    Used where lexical variation is expected, such as typos in project
    names ("Webiste Redesign").
    """

    def __init__(self, max_distance: int = 3):
        if max_distance < 0:
            raise ValueError("max_distance cannot be negative")
        self.max_distance = max_distance

    def matches(self, query: str, name: str) -> bool:
        if not query or not name:
            return False
        distance = Levenshtein.distance(query, name, score_cutoff=self.max_distance)
        return distance <= self.max_distance

    def __repr__(self) -> str:
        return f"EditDistanceMatch(max_distance={self.max_distance})"


class AnyOf(MatchStrategy):
    """Matches when any of the wrapped strategies matches."""

    def __init__(self, *strategies: MatchStrategy):
        if not strategies:
            raise ValueError("AnyOf needs at least one strategy")
        self.strategies = strategies

    def matches(self, query: str, name: str) -> bool:
        return any(s.matches(query, name) for s in self.strategies)

    def __repr__(self) -> str:
        inner = ", ".join(repr(s) for s in self.strategies)
        return f"AnyOf({inner})"


def default_strategy(kind: EntityKind, max_edit_distance: int = 3) -> MatchStrategy:
    """
    Default fuzzy strategy per entity kind.

    Projects tolerate typos; everything else is substring only.
    """
    if kind == EntityKind.PROJECT:
        return AnyOf(SubstringMatch(), EditDistanceMatch(max_edit_distance))
    return SubstringMatch()
