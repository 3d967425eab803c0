"""Entity resolution package."""

from ledgerchat.resolution.matching import (
    AnyOf,
    EditDistanceMatch,
    MatchStrategy,
    SubstringMatch,
    default_strategy,
)
from ledgerchat.resolution.messages import (
    ambiguous_message,
    duplicate_name_message,
    near_duplicate_message,
    not_found_message,
    project_requires_client_message,
    resolution_error,
    tax_rate_error,
)
from ledgerchat.resolution.resolver import EntityResolver, TaxRateResolver

__all__ = [
    # Strategies
    "AnyOf",
    "EditDistanceMatch",
    "MatchStrategy",
    "SubstringMatch",
    "default_strategy",
    # Resolvers
    "EntityResolver",
    "TaxRateResolver",
    # Messages
    "ambiguous_message",
    "duplicate_name_message",
    "near_duplicate_message",
    "not_found_message",
    "project_requires_client_message",
    "resolution_error",
    "tax_rate_error",
]
