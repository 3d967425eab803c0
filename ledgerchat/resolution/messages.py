"""
User-facing resolution messages.

These strings go back to the conversational layer verbatim, so they
always name the candidates and say what the user can do next.
"""

from typing import Sequence

from ledgerchat.models.entities import EntityKind, NamedEntity, ResolutionResult, TaxRate


_NOUNS: dict[EntityKind, tuple[str, str]] = {
    EntityKind.CLIENT: ("client", "clients"),
    EntityKind.CATEGORY: ("category", "categories"),
    EntityKind.PROJECT: ("project", "projects"),
    EntityKind.TAX_RATE: ("tax rate", "tax rates"),
    EntityKind.VENDOR: ("vendor", "vendors"),
}


def noun(kind: EntityKind, count: int = 1) -> str:
    singular, plural = _NOUNS[kind]
    return singular if count == 1 else plural


def format_percentage(value: float) -> str:
    return f"{value:g}%"


def candidate_list(candidates: Sequence[NamedEntity]) -> str:
    return "\n".join(f"- {c.describe()}" for c in candidates)


def not_found_message(kind: EntityKind, name: str) -> str:
    return f'{noun(kind).capitalize()} "{name}" doesn\'t exist. Would you like me to create it?'


def ambiguous_message(
    kind: EntityKind,
    query: str,
    candidates: Sequence[NamedEntity],
) -> str:
    count = len(candidates)
    return (
        f'Found {count} similar {noun(kind, count)} but no exact match for "{query}":\n\n'
        f"{candidate_list(candidates)}\n\n"
        f'Which one did you mean? Or I can create a new {noun(kind)} "{query}".'
    )


def tax_rate_not_configured_message(percentage: float) -> str:
    return (
        f"You don't have a {format_percentage(percentage)} tax rate set up yet. "
        "Would you like me to create it?"
    )


def ambiguous_tax_rate_message(percentage: float, candidates: Sequence[TaxRate]) -> str:
    count = len(candidates)
    pct = format_percentage(percentage)
    return (
        f"Found {count} similar {noun(EntityKind.TAX_RATE, count)} but no exact match for {pct}:\n\n"
        f"{candidate_list(candidates)}\n\n"
        f"Which one did you mean? Or should I create a new {pct} tax rate?"
    )


def resolution_error(kind: EntityKind, query: str, result: ResolutionResult) -> str:
    """
    Error text for a reference that did not resolve to exactly one entity.

    Raises:
        ValueError: if the result is actually resolved
    """
    if result.is_resolved:
        raise ValueError("Resolved references have no error message")
    if result.is_ambiguous:
        return ambiguous_message(kind, query, result.similar_matches)
    return not_found_message(kind, query)


def tax_rate_error(percentage: float, result: ResolutionResult) -> str:
    if result.is_resolved:
        raise ValueError("Resolved tax rates have no error message")
    if result.is_ambiguous:
        return ambiguous_tax_rate_message(percentage, result.similar_matches)
    return tax_rate_not_configured_message(percentage)


def project_requires_client_message(project_name: str) -> str:
    return (
        f'Project "{project_name}" must be linked to a client. '
        "Which client is this project for?"
    )


def duplicate_name_message(kind: EntityKind, name: str) -> str:
    if kind == EntityKind.PROJECT:
        return f'A project named "{name}" already exists. Please use a different name.'
    return f'{noun(kind).capitalize()} "{name}" already exists.'


def near_duplicate_message(
    kind: EntityKind,
    name: str,
    candidates: Sequence[NamedEntity],
) -> str:
    count = len(candidates)
    return (
        f"Found {count} similar {noun(kind, count)}:\n\n"
        f"{candidate_list(candidates)}\n\n"
        f"Please use a different name or specify if you want to use an existing {noun(kind)}."
    )
