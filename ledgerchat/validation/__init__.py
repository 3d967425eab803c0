"""Validation package."""

from ledgerchat.validation.pipeline import (
    MISSING_FIELDS,
    ValidationPipeline,
    currency_not_enabled_message,
    format_schema_errors,
)

__all__ = [
    "MISSING_FIELDS",
    "ValidationPipeline",
    "currency_not_enabled_message",
    "format_schema_errors",
]
