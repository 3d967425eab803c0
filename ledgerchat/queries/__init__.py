"""Deterministic lookups over stored records."""

from ledgerchat.queries.executor import RecordQueryExecutor

__all__ = ["RecordQueryExecutor"]
