"""
Record Query Execution

DESIGN DECISION: Query execution is DETERMINISTIC.
The conversational layer converts a question into a RecordQuery; this
engine runs it against the record store and returns only stored data.

ORDERING: the free-text date goes through DateQueryParser BEFORE the
store is queried, so the store always receives concrete dates.
"""

from datetime import date
from decimal import Decimal
from typing import Optional, Sequence
from uuid import UUID

from ledgerchat.audit import AuditLogger
from ledgerchat.dates import DateQueryParser
from ledgerchat.models.entities import NamedEntity
from ledgerchat.models.queries import QueryResult, RecordQuery
from ledgerchat.models.records import StoredRecord
from ledgerchat.resolution import SubstringMatch
from ledgerchat.services.storage import RecordStoreInterface


class RecordQueryExecutor:
    """
    Executes record queries against the record store.

    GUARANTEES:
    - Only returns real data from storage
    - Never invents or estimates
    - Clear "no data found" if nothing matches
    """

    def __init__(
        self,
        record_store: RecordStoreInterface,
        date_parser: Optional[DateQueryParser] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._store = record_store
        self._dates = date_parser or DateQueryParser()
        self._audit = audit_logger
        self._names = SubstringMatch()

    async def execute(
        self,
        user_id: str,
        query: RecordQuery,
        reference_date: Optional[date] = None,
        correlation_id: Optional[UUID] = None,
    ) -> QueryResult:
        """
        Execute a query and return results.

        Store failures come back as an unsuccessful QueryResult.
        """
        try:
            result = await self._execute(user_id, query, reference_date, correlation_id)
        except Exception as e:
            if self._audit:
                await self._audit.log_error(
                    error_type="query_failed",
                    error_message=str(e),
                    details={"query_id": str(query.query_id)},
                    correlation_id=correlation_id,
                )
            return QueryResult(
                query_id=query.query_id,
                success=False,
                error_message=str(e),
                data_found=False,
                result_count=0,
                query_description=f"Query failed: {str(e)}",
            )

        if self._audit:
            await self._audit.log_query_executed(
                query_id=query.query_id,
                kind=query.kind.value,
                result_count=result.result_count,
                correlation_id=correlation_id,
            )
        return result

    async def _execute(
        self,
        user_id: str,
        query: RecordQuery,
        reference_date: Optional[date],
        correlation_id: Optional[UUID],
    ) -> QueryResult:
        desc_parts = [f"Listing {query.kind.value} records"]

        date_from = date_to = None
        if query.date_query:
            parsed = self._dates.parse(query.date_query, reference_date)
            if self._audit:
                await self._audit.log_dates_parsed(
                    query=query.date_query,
                    start=parsed.start_date.isoformat() if parsed.start_date else None,
                    end=parsed.end_date.isoformat() if parsed.end_date else None,
                    correlation_id=correlation_id,
                )
            if parsed.matched:
                date_from, date_to = parsed.start_date, parsed.end_date
                desc_parts.append(self._date_range_str(date_from, date_to))
            else:
                desc_parts.append(f'no date filter ("{query.date_query}" not understood)')

        client_ids = category_ids = None
        if query.client_name:
            clients = await self._store.list_clients(user_id)
            client_ids = self._matching_ids(clients, query.client_name)
            desc_parts.append(f"client: {query.client_name}")

        if query.category_name:
            categories = await self._store.list_categories(user_id)
            category_ids = self._matching_ids(categories, query.category_name)
            desc_parts.append(f"category: {query.category_name}")

        records = await self._store.query_records(
            query.kind,
            user_id,
            date_from=date_from,
            date_to=date_to,
            text=query.text,
            limit=query.limit,
            client_ids=client_ids,
            category_ids=category_ids,
        )

        if query.text:
            desc_parts.append(f'matching "{query.text}"')

        results = [self._record_to_dict(r) for r in records]
        total = sum((r.base_amount for r in records), Decimal("0.00")) if records else None

        return QueryResult(
            query_id=query.query_id,
            success=True,
            data_found=len(results) > 0,
            result_count=len(results),
            results=results,
            date_from=date_from,
            date_to=date_to,
            total_base_amount=total,
            query_description=" | ".join(desc_parts),
        )

    def _matching_ids(self, entities: Sequence[NamedEntity], name: str) -> set[str]:
        wanted = name.strip().lower()
        ids = set()
        for entity in entities:
            names = [entity.primary_name, entity.secondary_name]
            if any(n and self._names.matches(wanted, n.lower()) for n in names):
                ids.add(str(entity.id))
        return ids

    def _record_to_dict(self, record: StoredRecord) -> dict:
        """Convert a stored record to a dictionary for results."""
        data = record.data
        result = {
            "id": str(record.id),
            "kind": record.kind.value,
            "date": record.record_date.isoformat(),
            "description": data.get("description"),
            "currency": data.get("currency"),
            "base_amount": str(record.base_amount),
        }
        if "amount" in data:
            result["amount"] = data["amount"]
        if record.invoice_number:
            result["invoice_number"] = record.invoice_number
            result["status"] = record.status
            result["total"] = data.get("total")
        return result

    def _date_range_str(
        self,
        date_from: Optional[date],
        date_to: Optional[date],
    ) -> str:
        """Format date range for description."""
        if date_from and date_to:
            if date_from == date_to:
                return f"on {date_from.strftime('%d %b %Y')}"
            elif date_from.month == date_to.month and date_from.year == date_to.year:
                return f"in {date_from.strftime('%B %Y')}"
            elif date_from.year == date_to.year:
                return f"from {date_from.strftime('%b')} to {date_to.strftime('%b %Y')}"
            else:
                return f"from {date_from.strftime('%b %Y')} to {date_to.strftime('%b %Y')}"
        return ""
