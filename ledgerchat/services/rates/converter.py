"""
Currency Converter

RATE CONVENTION:
    rate(from, to)            = units of ``from`` per 1 unit of ``to``
    convert(amount, from, to) = amount / rate(from, to)

So rate("EUR", "USD") == 0.92 means 1 USD buys 0.92 EUR, and 92 EUR
converts to 100 USD. This is exactly the stored ``exchange_rate`` of a
record whose native currency is ``from`` and base currency is ``to``.

Lookup tiers, each used only when the previous one has nothing:
1. caller-supplied rates, a fresh pair snapshot, or the in-process rate
   table for ``to`` (refreshed through the rate service when stale)
2. a remote lookup for the specific pair, bounded by a timeout
3. the identity rate 1, logged and audited as a degraded computation

CRITICAL: rate() and convert() never raise. Money calculations must
always be able to complete; a degraded rate is visible in the audit log,
not as an error to the user.
"""

import asyncio
import math
from decimal import Decimal
from typing import Mapping, Optional, Union
from uuid import UUID

import structlog

from ledgerchat.audit import AuditLogger
from ledgerchat.config import RateSettings
from ledgerchat.models.money import Money, normalize_currency, quantize_money
from ledgerchat.services.rates.cache import RateCache
from ledgerchat.services.rates.client import RateService


logger = structlog.get_logger(__name__)

IDENTITY_RATE = 1.0

Amount = Union[Decimal, float, int]


def _usable(rate) -> bool:
    try:
        value = float(rate)
    except (TypeError, ValueError):
        return False
    return math.isfinite(value) and value > 0


class CurrencyConverter:
    """
    Resolves exchange rates with layered fallback.

    Usage:
        converter = CurrencyConverter(rate_service=service)
        rate = await converter.rate("EUR", "USD")
        money = await converter.money(Decimal("92.00"), "EUR", "USD")
    """

    def __init__(
        self,
        rate_service: Optional[RateService] = None,
        cache: Optional[RateCache] = None,
        audit_logger: Optional[AuditLogger] = None,
        timeout_seconds: float = 5.0,
    ):
        self._service = rate_service
        self._cache = cache or RateCache()
        self._audit = audit_logger
        self._timeout = timeout_seconds

    @classmethod
    def from_settings(
        cls,
        settings: RateSettings,
        rate_service: Optional[RateService] = None,
        audit_logger: Optional[AuditLogger] = None,
        cache: Optional[RateCache] = None,
    ) -> "CurrencyConverter":
        return cls(
            rate_service=rate_service,
            cache=cache or RateCache(
                refresh_interval=settings.refresh_interval_seconds,
                snapshot_ttl=settings.snapshot_ttl_seconds,
            ),
            audit_logger=audit_logger,
            timeout_seconds=settings.request_timeout_seconds,
        )

    @property
    def cache(self) -> RateCache:
        return self._cache

    async def rate(
        self,
        from_currency: str,
        to_currency: str,
        rates: Optional[Mapping[str, float]] = None,
        correlation_id: Optional[UUID] = None,
    ) -> float:
        """
        Units of ``from_currency`` per 1 ``to_currency``.

        Args:
            rates: Optional caller-supplied table quoted in ``to_currency``
                   ({currency: units per 1 to_currency}). Consulted first.
        """
        source = normalize_currency(from_currency)
        target = normalize_currency(to_currency)

        if source == target:
            return IDENTITY_RATE

        if rates:
            supplied = {code.upper(): value for code, value in rates.items()}
            if _usable(supplied.get(source)):
                return float(supplied[source])

        snapshot = self._cache.get_pair(source, target)
        if snapshot is not None:
            return snapshot

        from_table = await self._from_table(source, target)
        if from_table is not None:
            self._cache.put_pair(source, target, from_table)
            return from_table

        remote, reason = await self._from_remote(source, target)
        if remote is not None:
            self._cache.put_pair(source, target, remote)
            return remote

        await self._degrade(source, target, reason, correlation_id)
        return IDENTITY_RATE

    async def convert(
        self,
        amount: Amount,
        from_currency: str,
        to_currency: str,
        rates: Optional[Mapping[str, float]] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Amount:
        """
        Express ``amount`` of ``from_currency`` in ``to_currency``.

        Same-currency amounts come back unchanged; everything else is
        rounded to cents.
        """
        if normalize_currency(from_currency) == normalize_currency(to_currency):
            return amount

        rate = await self.rate(from_currency, to_currency, rates, correlation_id)
        return quantize_money(Decimal(str(amount)) / Decimal(str(rate)))

    async def money(
        self,
        amount: Amount,
        currency: str,
        base_currency: str,
        rate: Optional[float] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Money:
        """
        Build a Money value. Pass ``rate`` to reuse an already-resolved
        rate so every amount of one record shares it.
        """
        if rate is None:
            rate = await self.rate(currency, base_currency, correlation_id=correlation_id)
        return Money.from_rate(amount, currency, base_currency, rate)

    async def refresh(self, quote: str, currencies: Optional[list[str]] = None) -> bool:
        """
        Fetch and store a fresh table for ``quote``.

        Returns False (and keeps whatever was cached) if the service is
        missing or failing.
        """
        if self._service is None:
            return False

        quote = normalize_currency(quote)
        symbols = sorted(set(currencies or []) | set(self._cache.known_symbols(quote)))
        try:
            fetched = await asyncio.wait_for(
                self._service.get_rates(quote, symbols),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("rate_table_refresh_timeout", quote=quote)
            await self._report_service_error(f"rate table refresh for {quote} timed out")
            return False
        except Exception as e:
            logger.warning("rate_table_refresh_failed", quote=quote, error=str(e))
            await self._report_service_error(str(e) or type(e).__name__)
            return False

        usable = {code: float(v) for code, v in fetched.items() if _usable(v)}
        self._cache.put_table(quote, usable)
        logger.debug("rate_table_refreshed", quote=quote, currencies=len(usable))
        return True

    async def run_periodic_refresh(self, interval: Optional[float] = None) -> None:
        """
        Refresh every known table forever. Run as a task and cancel it
        to stop.
        """
        interval = interval or self._cache.refresh_interval
        while True:
            for quote in self._cache.quotes():
                await self.refresh(quote)
            await asyncio.sleep(interval)

    async def _from_table(self, source: str, target: str) -> Optional[float]:
        table = self._cache.get_table(target)
        if table is None or source not in table:
            if not await self.refresh(target, [source]):
                return None
            table = self._cache.get_table(target)

        if table is None:
            return None
        value = table.get(source)
        return float(value) if _usable(value) else None

    async def _from_remote(self, source: str, target: str) -> tuple[Optional[float], str]:
        if self._service is None:
            return None, "no rate service configured"

        try:
            converted = await asyncio.wait_for(
                self._service.convert(1, source, target),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError:
            return None, f"rate lookup timed out after {self._timeout}s"
        except Exception as e:
            return None, str(e) or type(e).__name__

        if not _usable(converted):
            return None, f"rate service returned unusable value {converted!r}"
        return 1.0 / float(converted), ""

    async def _degrade(
        self,
        source: str,
        target: str,
        reason: str,
        correlation_id: Optional[UUID],
    ) -> None:
        logger.warning(
            "rate_degraded",
            from_currency=source,
            to_currency=target,
            reason=reason,
        )
        if self._audit:
            await self._audit.log_rate_degraded(
                from_currency=source,
                to_currency=target,
                reason=reason,
                correlation_id=correlation_id,
            )

    async def _report_service_error(self, message: str) -> None:
        if self._audit:
            await self._audit.log_external_service_error(
                service="rates",
                error_message=message,
            )
