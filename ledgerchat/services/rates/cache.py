"""
Exchange Rate Cache

Two layers, both keyed by currency code:
- rate TABLES per quote currency, fresh for ``refresh_interval`` seconds
- pair SNAPSHOTS (from, to) -> rate, fresh for ``snapshot_ttl`` seconds

CONCURRENCY: this is the only shared mutable state in the pipeline.
Entries are replaced whole, never edited in place, so a reader sees
either the old entry or the new one. Two coroutines refreshing the same
table at once is harmless; the last writer wins.
"""

from typing import Mapping, Optional

from ledgerchat.services.rates.clock import Clock, SystemClock


class RateCache:
    """In-process rate table plus short-lived pair snapshots."""

    def __init__(
        self,
        clock: Optional[Clock] = None,
        refresh_interval: float = 1800,
        snapshot_ttl: float = 300,
    ):
        if refresh_interval <= 0 or snapshot_ttl <= 0:
            raise ValueError("Cache lifetimes must be positive")
        self._clock = clock or SystemClock()
        self.refresh_interval = refresh_interval
        self.snapshot_ttl = snapshot_ttl
        self._tables: dict[str, tuple[float, dict[str, float]]] = {}
        self._pairs: dict[tuple[str, str], tuple[float, float]] = {}

    # --- tables --------------------------------------------------------------

    def get_table(self, quote: str) -> Optional[dict[str, float]]:
        """
        Fresh table for ``quote`` (units of X per 1 quote), or None.
        """
        entry = self._tables.get(quote)
        if entry is None:
            return None
        stored_at, rates = entry
        if self._clock.now() - stored_at >= self.refresh_interval:
            return None
        return dict(rates)

    def put_table(self, quote: str, rates: Mapping[str, float]) -> None:
        table = {code.upper(): float(value) for code, value in rates.items()}
        table[quote] = 1.0
        self._tables[quote] = (self._clock.now(), table)

    def known_symbols(self, quote: str) -> list[str]:
        """Currencies the last table for ``quote`` covered, fresh or not."""
        entry = self._tables.get(quote)
        if entry is None:
            return []
        return sorted(code for code in entry[1] if code != quote)

    def quotes(self) -> list[str]:
        return sorted(self._tables)

    # --- pair snapshots ----------------------------------------------------

    def get_pair(self, from_currency: str, to_currency: str) -> Optional[float]:
        entry = self._pairs.get((from_currency, to_currency))
        if entry is None:
            return None
        stored_at, rate = entry
        if self._clock.now() - stored_at >= self.snapshot_ttl:
            return None
        return rate

    def put_pair(self, from_currency: str, to_currency: str, rate: float) -> None:
        self._pairs[(from_currency, to_currency)] = (self._clock.now(), rate)
