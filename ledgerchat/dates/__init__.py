"""Date query parsing package."""

from ledgerchat.dates.parser import DateQueryParser

__all__ = ["DateQueryParser"]
