"""
Natural-Language Date Query Parser

Turns "last month", "9 november", "2024-03-01 to 2024-03-31" into a
concrete, inclusive calendar date range.

CONTRACT: parse() never raises and never returns a hard failure.
If nothing matches, the result simply has no range and carries the
reference date/year, so the caller can decide what to do next.

Recognized forms, in priority order:
1. today / yesterday / tomorrow
2. last N days
3. this week / last week (Monday to Sunday)
4. this month / last month / this year / last year
5. month name + day, either order, optional 4-digit year
6. month only ("october", "all of october"), optional year
7. ISO YYYY-MM-DD
8. numeric slash/dash dates, month first unless the first part is > 12
9. compound "A to B" (optionally "from A to B")

The compound form is tried first when the text contains " to ", since
"jan 1 to jan 31" would otherwise be swallowed by form 5. Nesting is
bounded so "a to b to c" is rejected when every side reads as a date.
Text where " to " is just a word ("paid to acme to cover today") falls
back to the single forms.
"""

import calendar
import re
from datetime import date, timedelta
from typing import Optional

import structlog

from ledgerchat.models.money import DateQueryResult


logger = structlog.get_logger(__name__)


_MONTHS = (
    r"jan(?:uary)?|feb(?:ruary)?|mar(?:ch)?|apr(?:il)?|may|june?|july?|"
    r"aug(?:ust)?|sep(?:t(?:ember)?)?|oct(?:ober)?|nov(?:ember)?|dec(?:ember)?"
)
_MONTH_NUMBERS = {
    name: number
    for number, name in enumerate(
        ("jan", "feb", "mar", "apr", "may", "jun",
         "jul", "aug", "sep", "oct", "nov", "dec"),
        start=1,
    )
}
_ORDINAL = r"(?:st|nd|rd|th)?"

_KEYWORD_RE = re.compile(r"\b(today|yesterday|tomorrow)\b")
_LAST_DAYS_RE = re.compile(r"\b(?:last|past)\s+(\d{1,4})\s+days?\b")
_WEEK_RE = re.compile(r"\b(this|last)\s+week\b")
_MONTH_RE = re.compile(r"\b(this|last)\s+month\b")
_YEAR_RE = re.compile(r"\b(this|last)\s+year\b")
_MONTH_DAY_RE = re.compile(
    rf"\b({_MONTHS})\.?\s+(\d{{1,2}}){_ORDINAL}(?:,?\s+(\d{{4}}))?\b"
)
_DAY_MONTH_RE = re.compile(
    rf"\b(\d{{1,2}}){_ORDINAL}\s+(?:of\s+)?({_MONTHS})\.?(?:,?\s+(\d{{4}}))?\b"
)
_MONTH_ONLY_RE = re.compile(rf"(?:\ball\s+of\s+)?\b({_MONTHS})\b\.?(?:,?\s+(\d{{4}}))?")
_ISO_RE = re.compile(r"\b(\d{4})-(\d{1,2})-(\d{1,2})\b")
_NUMERIC_RE = re.compile(r"\b(\d{1,2})[/-](\d{1,2})(?:[/-](\d{4}|\d{2}))?\b")
_RANGE_RE = re.compile(r"^(?:from\s+)?(.+?)\s+to\s+(.+)$")


class _RangeTooDeep(Exception):
    """Raised internally when compound ranges nest beyond the limit."""


class _Impossible(Exception):
    """Raised internally when a pattern matched an impossible calendar date."""


_Match = tuple[date, date, str]


def _month_number(token: str) -> int:
    return _MONTH_NUMBERS[token[:3]]


def _month_bounds(year: int, month: int) -> tuple[date, date]:
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


def _make_date(year: int, month: int, day: int) -> date:
    try:
        return date(year, month, day)
    except ValueError as e:
        raise _Impossible(str(e)) from e


class DateQueryParser:
    """
    Parses free-text date expressions relative to a reference date.

    Usage:
        parser = DateQueryParser()
        result = parser.parse("last month", reference_date=date(2025, 3, 14))
        result.start_date, result.end_date  # 2025-02-01, 2025-02-28
    """

    def __init__(self, max_range_depth: int = 1):
        if max_range_depth < 1:
            raise ValueError("max_range_depth must be at least 1")
        self.max_range_depth = max_range_depth

    def parse(
        self,
        query: Optional[str],
        reference_date: Optional[date] = None,
    ) -> DateQueryResult:
        reference = reference_date or date.today()
        text = " ".join((query or "").lower().split())

        if not text:
            return self._unmatched(reference, "No date query provided. Returning current date info.")

        try:
            found = self._parse(text, reference, depth=0)
        except _RangeTooDeep:
            logger.info("date_range_too_deep", query=query)
            found = None
        except (_Impossible, OverflowError, ValueError) as e:
            # OverflowError/ValueError: arithmetic ran past date.min or date.max
            logger.info("impossible_date", query=query, reason=str(e))
            found = None

        if found is None:
            return self._unmatched(
                reference,
                f'Could not parse "{query}". Returning current date.',
            )

        start, end, info = found
        return DateQueryResult(
            start_date=start,
            end_date=end,
            reference_date=reference,
            reference_year=reference.year,
            parsed_info=info,
        )

    @staticmethod
    def _unmatched(reference: date, info: str) -> DateQueryResult:
        return DateQueryResult(
            reference_date=reference,
            reference_year=reference.year,
            parsed_info=info,
        )

    def _parse(self, text: str, ref: date, depth: int) -> Optional[_Match]:
        if " to " in text:
            if depth < self.max_range_depth:
                ranged = self._parse_range(text, ref, depth)
                if ranged is not None:
                    return ranged
            elif self._looks_like_range(text, ref):
                raise _RangeTooDeep(text)
        return self._single(text, ref)

    def _single(self, text: str, ref: date) -> Optional[_Match]:
        for form in (
            self._keyword,
            self._last_days,
            self._week,
            self._month_or_year,
            self._month_day,
            self._month_only,
            self._iso,
            self._numeric,
        ):
            found = form(text, ref)
            if found is not None:
                return found
        return None

    def _looks_like_range(self, text: str, ref: date) -> bool:
        match = _RANGE_RE.match(text)
        if not match:
            return False
        for side in match.groups():
            try:
                if self._single(side.strip(), ref) is None:
                    return False
            except _Impossible:
                continue
        return True

    def _parse_range(self, text: str, ref: date, depth: int) -> Optional[_Match]:
        match = _RANGE_RE.match(text)
        if not match:
            return None

        first = self._parse(match.group(1).strip(), ref, depth + 1)
        second = self._parse(match.group(2).strip(), ref, depth + 1)
        if first is None or second is None:
            return None

        start, end = first[0], second[1]
        if end < start:
            # Inverted ranges are rejected outright
            raise _Impossible(f"range ends before it starts: {start} > {end}")
        return start, end, f"Date range: {start} to {end}"

    # --- individual forms ---------------------------------------------------

    @staticmethod
    def _keyword(text: str, ref: date) -> Optional[_Match]:
        match = _KEYWORD_RE.search(text)
        if not match:
            return None
        word = match.group(1)
        offset = {"today": 0, "yesterday": -1, "tomorrow": 1}[word]
        day = ref + timedelta(days=offset)
        if word == "today":
            return day, day, f"Today is {day}"
        if word == "yesterday":
            return day, day, f"Yesterday was {day}"
        return day, day, f"Tomorrow is {day}"

    @staticmethod
    def _last_days(text: str, ref: date) -> Optional[_Match]:
        match = _LAST_DAYS_RE.search(text)
        if not match:
            return None
        days = int(match.group(1))
        try:
            start = ref - timedelta(days=days)
        except OverflowError as e:
            raise _Impossible(str(e)) from e
        return start, ref, f"Last {days} days: {start} to {ref}"

    @staticmethod
    def _week(text: str, ref: date) -> Optional[_Match]:
        match = _WEEK_RE.search(text)
        if not match:
            return None
        monday = ref - timedelta(days=ref.weekday())
        if match.group(1) == "last":
            monday -= timedelta(days=7)
        sunday = monday + timedelta(days=6)
        label = "This week" if match.group(1) == "this" else "Last week"
        return monday, sunday, f"{label}: {monday} to {sunday}"

    @staticmethod
    def _month_or_year(text: str, ref: date) -> Optional[_Match]:
        match = _MONTH_RE.search(text)
        if match:
            year, month = ref.year, ref.month
            if match.group(1) == "last":
                year, month = (year - 1, 12) if month == 1 else (year, month - 1)
            start, end = _month_bounds(year, month)
            label = "This month" if match.group(1) == "this" else "Last month"
            return start, end, f"{label}: {start} to {end}"

        match = _YEAR_RE.search(text)
        if match:
            year = ref.year if match.group(1) == "this" else ref.year - 1
            start, end = date(year, 1, 1), date(year, 12, 31)
            label = "This year" if match.group(1) == "this" else "Last year"
            return start, end, f"{label}: {start} to {end}"
        return None

    @staticmethod
    def _month_day(text: str, ref: date) -> Optional[_Match]:
        match = _MONTH_DAY_RE.search(text)
        if match:
            month_token, day, year = match.group(1), match.group(2), match.group(3)
        else:
            match = _DAY_MONTH_RE.search(text)
            if not match:
                return None
            day, month_token, year = match.group(1), match.group(2), match.group(3)

        value = _make_date(
            int(year) if year else ref.year,
            _month_number(month_token),
            int(day),
        )
        return value, value, f"Parsed date: {value}"

    @staticmethod
    def _month_only(text: str, ref: date) -> Optional[_Match]:
        match = _MONTH_ONLY_RE.search(text)
        if not match:
            return None
        year = int(match.group(2)) if match.group(2) else ref.year
        start, end = _month_bounds(year, _month_number(match.group(1)))
        return start, end, f"Month range: {start} to {end}"

    @staticmethod
    def _iso(text: str, ref: date) -> Optional[_Match]:
        match = _ISO_RE.search(text)
        if not match:
            return None
        value = _make_date(int(match.group(1)), int(match.group(2)), int(match.group(3)))
        return value, value, f"ISO format date: {value}"

    @staticmethod
    def _numeric(text: str, ref: date) -> Optional[_Match]:
        match = _NUMERIC_RE.search(text)
        if not match:
            return None
        first, second = int(match.group(1)), int(match.group(2))
        month, day = (second, first) if first > 12 else (first, second)

        year_token = match.group(3)
        if year_token is None:
            year = ref.year
        elif len(year_token) == 2:
            year = 2000 + int(year_token)
        else:
            year = int(year_token)

        value = _make_date(year, month, day)
        return value, value, f"Parsed date: {value}"
