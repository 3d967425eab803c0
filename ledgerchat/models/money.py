"""
Money and Date Range Models

EXCHANGE RATE CONVENTION (used everywhere in this package):
    exchange_rate = native-currency units per 1 base-currency unit
    base_amount   = native_amount / exchange_rate

So with base USD and 1 USD = 0.92 EUR, a EUR amount carries
exchange_rate 0.92 and 92 EUR becomes 100 USD.
"""

from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Annotated, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, model_validator


CENT = Decimal("0.01")


def quantize_money(value) -> Decimal:
    """Round a monetary value to cents, half-up."""
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def normalize_currency(code: str) -> str:
    return code.strip().upper()


CurrencyCode = Annotated[
    str,
    Field(min_length=3, max_length=3, pattern="^[A-Za-z]{3}$"),
    AfterValidator(normalize_currency),
]


class DateRange(BaseModel):
    """Inclusive calendar date range. start <= end always."""
    model_config = ConfigDict(frozen=True)

    start: date
    end: date

    @model_validator(mode='after')
    def check_order(self) -> 'DateRange':
        if self.end < self.start:
            raise ValueError("Date range end cannot be before start")
        return self

    @property
    def days(self) -> int:
        return (self.end - self.start).days + 1

    def contains(self, value: date) -> bool:
        return self.start <= value <= self.end


class DateQueryResult(BaseModel):
    """
    Result of parsing a free-text date expression.

    A result without dates is still a successful parse: the caller
    gets the reference date/year and decides what to do next.
    """

    start_date: Optional[date] = None
    end_date: Optional[date] = None
    reference_date: date
    reference_year: int
    parsed_info: str = ""

    @model_validator(mode='after')
    def check_range(self) -> 'DateQueryResult':
        if (self.start_date is None) != (self.end_date is None):
            raise ValueError("start_date and end_date must be set together")
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("end_date cannot be before start_date")
        return self

    @property
    def matched(self) -> bool:
        return self.start_date is not None

    @property
    def date_range(self) -> Optional[DateRange]:
        if self.start_date is None or self.end_date is None:
            return None
        return DateRange(start=self.start_date, end=self.end_date)


class Money(BaseModel):
    """
    An amount in its native currency together with its base-currency value.

    INVARIANT: when native and base currency are the same, the rate is 1
    and both amounts are equal.
    """
    model_config = ConfigDict(frozen=True)

    native_amount: Decimal
    native_currency: CurrencyCode
    exchange_rate: Decimal = Field(..., gt=0)
    base_amount: Decimal
    base_currency: CurrencyCode

    @model_validator(mode='after')
    def check_same_currency(self) -> 'Money':
        if self.native_currency == self.base_currency:
            if self.exchange_rate != 1:
                raise ValueError("Exchange rate must be 1 when currencies match")
            if self.base_amount != self.native_amount:
                raise ValueError("Base amount must equal native amount when currencies match")
        return self

    @classmethod
    def from_rate(
        cls,
        amount,
        currency: str,
        base_currency: str,
        rate,
    ) -> 'Money':
        """
        Build a Money value from an already-resolved rate.

        The rate is forced to 1 for same-currency amounts.
        """
        currency = normalize_currency(currency)
        base_currency = normalize_currency(base_currency)
        native = quantize_money(amount)

        if currency == base_currency:
            return cls(
                native_amount=native,
                native_currency=currency,
                exchange_rate=Decimal("1"),
                base_amount=native,
                base_currency=base_currency,
            )

        rate_dec = Decimal(str(rate))
        return cls(
            native_amount=native,
            native_currency=currency,
            exchange_rate=rate_dec,
            base_amount=quantize_money(native / rate_dec),
            base_currency=base_currency,
        )
