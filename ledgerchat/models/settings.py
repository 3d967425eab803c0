"""Per-user accounting preferences, as held by the record store."""

from typing import Optional

from pydantic import BaseModel, Field, model_validator

from ledgerchat.models.money import CurrencyCode


class UserSettings(BaseModel):
    """
    A user's currency and tax defaults.

    The base currency is always treated as enabled.
    """

    user_id: str
    base_currency: CurrencyCode = "USD"
    enabled_currencies: list[CurrencyCode] = Field(default_factory=list)
    default_tax_rate: Optional[float] = Field(default=None, ge=0, le=100)

    @model_validator(mode='after')
    def include_base_currency(self) -> 'UserSettings':
        if self.base_currency not in self.enabled_currencies:
            self.enabled_currencies.insert(0, self.base_currency)
        return self

    def is_enabled(self, currency: str) -> bool:
        return currency.strip().upper() in self.enabled_currencies
