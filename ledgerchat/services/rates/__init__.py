"""
Exchange Rate Services Package

Provides the rate service interface, its HTTP implementation, the
injectable rate cache and the never-failing CurrencyConverter.
"""

from ledgerchat.services.rates.cache import RateCache
from ledgerchat.services.rates.client import HttpRateService, RateService, RateServiceError
from ledgerchat.services.rates.clock import Clock, SystemClock
from ledgerchat.services.rates.converter import IDENTITY_RATE, CurrencyConverter

__all__ = [
    # Converter
    "CurrencyConverter",
    "IDENTITY_RATE",
    # Cache
    "Clock",
    "RateCache",
    "SystemClock",
    # Remote service
    "HttpRateService",
    "RateService",
    "RateServiceError",
]
