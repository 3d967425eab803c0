"""
Remote Exchange Rate Service

The rate service is an external collaborator. ``RateService`` is the
interface the converter consumes; ``HttpRateService`` talks to a JSON
HTTP endpoint:

    GET {base_url}/rates?base=USD&symbols=EUR,GBP
        -> {"base": "USD", "rates": {"EUR": 0.92, "GBP": 0.79}}
    GET {base_url}/convert?from=EUR&to=USD&amount=1
        -> {"result": 1.087}

Transient failures (network errors, 5xx, 429) are retried with
exponential backoff. The backoff is scaled from the request timeout and
retrying stops once that timeout has elapsed, so every attempt fits
inside the converter's own bound on a lookup. Anything still failing
surfaces as RateServiceError.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional, Sequence

import httpx
import structlog
from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    stop_after_delay,
    wait_exponential,
)

from ledgerchat.config import RateSettings


logger = structlog.get_logger(__name__)

RETRYABLE_STATUS_CODES = {408, 425, 429, 500, 502, 503, 504}


class RateServiceError(Exception):
    """Rate lookup failed or returned unusable data."""
    pass


class RateService(ABC):
    """Interface for a source of exchange rates."""

    @abstractmethod
    async def get_rates(
        self,
        base_currency: str,
        currencies: Sequence[str],
    ) -> dict[str, float]:
        """
        Rates quoted against ``base_currency``.

        Returns:
            {currency: units of currency per 1 base_currency}
        """
        pass

    @abstractmethod
    async def convert(
        self,
        amount: float,
        from_currency: str,
        to_currency: str,
    ) -> float:
        """
        Returns:
            ``amount`` of ``from_currency`` expressed in ``to_currency``
        """
        pass


def _is_retryable(exc: BaseException) -> bool:
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code in RETRYABLE_STATUS_CODES
    return isinstance(exc, httpx.TransportError)


class HttpRateService(RateService):
    """
    Rate service over HTTP with retries.

    Usage:
        service = HttpRateService.from_settings(get_settings().rates)
        rates = await service.get_rates("USD", ["EUR", "GBP"])
    """

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        timeout: float = 5.0,
        max_attempts: int = 3,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._timeout = timeout
        self._max_attempts = max(1, max_attempts)
        self._backoff = timeout / 10
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: RateSettings) -> "HttpRateService":
        if not settings.service_url:
            raise RateServiceError("RATES_SERVICE_URL is not configured")
        return cls(
            base_url=settings.service_url,
            api_key=settings.api_key,
            timeout=settings.request_timeout_seconds,
            max_attempts=settings.max_retries,
        )

    async def get_rates(
        self,
        base_currency: str,
        currencies: Sequence[str],
    ) -> dict[str, float]:
        params = {"base": base_currency}
        if currencies:
            params["symbols"] = ",".join(sorted(set(currencies)))

        data = await self._get_json("/rates", params)
        rates = data.get("rates")
        if not isinstance(rates, dict):
            raise RateServiceError(f"Malformed rates response for {base_currency}")

        try:
            return {code.upper(): float(value) for code, value in rates.items()}
        except (TypeError, ValueError) as e:
            raise RateServiceError(f"Non-numeric rate in response: {e}") from e

    async def convert(
        self,
        amount: float,
        from_currency: str,
        to_currency: str,
    ) -> float:
        data = await self._get_json(
            "/convert",
            {"from": from_currency, "to": to_currency, "amount": str(amount)},
        )
        try:
            return float(data["result"])
        except (KeyError, TypeError, ValueError) as e:
            raise RateServiceError(
                f"Malformed convert response for {from_currency}->{to_currency}"
            ) from e

    async def _get_json(self, path: str, params: dict[str, str]) -> dict[str, Any]:
        headers = {"Accept": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"

        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self._max_attempts) | stop_after_delay(self._timeout),
                wait=wait_exponential(multiplier=self._backoff, max=self._timeout / self._max_attempts),
                retry=retry_if_exception(_is_retryable),
                reraise=True,
            ):
                with attempt:
                    async with httpx.AsyncClient(
                        base_url=self._base_url,
                        timeout=self._timeout,
                        transport=self._transport,
                    ) as client:
                        response = await client.get(path, params=params, headers=headers)
                    response.raise_for_status()
                    payload = response.json()
        except httpx.HTTPError as e:
            logger.warning("rate_service_request_failed", path=path, error=str(e))
            raise RateServiceError(f"Rate service request failed: {e}") from e
        except ValueError as e:
            raise RateServiceError(f"Rate service returned invalid JSON: {e}") from e

        if not isinstance(payload, dict):
            raise RateServiceError("Rate service returned an unexpected payload")
        return payload
