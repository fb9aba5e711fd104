"""
Exchange Service — currency rates for the dashboard's display currency.
Rates are cached per base currency for an hour; when the rates API is down a
fixed fallback table is returned (and not cached).
"""

import logging
import time
from typing import Optional
import httpx

from adpulse.config import get_settings

logger = logging.getLogger(__name__)

CACHE_SECONDS = 60 * 60

FALLBACK_RATES = {
    "USD": 1.0,
    "EUR": 0.92,
    "GBP": 0.78,
    "CAD": 1.36,
    "AUD": 1.51,
    "JPY": 157.50,
}


class ExchangeService:
    def __init__(self, http_client: Optional[httpx.AsyncClient] = None, clock=time.monotonic):
        self._http = http_client
        self.clock = clock
        self._cache: dict[str, tuple[dict, float]] = {}

    async def _fetch(self, base: str) -> dict:
        settings = get_settings()
        url = f"{settings.exchange_rates_url.rstrip('/')}/{base}"
        if self._http is not None:
            response = await self._http.get(url, timeout=settings.http_timeout_seconds)
        else:
            async with httpx.AsyncClient() as client:
                response = await client.get(url, timeout=settings.http_timeout_seconds)
        response.raise_for_status()
        data = response.json()
        if not isinstance(data, dict):
            raise ValueError("Rates API returned a malformed payload")
        if data.get("result") != "success" or not isinstance(data.get("rates"), dict):
            raise ValueError("Failed to fetch rates")
        return data["rates"]

    async def get_rates(self, base: str = "USD") -> dict:
        base = base.upper()
        cached = self._cache.get(base)
        if cached and self.clock() - cached[1] < CACHE_SECONDS:
            return cached[0]
        try:
            rates = await self._fetch(base)
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Exchange rates fetch failed, using fallback table: {e}")
            return dict(FALLBACK_RATES)
        self._cache[base] = (rates, self.clock())
        return rates

    async def convert(self, amount: float, to_currency: str, from_currency: str = "USD") -> float:
        rates = await self.get_rates(from_currency)
        rate = rates.get(to_currency.upper())
        if rate is None:
            raise ValueError(f"Unknown currency: {to_currency}")
        return round(amount * float(rate), 2)
