"""
Exchange rate and markup resolution.

An order or quotation snapshots the exchange rate and markup that were in
force when it was priced. This module decides which values those are:

- no currency, or the company's own currency: rate 1
- an explicit manual rate supplied by the caller wins over stored rates
- otherwise the most recent active ``exchange_rates`` row of the currency

Markups come from the explicit tier, the client's tier, the company's
default tier, or zero, in that order. Resolved rates may be cached in Redis.
"""

import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Optional

from redis.exceptions import RedisError

from printshop.cache.redis_client import CacheKeyManager, RedisClient
from printshop.core.config import get_settings
from printshop.core.exceptions import NotFoundError
from printshop.core.logging import get_logger
from printshop.services.pricing.engine import PricingEngine
from printshop.services.pricing.repository import PricingRepository

logger = get_logger(__name__)

BASE_RATE = Decimal("1")


@dataclass(frozen=True)
class RateSnapshot:
    """Exchange rate captured for one order or quotation."""

    currency_id: Optional[uuid.UUID]
    rate: Decimal
    source: str


@dataclass(frozen=True)
class MarkupSnapshot:
    pricing_tier_id: Optional[uuid.UUID]
    markup_percent: Decimal


class ExchangeRateResolver:
    """
    Resolves exchange rate and markup snapshots.

    Args:
        repository: Pricing reference data repository
        engine: Pricing engine used to validate rates
        redis_client: Connected Redis client, required when caching is on
        enable_caching: Cache stored rates in Redis
    """

    def __init__(
        self,
        repository: PricingRepository,
        engine: Optional[PricingEngine] = None,
        redis_client: Optional[RedisClient] = None,
        enable_caching: Optional[bool] = None,
    ):
        settings = get_settings()
        self.repository = repository
        self.engine = engine or PricingEngine()
        self._redis = redis_client
        self._enable_caching = (
            settings.exchange_rate_cache_enabled if enable_caching is None else enable_caching
        ) and redis_client is not None
        self._cache_ttl = settings.exchange_rate_cache_ttl_seconds
        self._keys = CacheKeyManager()

    async def resolve_rate(
        self,
        company_id: uuid.UUID,
        currency_id: Optional[uuid.UUID],
        manual_rate: Optional[Any] = None,
    ) -> RateSnapshot:
        """
        Resolve the exchange rate for a currency.

        Args:
            company_id: Tenant whose rates apply
            currency_id: Transaction currency, None for the base currency
            manual_rate: Rate entered by the user, overrides stored rates

        Returns:
            RateSnapshot with the rate and where it came from

        Raises:
            InvalidRateError: If the manual rate is not positive
            NotFoundError: If the company or a stored rate is missing
        """
        if manual_rate is not None:
            rate = self.engine.validate_rate(manual_rate)
            return RateSnapshot(currency_id=currency_id, rate=rate, source="manual")

        if currency_id is None:
            return RateSnapshot(currency_id=None, rate=BASE_RATE, source="base")

        company = await self.repository.get_company(company_id)
        if company.currency_id == currency_id:
            return RateSnapshot(currency_id=currency_id, rate=BASE_RATE, source="base")

        cached = await self._get_cached(company_id, currency_id)
        if cached is not None:
            return RateSnapshot(currency_id=currency_id, rate=cached, source="cache")

        stored = await self.repository.get_latest_rate(company_id, currency_id)
        if stored is None:
            raise NotFoundError(
                "No active exchange rate for currency",
                company_id=str(company_id),
                currency_id=str(currency_id),
            )

        rate = self.engine.validate_rate(stored.rate_to_company_currency)
        await self._set_cached(company_id, currency_id, rate)

        logger.debug(
            "Exchange rate resolved",
            company_id=str(company_id),
            currency_id=str(currency_id),
            rate=str(rate),
        )
        return RateSnapshot(currency_id=currency_id, rate=rate, source="stored")

    async def resolve_markup(
        self,
        company_id: uuid.UUID,
        pricing_tier_id: Optional[uuid.UUID] = None,
        client_id: Optional[uuid.UUID] = None,
    ) -> MarkupSnapshot:
        """
        Resolve the markup tier for an order.

        Raises:
            NotFoundError: If an explicit tier or client does not exist
        """
        if pricing_tier_id is not None:
            tier = await self.repository.get_pricing_tier(company_id, pricing_tier_id)
            return MarkupSnapshot(tier.id, Decimal(tier.markup_percent))

        if client_id is not None:
            client = await self.repository.get_client(company_id, client_id)
            if client.pricing_tier_id is not None:
                tier = await self.repository.get_pricing_tier(
                    company_id, client.pricing_tier_id
                )
                return MarkupSnapshot(tier.id, Decimal(tier.markup_percent))

        default_tier = await self.repository.get_default_tier(company_id)
        if default_tier is not None:
            return MarkupSnapshot(default_tier.id, Decimal(default_tier.markup_percent))

        return MarkupSnapshot(None, Decimal("0"))

    async def _get_cached(
        self, company_id: uuid.UUID, currency_id: uuid.UUID
    ) -> Optional[Decimal]:
        if not self._enable_caching:
            return None
        key = self._keys.exchange_rate_key(company_id, currency_id)
        try:
            value = await self._redis.get(key)
        except RedisError as e:
            logger.warning("Exchange rate cache read failed", key=key, error=str(e))
            return None
        return Decimal(value) if value is not None else None

    async def _set_cached(
        self, company_id: uuid.UUID, currency_id: uuid.UUID, rate: Decimal
    ) -> None:
        if not self._enable_caching:
            return
        key = self._keys.exchange_rate_key(company_id, currency_id)
        try:
            await self._redis.set(key, str(rate), ex=self._cache_ttl)
        except RedisError as e:
            logger.warning("Exchange rate cache write failed", key=key, error=str(e))
