"""
Tests for exchange rate and markup resolution against the database.
"""

import uuid
from decimal import Decimal
from typing import Optional

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from printshop.core.exceptions import InvalidRateError, NotFoundError, ValidationFailedError
from printshop.services.pricing.lines import ItemInput, resolve_lines
from printshop.services.pricing.rates import ExchangeRateResolver
from printshop.services.pricing.repository import PricingRepository


class FakeRedis:
    """In-memory stand-in for the connected Redis client."""

    def __init__(self, fail: bool = False):
        self.values: dict[str, str] = {}
        self.fail = fail

    async def get(self, key: str) -> Optional[str]:
        if self.fail:
            raise RedisConnectionError("redis down")
        return self.values.get(key)

    async def set(self, key: str, value: str, ex: Optional[int] = None) -> bool:
        if self.fail:
            raise RedisConnectionError("redis down")
        self.values[key] = value
        return True


@pytest.fixture
def resolver(session) -> ExchangeRateResolver:
    return ExchangeRateResolver(PricingRepository(session))


class TestResolveRate:
    async def test_no_currency_uses_base_rate(self, resolver, seed):
        snapshot = await resolver.resolve_rate(seed.company_id, None)

        assert snapshot.rate == Decimal("1")
        assert snapshot.source == "base"

    async def test_company_currency_uses_base_rate(self, resolver, seed):
        snapshot = await resolver.resolve_rate(seed.company_id, seed.aed_id)

        assert snapshot.rate == Decimal("1")

    async def test_stored_rate(self, resolver, seed):
        snapshot = await resolver.resolve_rate(seed.company_id, seed.usd_id)

        assert snapshot.rate == Decimal("3.75")
        assert snapshot.source == "stored"

    async def test_manual_rate_wins(self, resolver, seed):
        snapshot = await resolver.resolve_rate(seed.company_id, seed.usd_id, "3.6725")

        assert snapshot.rate == Decimal("3.6725")
        assert snapshot.source == "manual"

    async def test_manual_rate_must_be_positive(self, resolver, seed):
        with pytest.raises(InvalidRateError):
            await resolver.resolve_rate(seed.company_id, seed.usd_id, 0)

    async def test_missing_rate(self, resolver, seed):
        with pytest.raises(NotFoundError, match="No active exchange rate"):
            await resolver.resolve_rate(seed.other_company_id, seed.usd_id)

    async def test_rates_are_cached(self, session, seed):
        redis = FakeRedis()
        resolver = ExchangeRateResolver(
            PricingRepository(session), redis_client=redis, enable_caching=True
        )

        first = await resolver.resolve_rate(seed.company_id, seed.usd_id)
        second = await resolver.resolve_rate(seed.company_id, seed.usd_id)

        assert first.source == "stored"
        assert second.source == "cache"
        assert second.rate == Decimal("3.75")
        assert len(redis.values) == 1

    async def test_cache_failures_fall_back_to_database(self, session, seed):
        resolver = ExchangeRateResolver(
            PricingRepository(session), redis_client=FakeRedis(fail=True), enable_caching=True
        )

        snapshot = await resolver.resolve_rate(seed.company_id, seed.usd_id)

        assert snapshot.rate == Decimal("3.75")


class TestResolveMarkup:
    async def test_explicit_tier(self, resolver, seed):
        snapshot = await resolver.resolve_markup(seed.company_id, seed.vip_tier_id)

        assert snapshot.markup_percent == Decimal("20")
        assert snapshot.pricing_tier_id == seed.vip_tier_id

    async def test_client_tier(self, resolver, seed):
        snapshot = await resolver.resolve_markup(seed.company_id, client_id=seed.client_id)

        assert snapshot.pricing_tier_id == seed.vip_tier_id

    async def test_default_tier(self, resolver, seed):
        snapshot = await resolver.resolve_markup(seed.company_id)

        assert snapshot.pricing_tier_id == seed.default_tier_id
        assert snapshot.markup_percent == Decimal("0")

    async def test_no_tiers_means_no_markup(self, resolver, seed):
        snapshot = await resolver.resolve_markup(seed.other_company_id)

        assert snapshot.pricing_tier_id is None
        assert snapshot.markup_percent == Decimal("0")

    async def test_unknown_tier(self, resolver, seed):
        with pytest.raises(NotFoundError, match="Pricing tier not found"):
            await resolver.resolve_markup(seed.company_id, uuid.uuid4())


class TestResolveLines:
    async def test_product_line_uses_catalog_price(self, session, seed):
        lines = await resolve_lines(
            PricingRepository(session),
            seed.company_id,
            [ItemInput(quantity=2, product_id=seed.product_id)],
        )

        assert lines[0].base_unit_price == Decimal("100")
        assert lines[0].description == "Business Cards"

    async def test_explicit_price_overrides_catalog(self, session, seed):
        lines = await resolve_lines(
            PricingRepository(session),
            seed.company_id,
            [ItemInput(quantity=1, product_id=seed.product_id, base_unit_price="80")],
        )

        assert lines[0].base_unit_price == Decimal("80")

    async def test_custom_line_needs_price(self, session, seed):
        with pytest.raises(ValidationFailedError, match="base unit price"):
            await resolve_lines(
                PricingRepository(session),
                seed.company_id,
                [ItemInput(quantity=1, description="Banner")],
            )

    async def test_product_of_other_company(self, session, seed):
        with pytest.raises(NotFoundError, match="Product not found"):
            await resolve_lines(
                PricingRepository(session),
                seed.other_company_id,
                [ItemInput(quantity=1, product_id=seed.product_id)],
            )
