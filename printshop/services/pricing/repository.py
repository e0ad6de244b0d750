"""
Read access to the reference data used for pricing.

Companies, products, pricing tiers, clients and exchange rates are owned by
administrative tooling; this repository only reads them, always scoped to
the caller's company.
"""

import uuid
from typing import Optional, Sequence

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from printshop.core.exceptions import DependencyFailureError, NotFoundError
from printshop.core.logging import get_logger
from printshop.database.models.catalog import (
    Client,
    Company,
    Currency,
    ExchangeRate,
    PricingTier,
    Product,
)

logger = get_logger(__name__)


class PricingRepository:
    """Repository for pricing reference data."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _scalar(self, statement, operation: str, **context):
        try:
            result = await self.session.execute(statement)
        except SQLAlchemyError as e:
            logger.error(
                "Pricing reference query failed",
                operation=operation,
                error=str(e),
                **context,
            )
            raise DependencyFailureError(
                f"Failed to load {operation}", operation=operation, **context
            ) from e
        return result.scalar_one_or_none()

    async def get_company(self, company_id: uuid.UUID) -> Company:
        """
        Get a company by id.

        Raises:
            NotFoundError: If the company does not exist
        """
        company = await self._scalar(
            select(Company).where(Company.id == company_id),
            "company",
            company_id=str(company_id),
        )
        if company is None:
            raise NotFoundError("Company not found", company_id=str(company_id))
        return company

    async def get_currency_code(self, currency_id: Optional[uuid.UUID]) -> Optional[str]:
        """ISO code of a currency, None when no currency is set."""
        if currency_id is None:
            return None
        return await self._scalar(
            select(Currency.code).where(Currency.id == currency_id),
            "currency",
            currency_id=str(currency_id),
        )

    async def get_latest_rate(
        self, company_id: uuid.UUID, currency_id: uuid.UUID
    ) -> Optional[ExchangeRate]:
        """Most recent active exchange rate of a currency for a company."""
        statement = (
            select(ExchangeRate)
            .where(
                ExchangeRate.company_id == company_id,
                ExchangeRate.currency_id == currency_id,
                ExchangeRate.is_active.is_(True),
            )
            .order_by(ExchangeRate.valid_from.desc(), ExchangeRate.created_at.desc())
            .limit(1)
        )
        return await self._scalar(
            statement,
            "exchange rate",
            company_id=str(company_id),
            currency_id=str(currency_id),
        )

    async def get_pricing_tier(
        self, company_id: uuid.UUID, tier_id: uuid.UUID
    ) -> PricingTier:
        """
        Get a pricing tier of the company.

        Raises:
            NotFoundError: If the tier does not exist for this company
        """
        tier = await self._scalar(
            select(PricingTier).where(
                PricingTier.id == tier_id, PricingTier.company_id == company_id
            ),
            "pricing tier",
            tier_id=str(tier_id),
        )
        if tier is None:
            raise NotFoundError("Pricing tier not found", pricing_tier_id=str(tier_id))
        return tier

    async def get_default_tier(self, company_id: uuid.UUID) -> Optional[PricingTier]:
        return await self._scalar(
            select(PricingTier)
            .where(PricingTier.company_id == company_id, PricingTier.is_default.is_(True))
            .limit(1),
            "default pricing tier",
            company_id=str(company_id),
        )

    async def get_client(self, company_id: uuid.UUID, client_id: uuid.UUID) -> Client:
        """
        Get a client of the company.

        Raises:
            NotFoundError: If the client does not exist for this company
        """
        client = await self._scalar(
            select(Client).where(Client.id == client_id, Client.company_id == company_id),
            "client",
            client_id=str(client_id),
        )
        if client is None:
            raise NotFoundError("Client not found", client_id=str(client_id))
        return client

    async def get_products(
        self, company_id: uuid.UUID, product_ids: Sequence[uuid.UUID]
    ) -> dict[uuid.UUID, Product]:
        """
        Load products by id.

        Raises:
            NotFoundError: If any product is missing or belongs to another company
        """
        wanted = set(product_ids)
        if not wanted:
            return {}

        try:
            result = await self.session.execute(
                select(Product).where(
                    Product.id.in_(wanted), Product.company_id == company_id
                )
            )
        except SQLAlchemyError as e:
            logger.error("Product query failed", error=str(e))
            raise DependencyFailureError("Failed to load products") from e

        products = {product.id: product for product in result.scalars().all()}
        missing = wanted - products.keys()
        if missing:
            raise NotFoundError(
                "Product not found",
                product_ids=sorted(str(product_id) for product_id in missing),
            )
        return products
