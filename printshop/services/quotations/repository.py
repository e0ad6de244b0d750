"""
Quotation data access repository.

Quotations are created priced, read back, and locked while they are
converted into an order. The repository flushes but never commits.
"""

import uuid
from decimal import Decimal
from typing import Any, Optional, Sequence

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from printshop.core.exceptions import DependencyFailureError, NotFoundError
from printshop.core.logging import get_logger
from printshop.database.models.quotation import Quotation, QuotationItem
from printshop.services.orders.enums import QuotationStatus
from printshop.services.pricing.engine import PricedLine, Totals

logger = get_logger(__name__)


class QuotationRepository:
    """Repository for quotation data access operations."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create_quotation(
        self,
        company_id: uuid.UUID,
        priced_lines: Sequence[PricedLine],
        totals: Totals,
        exchange_rate: Decimal,
        created_by: Optional[uuid.UUID],
        **fields: Any,
    ) -> Quotation:
        """
        Create a draft quotation with its items.

        Raises:
            DependencyFailureError: If the insert fails
        """
        try:
            current = await self.session.scalar(
                select(func.max(Quotation.quotation_number)).where(
                    Quotation.company_id == company_id
                )
            )
            quotation = Quotation(
                company_id=company_id,
                quotation_number=(current or 0) + 1,
                status=QuotationStatus.DRAFT,
                exchange_rate=exchange_rate,
                total_price_foreign=totals.total_foreign,
                total_price_company=totals.total_company,
                created_by=created_by,
                items=[
                    QuotationItem(
                        product_id=line.product_id,
                        description=line.description,
                        quantity=line.quantity,
                        base_unit_price=line.base_unit_price,
                        unit_price=line.unit_price,
                        item_total=line.item_total,
                        position=position,
                    )
                    for position, line in enumerate(priced_lines)
                ],
                **fields,
            )
            self.session.add(quotation)
            await self.session.flush()
        except SQLAlchemyError as e:
            logger.error(
                "Quotation creation failed - database error",
                company_id=str(company_id),
                error=str(e),
            )
            raise DependencyFailureError(
                "Quotation creation failed due to database error",
                company_id=str(company_id),
            ) from e

        logger.info(
            "Quotation created",
            quotation_id=str(quotation.id),
            quotation_number=quotation.quotation_number,
            item_count=len(priced_lines),
        )
        return quotation

    async def get_quotation(
        self,
        quotation_id: uuid.UUID,
        company_id: uuid.UUID,
        for_update: bool = False,
    ) -> Quotation:
        """
        Get a quotation of a company.

        Args:
            quotation_id: Quotation identifier
            company_id: Owning tenant
            for_update: Lock the row until the transaction ends

        Raises:
            NotFoundError: If the quotation does not exist
        """
        statement = select(Quotation).where(
            Quotation.id == quotation_id, Quotation.company_id == company_id
        )
        if for_update:
            statement = statement.with_for_update()

        try:
            result = await self.session.execute(
                statement.execution_options(populate_existing=True)
            )
        except SQLAlchemyError as e:
            logger.error(
                "Failed to fetch quotation", quotation_id=str(quotation_id), error=str(e)
            )
            raise DependencyFailureError(
                "Failed to fetch quotation", quotation_id=str(quotation_id)
            ) from e

        quotation = result.scalar_one_or_none()
        if quotation is None:
            raise NotFoundError("Quotation not found", quotation_id=str(quotation_id))
        return quotation

    async def set_status(self, quotation: Quotation, status: QuotationStatus) -> Quotation:
        quotation.status = status
        try:
            await self.session.flush()
        except SQLAlchemyError as e:
            raise DependencyFailureError(
                "Failed to update quotation status", quotation_id=str(quotation.id)
            ) from e
        return quotation
