"""
Quotation service.

Quotations are priced exactly like orders. Converting one creates an order
that keeps the quotation's prices and exchange rate snapshot; a quotation
converts at most once.
"""

import uuid
from datetime import date
from typing import Any, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from printshop.core.exceptions import (
    DependencyFailureError,
    InvalidTransitionError,
    ValidationFailedError,
)
from printshop.core.logging import get_logger
from printshop.core.security import ActorContext
from printshop.database.models.order import Order
from printshop.database.models.quotation import Quotation
from printshop.services.notifications.service import NotificationService
from printshop.services.orders.enums import DeliveryMethod, QuotationStatus
from printshop.services.orders.service import OrderService
from printshop.services.orders.transitions import CREATION_ROLES
from printshop.services.pricing.engine import PricedLine, PricingEngine, Totals
from printshop.services.pricing.lines import ItemInput, resolve_lines
from printshop.services.pricing.rates import ExchangeRateResolver
from printshop.services.pricing.repository import PricingRepository
from printshop.services.quotations.repository import QuotationRepository

logger = get_logger(__name__)

# Document statuses a user may set by hand, keyed by the status they leave
MANUAL_STATUS_CHANGES = {
    QuotationStatus.DRAFT: frozenset({QuotationStatus.SENT, QuotationStatus.ACCEPTED}),
    QuotationStatus.SENT: frozenset({QuotationStatus.DRAFT, QuotationStatus.ACCEPTED}),
    QuotationStatus.ACCEPTED: frozenset({QuotationStatus.SENT}),
    QuotationStatus.CONVERTED: frozenset(),
}


class QuotationService:
    """
    Creates, reads and converts quotations.

    Args:
        session: Async database session; every public method commits or
            rolls back
        notification_service: Told about orders created by conversion
    """

    def __init__(
        self,
        session: AsyncSession,
        notification_service: Optional[NotificationService] = None,
        rate_resolver: Optional[ExchangeRateResolver] = None,
    ):
        self.session = session
        self.engine = PricingEngine()
        self.repository = QuotationRepository(session)
        self.pricing = PricingRepository(session)
        self.rates = rate_resolver or ExchangeRateResolver(self.pricing, self.engine)
        self.orders = OrderService(
            session,
            notification_service=notification_service,
            rate_resolver=self.rates,
            engine=self.engine,
        )

    async def _commit(self, operation: str, **context: Any) -> None:
        try:
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            raise DependencyFailureError(f"Failed to {operation}", **context) from e

    async def create_quotation(
        self,
        actor: ActorContext,
        client_name: str,
        items: Sequence[ItemInput],
        client_id: Optional[uuid.UUID] = None,
        email: Optional[str] = None,
        phone: Optional[str] = None,
        currency_id: Optional[uuid.UUID] = None,
        manual_rate: Optional[Any] = None,
        pricing_tier_id: Optional[uuid.UUID] = None,
        valid_until: Optional[date] = None,
        notes: Optional[str] = None,
    ) -> Quotation:
        """
        Create and price a draft quotation.

        Raises:
            InvalidTransitionError: If the actor may not create quotations
            ValidationFailedError: If client data or items are invalid
            NotFoundError: If a referenced product, tier, client or rate is missing
        """
        self._require_creation_role(actor)
        if not client_name or not client_name.strip():
            raise ValidationFailedError("Client name is required")

        try:
            rate = await self.rates.resolve_rate(actor.company_id, currency_id, manual_rate)
            markup = await self.rates.resolve_markup(
                actor.company_id, pricing_tier_id, client_id
            )
            lines = await resolve_lines(self.pricing, actor.company_id, items)
            priced = self.engine.price_lines(lines, markup.markup_percent, rate.rate)
            totals = self.engine.compute_totals(
                [line.item_total for line in priced], rate.rate
            )
            quotation = await self.repository.create_quotation(
                actor.company_id,
                priced,
                totals,
                rate.rate,
                actor.user_id,
                client_id=client_id,
                client_name=client_name.strip(),
                email=email,
                phone=phone,
                currency_id=currency_id,
                pricing_tier_id=markup.pricing_tier_id,
                valid_until=valid_until,
                notes=notes,
            )
            await self._commit("create quotation", company_id=str(actor.company_id))
        except Exception:
            await self.session.rollback()
            raise
        return quotation

    async def get_quotation(self, actor: ActorContext, quotation_id: uuid.UUID) -> Quotation:
        return await self.repository.get_quotation(quotation_id, actor.company_id)

    async def update_status(
        self,
        actor: ActorContext,
        quotation_id: uuid.UUID,
        status: QuotationStatus,
    ) -> Quotation:
        """
        Change the document status of a quotation.

        Raises:
            InvalidTransitionError: If the change is not allowed, including
                any change to or from Converted
        """
        self._require_creation_role(actor)
        try:
            quotation = await self.repository.get_quotation(
                quotation_id, actor.company_id, for_update=True
            )
            if status not in MANUAL_STATUS_CHANGES[quotation.status]:
                raise InvalidTransitionError(
                    f"Cannot change quotation from '{quotation.status.value}' "
                    f"to '{status.value}'",
                    quotation_id=str(quotation_id),
                )
            await self.repository.set_status(quotation, status)
            await self._commit("update quotation", quotation_id=str(quotation_id))
        except Exception:
            await self.session.rollback()
            raise
        return quotation

    async def convert_to_order(
        self,
        actor: ActorContext,
        quotation_id: uuid.UUID,
        needs_design: bool = True,
        delivery_method: Optional[DeliveryMethod] = None,
        delivery_date: Optional[date] = None,
    ) -> Order:
        """
        Convert a quotation into an order.

        The order copies the quotation's client, items, prices and exchange
        rate. Its notes record the quotation reference, and the quotation
        becomes Converted in the same transaction.

        Raises:
            InvalidTransitionError: If the quotation was already converted
            NotFoundError: If the quotation does not exist
        """
        self._require_creation_role(actor)

        try:
            quotation = await self.repository.get_quotation(
                quotation_id, actor.company_id, for_update=True
            )
            if not quotation.status.can_convert():
                raise InvalidTransitionError(
                    "Quotation has already been converted",
                    quotation_id=str(quotation_id),
                )

            reference_note = f"Converted from quotation {quotation.reference}"
            notes = f"{reference_note}\n{quotation.notes}" if quotation.notes else reference_note
            priced = [
                PricedLine(
                    quantity=item.quantity,
                    base_unit_price=item.base_unit_price,
                    unit_price=item.unit_price,
                    item_total=item.item_total,
                    product_id=item.product_id,
                    description=item.description,
                )
                for item in quotation.items
            ]
            totals = Totals(
                total_foreign=quotation.total_price_foreign,
                total_company=quotation.total_price_company,
            )

            order = await self.orders.insert_order(
                actor,
                priced,
                totals,
                quotation.exchange_rate,
                needs_design=needs_design,
                history_details=reference_note,
                client_id=quotation.client_id,
                client_name=quotation.client_name,
                email=quotation.email,
                phone=quotation.phone,
                delivery_method=delivery_method,
                delivery_date=delivery_date,
                currency_id=quotation.currency_id,
                pricing_tier_id=quotation.pricing_tier_id,
                quotation_id=quotation.id,
                notes=notes,
            )
            await self.repository.set_status(quotation, QuotationStatus.CONVERTED)
            await self._commit("convert quotation", quotation_id=str(quotation_id))
        except Exception as e:
            await self.session.rollback()
            logger.warning(
                "Quotation conversion failed",
                quotation_id=str(quotation_id),
                error=str(e),
                error_type=type(e).__name__,
            )
            raise

        logger.info(
            "Quotation converted",
            quotation_id=str(quotation_id),
            order_id=str(order.id),
        )
        await self.orders.notification_service.notify_status_change(
            order, None, actor=actor, action_details=reference_note
        )
        return order

    @staticmethod
    def _require_creation_role(actor: ActorContext) -> None:
        if actor.role not in CREATION_ROLES:
            raise InvalidTransitionError(
                f"Role '{actor.role.value}' cannot manage quotations",
                role=actor.role,
            )
