"""
Order service orchestrating the print-shop workflow.

This module implements the OrderService class, the entry point for order
operations: creating and pricing orders, reading and filtering them,
transitions through the state machine, re-pricing, attachments, comments
and the status history with durations.

Each public operation runs as one transaction: the service commits on
success and rolls back on any failure.
"""

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Any, List, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from printshop.core.exceptions import (
    DependencyFailureError,
    InvalidTransitionError,
    ValidationFailedError,
    WorkflowError,
)
from printshop.core.logging import get_logger
from printshop.core.security import ActorContext
from printshop.database.models.order import Order, OrderAttachment, OrderComment
from printshop.services.attachments.manager import AttachmentManager, FileRef
from printshop.services.history.audit_log import AuditLog, HistoryDuration, compute_durations
from printshop.services.notifications.service import NotificationService
from printshop.services.orders.enums import (
    DESIGN_STAGE_STATUSES,
    AttachmentType,
    AttachmentView,
    DeliveryMethod,
    OrderStatus,
)
from printshop.services.orders.repository import OrderRepository
from printshop.services.orders.state_machine import (
    OrderStateMachine,
    TransitionRequest,
    TransitionResult,
)
from printshop.services.orders.transitions import (
    CREATION_ROLES,
    WorkflowAction,
    get_available_actions,
    get_work_queue_statuses,
    initial_status,
)
from printshop.services.pricing.engine import PricedLine, PricingEngine, Totals
from printshop.services.pricing.lines import ItemInput, resolve_lines
from printshop.services.pricing.rates import ExchangeRateResolver, RateSnapshot
from printshop.services.pricing.repository import PricingRepository

logger = get_logger(__name__)

# Statuses in which line items and prices may still change
REPRICEABLE_STATUSES = DESIGN_STAGE_STATUSES | {OrderStatus.PENDING_PAYMENT}


class OrderService:
    """
    Order service orchestrating business logic.

    Attributes:
        repository: Order repository for data access
        state_machine: Transition engine
        attachments: Attachment lifecycle manager
        audit_log: Status history access
        rates: Exchange rate and markup resolution
        engine: Pricing calculations
        notification_service: Receives committed status changes
    """

    def __init__(
        self,
        session: AsyncSession,
        notification_service: Optional[NotificationService] = None,
        rate_resolver: Optional[ExchangeRateResolver] = None,
        engine: Optional[PricingEngine] = None,
    ):
        """
        Initialize order service.

        Args:
            session: Async database session
            notification_service: Optional notification service instance
            rate_resolver: Optional resolver, e.g. one with a Redis cache
            engine: Optional pricing engine
        """
        self.session = session
        self.engine = engine or PricingEngine()
        self.notification_service = notification_service or NotificationService()
        self.repository = OrderRepository(session)
        self.pricing = PricingRepository(session)
        self.rates = rate_resolver or ExchangeRateResolver(self.pricing, self.engine)
        self.attachments = AttachmentManager(session)
        self.audit_log = AuditLog(session)
        self.state_machine = OrderStateMachine(session, self.notification_service)

    async def _commit(self, operation: str, **context: Any) -> None:
        try:
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error("Commit failed", operation=operation, error=str(e), **context)
            raise DependencyFailureError(f"Failed to {operation}", **context) from e

    async def _rollback(self, operation: str, error: Exception, **context: Any) -> None:
        await self.session.rollback()
        if isinstance(error, WorkflowError):
            logger.warning(
                "Order operation rejected",
                operation=operation,
                error=error.kind.value,
                message=error.message,
                **context,
            )
        else:
            logger.error(
                "Order operation failed",
                operation=operation,
                error=str(error),
                error_type=type(error).__name__,
                **context,
            )

    async def create_order(
        self,
        actor: ActorContext,
        client_name: str,
        items: Sequence[ItemInput],
        needs_design: bool = True,
        client_id: Optional[uuid.UUID] = None,
        email: Optional[str] = None,
        phone: Optional[str] = None,
        delivery_method: Optional[DeliveryMethod] = None,
        delivery_date: Optional[date] = None,
        currency_id: Optional[uuid.UUID] = None,
        manual_rate: Optional[Any] = None,
        pricing_tier_id: Optional[uuid.UUID] = None,
        notes: Optional[str] = None,
        reference_files: Sequence[FileRef] = (),
    ) -> Order:
        """
        Create and price a new order.

        The order starts in "Ready for Design" when it needs design work and
        in "Pending Payment" otherwise, with an initial history entry.

        Args:
            actor: Acting user, must be sales or admin
            client_name: Client name on the order
            items: Requested line items
            needs_design: Route the order through the design flow
            client_id: Optional client record, supplies the default tier
            email: Client email
            phone: Client phone
            delivery_method: Pickup or delivery
            delivery_date: Promised delivery date
            currency_id: Transaction currency, None for the base currency
            manual_rate: Exchange rate entered by the user
            pricing_tier_id: Explicit markup tier
            notes: Free text notes
            reference_files: Client reference files stored with the order

        Returns:
            Created order

        Raises:
            InvalidTransitionError: If the actor may not create orders
            ValidationFailedError: If client data or items are invalid
            NotFoundError: If a referenced product, tier, client or rate is missing
        """
        self._require_creation_role(actor)
        if not client_name or not client_name.strip():
            raise ValidationFailedError("Client name is required")

        logger.info(
            "Creating order",
            company_id=str(actor.company_id),
            item_count=len(items),
            needs_design=needs_design,
        )

        try:
            rate = await self.rates.resolve_rate(actor.company_id, currency_id, manual_rate)
            if client_id is not None:
                await self.pricing.get_client(actor.company_id, client_id)
            markup = await self.rates.resolve_markup(
                actor.company_id, pricing_tier_id, client_id
            )
            lines = await resolve_lines(self.pricing, actor.company_id, items)
            priced = self.engine.price_lines(lines, markup.markup_percent, rate.rate)
            totals = self.engine.compute_totals(
                [line.item_total for line in priced], rate.rate
            )

            order = await self.insert_order(
                actor,
                priced,
                totals,
                rate.rate,
                needs_design=needs_design,
                history_details="Order created",
                client_id=client_id,
                client_name=client_name.strip(),
                email=email,
                phone=phone,
                delivery_method=delivery_method,
                delivery_date=delivery_date,
                currency_id=currency_id,
                pricing_tier_id=markup.pricing_tier_id,
                notes=notes,
            )
            if reference_files:
                await self.attachments.add_attachments(
                    order.id,
                    order.company_id,
                    AttachmentType.CLIENT_REFERENCE,
                    list(reference_files),
                    actor.user_id,
                )
            await self._commit("create order", company_id=str(actor.company_id))
        except Exception as e:
            await self._rollback("create_order", e, company_id=str(actor.company_id))
            raise

        await self.notification_service.notify_status_change(
            order, None, actor=actor, action_details="Order created"
        )
        return order

    async def insert_order(
        self,
        actor: ActorContext,
        priced_lines: Sequence[PricedLine],
        totals: Totals,
        exchange_rate: Decimal,
        needs_design: bool,
        history_details: str,
        **fields: Any,
    ) -> Order:
        """
        Insert a priced order and its initial history entry.

        Does not commit; used by create_order and by quotation conversion.
        """
        status = initial_status(needs_design)
        order = await self.repository.create_order(
            actor.company_id,
            status,
            priced_lines,
            totals,
            exchange_rate,
            actor.user_id,
            needs_design=needs_design,
            **fields,
        )
        await self.audit_log.append_history(
            order.id, None, status, actor.user_id, history_details
        )
        return order

    async def get_order(self, actor: ActorContext, order_id: uuid.UUID) -> Order:
        """
        Get an order of the actor's company.

        Raises:
            NotFoundError: If the order does not exist
        """
        return await self.repository.get_order_or_raise(order_id, actor.company_id)

    async def list_orders(
        self,
        actor: ActorContext,
        status: Optional[str] = None,
        search: Optional[str] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> tuple[Sequence[Order], int]:
        """
        List orders of the actor's company.

        Args:
            actor: Acting user
            status: Status name, matched regardless of case
            search: Text matched against client name, email and phone
            skip: Number of records to skip
            limit: Maximum number of records to return

        Raises:
            ValidationFailedError: If status is not a known status name
        """
        statuses = None
        if status:
            try:
                statuses = [OrderStatus.parse(status, strict=False)]
            except ValueError as e:
                raise ValidationFailedError(str(e), status=status) from e
        return await self.repository.list_orders(
            actor.company_id, statuses=statuses, search=search, skip=skip, limit=limit
        )

    async def list_work_queue(
        self, actor: ActorContext, skip: int = 0, limit: int = 50
    ) -> tuple[Sequence[Order], int]:
        """Orders waiting on the actor's role."""
        return await self.repository.list_orders(
            actor.company_id,
            statuses=get_work_queue_statuses(actor.role),
            skip=skip,
            limit=limit,
        )

    async def available_actions(
        self, actor: ActorContext, order_id: uuid.UUID
    ) -> List[WorkflowAction]:
        order = await self.get_order(actor, order_id)
        return get_available_actions(order.status, actor.role)

    async def transition(
        self,
        actor: ActorContext,
        order_id: uuid.UUID,
        request: TransitionRequest,
    ) -> TransitionResult:
        """Apply a workflow action; see OrderStateMachine.execute."""
        return await self.state_machine.execute(order_id, actor, request)

    async def reprice_order(
        self,
        actor: ActorContext,
        order_id: uuid.UUID,
        pricing_tier_id: Optional[uuid.UUID] = None,
        currency_id: Optional[uuid.UUID] = None,
        manual_rate: Optional[Any] = None,
    ) -> Order:
        """
        Recompute every line item of an order with a new tier or rate.

        Lines keep their base-currency price snapshot. All new lines are
        priced before any is written, and the order row is locked and its
        status compared-and-swapped like a transition.

        Args:
            actor: Acting user, must be sales or admin
            order_id: Order to re-price
            pricing_tier_id: New markup tier, defaults to the order's tier
            currency_id: New transaction currency, defaults to the order's
            manual_rate: Exchange rate entered by the user

        Raises:
            InvalidTransitionError: If the role may not re-price or payment
                was already confirmed
            ConcurrentModificationError: If the status changed concurrently
        """
        self._require_creation_role(actor)

        try:
            order = await self.repository.lock_order(order_id, actor.company_id)
            if order.status not in REPRICEABLE_STATUSES:
                raise InvalidTransitionError(
                    "Orders can only be re-priced before payment is confirmed",
                    order_id=str(order_id),
                    current_status=order.status,
                )

            new_currency_id = currency_id if currency_id is not None else order.currency_id
            if manual_rate is None and new_currency_id == order.currency_id:
                # Same currency keeps the rate captured when the order was priced.
                rate = RateSnapshot(
                    currency_id=new_currency_id,
                    rate=self.engine.validate_rate(order.exchange_rate),
                    source="snapshot",
                )
            else:
                rate = await self.rates.resolve_rate(
                    actor.company_id, new_currency_id, manual_rate
                )
            markup = await self.rates.resolve_markup(
                actor.company_id,
                pricing_tier_id or order.pricing_tier_id,
                order.client_id,
            )
            priced = self.engine.reprice(order.items, markup.markup_percent, rate.rate)
            totals = self.engine.compute_totals(
                [line.item_total for line in priced], rate.rate
            )

            await self.repository.replace_items(
                order,
                priced,
                totals,
                exchange_rate=rate.rate,
                currency_id=new_currency_id,
                pricing_tier_id=markup.pricing_tier_id,
            )
            order = await self.repository.compare_and_set_status(
                order, order.status, order.status
            )
            await self._commit("reprice order", order_id=str(order_id))
        except Exception as e:
            await self._rollback("reprice_order", e, order_id=str(order_id))
            raise

        logger.info(
            "Order repriced",
            order_id=str(order_id),
            exchange_rate=str(rate.rate),
            markup_percent=str(markup.markup_percent),
            total_foreign=str(totals.total_foreign),
        )
        return order

    async def add_attachment(
        self,
        actor: ActorContext,
        order_id: uuid.UUID,
        file_type: AttachmentType,
        file_ref: FileRef,
    ) -> OrderAttachment:
        """
        Attach a file to an order outside of a transition.

        Raises:
            NotFoundError: If the order does not exist
            ValidationFailedError: If file_type is archived_mockup
        """
        try:
            await self.get_order(actor, order_id)
            attachment = await self.attachments.add_attachment(
                order_id, file_type, file_ref, actor.user_id
            )
            await self._commit("add attachment", order_id=str(order_id))
        except Exception as e:
            await self._rollback("add_attachment", e, order_id=str(order_id))
            raise
        return attachment

    async def list_attachments(
        self,
        actor: ActorContext,
        order_id: uuid.UUID,
        view: AttachmentView = AttachmentView.CURRENT,
    ) -> List[OrderAttachment]:
        await self.get_order(actor, order_id)
        return await self.attachments.list_attachments(order_id, view)

    async def add_comment(
        self, actor: ActorContext, order_id: uuid.UUID, content: str
    ) -> OrderComment:
        if not content or not content.strip():
            raise ValidationFailedError("Comment cannot be empty")
        try:
            await self.get_order(actor, order_id)
            comment = await self.repository.add_comment(
                order_id, actor.user_id, content.strip()
            )
            await self._commit("add comment", order_id=str(order_id))
        except Exception as e:
            await self._rollback("add_comment", e, order_id=str(order_id))
            raise
        return comment

    async def list_comments(
        self, actor: ActorContext, order_id: uuid.UUID
    ) -> Sequence[OrderComment]:
        await self.get_order(actor, order_id)
        return await self.repository.list_comments(order_id)

    async def list_history(
        self,
        actor: ActorContext,
        order_id: uuid.UUID,
        now: Optional[datetime] = None,
    ) -> List[HistoryDuration]:
        """Status history of an order with the time spent in each status."""
        await self.get_order(actor, order_id)
        entries = await self.audit_log.list_history(order_id)
        return compute_durations(entries, now)

    @staticmethod
    def _require_creation_role(actor: ActorContext) -> None:
        if actor.role not in CREATION_ROLES:
            raise InvalidTransitionError(
                f"Role '{actor.role.value}' cannot create or re-price orders",
                role=actor.role,
            )
