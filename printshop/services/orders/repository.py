"""
Order data access repository.

This module implements the OrderRepository class providing async methods for
creating orders with items, loading and locking orders, the compare-and-swap
status update used by the transition engine, filtered listings, comments and
line-item replacement. Every query is scoped to a company.

The repository flushes but never commits; services own the transaction.
"""

import uuid
from decimal import Decimal
from typing import Any, Iterable, Optional, Sequence

from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from printshop.core.exceptions import (
    ConcurrentModificationError,
    DependencyFailureError,
    NotFoundError,
)
from printshop.core.logging import get_logger
from printshop.database.base import utcnow
from printshop.database.models.catalog import OrderStatusDefinition
from printshop.database.models.order import Order, OrderComment, OrderItem
from printshop.services.orders.enums import OrderStatus
from printshop.services.pricing.engine import PricedLine, Totals

logger = get_logger(__name__)

LIKE_ESCAPE = "\\"


def escape_like(text: str) -> str:
    """Make LIKE wildcards in user input match literally."""
    return (
        text.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", LIKE_ESCAPE + "%")
        .replace("_", LIKE_ESCAPE + "_")
    )


def build_items(priced_lines: Sequence[PricedLine]) -> list[OrderItem]:
    """Create order item rows from priced lines, keeping their order."""
    return [
        OrderItem(
            product_id=line.product_id,
            description=line.description,
            quantity=line.quantity,
            base_unit_price=line.base_unit_price,
            unit_price=line.unit_price,
            item_total=line.item_total,
            position=position,
        )
        for position, line in enumerate(priced_lines)
    ]


class OrderRepository:
    """
    Repository for order data access operations.

    Provides async methods for order persistence with tenant scoping,
    row locking and optimistic status updates. Database errors are logged
    and re-raised as DependencyFailureError.
    """

    def __init__(self, session: AsyncSession):
        """
        Initialize order repository.

        Args:
            session: Async database session
        """
        self.session = session

    async def next_order_number(self, company_id: uuid.UUID) -> int:
        """Next sequential display number for the company's orders."""
        try:
            current = await self.session.scalar(
                select(func.max(Order.order_number)).where(Order.company_id == company_id)
            )
        except SQLAlchemyError as e:
            raise DependencyFailureError(
                "Failed to allocate order number", company_id=str(company_id)
            ) from e
        return (current or 0) + 1

    async def create_order(
        self,
        company_id: uuid.UUID,
        status: OrderStatus,
        priced_lines: Sequence[PricedLine],
        totals: Totals,
        exchange_rate: Decimal,
        created_by: Optional[uuid.UUID],
        **fields: Any,
    ) -> Order:
        """
        Create an order with its items.

        Args:
            company_id: Owning tenant
            status: Initial workflow status
            priced_lines: Line items, already priced
            totals: Totals computed from ``priced_lines``
            exchange_rate: Rate snapshot used for pricing
            created_by: User creating the order
            **fields: Client, delivery and reference columns

        Returns:
            Created order with items

        Raises:
            DependencyFailureError: If the insert fails
        """
        order_number = await self.next_order_number(company_id)
        order = Order(
            company_id=company_id,
            order_number=order_number,
            status=status,
            exchange_rate=exchange_rate,
            total_price_foreign=totals.total_foreign,
            total_price_company=totals.total_company,
            created_by=created_by,
            items=build_items(priced_lines),
            **fields,
        )
        self.session.add(order)

        try:
            await self.session.flush()
        except SQLAlchemyError as e:
            logger.error(
                "Order creation failed - database error",
                company_id=str(company_id),
                error=str(e),
            )
            raise DependencyFailureError(
                "Order creation failed due to database error",
                company_id=str(company_id),
            ) from e

        logger.info(
            "Order created",
            order_id=str(order.id),
            order_number=order_number,
            status=status.value,
            item_count=len(priced_lines),
        )
        return order

    async def get_order(
        self, order_id: uuid.UUID, company_id: Optional[uuid.UUID] = None
    ) -> Optional[Order]:
        """
        Get order by ID.

        Args:
            order_id: Order identifier
            company_id: Restrict the lookup to one tenant

        Returns:
            Order if found, None otherwise
        """
        statement = select(Order).where(Order.id == order_id)
        if company_id is not None:
            statement = statement.where(Order.company_id == company_id)

        try:
            result = await self.session.execute(
                statement.execution_options(populate_existing=True)
            )
        except SQLAlchemyError as e:
            logger.error("Failed to fetch order", order_id=str(order_id), error=str(e))
            raise DependencyFailureError("Failed to fetch order", order_id=str(order_id)) from e
        return result.scalar_one_or_none()

    async def get_order_or_raise(
        self, order_id: uuid.UUID, company_id: Optional[uuid.UUID] = None
    ) -> Order:
        order = await self.get_order(order_id, company_id)
        if order is None:
            raise NotFoundError("Order not found", order_id=str(order_id))
        return order

    async def lock_order(self, order_id: uuid.UUID, company_id: uuid.UUID) -> Order:
        """
        Load an order with a row lock held until the transaction ends.

        Raises:
            NotFoundError: If the order does not exist for this company
        """
        statement = (
            select(Order)
            .where(Order.id == order_id, Order.company_id == company_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        try:
            result = await self.session.execute(statement)
        except SQLAlchemyError as e:
            logger.error("Failed to lock order", order_id=str(order_id), error=str(e))
            raise DependencyFailureError("Failed to lock order", order_id=str(order_id)) from e

        order = result.scalar_one_or_none()
        if order is None:
            raise NotFoundError("Order not found", order_id=str(order_id))
        return order

    async def compare_and_set_status(
        self,
        order: Order,
        expected_status: OrderStatus,
        new_status: OrderStatus,
        **values: Any,
    ) -> Order:
        """
        Move an order to a new status only if it is still in the expected one.

        Args:
            order: Order being transitioned
            expected_status: Status the caller validated against
            new_status: Status to write
            **values: Other columns written in the same statement

        Returns:
            The refreshed order

        Raises:
            ConcurrentModificationError: If the stored status differs
        """
        statement = (
            update(Order)
            .where(Order.id == order.id, Order.status == expected_status)
            .values(status=new_status, updated_at=utcnow(), **values)
            .execution_options(synchronize_session=False)
        )
        try:
            result = await self.session.execute(statement)
        except SQLAlchemyError as e:
            logger.error("Failed to update order status", order_id=str(order.id), error=str(e))
            raise DependencyFailureError(
                "Failed to update order status", order_id=str(order.id)
            ) from e

        if result.rowcount != 1:
            logger.warning(
                "Order status changed concurrently",
                order_id=str(order.id),
                expected_status=expected_status.value,
            )
            raise ConcurrentModificationError(
                "Order status was changed by another request",
                order_id=str(order.id),
                expected_status=expected_status.value,
            )

        await self.session.refresh(order)
        return order

    async def list_orders(
        self,
        company_id: uuid.UUID,
        statuses: Optional[Iterable[OrderStatus]] = None,
        search: Optional[str] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> tuple[Sequence[Order], int]:
        """
        Get orders of a company with pagination.

        Args:
            company_id: Tenant
            statuses: Only orders in one of these statuses
            search: Case-insensitive match on client name, email or phone
            skip: Number of records to skip
            limit: Maximum number of records to return

        Returns:
            Tuple of (orders, total_count), newest first
        """
        conditions = [Order.company_id == company_id]
        if statuses is not None:
            wanted = sorted(set(statuses), key=lambda status: status.value)
            if not wanted:
                return [], 0
            conditions.append(Order.status.in_(wanted))
        if search:
            pattern = f"%{escape_like(search.strip().lower())}%"
            conditions.append(
                or_(
                    func.lower(Order.client_name).like(pattern, escape=LIKE_ESCAPE),
                    func.lower(Order.email).like(pattern, escape=LIKE_ESCAPE),
                    Order.phone.like(pattern, escape=LIKE_ESCAPE),
                )
            )

        statement = (
            select(Order)
            .where(*conditions)
            .order_by(Order.created_at.desc(), Order.order_number.desc())
            .offset(skip)
            .limit(limit)
        )
        count_statement = select(func.count()).select_from(Order).where(*conditions)

        try:
            result = await self.session.execute(statement)
            total_count = (await self.session.execute(count_statement)).scalar_one()
        except SQLAlchemyError as e:
            logger.error("Failed to list orders", company_id=str(company_id), error=str(e))
            raise DependencyFailureError(
                "Failed to list orders", company_id=str(company_id)
            ) from e

        orders = result.scalars().all()
        logger.debug(
            "Orders listed",
            company_id=str(company_id),
            count=len(orders),
            total=total_count,
        )
        return orders, total_count

    async def replace_items(
        self,
        order: Order,
        priced_lines: Sequence[PricedLine],
        totals: Totals,
        **values: Any,
    ) -> Order:
        """
        Replace every line item and the totals of a locked order.

        The new lines must be fully priced before this is called; the
        replacement is flushed as one unit.
        """
        order.items = build_items(priced_lines)
        order.total_price_foreign = totals.total_foreign
        order.total_price_company = totals.total_company
        for key, value in values.items():
            setattr(order, key, value)

        try:
            await self.session.flush()
        except SQLAlchemyError as e:
            logger.error("Failed to replace order items", order_id=str(order.id), error=str(e))
            raise DependencyFailureError(
                "Failed to replace order items", order_id=str(order.id)
            ) from e
        return order

    async def add_comment(
        self, order_id: uuid.UUID, user_id: Optional[uuid.UUID], content: str
    ) -> OrderComment:
        comment = OrderComment(order_id=order_id, user_id=user_id, content=content)
        self.session.add(comment)
        try:
            await self.session.flush()
        except SQLAlchemyError as e:
            raise DependencyFailureError("Failed to add comment", order_id=str(order_id)) from e
        return comment

    async def list_comments(self, order_id: uuid.UUID) -> Sequence[OrderComment]:
        try:
            result = await self.session.execute(
                select(OrderComment)
                .where(OrderComment.order_id == order_id)
                .order_by(OrderComment.created_at, OrderComment.id)
            )
        except SQLAlchemyError as e:
            raise DependencyFailureError("Failed to list comments", order_id=str(order_id)) from e
        return result.scalars().all()

    async def get_status_catalog(self, company_id: uuid.UUID) -> set[str]:
        """Status names configured in the company's catalog."""
        try:
            result = await self.session.execute(
                select(OrderStatusDefinition.name).where(
                    OrderStatusDefinition.company_id == company_id
                )
            )
        except SQLAlchemyError as e:
            raise DependencyFailureError(
                "Failed to load status catalog", company_id=str(company_id)
            ) from e
        return set(result.scalars().all())
