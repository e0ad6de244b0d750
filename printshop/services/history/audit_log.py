"""
Order status history (audit log).

Every status change of an order is appended here together with the actor
and a human readable action detail, in the same transaction as the change
itself. Entries are never updated, except that an empty action detail may
be filled in once.

Durations in status are computed from consecutive entries: an entry lasts
until the next one starts, and the latest entry lasts until now.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Iterable, List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from printshop.core.exceptions import DependencyFailureError, NotFoundError
from printshop.core.logging import get_logger
from printshop.database.base import utcnow
from printshop.database.models.order import OrderStatusHistory
from printshop.services.orders.enums import OrderStatus

logger = get_logger(__name__)


@dataclass(frozen=True)
class HistoryDuration:
    """A history entry with the time the order spent in its new status."""

    entry: OrderStatusHistory
    duration: timedelta
    is_current: bool

    @property
    def duration_ms(self) -> int:
        return int(self.duration.total_seconds() * 1000)

    @property
    def display(self) -> str:
        return format_duration(self.duration_ms)


class AuditLog:
    """Append-only access to order_status_history. Never commits."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def append_history(
        self,
        order_id: uuid.UUID,
        previous_status: Optional[OrderStatus],
        new_status: OrderStatus,
        actor_id: Optional[uuid.UUID],
        action_details: Optional[str] = None,
    ) -> OrderStatusHistory:
        """
        Append a status change entry.

        The caller must hold the order's row lock so that sequence numbers
        are allocated without gaps or duplicates.

        Args:
            order_id: Order whose status changed
            previous_status: Status before the change, None for creation
            new_status: Status after the change
            actor_id: User who made the change
            action_details: What was done, written with the entry

        Returns:
            Created history entry
        """
        try:
            last_sequence = await self.session.scalar(
                select(func.max(OrderStatusHistory.sequence)).where(
                    OrderStatusHistory.order_id == order_id
                )
            )
            entry = OrderStatusHistory(
                order_id=order_id,
                previous_status=previous_status,
                new_status=new_status,
                changed_by=actor_id,
                action_details=action_details,
                sequence=(last_sequence or 0) + 1,
                created_at=utcnow(),
            )
            self.session.add(entry)
            await self.session.flush()
        except SQLAlchemyError as e:
            logger.error(
                "Failed to append status history",
                order_id=str(order_id),
                new_status=new_status.value,
                error=str(e),
            )
            raise DependencyFailureError(
                "Failed to append status history", order_id=str(order_id)
            ) from e

        logger.debug(
            "Status history appended",
            order_id=str(order_id),
            previous_status=previous_status.value if previous_status else None,
            new_status=new_status.value,
            sequence=entry.sequence,
        )
        return entry

    async def backfill_action_details(self, entry_id: uuid.UUID, action_details: str) -> bool:
        """
        Fill in the action detail of an entry that was written without one.

        Returns:
            True if the entry was updated, False if it already had details

        Raises:
            NotFoundError: If the entry does not exist
        """
        try:
            result = await self.session.execute(
                update(OrderStatusHistory)
                .where(
                    OrderStatusHistory.id == entry_id,
                    OrderStatusHistory.action_details.is_(None),
                )
                .values(action_details=action_details)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount:
                return True
            exists = await self.session.scalar(
                select(OrderStatusHistory.id).where(OrderStatusHistory.id == entry_id)
            )
        except SQLAlchemyError as e:
            raise DependencyFailureError(
                "Failed to update status history", entry_id=str(entry_id)
            ) from e

        if exists is None:
            raise NotFoundError("History entry not found", entry_id=str(entry_id))
        return False

    async def list_history(self, order_id: uuid.UUID) -> List[OrderStatusHistory]:
        """History entries of an order in the order they were appended."""
        try:
            result = await self.session.execute(
                select(OrderStatusHistory)
                .where(OrderStatusHistory.order_id == order_id)
                .order_by(OrderStatusHistory.created_at, OrderStatusHistory.sequence)
                .execution_options(populate_existing=True)
            )
        except SQLAlchemyError as e:
            raise DependencyFailureError(
                "Failed to load status history", order_id=str(order_id)
            ) from e
        return list(result.scalars().all())

    async def latest_entry(self, order_id: uuid.UUID) -> Optional[OrderStatusHistory]:
        try:
            return await self.session.scalar(
                select(OrderStatusHistory)
                .where(OrderStatusHistory.order_id == order_id)
                .order_by(OrderStatusHistory.sequence.desc())
                .limit(1)
            )
        except SQLAlchemyError as e:
            raise DependencyFailureError(
                "Failed to load status history", order_id=str(order_id)
            ) from e


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; every stored timestamp is UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def compute_durations(
    entries: Iterable[OrderStatusHistory],
    now: Optional[datetime] = None,
) -> List[HistoryDuration]:
    """
    Compute how long an order stayed in each status.

    Entries are sorted by (created_at, sequence) first, so the input order
    does not matter. Entry i lasts until entry i+1 was created; the last
    entry lasts until ``now``. Negative spans caused by clock skew are
    reported as zero.

    Args:
        entries: History entries of one order
        now: Reference time for the current status, defaults to utcnow()

    Returns:
        Entries with durations, oldest first
    """
    ordered = sorted(
        entries,
        key=lambda entry: (_as_utc(entry.created_at), entry.sequence or 0),
    )
    reference = _as_utc(now or utcnow())

    results = []
    for index, entry in enumerate(ordered):
        is_current = index == len(ordered) - 1
        end = reference if is_current else _as_utc(ordered[index + 1].created_at)
        duration = max(end - _as_utc(entry.created_at), timedelta(0))
        results.append(HistoryDuration(entry=entry, duration=duration, is_current=is_current))
    return results


def format_duration(duration_ms: int) -> str:
    """
    Render a duration compactly.

    Example:
        >>> format_duration(((2 * 24 + 3) * 60 + 5) * 60 * 1000)
        '2d 3h'
        >>> format_duration(90 * 1000)
        '1m'
        >>> format_duration(0)
        '< 1m'
    """
    minutes = max(duration_ms, 0) // 60000
    hours = minutes // 60
    days = hours // 24

    if days > 0:
        remaining_hours = hours % 24
        if remaining_hours:
            return f"{days}d {remaining_hours}h"
        return f"{days} day{'s' if days > 1 else ''}"
    if hours > 0:
        remaining_minutes = minutes % 60
        return f"{hours}h {remaining_minutes}m" if remaining_minutes else f"{hours}h"
    if minutes > 0:
        return f"{minutes}m"
    return "< 1m"
