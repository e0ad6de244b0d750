"""
Notification service for order status changes.

After a transition commits, the roles that own the next step of the order
are told that work is waiting. Delivery goes through a pluggable sink; the
default sink writes a structured log event, which a log shipper can route
to chat or email.

Notifications are best effort. A failure is logged and never propagates,
because the status change it describes has already been committed.
"""

import uuid
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol

from printshop.core.config import get_settings
from printshop.core.logging import get_logger
from printshop.core.security import ActorContext
from printshop.database.models.order import Order
from printshop.services.notifications.templates import NotificationTemplates
from printshop.services.orders.enums import AppRole, OrderStatus
from printshop.services.orders.transitions import WorkflowAction, get_responsible_roles

logger = get_logger(__name__)


@dataclass(frozen=True)
class StatusChangeNotification:
    """Message telling a set of roles that an order needs them."""

    order_id: uuid.UUID
    company_id: uuid.UUID
    previous_status: Optional[OrderStatus]
    new_status: OrderStatus
    recipient_roles: frozenset[AppRole]
    subject: str
    body: str
    action: Optional[WorkflowAction] = None
    actor_id: Optional[uuid.UUID] = None
    context: dict[str, Any] = field(default_factory=dict)


class NotificationSink(Protocol):
    """Delivery channel for notifications."""

    async def send(self, notification: StatusChangeNotification) -> None:
        ...


class LoggingNotificationSink:
    """Delivers notifications as structured log events."""

    def __init__(self, logger_name: str = "printshop.notifications"):
        self._logger = get_logger(logger_name)

    async def send(self, notification: StatusChangeNotification) -> None:
        self._logger.info(
            "Order notification",
            order_id=str(notification.order_id),
            company_id=str(notification.company_id),
            new_status=notification.new_status.value,
            recipient_roles=sorted(role.value for role in notification.recipient_roles),
            subject=notification.subject,
        )


class NotificationService:
    """
    Builds and dispatches status change notifications.

    Args:
        sink: Delivery channel, defaults to LoggingNotificationSink
        templates: Message templates
        enabled: Overrides the ``notifications_enabled`` setting
    """

    def __init__(
        self,
        sink: Optional[NotificationSink] = None,
        templates: Optional[NotificationTemplates] = None,
        enabled: Optional[bool] = None,
    ) -> None:
        self.sink = sink or LoggingNotificationSink()
        self.templates = templates or NotificationTemplates()
        self.enabled = get_settings().notifications_enabled if enabled is None else enabled

    async def notify_status_change(
        self,
        order: Order,
        previous_status: Optional[OrderStatus],
        action: Optional[WorkflowAction] = None,
        actor: Optional[ActorContext] = None,
        action_details: Optional[str] = None,
        currency_code: Optional[str] = None,
    ) -> Optional[StatusChangeNotification]:
        """
        Notify the roles responsible for the order's new status.

        Args:
            order: Order after the committed change
            previous_status: Status before the change, None for a new order
            action: Action that caused the change
            actor: Who made the change
            action_details: History detail of the change
            currency_code: Transaction currency code for the total

        Returns:
            The notification sent, or None if nothing was sent
        """
        if not self.enabled:
            return None

        new_status = order.status
        recipients = get_responsible_roles(new_status)
        if not recipients:
            logger.debug(
                "No roles to notify",
                order_id=str(order.id),
                new_status=new_status.value,
            )
            return None

        context = {
            "order_label": f"#{order.order_number}" if order.order_number else order.short_id,
            "client_name": order.client_name,
            "previous_status": previous_status.value if previous_status else None,
            "new_status": new_status.value,
            "action_details": action_details,
            "total": order.total_price_foreign,
            "currency_code": currency_code,
            "recipient_roles": sorted(role.value for role in recipients),
        }

        try:
            rendered = self.templates.render_status_change(context)
            notification = StatusChangeNotification(
                order_id=order.id,
                company_id=order.company_id,
                previous_status=previous_status,
                new_status=new_status,
                recipient_roles=recipients,
                subject=rendered["subject"],
                body=rendered["body"],
                action=action,
                actor_id=actor.user_id if actor else None,
                context=context,
            )
            await self.sink.send(notification)
        except Exception as e:
            logger.error(
                "Failed to send status change notification",
                order_id=str(order.id),
                new_status=new_status.value,
                error=str(e),
                error_type=type(e).__name__,
            )
            return None

        logger.info(
            "Status change notification sent",
            order_id=str(order.id),
            new_status=new_status.value,
            recipient_roles=context["recipient_roles"],
        )
        return notification
