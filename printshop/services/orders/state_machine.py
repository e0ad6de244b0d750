"""Order state machine executing role-gated workflow transitions.

This module implements the OrderStateMachine class. A transition request
names an action; the machine checks it against the transition table for the
order's current status and the actor's role, validates the payload, and
then applies every side effect of the action inside one database
transaction:

1. attachment mutations (new uploads, archiving of live mockups)
2. a comment carrying the actor's feedback or notes
3. the status history entry, written with its action details
4. a compare-and-swap of ``orders.status`` against the status that was
   validated

The order row is locked for the duration, so writers on the same order are
serialized; the compare-and-swap still guards against anything that moved
the order without taking the lock. Any failure rolls the whole transaction
back. Notifications are sent only after the commit.
"""

import uuid
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from printshop.core.config import get_settings
from printshop.core.exceptions import (
    DependencyFailureError,
    InvalidTransitionError,
    NotFoundError,
    ValidationFailedError,
    WorkflowError,
)
from printshop.core.logging import get_logger, log_performance
from printshop.core.security import ActorContext
from printshop.database.models.order import (
    Order,
    OrderAttachment,
    OrderComment,
    OrderStatusHistory,
)
from printshop.services.attachments.manager import AttachmentManager, FileRef
from printshop.services.history.audit_log import AuditLog
from printshop.services.notifications.service import NotificationService
from printshop.services.orders.enums import (
    DESIGN_FLOW_STATUSES,
    AppRole,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
)
from printshop.services.orders.repository import OrderRepository
from printshop.services.orders.transitions import (
    TransitionRule,
    WorkflowAction,
    get_available_actions,
    get_rule,
)
from printshop.services.pricing.engine import format_money, to_decimal
from printshop.services.pricing.repository import PricingRepository

logger = get_logger(__name__)


@dataclass
class TransitionRequest:
    """Action requested on an order, with its payload.

    Attributes:
        action: Workflow action to perform
        files: Stored files uploaded with the action
        comment: Revision feedback, or optional notes for other actions
        payment_method: How the client pays (confirm_payment only)
        deposit_amount: Amount collected up front for advanced payments
    """

    action: WorkflowAction
    files: Sequence[FileRef] = ()
    comment: Optional[str] = None
    payment_method: Optional[PaymentMethod] = None
    deposit_amount: Optional[Any] = None


@dataclass
class TransitionResult:
    """Outcome of a committed transition."""

    order: Order
    previous_status: OrderStatus
    new_status: OrderStatus
    history_entry: OrderStatusHistory
    attachments: List[OrderAttachment] = field(default_factory=list)
    archived_count: int = 0
    comment: Optional[OrderComment] = None


def validate_transition(
    status: OrderStatus,
    role: AppRole,
    request: TransitionRequest,
) -> TransitionRule:
    """Check a request against the transition table and its payload rules.

    Performs no I/O and mutates nothing.

    Args:
        status: Current order status
        role: Role of the acting user
        request: Requested action and payload

    Returns:
        The matching transition rule

    Raises:
        InvalidTransitionError: If the action is not allowed for this
            status and role
        ValidationFailedError: If the payload is incomplete
    """
    rule = get_rule(request.action)

    if status not in rule.from_statuses:
        raise InvalidTransitionError(
            f"Cannot {request.action.display_name.lower()} an order in status "
            f"'{status.value}'",
            action=request.action,
            current_status=status,
            allowed_actions=get_available_actions(status, role),
        )
    if role not in rule.roles:
        raise InvalidTransitionError(
            f"Role '{role.value}' cannot {request.action.display_name.lower()}",
            action=request.action,
            current_status=status,
            role=role,
        )

    files = list(request.files or ())
    if rule.requires_files and not files:
        raise ValidationFailedError(
            "At least one file is required", action=request.action
        )
    if files and rule.attachment_type is None:
        raise ValidationFailedError(
            "Files cannot be attached to this action", action=request.action
        )
    if rule.requires_feedback and not (request.comment or "").strip():
        raise ValidationFailedError(
            "Feedback is required to request a revision", action=request.action
        )
    if rule.action is WorkflowAction.CONFIRM_PAYMENT and request.payment_method is None:
        raise ValidationFailedError(
            "A payment method is required", action=request.action
        )

    return rule


def resolve_payment(
    method: PaymentMethod,
    total: Decimal,
    deposit_amount: Optional[Any] = None,
) -> Dict[str, Any]:
    """Payment columns written when payment is confirmed.

    - cash collects the full total
    - advanced records a deposit, 0 < deposit <= total
    - cod defers collection to delivery

    Raises:
        ValidationFailedError: If an advanced deposit is missing or out of range
    """
    if method is PaymentMethod.CASH:
        return {
            "payment_method": method,
            "payment_status": PaymentStatus.PAID,
            "paid_amount": total,
        }

    if method is PaymentMethod.ADVANCED:
        if deposit_amount is None:
            raise ValidationFailedError("A deposit amount is required for advanced payment")
        deposit = to_decimal(deposit_amount, "deposit_amount")
        if deposit <= 0:
            raise ValidationFailedError(
                "Deposit amount must be greater than 0", deposit_amount=str(deposit)
            )
        if deposit > total:
            raise ValidationFailedError(
                "Deposit amount cannot exceed the total price",
                deposit_amount=str(deposit),
                total=str(total),
            )
        return {
            "payment_method": method,
            "payment_status": PaymentStatus.PARTIAL,
            "paid_amount": deposit,
        }

    return {
        "payment_method": method,
        "payment_status": PaymentStatus.PENDING,
        "paid_amount": Decimal("0"),
    }


def describe_files(files: Sequence[FileRef]) -> str:
    if len(files) == 1:
        return f"Uploaded: {files[0].file_name}"
    names = ", ".join(ref.file_name for ref in files)
    return f"Uploaded {len(files)} files: {names}"


class OrderStateMachine:
    """State machine for managing order lifecycle transitions.

    Args:
        session: Async database session; the machine commits or rolls it back
        notification_service: Receives committed status changes
        enforce_status_catalog: Require the tenant's status catalog to hold
            every design flow status. Defaults to the setting.
    """

    def __init__(
        self,
        session: AsyncSession,
        notification_service: Optional[NotificationService] = None,
        enforce_status_catalog: Optional[bool] = None,
    ):
        settings = get_settings()
        self.session = session
        self.orders = OrderRepository(session)
        self.attachments = AttachmentManager(session)
        self.audit_log = AuditLog(session)
        self.pricing = PricingRepository(session)
        self.notifications = notification_service or NotificationService()
        self.enforce_status_catalog = (
            settings.enforce_status_catalog
            if enforce_status_catalog is None
            else enforce_status_catalog
        )

    async def execute(
        self,
        order_id: uuid.UUID,
        actor: ActorContext,
        request: TransitionRequest,
    ) -> TransitionResult:
        """Validate and apply a transition atomically.

        Args:
            order_id: Order to transition
            actor: Acting user
            request: Requested action and payload

        Returns:
            TransitionResult with the refreshed order

        Raises:
            NotFoundError: If the order does not exist for the actor's company
            InvalidTransitionError: If the action is not allowed
            ValidationFailedError: If the payload is invalid
            ConcurrentModificationError: If the status changed concurrently
            DependencyFailureError: If persistence fails
        """
        log_context = {
            "order_id": str(order_id),
            "action": request.action.value,
            "actor_id": str(actor.user_id),
            "role": actor.role.value,
        }

        with log_performance(logger, "order_transition", **log_context):
            try:
                result, currency_code = await self._apply(order_id, actor, request)
                await self.session.commit()
            except WorkflowError as e:
                await self.session.rollback()
                logger.warning(
                    "Order transition rejected",
                    error=e.kind.value,
                    message=e.message,
                    **log_context,
                )
                raise
            except SQLAlchemyError as e:
                await self.session.rollback()
                logger.error("Order transition failed", error=str(e), **log_context)
                raise DependencyFailureError(
                    "Failed to apply order transition", **log_context
                ) from e
            except Exception as e:
                await self.session.rollback()
                logger.error(
                    "Order transition failed - unexpected error",
                    error=str(e),
                    error_type=type(e).__name__,
                    **log_context,
                )
                raise

        logger.info(
            "Order transition applied",
            transition=f"{result.previous_status.value}->{result.new_status.value}",
            **log_context,
        )

        await self.notifications.notify_status_change(
            result.order,
            result.previous_status,
            action=request.action,
            actor=actor,
            action_details=result.history_entry.action_details,
            currency_code=currency_code,
        )
        return result

    async def _apply(
        self,
        order_id: uuid.UUID,
        actor: ActorContext,
        request: TransitionRequest,
    ) -> tuple[TransitionResult, Optional[str]]:
        order = await self.orders.lock_order(order_id, actor.company_id)
        previous_status = order.status

        rule = validate_transition(previous_status, actor.role, request)
        column_values: Dict[str, Any] = {}
        if rule.action is WorkflowAction.CONFIRM_PAYMENT:
            column_values = resolve_payment(
                request.payment_method, order.total_price_foreign, request.deposit_amount
            )
        elif rule.action is WorkflowAction.MARK_DELIVERED:
            column_values = {
                "paid_amount": order.total_price_foreign,
                "payment_status": PaymentStatus.PAID,
            }

        if self.enforce_status_catalog and order.needs_design:
            await self._check_status_catalog(order.company_id)

        logger.debug(
            "Order transition validated",
            order_id=str(order.id),
            transition=f"{previous_status.value}->{rule.to_status.value}",
        )

        currency_code = await self.pricing.get_currency_code(order.currency_id)
        balance_due = order.balance_due

        archived_count = 0
        if rule.archives_mockups:
            archived_count = await self.attachments.archive_mockups(order.id)

        attachments: List[OrderAttachment] = []
        if request.files:
            attachments = await self.attachments.add_attachments(
                order.id,
                order.company_id,
                rule.attachment_type,
                list(request.files),
                actor.user_id,
            )

        comment = None
        comment_text = (request.comment or "").strip()
        if comment_text:
            comment = await self.orders.add_comment(order.id, actor.user_id, comment_text)

        details = self._history_details(
            rule, request, column_values, balance_due, currency_code
        )
        history_entry = await self.audit_log.append_history(
            order.id, previous_status, rule.to_status, actor.user_id, details
        )

        order = await self.orders.compare_and_set_status(
            order, previous_status, rule.to_status, **column_values
        )

        result = TransitionResult(
            order=order,
            previous_status=previous_status,
            new_status=rule.to_status,
            history_entry=history_entry,
            attachments=attachments,
            archived_count=archived_count,
            comment=comment,
        )
        return result, currency_code

    async def _check_status_catalog(self, company_id: uuid.UUID) -> None:
        catalog = await self.orders.get_status_catalog(company_id)
        missing = [status.value for status in DESIGN_FLOW_STATUSES if status.value not in catalog]
        if missing:
            raise NotFoundError(
                "Status catalog is missing workflow statuses",
                company_id=str(company_id),
                missing_statuses=missing,
            )

    @staticmethod
    def _history_details(
        rule: TransitionRule,
        request: TransitionRequest,
        column_values: Dict[str, Any],
        balance_due: Decimal,
        currency_code: Optional[str],
    ) -> Optional[str]:
        if rule.history_message:
            return rule.history_message
        if rule.requires_files:
            return describe_files(request.files)
        if rule.requires_feedback:
            return f"Revision requested: {request.comment.strip()}"
        if rule.action is WorkflowAction.CONFIRM_PAYMENT:
            method = column_values["payment_method"]
            paid = format_money(column_values["paid_amount"], currency_code)
            return f"Payment confirmed ({method.value}): {paid} received"
        if rule.action is WorkflowAction.MARK_DELIVERED:
            if balance_due > 0:
                return f"Order delivered, balance collected: {format_money(balance_due, currency_code)}"
            return "Order delivered"
        return None
