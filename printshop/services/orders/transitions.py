"""Role-gated transition table for the order workflow.

The table below is the single source of truth for which role may perform
which action from which status. The state machine, the available-actions
query, the role work queues and the notification dispatcher all read from
it, so no other module compares status or role strings directly.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet, List, Optional

from printshop.services.orders.enums import (
    AppRole,
    AttachmentType,
    OrderStatus,
)


class WorkflowAction(str, Enum):
    """Action a caller can request on an existing order."""

    START_DESIGN = "start_design"
    SUBMIT_MOCKUPS = "submit_mockups"
    APPROVE_DESIGN = "approve_design"
    REQUEST_REVISION = "request_revision"
    UPLOAD_PRINT_FILES = "upload_print_files"
    CONFIRM_PAYMENT = "confirm_payment"
    START_PRODUCTION = "start_production"
    MARK_READY = "mark_ready"
    MARK_DELIVERED = "mark_delivered"

    @classmethod
    def from_string(cls, value: str) -> "WorkflowAction":
        """Convert string to WorkflowAction.

        Raises:
            ValueError: If value is not a known action
        """
        try:
            return cls(value.strip().lower())
        except ValueError:
            valid_values = ", ".join(a.value for a in cls)
            raise ValueError(
                f"Invalid action: {value}. Valid values are: {valid_values}"
            )

    @property
    def display_name(self) -> str:
        return self.value.replace("_", " ").capitalize()


@dataclass(frozen=True)
class TransitionRule:
    """One row of the transition table.

    Attributes:
        action: Requested action
        from_statuses: Statuses the order must be in
        roles: Roles allowed to perform the action
        to_status: Status the order moves to
        attachment_type: Type given to files uploaded with the action
        requires_files: At least one file must accompany the action
        requires_feedback: Non-empty feedback text is mandatory
        archives_mockups: Live design mockups are archived first
        history_message: Fixed action detail for the history entry
    """

    action: WorkflowAction
    from_statuses: FrozenSet[OrderStatus]
    roles: FrozenSet[AppRole]
    to_status: OrderStatus
    attachment_type: Optional[AttachmentType] = None
    requires_files: bool = False
    requires_feedback: bool = False
    archives_mockups: bool = False
    history_message: Optional[str] = None

    def allows(self, status: OrderStatus, role: AppRole) -> bool:
        return status in self.from_statuses and role in self.roles


DESIGNER = frozenset({AppRole.DESIGNER})
SALES_OR_ADMIN = frozenset({AppRole.SALES, AppRole.ADMIN})
ACCOUNTANT_OR_ADMIN = frozenset({AppRole.ACCOUNTANT, AppRole.ADMIN})
PRODUCTION_OR_ADMIN = frozenset({AppRole.PRODUCTION, AppRole.ADMIN})
DELIVERY_ROLES = frozenset(
    {AppRole.ADMIN, AppRole.SALES, AppRole.ACCOUNTANT, AppRole.PRODUCTION}
)

# Roles allowed to create orders and quotations
CREATION_ROLES = SALES_OR_ADMIN


TRANSITION_RULES: Dict[WorkflowAction, TransitionRule] = {
    WorkflowAction.START_DESIGN: TransitionRule(
        action=WorkflowAction.START_DESIGN,
        from_statuses=frozenset({OrderStatus.READY_FOR_DESIGN, OrderStatus.NEW}),
        roles=DESIGNER,
        to_status=OrderStatus.IN_DESIGN,
        history_message="Started working on design",
    ),
    WorkflowAction.SUBMIT_MOCKUPS: TransitionRule(
        action=WorkflowAction.SUBMIT_MOCKUPS,
        from_statuses=frozenset({OrderStatus.IN_DESIGN, OrderStatus.DESIGN_REVISION}),
        roles=DESIGNER,
        to_status=OrderStatus.DESIGN_APPROVAL,
        attachment_type=AttachmentType.DESIGN_MOCKUP,
        requires_files=True,
    ),
    WorkflowAction.APPROVE_DESIGN: TransitionRule(
        action=WorkflowAction.APPROVE_DESIGN,
        from_statuses=frozenset({OrderStatus.DESIGN_APPROVAL}),
        roles=SALES_OR_ADMIN,
        to_status=OrderStatus.WAITING_FOR_PRINT_FILE,
        history_message="Design approved",
    ),
    WorkflowAction.REQUEST_REVISION: TransitionRule(
        action=WorkflowAction.REQUEST_REVISION,
        from_statuses=frozenset({OrderStatus.DESIGN_APPROVAL}),
        roles=SALES_OR_ADMIN,
        to_status=OrderStatus.DESIGN_REVISION,
        requires_feedback=True,
        archives_mockups=True,
    ),
    WorkflowAction.UPLOAD_PRINT_FILES: TransitionRule(
        action=WorkflowAction.UPLOAD_PRINT_FILES,
        from_statuses=frozenset({OrderStatus.WAITING_FOR_PRINT_FILE}),
        roles=DESIGNER,
        to_status=OrderStatus.PENDING_PAYMENT,
        attachment_type=AttachmentType.PRINT_FILE,
        requires_files=True,
    ),
    WorkflowAction.CONFIRM_PAYMENT: TransitionRule(
        action=WorkflowAction.CONFIRM_PAYMENT,
        from_statuses=frozenset({OrderStatus.PENDING_PAYMENT}),
        roles=ACCOUNTANT_OR_ADMIN,
        to_status=OrderStatus.READY_FOR_PRODUCTION,
    ),
    WorkflowAction.START_PRODUCTION: TransitionRule(
        action=WorkflowAction.START_PRODUCTION,
        from_statuses=frozenset({OrderStatus.READY_FOR_PRODUCTION}),
        roles=PRODUCTION_OR_ADMIN,
        to_status=OrderStatus.IN_PRODUCTION,
        history_message="Production started",
    ),
    WorkflowAction.MARK_READY: TransitionRule(
        action=WorkflowAction.MARK_READY,
        from_statuses=frozenset({OrderStatus.IN_PRODUCTION}),
        roles=PRODUCTION_OR_ADMIN,
        to_status=OrderStatus.READY_FOR_PICKUP,
        history_message="Order ready for pickup",
    ),
    WorkflowAction.MARK_DELIVERED: TransitionRule(
        action=WorkflowAction.MARK_DELIVERED,
        from_statuses=frozenset({OrderStatus.READY_FOR_PICKUP}),
        roles=DELIVERY_ROLES,
        to_status=OrderStatus.DELIVERED,
    ),
}


# Statuses each role works on; used for dashboards and queues
ROLE_WORK_QUEUES: Dict[AppRole, FrozenSet[OrderStatus]] = {
    AppRole.DESIGNER: frozenset(
        {
            OrderStatus.READY_FOR_DESIGN,
            OrderStatus.IN_DESIGN,
            OrderStatus.DESIGN_REVISION,
            OrderStatus.WAITING_FOR_PRINT_FILE,
        }
    ),
    AppRole.SALES: frozenset({OrderStatus.DESIGN_APPROVAL}),
    AppRole.ACCOUNTANT: frozenset(
        {OrderStatus.PENDING_PAYMENT, OrderStatus.READY_FOR_PICKUP}
    ),
    AppRole.PRODUCTION: frozenset(
        {OrderStatus.READY_FOR_PRODUCTION, OrderStatus.IN_PRODUCTION}
    ),
    AppRole.ADMIN: frozenset(OrderStatus),
}


def get_rule(action: WorkflowAction) -> TransitionRule:
    """Look up the rule for an action."""
    return TRANSITION_RULES[action]


def initial_status(needs_design: bool) -> OrderStatus:
    """Status a freshly created order starts in.

    Args:
        needs_design: Whether the order goes through the design flow

    Returns:
        READY_FOR_DESIGN for design orders, PENDING_PAYMENT otherwise
    """
    if needs_design:
        return OrderStatus.READY_FOR_DESIGN
    return OrderStatus.PENDING_PAYMENT


def is_transition_allowed(
    status: OrderStatus, role: AppRole, action: WorkflowAction
) -> bool:
    """Check whether (status, role, action) is a row of the table."""
    rule = TRANSITION_RULES.get(action)
    return rule is not None and rule.allows(status, role)


def get_available_actions(status: OrderStatus, role: AppRole) -> List[WorkflowAction]:
    """Get actions a role may perform on an order in the given status.

    Returns:
        Actions in table order
    """
    return [
        action
        for action, rule in TRANSITION_RULES.items()
        if rule.allows(status, role)
    ]


def get_responsible_roles(status: OrderStatus) -> FrozenSet[AppRole]:
    """Roles that can move an order out of the given status.

    Admin is left out unless it is the only role able to act, so that
    notifications reach the people doing the work.
    """
    roles = set()
    for rule in TRANSITION_RULES.values():
        if status in rule.from_statuses:
            roles.update(rule.roles)
    if roles - {AppRole.ADMIN}:
        roles.discard(AppRole.ADMIN)
    return frozenset(roles)


def get_work_queue_statuses(role: AppRole) -> FrozenSet[OrderStatus]:
    return ROLE_WORK_QUEUES.get(role, frozenset())
