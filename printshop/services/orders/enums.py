"""Order status and workflow enums for the print-shop order lifecycle.

This module defines the closed enumerations used throughout the workflow:
order status, application role, payment status and method, delivery method,
attachment type and quotation status. Status values are the exact display
names stored in the database and shown to users; the workflow matches them
case-sensitively, while search filters may parse them leniently.
"""

from enum import Enum
from typing import Optional


class OrderStatus(str, Enum):
    """Order lifecycle status.

    Design flow:
    - READY_FOR_DESIGN / NEW -> IN_DESIGN
    - IN_DESIGN / DESIGN_REVISION -> DESIGN_APPROVAL
    - DESIGN_APPROVAL -> WAITING_FOR_PRINT_FILE, DESIGN_REVISION
    - WAITING_FOR_PRINT_FILE -> PENDING_PAYMENT

    Fulfilment flow:
    - PENDING_PAYMENT -> READY_FOR_PRODUCTION
    - READY_FOR_PRODUCTION -> IN_PRODUCTION
    - IN_PRODUCTION -> READY_FOR_PICKUP
    - READY_FOR_PICKUP -> DELIVERED (terminal)
    """

    NEW = "New"
    READY_FOR_DESIGN = "Ready for Design"
    IN_DESIGN = "In Design"
    DESIGN_REVISION = "Design Revision"
    DESIGN_APPROVAL = "Design Approval"
    WAITING_FOR_PRINT_FILE = "Waiting for Print File"
    PENDING_PAYMENT = "Pending Payment"
    READY_FOR_PRODUCTION = "Ready for Production"
    IN_PRODUCTION = "In Production"
    READY_FOR_PICKUP = "Ready for Pickup"
    DELIVERED = "Delivered"

    @classmethod
    def parse(cls, value: str, strict: bool = True) -> "OrderStatus":
        """Convert a status name to OrderStatus.

        Args:
            value: Status name
            strict: Require an exact, case-sensitive match. Search and
                filter inputs pass ``strict=False`` to match regardless of
                case and surrounding whitespace.

        Returns:
            OrderStatus enum value

        Raises:
            ValueError: If value is not a known status
        """
        if strict:
            try:
                return cls(value)
            except ValueError:
                pass
        else:
            normalized = value.strip().casefold()
            for status in cls:
                if status.value.casefold() == normalized:
                    return status

        valid_values = ", ".join(s.value for s in cls)
        raise ValueError(
            f"Invalid order status: {value!r}. Valid values are: {valid_values}"
        )

    def is_terminal(self) -> bool:
        """Check if status is a terminal state."""
        return self is OrderStatus.DELIVERED

    def is_design_stage(self) -> bool:
        """Check if the order is still in the design part of the flow."""
        return self in DESIGN_STAGE_STATUSES

    @property
    def display_name(self) -> str:
        return self.value


DESIGN_STAGE_STATUSES = frozenset(
    {
        OrderStatus.NEW,
        OrderStatus.READY_FOR_DESIGN,
        OrderStatus.IN_DESIGN,
        OrderStatus.DESIGN_REVISION,
        OrderStatus.DESIGN_APPROVAL,
        OrderStatus.WAITING_FOR_PRINT_FILE,
    }
)

# Statuses a tenant catalog must contain to run the design approval flow
DESIGN_FLOW_STATUSES = tuple(OrderStatus)


class AppRole(str, Enum):
    """Application role carried by the identity provider's token."""

    ADMIN = "admin"
    SALES = "sales"
    DESIGNER = "designer"
    PRODUCTION = "production"
    ACCOUNTANT = "accountant"

    @classmethod
    def from_string(cls, value: str) -> "AppRole":
        """Convert string to AppRole.

        Raises:
            ValueError: If value is not a valid role
        """
        try:
            return cls(value.strip().lower())
        except ValueError:
            valid_values = ", ".join(r.value for r in cls)
            raise ValueError(
                f"Invalid role: {value}. Valid values are: {valid_values}"
            )


class PaymentStatus(str, Enum):
    """Payment collection status of an order."""

    PENDING = "pending"
    PARTIAL = "partial"
    PAID = "paid"


class PaymentMethod(str, Enum):
    """How the client pays when the accountant confirms payment.

    CASH collects the full amount, ADVANCED records a deposit and COD
    defers collection to delivery.
    """

    CASH = "cash"
    ADVANCED = "advanced"
    COD = "cod"


class DeliveryMethod(str, Enum):
    PICKUP = "pickup"
    DELIVERY = "delivery"


class AttachmentType(str, Enum):
    """Kind of file attached to an order."""

    CLIENT_REFERENCE = "client_reference"
    DESIGN_MOCKUP = "design_mockup"
    PRINT_FILE = "print_file"
    ARCHIVED_MOCKUP = "archived_mockup"

    @property
    def is_uploadable(self) -> bool:
        """Archived mockups only come from archiving, never from uploads."""
        return self is not AttachmentType.ARCHIVED_MOCKUP

    @property
    def file_code(self) -> Optional[str]:
        """Short code used in generated file names."""
        return _ATTACHMENT_FILE_CODES.get(self)

    @property
    def storage_category(self) -> str:
        """Blob store folder for files of this type."""
        return _ATTACHMENT_CATEGORIES[self]


_ATTACHMENT_FILE_CODES = {
    AttachmentType.DESIGN_MOCKUP: "PROOF",
    AttachmentType.PRINT_FILE: "PRINT",
    AttachmentType.CLIENT_REFERENCE: "REF",
}

_ATTACHMENT_CATEGORIES = {
    AttachmentType.CLIENT_REFERENCE: "references",
    AttachmentType.DESIGN_MOCKUP: "mockups",
    AttachmentType.PRINT_FILE: "print-files",
    AttachmentType.ARCHIVED_MOCKUP: "mockups",
}


class AttachmentView(str, Enum):
    """Predefined attachment listings."""

    CURRENT = "current"
    HISTORY = "history"
    ALL = "all"

    @property
    def file_types(self) -> frozenset[AttachmentType]:
        if self is AttachmentView.CURRENT:
            return frozenset(
                {
                    AttachmentType.CLIENT_REFERENCE,
                    AttachmentType.DESIGN_MOCKUP,
                    AttachmentType.PRINT_FILE,
                }
            )
        if self is AttachmentView.HISTORY:
            return frozenset({AttachmentType.ARCHIVED_MOCKUP})
        return frozenset(AttachmentType)


class QuotationStatus(str, Enum):
    """Document status of a quotation."""

    DRAFT = "Draft"
    SENT = "Sent"
    ACCEPTED = "Accepted"
    CONVERTED = "Converted"

    def can_convert(self) -> bool:
        return self is not QuotationStatus.CONVERTED
