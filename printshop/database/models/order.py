"""
Order aggregate models for the print-shop workflow.

This module defines the Order aggregate root and the records it owns: line
items, file attachments, comments and the status history. Statuses are
stored as their exact display names ("Ready for Design", ...) so that the
database, the API and the audit log all speak the same vocabulary.
"""

import uuid
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Optional, Type

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    Date,
    Enum as SQLEnum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from printshop.database.base import BaseModel, TenantModel, create_table_args
from printshop.services.orders.enums import (
    AttachmentType,
    DeliveryMethod,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
)

MONEY = Numeric(14, 4)
RATE = Numeric(18, 8)
# Money scale plus rate scale, holds total_foreign * exchange_rate exactly.
COMPANY_MONEY = Numeric(26, 12)


def enum_column_type(enum_cls: Type[Enum], name: str) -> SQLEnum:
    """
    Build a portable string-backed enum column type.

    Values (not member names) are persisted, and no native database enum
    is created so tenants' catalogs can evolve without type migrations.
    """
    return SQLEnum(
        enum_cls,
        name=name,
        native_enum=False,
        length=50,
        values_callable=lambda members: [member.value for member in members],
        validate_strings=True,
    )


class Order(TenantModel):
    """
    Order aggregate root.

    Totals are derived from the line items and the exchange rate snapshot
    taken when the order was priced; they are never edited directly.

    Attributes:
        order_number: Sequential display number within the company
        client_name: Client name as entered on the order
        needs_design: Whether the order goes through the design flow
        status: Current workflow status
        exchange_rate: Company-currency units per transaction-currency unit
        total_price_foreign: Sum of item totals in transaction currency
        total_price_company: total_price_foreign converted to base currency
        paid_amount: Amount collected so far, in transaction currency
    """

    __tablename__ = "orders"
    __table_args__ = create_table_args(
        CheckConstraint("exchange_rate > 0", name="check_order_exchange_rate_positive"),
        CheckConstraint("total_price_foreign >= 0", name="check_order_total_non_negative"),
        CheckConstraint("paid_amount >= 0", name="check_order_paid_non_negative"),
        UniqueConstraint("company_id", "order_number", name="uq_orders_company_number"),
        Index("ix_orders_company_status", "company_id", "status"),
        comment="Customer orders",
    )

    order_number: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)

    client_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("clients.id", ondelete="SET NULL"),
        nullable=True,
    )
    client_name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    delivery_method: Mapped[Optional[DeliveryMethod]] = mapped_column(
        enum_column_type(DeliveryMethod, "delivery_method"),
        nullable=True,
    )
    delivery_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    needs_design: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    status: Mapped[OrderStatus] = mapped_column(
        enum_column_type(OrderStatus, "order_status"),
        nullable=False,
        index=True,
    )

    currency_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("currencies.id", ondelete="SET NULL"),
        nullable=True,
    )
    exchange_rate: Mapped[Decimal] = mapped_column(RATE, nullable=False, default=Decimal("1"))
    total_price_foreign: Mapped[Decimal] = mapped_column(
        MONEY, nullable=False, default=Decimal("0")
    )
    total_price_company: Mapped[Decimal] = mapped_column(
        COMPANY_MONEY, nullable=False, default=Decimal("0")
    )

    paid_amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    payment_status: Mapped[PaymentStatus] = mapped_column(
        enum_column_type(PaymentStatus, "payment_status"),
        nullable=False,
        default=PaymentStatus.PENDING,
    )
    payment_method: Mapped[Optional[PaymentMethod]] = mapped_column(
        enum_column_type(PaymentMethod, "payment_method"),
        nullable=True,
    )

    pricing_tier_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("pricing_tiers.id", ondelete="SET NULL"),
        nullable=True,
    )
    quotation_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("quotations.id", ondelete="SET NULL"),
        nullable=True,
        comment="Quotation this order was converted from",
    )
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_by: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)

    items: Mapped[list["OrderItem"]] = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="selectin",
        order_by="OrderItem.position",
    )

    @property
    def balance_due(self) -> Decimal:
        return max(self.total_price_foreign - self.paid_amount, Decimal("0"))

    @property
    def short_id(self) -> str:
        return str(self.id)[:8]


class OrderItem(BaseModel):
    """Order line item priced in the order's transaction currency."""

    __tablename__ = "order_items"
    __table_args__ = create_table_args(
        CheckConstraint("quantity >= 1", name="check_order_item_quantity_positive"),
        CheckConstraint("unit_price >= 0", name="check_order_item_price_non_negative"),
    )

    order_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    product_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("products.id", ondelete="SET NULL"),
        nullable=True,
    )
    description: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    base_unit_price: Mapped[Decimal] = mapped_column(
        MONEY,
        nullable=False,
        comment="Product price in company currency when the line was priced",
    )
    unit_price: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    item_total: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    order: Mapped["Order"] = relationship("Order", back_populates="items")


class OrderAttachment(TenantModel):
    """
    File attached to an order.

    Only the reference returned by the blob store is kept. The single
    permitted mutation is design_mockup -> archived_mockup.
    """

    __tablename__ = "order_attachments"
    __table_args__ = create_table_args(
        Index("ix_order_attachments_order_type", "order_id", "file_type"),
    )

    order_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
    )
    file_url: Mapped[str] = mapped_column(Text, nullable=False)
    file_name: Mapped[str] = mapped_column(String(255), nullable=False)
    file_size: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    file_type: Mapped[AttachmentType] = mapped_column(
        enum_column_type(AttachmentType, "attachment_type"),
        nullable=False,
    )
    uploader_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)


class OrderComment(BaseModel):
    """Append-only feedback left on an order."""

    __tablename__ = "order_comments"

    order_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
    content: Mapped[str] = mapped_column(Text, nullable=False)


class OrderStatusHistory(BaseModel):
    """
    Append-only record of an order status change.

    ``sequence`` increases by one per entry of the same order and breaks
    ties between entries with equal timestamps.
    """

    __tablename__ = "order_status_history"
    __table_args__ = create_table_args(
        UniqueConstraint("order_id", "sequence", name="uq_order_history_sequence"),
        Index("ix_order_history_order_created", "order_id", "created_at"),
    )

    order_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
    )
    previous_status: Mapped[Optional[OrderStatus]] = mapped_column(
        enum_column_type(OrderStatus, "order_status"),
        nullable=True,
    )
    new_status: Mapped[OrderStatus] = mapped_column(
        enum_column_type(OrderStatus, "order_status"),
        nullable=False,
    )
    changed_by: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
    action_details: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
