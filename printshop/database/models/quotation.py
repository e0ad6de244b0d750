"""
Quotation models.

A quotation is priced exactly like an order but carries no delivery or
workflow fields. It expires at ``valid_until`` and can be converted into an
order once.
"""

import uuid
from datetime import date
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    Date,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from printshop.database.base import BaseModel, TenantModel, create_table_args
from printshop.database.models.order import COMPANY_MONEY, MONEY, RATE, enum_column_type
from printshop.services.orders.enums import QuotationStatus


class Quotation(TenantModel):
    """Price offer made to a client in a transaction currency."""

    __tablename__ = "quotations"
    __table_args__ = create_table_args(
        CheckConstraint(
            "exchange_rate > 0", name="check_quotation_exchange_rate_positive"
        ),
        UniqueConstraint(
            "company_id", "quotation_number", name="uq_quotations_company_number"
        ),
        comment="Client quotations",
    )

    quotation_number: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    client_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("clients.id", ondelete="SET NULL"),
        nullable=True,
    )
    client_name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    status: Mapped[QuotationStatus] = mapped_column(
        enum_column_type(QuotationStatus, "quotation_status"),
        nullable=False,
        default=QuotationStatus.DRAFT,
    )
    valid_until: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

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
    pricing_tier_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("pricing_tiers.id", ondelete="SET NULL"),
        nullable=True,
    )
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_by: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)

    items: Mapped[list["QuotationItem"]] = relationship(
        "QuotationItem",
        back_populates="quotation",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="selectin",
        order_by="QuotationItem.position",
    )

    @property
    def reference(self) -> str:
        """Human readable reference recorded on converted orders."""
        return f"Q-{str(self.id)[:8].upper()}"


class QuotationItem(BaseModel):
    """Quotation line item."""

    __tablename__ = "quotation_items"
    __table_args__ = create_table_args(
        CheckConstraint("quantity >= 1", name="check_quotation_item_quantity_positive"),
    )

    quotation_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("quotations.id", ondelete="CASCADE"),
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
    base_unit_price: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    item_total: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    quotation: Mapped["Quotation"] = relationship("Quotation", back_populates="items")
