"""
Reference data models read by the order workflow.

Companies (tenants) with their base currency, the global currency list,
per-tenant exchange rates, pricing tiers, products, clients and the tenant
status catalog. The workflow only reads these tables; they are maintained
by administrative tooling.
"""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from printshop.database.base import BaseModel, TenantModel, create_table_args, utcnow


class Company(BaseModel):
    """
    Tenant of the print-shop platform.

    Attributes:
        name: Display name
        currency_id: Base (accounting) currency of the tenant
    """

    __tablename__ = "companies"

    name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    currency_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("currencies.id", ondelete="SET NULL"),
        nullable=True,
        comment="Base currency of the company",
    )
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)


class Currency(BaseModel):
    """ISO currency shared by all tenants."""

    __tablename__ = "currencies"
    __table_args__ = create_table_args(
        UniqueConstraint("code", name="uq_currencies_code"),
    )

    code: Mapped[str] = mapped_column(String(3), nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    symbol: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)


class ExchangeRate(TenantModel):
    """
    Tenant-defined conversion rate of a currency to the company currency.

    ``rate_to_company_currency`` is the number of base-currency units one
    unit of the currency is worth, the divisor used when pricing items.
    """

    __tablename__ = "exchange_rates"
    __table_args__ = create_table_args(
        CheckConstraint(
            "rate_to_company_currency > 0", name="check_exchange_rate_positive"
        ),
        Index("ix_exchange_rates_lookup", "company_id", "currency_id", "valid_from"),
    )

    currency_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("currencies.id", ondelete="CASCADE"),
        nullable=False,
    )
    rate_to_company_currency: Mapped[Decimal] = mapped_column(
        Numeric(18, 8),
        nullable=False,
    )
    valid_from: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class PricingTier(TenantModel):
    """Named markup percentage applied to product base prices."""

    __tablename__ = "pricing_tiers"
    __table_args__ = create_table_args(
        CheckConstraint("markup_percent >= 0", name="check_markup_non_negative"),
    )

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    label: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    markup_percent: Mapped[Decimal] = mapped_column(
        Numeric(7, 2),
        nullable=False,
        default=Decimal("0"),
    )
    is_default: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)


class Product(TenantModel):
    """Sellable product priced in the company base currency."""

    __tablename__ = "products"
    __table_args__ = create_table_args(
        CheckConstraint("unit_price >= 0", name="check_product_price_non_negative"),
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    sku: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    category: Mapped[str] = mapped_column(String(100), nullable=False, default="General")
    unit_price: Mapped[Decimal] = mapped_column(
        Numeric(14, 4),
        nullable=False,
        comment="Base unit price in company currency",
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class Client(TenantModel):
    """Customer of a print shop."""

    __tablename__ = "clients"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    pricing_tier_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("pricing_tiers.id", ondelete="SET NULL"),
        nullable=True,
    )
    default_currency_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("currencies.id", ondelete="SET NULL"),
        nullable=True,
    )
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


class OrderStatusDefinition(TenantModel):
    """Entry of a tenant's order status catalog."""

    __tablename__ = "order_statuses"
    __table_args__ = create_table_args(
        UniqueConstraint("company_id", "name", name="uq_order_statuses_company_name"),
    )

    name: Mapped[str] = mapped_column(String(50), nullable=False)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    color: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    is_default: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
