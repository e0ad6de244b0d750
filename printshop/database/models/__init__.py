"""
Database models package initialization.

This module exports all database models so that importing the package
registers every table with the Base metadata, which Alembic and the test
suite rely on.
"""

from printshop.database.base import (
    Base,
    BaseModel,
    TenantModel,
    TimestampMixin,
    UUIDMixin,
    TenantMixin,
    create_table_args,
)
from printshop.database.models.catalog import (
    Client,
    Company,
    Currency,
    ExchangeRate,
    OrderStatusDefinition,
    PricingTier,
    Product,
)
from printshop.database.models.order import (
    Order,
    OrderAttachment,
    OrderComment,
    OrderItem,
    OrderStatusHistory,
)
from printshop.database.models.quotation import Quotation, QuotationItem

__all__ = [
    "Base",
    "BaseModel",
    "TenantModel",
    "TimestampMixin",
    "UUIDMixin",
    "TenantMixin",
    "create_table_args",
    "Client",
    "Company",
    "Currency",
    "ExchangeRate",
    "OrderStatusDefinition",
    "PricingTier",
    "Product",
    "Order",
    "OrderAttachment",
    "OrderComment",
    "OrderItem",
    "OrderStatusHistory",
    "Quotation",
    "QuotationItem",
]
