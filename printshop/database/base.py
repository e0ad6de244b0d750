"""
SQLAlchemy declarative base and common model mixins.

This module provides the DeclarativeBase shared by every print-shop table,
mixins for UUID keys, timestamps and tenant scoping, and small helpers for
table arguments. Column types are the portable SQLAlchemy 2.0 types so the
same models run on PostgreSQL in production and SQLite in tests.
"""

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional

from sqlalchemy import DateTime, Uuid, func
from sqlalchemy.ext.asyncio import AsyncAttrs
from sqlalchemy.orm import DeclarativeBase, Mapped, declared_attr, mapped_column


def utcnow() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


class Base(AsyncAttrs, DeclarativeBase):
    """
    Base class for all SQLAlchemy models with async support.

    Provides async attribute loading and serialization helpers for every
    model in the application.
    """

    __abstract__ = True

    def to_dict(self, exclude: Optional[set[str]] = None) -> Dict[str, Any]:
        """
        Convert model instance to dictionary of JSON friendly values.

        Args:
            exclude: Set of attribute names to exclude from output

        Returns:
            Dictionary representation of the model
        """
        exclude = exclude or set()
        result = {}

        for column in self.__table__.columns:
            if column.key in exclude:
                continue
            value = getattr(self, column.key)
            if isinstance(value, datetime):
                result[column.key] = value.isoformat()
            elif isinstance(value, uuid.UUID):
                result[column.key] = str(value)
            elif isinstance(value, Decimal):
                result[column.key] = str(value)
            elif isinstance(value, Enum):
                result[column.key] = value.value
            else:
                result[column.key] = value

        return result

    def __repr__(self) -> str:
        pk_values = []
        for column in self.__table__.primary_key.columns:
            value = getattr(self, column.key, None)
            if value is not None:
                pk_values.append(f"{column.key}={value!r}")

        pk_str = ", ".join(pk_values) if pk_values else "no primary key"
        return f"<{self.__class__.__name__}({pk_str})>"


class UUIDMixin:
    """Mixin for a UUID primary key generated on the Python side."""

    @declared_attr
    def id(cls) -> Mapped[uuid.UUID]:
        return mapped_column(
            Uuid,
            primary_key=True,
            default=uuid.uuid4,
            nullable=False,
            comment="Unique identifier for the record",
        )


class TimestampMixin:
    """
    Mixin for automatic timestamp management.

    Timestamps are assigned in Python so that rows created within one
    transaction carry distinct, ordered values on every backend. The server
    default only covers rows inserted outside the ORM.
    """

    @declared_attr
    def created_at(cls) -> Mapped[datetime]:
        return mapped_column(
            DateTime(timezone=True),
            nullable=False,
            default=utcnow,
            server_default=func.now(),
            comment="Timestamp when record was created",
        )

    @declared_attr
    def updated_at(cls) -> Mapped[datetime]:
        return mapped_column(
            DateTime(timezone=True),
            nullable=False,
            default=utcnow,
            onupdate=utcnow,
            server_default=func.now(),
            comment="Timestamp when record was last updated",
        )


class TenantMixin:
    """Mixin scoping a record to one company (tenant)."""

    @declared_attr
    def company_id(cls) -> Mapped[uuid.UUID]:
        return mapped_column(
            Uuid,
            nullable=False,
            index=True,
            comment="Owning company (tenant)",
        )


class BaseModel(Base, UUIDMixin, TimestampMixin):
    """
    Base model with UUID primary key and timestamps.

    Example:
        class Currency(BaseModel):
            __tablename__ = "currencies"

            code: Mapped[str] = mapped_column(String(3))
    """

    __abstract__ = True


class TenantModel(BaseModel, TenantMixin):
    """Base model for tenant-scoped records."""

    __abstract__ = True


def create_table_args(*constraints: Any, comment: Optional[str] = None) -> tuple:
    """
    Create __table_args__ from constraints, indexes and a table comment.

    Args:
        *constraints: Constraint and Index objects
        comment: Table comment for documentation

    Returns:
        Tuple suitable for __table_args__

    Example:
        __table_args__ = create_table_args(
            Index("ix_orders_status", "status"),
            comment="Customer orders",
        )
    """
    options: Dict[str, Any] = {}
    if comment:
        options["comment"] = comment
    return (*constraints, options)
