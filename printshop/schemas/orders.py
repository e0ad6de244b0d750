"""
Order Pydantic schemas for API request/response validation.

This module defines the request bodies for order creation, transitions,
re-pricing, attachments and comments, and the response models built from
the ORM objects returned by the order service.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from printshop.services.attachments.manager import FileRef
from printshop.services.orders.enums import (
    AttachmentType,
    DeliveryMethod,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
)
from printshop.services.pricing.lines import ItemInput


class FileRefRequest(BaseModel):
    """Reference to a file the client already uploaded to the blob store."""

    model_config = ConfigDict(str_strip_whitespace=True)

    file_url: str = Field(..., min_length=1, description="Public or signed file URL")
    file_name: str = Field(..., min_length=1, max_length=255)
    file_size: Optional[int] = Field(None, ge=0, description="Size in bytes")

    def to_file_ref(self) -> FileRef:
        return FileRef(
            file_url=self.file_url, file_name=self.file_name, file_size=self.file_size
        )


class OrderItemRequest(BaseModel):
    """Line item of a new order or quotation."""

    product_id: Optional[UUID] = Field(None, description="Catalog product")
    description: Optional[str] = Field(None, max_length=255)
    quantity: int = Field(..., ge=1, description="Number of units")
    base_unit_price: Optional[Decimal] = Field(
        None,
        ge=0,
        description="Base-currency unit price; required for custom lines",
    )

    @model_validator(mode="after")
    def validate_price_source(self) -> "OrderItemRequest":
        if self.product_id is None and self.base_unit_price is None:
            raise ValueError("Either product_id or base_unit_price is required")
        return self

    def to_item_input(self) -> ItemInput:
        return ItemInput(
            quantity=self.quantity,
            product_id=self.product_id,
            description=self.description,
            base_unit_price=self.base_unit_price,
        )


class OrderCreateRequest(BaseModel):
    """Request schema for creating an order."""

    model_config = ConfigDict(str_strip_whitespace=True)

    client_name: str = Field(..., min_length=1, max_length=255)
    items: list[OrderItemRequest] = Field(..., min_length=1)
    needs_design: bool = Field(True, description="Route the order through design review")
    client_id: Optional[UUID] = None
    email: Optional[str] = Field(None, max_length=255)
    phone: Optional[str] = Field(None, max_length=50)
    delivery_method: Optional[DeliveryMethod] = None
    delivery_date: Optional[date] = None
    currency_id: Optional[UUID] = Field(None, description="Transaction currency")
    exchange_rate: Optional[Decimal] = Field(
        None, description="Manual exchange rate, overrides stored rates"
    )
    pricing_tier_id: Optional[UUID] = None
    notes: Optional[str] = None
    reference_files: list[FileRefRequest] = Field(default_factory=list)

    @field_validator("email")
    @classmethod
    def validate_email_format(cls, v: Optional[str]) -> Optional[str]:
        """Validate email format."""
        if not v:
            return None
        if "@" not in v or "." not in v.split("@")[-1]:
            raise ValueError("Invalid email format")
        return v.lower()


class TransitionRequestBody(BaseModel):
    """Request schema for a workflow action."""

    action: str = Field(..., description="Workflow action, e.g. start_design")
    files: list[FileRefRequest] = Field(default_factory=list)
    comment: Optional[str] = Field(None, description="Feedback or notes")
    payment_method: Optional[PaymentMethod] = None
    deposit_amount: Optional[Decimal] = None


class RepriceRequest(BaseModel):
    pricing_tier_id: Optional[UUID] = None
    currency_id: Optional[UUID] = None
    exchange_rate: Optional[Decimal] = None


class AttachmentCreateRequest(FileRefRequest):
    file_type: AttachmentType


class CommentCreateRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    content: str = Field(..., min_length=1)


class OrderItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    product_id: Optional[UUID]
    description: Optional[str]
    quantity: int
    base_unit_price: Decimal
    unit_price: Decimal
    item_total: Decimal
    position: int


class OrderResponse(BaseModel):
    """Response schema for an order."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    company_id: UUID
    order_number: Optional[int]
    client_id: Optional[UUID]
    client_name: str
    email: Optional[str]
    phone: Optional[str]
    delivery_method: Optional[DeliveryMethod]
    delivery_date: Optional[date]
    needs_design: bool
    status: OrderStatus
    currency_id: Optional[UUID]
    exchange_rate: Decimal
    total_price_foreign: Decimal
    total_price_company: Decimal
    paid_amount: Decimal
    balance_due: Decimal
    payment_status: PaymentStatus
    payment_method: Optional[PaymentMethod]
    pricing_tier_id: Optional[UUID]
    quotation_id: Optional[UUID]
    notes: Optional[str]
    created_by: Optional[UUID]
    created_at: datetime
    updated_at: datetime
    items: list[OrderItemResponse] = Field(default_factory=list)


class OrderListResponse(BaseModel):
    items: list[OrderResponse]
    total: int
    skip: int
    limit: int


class AttachmentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    order_id: UUID
    file_url: str
    file_name: str
    file_size: Optional[int]
    file_type: AttachmentType
    uploader_id: Optional[UUID]
    created_at: datetime


class CommentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    order_id: UUID
    user_id: Optional[UUID]
    content: str
    created_at: datetime


class AvailableActionsResponse(BaseModel):
    order_id: UUID
    status: OrderStatus
    role: str
    actions: list[str]


class TransitionResponse(BaseModel):
    """Response schema for an applied workflow action."""

    order: OrderResponse
    previous_status: OrderStatus
    new_status: OrderStatus
    action_details: Optional[str]
    archived_count: int
    attachments: list[AttachmentResponse]


class HistoryEntryResponse(BaseModel):
    """Status history entry with the time spent in ``new_status``."""

    id: UUID
    previous_status: Optional[OrderStatus]
    new_status: OrderStatus
    changed_by: Optional[UUID]
    action_details: Optional[str]
    sequence: int
    created_at: datetime
    duration_ms: int
    duration: str
    is_current: bool
