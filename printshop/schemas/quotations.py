"""Quotation Pydantic schemas for API request/response validation."""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from printshop.schemas.orders import OrderItemRequest
from printshop.services.orders.enums import DeliveryMethod, QuotationStatus


class QuotationCreateRequest(BaseModel):
    """Request schema for creating a quotation."""

    model_config = ConfigDict(str_strip_whitespace=True)

    client_name: str = Field(..., min_length=1, max_length=255)
    items: list[OrderItemRequest] = Field(..., min_length=1)
    client_id: Optional[UUID] = None
    email: Optional[str] = Field(None, max_length=255)
    phone: Optional[str] = Field(None, max_length=50)
    currency_id: Optional[UUID] = None
    exchange_rate: Optional[Decimal] = Field(
        None, description="Manual exchange rate, overrides stored rates"
    )
    pricing_tier_id: Optional[UUID] = None
    valid_until: Optional[date] = None
    notes: Optional[str] = None


class QuotationConvertRequest(BaseModel):
    needs_design: bool = True
    delivery_method: Optional[DeliveryMethod] = None
    delivery_date: Optional[date] = None


class QuotationStatusUpdate(BaseModel):
    status: QuotationStatus


class QuotationItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    product_id: Optional[UUID]
    description: Optional[str]
    quantity: int
    base_unit_price: Decimal
    unit_price: Decimal
    item_total: Decimal
    position: int


class QuotationResponse(BaseModel):
    """Response schema for a quotation."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    reference: str
    company_id: UUID
    quotation_number: Optional[int]
    client_id: Optional[UUID]
    client_name: str
    email: Optional[str]
    phone: Optional[str]
    status: QuotationStatus
    valid_until: Optional[date]
    currency_id: Optional[UUID]
    exchange_rate: Decimal
    total_price_foreign: Decimal
    total_price_company: Decimal
    pricing_tier_id: Optional[UUID]
    notes: Optional[str]
    created_at: datetime
    items: list[QuotationItemResponse] = Field(default_factory=list)
