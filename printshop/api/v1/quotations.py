"""Quotation API endpoints: create, read, document status and conversion."""

from uuid import UUID

from fastapi import APIRouter, status

from printshop.api.deps import CurrentActor, QuotationServiceDep
from printshop.core.logging import get_logger
from printshop.schemas.orders import OrderResponse
from printshop.schemas.quotations import (
    QuotationConvertRequest,
    QuotationCreateRequest,
    QuotationResponse,
    QuotationStatusUpdate,
)

logger = get_logger(__name__)

router = APIRouter(prefix="/quotations", tags=["Quotations"])


@router.post(
    "",
    response_model=QuotationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create quotation",
)
async def create_quotation(
    request: QuotationCreateRequest,
    actor: CurrentActor,
    service: QuotationServiceDep,
) -> QuotationResponse:
    quotation = await service.create_quotation(
        actor,
        client_name=request.client_name,
        items=[item.to_item_input() for item in request.items],
        client_id=request.client_id,
        email=request.email,
        phone=request.phone,
        currency_id=request.currency_id,
        manual_rate=request.exchange_rate,
        pricing_tier_id=request.pricing_tier_id,
        valid_until=request.valid_until,
        notes=request.notes,
    )
    return QuotationResponse.model_validate(quotation)


@router.get("/{quotation_id}", response_model=QuotationResponse, summary="Get quotation")
async def get_quotation(
    quotation_id: UUID,
    actor: CurrentActor,
    service: QuotationServiceDep,
) -> QuotationResponse:
    quotation = await service.get_quotation(actor, quotation_id)
    return QuotationResponse.model_validate(quotation)


@router.patch(
    "/{quotation_id}/status",
    response_model=QuotationResponse,
    summary="Change document status",
)
async def update_quotation_status(
    quotation_id: UUID,
    body: QuotationStatusUpdate,
    actor: CurrentActor,
    service: QuotationServiceDep,
) -> QuotationResponse:
    quotation = await service.update_status(actor, quotation_id, body.status)
    return QuotationResponse.model_validate(quotation)


@router.post(
    "/{quotation_id}/convert",
    response_model=OrderResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Convert quotation into an order",
)
async def convert_quotation(
    quotation_id: UUID,
    body: QuotationConvertRequest,
    actor: CurrentActor,
    service: QuotationServiceDep,
) -> OrderResponse:
    """Create an order from the quotation; a quotation converts only once."""
    order = await service.convert_to_order(
        actor,
        quotation_id,
        needs_design=body.needs_design,
        delivery_method=body.delivery_method,
        delivery_date=body.delivery_date,
    )
    logger.info(
        "Quotation converted via API",
        quotation_id=str(quotation_id),
        order_id=str(order.id),
    )
    return OrderResponse.model_validate(order)
