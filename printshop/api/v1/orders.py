"""
Order workflow API endpoints.

This module implements the FastAPI router for the order lifecycle: creation,
listing and filtering, the role work queue, available actions, workflow
transitions, re-pricing, attachments, comments and status history.

Workflow errors raised by the services are translated to HTTP responses by
the application's WorkflowError handler.
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Query, status

from printshop.api.deps import CurrentActor, OrderServiceDep
from printshop.core.exceptions import InvalidTransitionError
from printshop.core.logging import get_logger
from printshop.schemas.orders import (
    AttachmentCreateRequest,
    AttachmentResponse,
    AvailableActionsResponse,
    CommentCreateRequest,
    CommentResponse,
    HistoryEntryResponse,
    OrderCreateRequest,
    OrderListResponse,
    OrderResponse,
    RepriceRequest,
    TransitionRequestBody,
    TransitionResponse,
)
from printshop.services.orders.enums import AttachmentView
from printshop.services.orders.state_machine import TransitionRequest
from printshop.services.orders.transitions import WorkflowAction

logger = get_logger(__name__)

router = APIRouter(prefix="/orders", tags=["Orders"])


@router.post(
    "",
    response_model=OrderResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create order",
)
async def create_order(
    request: OrderCreateRequest,
    actor: CurrentActor,
    service: OrderServiceDep,
) -> OrderResponse:
    """Create and price an order; sales and admin only."""
    order = await service.create_order(
        actor,
        client_name=request.client_name,
        items=[item.to_item_input() for item in request.items],
        needs_design=request.needs_design,
        client_id=request.client_id,
        email=request.email,
        phone=request.phone,
        delivery_method=request.delivery_method,
        delivery_date=request.delivery_date,
        currency_id=request.currency_id,
        manual_rate=request.exchange_rate,
        pricing_tier_id=request.pricing_tier_id,
        notes=request.notes,
        reference_files=[ref.to_file_ref() for ref in request.reference_files],
    )
    return OrderResponse.model_validate(order)


@router.get("", response_model=OrderListResponse, summary="List orders")
async def list_orders(
    actor: CurrentActor,
    service: OrderServiceDep,
    status_filter: Optional[str] = Query(
        None, alias="status", description="Status name, any case"
    ),
    search: Optional[str] = Query(None, max_length=100),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
) -> OrderListResponse:
    orders, total = await service.list_orders(
        actor, status=status_filter, search=search, skip=skip, limit=limit
    )
    return OrderListResponse(
        items=[OrderResponse.model_validate(order) for order in orders],
        total=total,
        skip=skip,
        limit=limit,
    )


@router.get(
    "/queue/mine",
    response_model=OrderListResponse,
    summary="Orders waiting on the caller's role",
)
async def my_work_queue(
    actor: CurrentActor,
    service: OrderServiceDep,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
) -> OrderListResponse:
    orders, total = await service.list_work_queue(actor, skip=skip, limit=limit)
    return OrderListResponse(
        items=[OrderResponse.model_validate(order) for order in orders],
        total=total,
        skip=skip,
        limit=limit,
    )


@router.get("/{order_id}", response_model=OrderResponse, summary="Get order")
async def get_order(
    order_id: UUID,
    actor: CurrentActor,
    service: OrderServiceDep,
) -> OrderResponse:
    order = await service.get_order(actor, order_id)
    return OrderResponse.model_validate(order)


@router.get(
    "/{order_id}/actions",
    response_model=AvailableActionsResponse,
    summary="Actions the caller may perform",
)
async def get_available_actions(
    order_id: UUID,
    actor: CurrentActor,
    service: OrderServiceDep,
) -> AvailableActionsResponse:
    order = await service.get_order(actor, order_id)
    actions = await service.available_actions(actor, order_id)
    return AvailableActionsResponse(
        order_id=order.id,
        status=order.status,
        role=actor.role.value,
        actions=[action.value for action in actions],
    )


@router.post(
    "/{order_id}/transitions",
    response_model=TransitionResponse,
    summary="Perform a workflow action",
)
async def transition_order(
    order_id: UUID,
    body: TransitionRequestBody,
    actor: CurrentActor,
    service: OrderServiceDep,
) -> TransitionResponse:
    """
    Apply a workflow action such as start_design or confirm_payment.

    Unknown actions are rejected as invalid transitions (409).
    """
    try:
        action = WorkflowAction.from_string(body.action)
    except ValueError as e:
        raise InvalidTransitionError(str(e), action=body.action) from e

    logger.info(
        "Transition requested",
        order_id=str(order_id),
        action=action.value,
        file_count=len(body.files),
    )
    result = await service.transition(
        actor,
        order_id,
        TransitionRequest(
            action=action,
            files=[ref.to_file_ref() for ref in body.files],
            comment=body.comment,
            payment_method=body.payment_method,
            deposit_amount=body.deposit_amount,
        ),
    )
    return TransitionResponse(
        order=OrderResponse.model_validate(result.order),
        previous_status=result.previous_status,
        new_status=result.new_status,
        action_details=result.history_entry.action_details,
        archived_count=result.archived_count,
        attachments=[
            AttachmentResponse.model_validate(attachment)
            for attachment in result.attachments
        ],
    )


@router.post("/{order_id}/reprice", response_model=OrderResponse, summary="Re-price order")
async def reprice_order(
    order_id: UUID,
    body: RepriceRequest,
    actor: CurrentActor,
    service: OrderServiceDep,
) -> OrderResponse:
    order = await service.reprice_order(
        actor,
        order_id,
        pricing_tier_id=body.pricing_tier_id,
        currency_id=body.currency_id,
        manual_rate=body.exchange_rate,
    )
    return OrderResponse.model_validate(order)


@router.get(
    "/{order_id}/attachments",
    response_model=list[AttachmentResponse],
    summary="List attachments",
)
async def list_attachments(
    order_id: UUID,
    actor: CurrentActor,
    service: OrderServiceDep,
    view: AttachmentView = Query(AttachmentView.CURRENT),
) -> list[AttachmentResponse]:
    attachments = await service.list_attachments(actor, order_id, view)
    return [AttachmentResponse.model_validate(attachment) for attachment in attachments]


@router.post(
    "/{order_id}/attachments",
    response_model=AttachmentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Attach a file",
)
async def add_attachment(
    order_id: UUID,
    body: AttachmentCreateRequest,
    actor: CurrentActor,
    service: OrderServiceDep,
) -> AttachmentResponse:
    attachment = await service.add_attachment(
        actor, order_id, body.file_type, body.to_file_ref()
    )
    return AttachmentResponse.model_validate(attachment)


@router.get(
    "/{order_id}/history",
    response_model=list[HistoryEntryResponse],
    summary="Status history with durations",
)
async def get_history(
    order_id: UUID,
    actor: CurrentActor,
    service: OrderServiceDep,
) -> list[HistoryEntryResponse]:
    durations = await service.list_history(actor, order_id)
    return [
        HistoryEntryResponse(
            id=item.entry.id,
            previous_status=item.entry.previous_status,
            new_status=item.entry.new_status,
            changed_by=item.entry.changed_by,
            action_details=item.entry.action_details,
            sequence=item.entry.sequence,
            created_at=item.entry.created_at,
            duration_ms=item.duration_ms,
            duration=item.display,
            is_current=item.is_current,
        )
        for item in durations
    ]


@router.get(
    "/{order_id}/comments",
    response_model=list[CommentResponse],
    summary="List comments",
)
async def list_comments(
    order_id: UUID,
    actor: CurrentActor,
    service: OrderServiceDep,
) -> list[CommentResponse]:
    comments = await service.list_comments(actor, order_id)
    return [CommentResponse.model_validate(comment) for comment in comments]


@router.post(
    "/{order_id}/comments",
    response_model=CommentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add a comment",
)
async def add_comment(
    order_id: UUID,
    body: CommentCreateRequest,
    actor: CurrentActor,
    service: OrderServiceDep,
) -> CommentResponse:
    comment = await service.add_comment(actor, order_id, body.content)
    return CommentResponse.model_validate(comment)
