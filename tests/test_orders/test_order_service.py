"""
Tests for OrderService: creation and pricing, listing, work queues,
re-pricing, attachments, comments and history.
"""

import uuid
from datetime import timedelta
from decimal import Decimal

import pytest
from sqlalchemy import select

from printshop.core.exceptions import (
    InvalidRateError,
    InvalidTransitionError,
    NotFoundError,
    ValidationFailedError,
)
from printshop.database.base import utcnow
from printshop.database.models import ExchangeRate, Order, OrderItem
from printshop.services.attachments.manager import FileRef
from printshop.services.orders.enums import (
    AppRole,
    AttachmentType,
    AttachmentView,
    OrderStatus,
    PaymentMethod,
)
from printshop.services.orders.state_machine import TransitionRequest
from printshop.services.orders.transitions import WorkflowAction
from printshop.services.pricing.lines import ItemInput


def file_ref(name: str) -> FileRef:
    return FileRef(file_url=f"https://files.example/{name}", file_name=name)


# ============================================================================
# Creation
# ============================================================================


class TestCreateOrder:
    async def test_prices_in_foreign_currency(self, order_service, actors, seed):
        order = await order_service.create_order(
            actors[AppRole.SALES],
            client_name="Acme Trading",
            items=[ItemInput(quantity=3, product_id=seed.product_id)],
            currency_id=seed.usd_id,
            pricing_tier_id=seed.vip_tier_id,
        )

        assert order.status is OrderStatus.READY_FOR_DESIGN
        assert order.exchange_rate == Decimal("3.75")
        assert order.items[0].unit_price == Decimal("32.0000")
        assert order.items[0].item_total == Decimal("96.0000")
        assert order.total_price_foreign == Decimal("96.0000")
        assert order.total_price_company == Decimal("360.0000")
        assert order.pricing_tier_id == seed.vip_tier_id
        assert order.order_number == 1

    async def test_client_tier_applies(self, order_service, actors, seed):
        order = await order_service.create_order(
            actors[AppRole.ADMIN],
            client_name="Acme Trading",
            client_id=seed.client_id,
            items=[ItemInput(quantity=1, product_id=seed.product_id)],
        )

        assert order.total_price_foreign == Decimal("120.0000")

    async def test_manual_rate_and_custom_lines(self, order_service, actors, seed):
        order = await order_service.create_order(
            actors[AppRole.SALES],
            client_name="Walk-in",
            items=[
                ItemInput(quantity=2, description="Roll-up banner", base_unit_price="200"),
                ItemInput(quantity=1, product_id=seed.product_id),
            ],
            currency_id=seed.usd_id,
            manual_rate="4",
        )

        assert [item.description for item in order.items] == ["Roll-up banner", "Business Cards"]
        assert order.total_price_foreign == Decimal("125.0000")
        assert order.total_price_company == Decimal("500.0000")

    async def test_order_numbers_increase(self, create_order, session):
        first = await create_order()
        second = await create_order()

        numbers = (
            await session.execute(
                select(Order.order_number).where(Order.id.in_([first, second]))
            )
        ).scalars().all()
        assert sorted(numbers) == [1, 2]

    async def test_reference_files_are_attached(self, order_service, actors, create_order):
        order_id = await create_order(reference_files=[file_ref("brief.pdf")])

        attachments = await order_service.list_attachments(actors[AppRole.DESIGNER], order_id)

        assert [a.file_type for a in attachments] == [AttachmentType.CLIENT_REFERENCE]

    @pytest.mark.parametrize("role", [AppRole.DESIGNER, AppRole.PRODUCTION, AppRole.ACCOUNTANT])
    async def test_only_sales_and_admin_create(self, order_service, actors, seed, role):
        with pytest.raises(InvalidTransitionError):
            await order_service.create_order(
                actors[role],
                client_name="Acme",
                items=[ItemInput(quantity=1, product_id=seed.product_id)],
            )

    async def test_invalid_manual_rate_creates_nothing(self, order_service, actors, seed, session):
        with pytest.raises(InvalidRateError):
            await order_service.create_order(
                actors[AppRole.SALES],
                client_name="Acme",
                items=[ItemInput(quantity=1, product_id=seed.product_id)],
                currency_id=seed.usd_id,
                manual_rate="0",
            )

        assert (await session.execute(select(Order.id))).first() is None

    async def test_empty_client_name(self, order_service, actors, seed):
        with pytest.raises(ValidationFailedError, match="Client name"):
            await order_service.create_order(
                actors[AppRole.SALES],
                client_name="  ",
                items=[ItemInput(quantity=1, product_id=seed.product_id)],
            )

    async def test_no_items(self, order_service, actors, seed):
        with pytest.raises(ValidationFailedError):
            await order_service.create_order(actors[AppRole.SALES], client_name="Acme", items=[])

    async def test_unknown_client(self, order_service, actors, seed):
        with pytest.raises(NotFoundError, match="Client not found"):
            await order_service.create_order(
                actors[AppRole.SALES],
                client_name="Acme",
                client_id=uuid.uuid4(),
                items=[ItemInput(quantity=1, product_id=seed.product_id)],
            )

    async def test_creation_notifies_designers(self, create_order, recording_sink):
        await create_order()

        assert len(recording_sink.sent) == 1
        assert recording_sink.sent[0].recipient_roles == frozenset({AppRole.DESIGNER})
        assert recording_sink.sent[0].previous_status is None


# ============================================================================
# Reading
# ============================================================================


class TestListOrders:
    async def test_status_filter_ignores_case(self, order_service, actors, create_order):
        design_id = await create_order()
        await create_order(needs_design=False)

        orders, total = await order_service.list_orders(
            actors[AppRole.ADMIN], status="ready FOR design"
        )

        assert total == 1
        assert orders[0].id == design_id

    async def test_unknown_status_filter(self, order_service, actors, seed):
        with pytest.raises(ValidationFailedError, match="Invalid order status"):
            await order_service.list_orders(actors[AppRole.ADMIN], status="Cancelled")

    async def test_search(self, order_service, actors, create_order):
        await create_order(client_name="Acme Trading", email="ops@acme.example")
        await create_order(client_name="Globex", phone="+971555123456")

        by_name, _ = await order_service.list_orders(actors[AppRole.SALES], search="ACME")
        by_phone, _ = await order_service.list_orders(actors[AppRole.SALES], search="555123")

        assert [o.client_name for o in by_name] == ["Acme Trading"]
        assert [o.client_name for o in by_phone] == ["Globex"]

    @pytest.mark.parametrize("search", ["%", "_", "Acme%"])
    async def test_search_wildcards_match_literally(self, order_service, actors, create_order, search):
        await create_order(client_name="Acme Trading")

        orders, total = await order_service.list_orders(actors[AppRole.SALES], search=search)

        assert (orders, total) == ([], 0)

    async def test_search_finds_literal_percent(self, order_service, actors, create_order):
        await create_order(client_name="Print 100% Ltd")
        await create_order(client_name="Print 1000 Ltd")

        orders, _ = await order_service.list_orders(actors[AppRole.SALES], search="100%")

        assert [o.client_name for o in orders] == ["Print 100% Ltd"]

    async def test_other_company_sees_nothing(self, order_service, make_actor, create_order, seed):
        await create_order()
        outsider = make_actor(AppRole.ADMIN, company_id=seed.other_company_id)

        orders, total = await order_service.list_orders(outsider)

        assert total == 0
        assert list(orders) == []

    async def test_pagination(self, order_service, actors, create_order):
        for _ in range(3):
            await create_order()

        orders, total = await order_service.list_orders(actors[AppRole.ADMIN], skip=1, limit=1)

        assert total == 3
        assert len(orders) == 1

    async def test_work_queue(self, order_service, actors, create_order):
        design_id = await create_order()
        payment_id = await create_order(needs_design=False)

        designer_queue, _ = await order_service.list_work_queue(actors[AppRole.DESIGNER])
        accountant_queue, _ = await order_service.list_work_queue(actors[AppRole.ACCOUNTANT])
        sales_queue, sales_total = await order_service.list_work_queue(actors[AppRole.SALES])

        assert [o.id for o in designer_queue] == [design_id]
        assert [o.id for o in accountant_queue] == [payment_id]
        assert sales_total == 0

    async def test_available_actions(self, order_service, actors, create_order):
        order_id = await create_order()

        designer = await order_service.available_actions(actors[AppRole.DESIGNER], order_id)
        sales = await order_service.available_actions(actors[AppRole.SALES], order_id)

        assert designer == [WorkflowAction.START_DESIGN]
        assert sales == []

    async def test_get_order_of_other_company(self, order_service, make_actor, create_order, seed):
        order_id = await create_order()

        with pytest.raises(NotFoundError):
            await order_service.get_order(
                make_actor(AppRole.ADMIN, company_id=seed.other_company_id), order_id
            )


# ============================================================================
# Re-pricing
# ============================================================================


class TestRepriceOrder:
    async def test_reprice_with_new_tier_and_currency(self, order_service, actors, create_order, seed):
        order_id = await create_order()

        order = await order_service.reprice_order(
            actors[AppRole.SALES],
            order_id,
            pricing_tier_id=seed.vip_tier_id,
            currency_id=seed.usd_id,
        )

        assert order.status is OrderStatus.READY_FOR_DESIGN
        assert order.exchange_rate == Decimal("3.75")
        assert order.currency_id == seed.usd_id
        assert order.total_price_foreign == Decimal("96.0000")
        assert order.total_price_company == Decimal("360.0000")
        assert [item.base_unit_price for item in order.items] == [Decimal("100")]

    async def test_tier_change_keeps_rate_snapshot(self, order_service, actors, create_order, seed):
        order_id = await create_order(currency_id=seed.usd_id, manual_rate="3.70")

        order = await order_service.reprice_order(
            actors[AppRole.SALES], order_id, pricing_tier_id=seed.vip_tier_id
        )

        assert order.exchange_rate == Decimal("3.70")
        assert order.total_price_foreign == Decimal("97.2972")
        assert order.total_price_company == order.total_price_foreign * Decimal("3.70")

    async def test_same_currency_does_not_refetch_rate(
        self, order_service, actors, create_order, session, seed
    ):
        order_id = await create_order(currency_id=seed.usd_id)
        rate = await session.scalar(
            select(ExchangeRate).where(ExchangeRate.currency_id == seed.usd_id)
        )
        rate.rate_to_company_currency = Decimal("4")
        await session.commit()

        order = await order_service.reprice_order(
            actors[AppRole.SALES], order_id, currency_id=seed.usd_id
        )

        assert order.exchange_rate == Decimal("3.75")

    async def test_reprice_replaces_items(self, order_service, actors, create_order, session):
        order_id = await create_order()

        await order_service.reprice_order(actors[AppRole.ADMIN], order_id, manual_rate="2")

        items = (
            await session.execute(select(OrderItem).where(OrderItem.order_id == order_id))
        ).scalars().all()
        assert len(items) == 1
        assert items[0].unit_price == Decimal("50.0000")

    async def test_reprice_after_payment_is_rejected(self, order_service, actors, create_order):
        order_id = await create_order(needs_design=False)
        await order_service.transition(
            actors[AppRole.ACCOUNTANT],
            order_id,
            TransitionRequest(
                action=WorkflowAction.CONFIRM_PAYMENT, payment_method=PaymentMethod.CASH
            ),
        )

        with pytest.raises(InvalidTransitionError, match="before payment"):
            await order_service.reprice_order(actors[AppRole.SALES], order_id, manual_rate="2")

    async def test_invalid_rate_keeps_old_prices(self, order_service, actors, create_order, session):
        order_id = await create_order()

        with pytest.raises(InvalidRateError):
            await order_service.reprice_order(actors[AppRole.SALES], order_id, manual_rate="-1")

        total = await session.scalar(
            select(Order.total_price_foreign).where(Order.id == order_id)
        )
        assert total == Decimal("300")

    async def test_designer_cannot_reprice(self, order_service, actors, create_order):
        order_id = await create_order()

        with pytest.raises(InvalidTransitionError):
            await order_service.reprice_order(actors[AppRole.DESIGNER], order_id, manual_rate="2")


# ============================================================================
# Attachments, Comments and History
# ============================================================================


class TestOrderActivity:
    async def test_add_attachment_outside_transition(self, order_service, actors, create_order):
        order_id = await create_order()

        attachment = await order_service.add_attachment(
            actors[AppRole.SALES], order_id, AttachmentType.CLIENT_REFERENCE, file_ref("logo.svg")
        )
        listed = await order_service.list_attachments(
            actors[AppRole.SALES], order_id, AttachmentView.ALL
        )

        assert [a.id for a in listed] == [attachment.id]

    async def test_comments(self, order_service, actors, create_order):
        order_id = await create_order()

        await order_service.add_comment(actors[AppRole.SALES], order_id, " Client called ")
        comments = await order_service.list_comments(actors[AppRole.DESIGNER], order_id)

        assert [c.content for c in comments] == ["Client called"]

    async def test_empty_comment(self, order_service, actors, create_order):
        order_id = await create_order()

        with pytest.raises(ValidationFailedError):
            await order_service.add_comment(actors[AppRole.SALES], order_id, "   ")

    async def test_history_with_durations(self, order_service, actors, create_order):
        order_id = await create_order()
        await order_service.transition(
            actors[AppRole.DESIGNER],
            order_id,
            TransitionRequest(action=WorkflowAction.START_DESIGN),
        )

        history = await order_service.list_history(
            actors[AppRole.SALES], order_id, now=utcnow() + timedelta(hours=2)
        )

        assert [item.entry.new_status for item in history] == [
            OrderStatus.READY_FOR_DESIGN,
            OrderStatus.IN_DESIGN,
        ]
        assert [item.is_current for item in history] == [False, True]
        assert history[1].duration >= timedelta(hours=1, minutes=59)
