"""
Tests for the order workflow HTTP endpoints.
"""

import uuid
from decimal import Decimal

import pytest

from printshop.services.orders.enums import AppRole

ORDERS = "/api/v1/orders"


@pytest.fixture
def order_payload(seed):
    return {
        "client_name": "Acme Trading",
        "email": "orders@acme.example",
        "items": [{"product_id": str(seed.product_id), "quantity": 2}],
    }


@pytest.fixture
async def created_order(async_client, auth_headers, actors, order_payload):
    response = await async_client.post(
        ORDERS, json=order_payload, headers=auth_headers(actors[AppRole.SALES])
    )
    assert response.status_code == 201
    return response.json()


class TestCreateOrderEndpoint:
    async def test_create(self, async_client, auth_headers, actors, seed, order_payload):
        order_payload.update(
            currency_id=str(seed.usd_id),
            pricing_tier_id=str(seed.vip_tier_id),
            reference_files=[{"file_url": "https://files.example/brief.pdf", "file_name": "brief.pdf"}],
        )

        response = await async_client.post(
            ORDERS, json=order_payload, headers=auth_headers(actors[AppRole.SALES])
        )

        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "Ready for Design"
        assert Decimal(data["total_price_foreign"]) == Decimal("64")
        assert Decimal(data["total_price_company"]) == Decimal("240")
        assert Decimal(data["items"][0]["unit_price"]) == Decimal("32")
        assert data["payment_status"] == "pending"

    async def test_requires_token(self, async_client, order_payload):
        response = await async_client.post(ORDERS, json=order_payload)

        assert response.status_code == 401

    async def test_rejects_invalid_token(self, async_client, order_payload):
        response = await async_client.post(
            ORDERS, json=order_payload, headers={"Authorization": "Bearer not-a-token"}
        )

        assert response.status_code == 401

    async def test_designer_cannot_create(self, async_client, auth_headers, actors, order_payload):
        response = await async_client.post(
            ORDERS, json=order_payload, headers=auth_headers(actors[AppRole.DESIGNER])
        )

        assert response.status_code == 409
        assert response.json()["error"] == "InvalidTransition"

    async def test_request_validation(self, async_client, auth_headers, actors):
        response = await async_client.post(
            ORDERS,
            json={"client_name": "Acme", "items": []},
            headers=auth_headers(actors[AppRole.SALES]),
        )

        assert response.status_code == 422
        body = response.json()
        assert body["error"] == "ValidationFailed"
        assert body["context"]["errors"]

    async def test_invalid_manual_rate(self, async_client, auth_headers, actors, order_payload):
        order_payload["exchange_rate"] = "0"

        response = await async_client.post(
            ORDERS, json=order_payload, headers=auth_headers(actors[AppRole.SALES])
        )

        assert response.status_code == 422


class TestReadEndpoints:
    async def test_get_and_list(self, async_client, auth_headers, actors, created_order):
        headers = auth_headers(actors[AppRole.ACCOUNTANT])

        single = await async_client.get(f"{ORDERS}/{created_order['id']}", headers=headers)
        listing = await async_client.get(
            ORDERS, params={"status": "ready for design", "search": "acme"}, headers=headers
        )

        assert single.json()["id"] == created_order["id"]
        assert listing.json()["total"] == 1

    async def test_invalid_status_filter(self, async_client, auth_headers, actors, created_order):
        response = await async_client.get(
            ORDERS, params={"status": "Shipped"}, headers=auth_headers(actors[AppRole.ADMIN])
        )

        assert response.status_code == 422

    async def test_unknown_order(self, async_client, auth_headers, actors, seed):
        response = await async_client.get(
            f"{ORDERS}/{uuid.uuid4()}", headers=auth_headers(actors[AppRole.ADMIN])
        )

        assert response.status_code == 404
        body = response.json()
        assert body["error"] == "NotFound"
        assert body["request_id"]

    async def test_queue_and_actions(self, async_client, auth_headers, actors, created_order):
        headers = auth_headers(actors[AppRole.DESIGNER])

        queue = await async_client.get(f"{ORDERS}/queue/mine", headers=headers)
        actions = await async_client.get(
            f"{ORDERS}/{created_order['id']}/actions", headers=headers
        )

        assert [o["id"] for o in queue.json()["items"]] == [created_order["id"]]
        assert actions.json() == {
            "order_id": created_order["id"],
            "status": "Ready for Design",
            "role": "designer",
            "actions": ["start_design"],
        }


class TestTransitionEndpoint:
    async def test_design_flow(self, async_client, auth_headers, actors, created_order):
        url = f"{ORDERS}/{created_order['id']}/transitions"
        designer = auth_headers(actors[AppRole.DESIGNER])

        started = await async_client.post(url, json={"action": "start_design"}, headers=designer)
        submitted = await async_client.post(
            url,
            json={
                "action": "submit_mockups",
                "files": [{"file_url": "https://files.example/v1.png", "file_name": "v1.png"}],
            },
            headers=designer,
        )

        assert started.status_code == 200
        assert started.json()["new_status"] == "In Design"
        body = submitted.json()
        assert body["previous_status"] == "In Design"
        assert body["new_status"] == "Design Approval"
        assert body["action_details"] == "Uploaded: v1.png"
        assert [a["file_type"] for a in body["attachments"]] == ["design_mockup"]

    async def test_unknown_action(self, async_client, auth_headers, actors, created_order):
        response = await async_client.post(
            f"{ORDERS}/{created_order['id']}/transitions",
            json={"action": "teleport"},
            headers=auth_headers(actors[AppRole.ADMIN]),
        )

        assert response.status_code == 409
        assert response.json()["error"] == "InvalidTransition"

    async def test_wrong_role(self, async_client, auth_headers, actors, created_order):
        response = await async_client.post(
            f"{ORDERS}/{created_order['id']}/transitions",
            json={"action": "start_design"},
            headers=auth_headers(actors[AppRole.PRODUCTION]),
        )

        assert response.status_code == 409

    async def test_missing_files(self, async_client, auth_headers, actors, created_order):
        url = f"{ORDERS}/{created_order['id']}/transitions"
        designer = auth_headers(actors[AppRole.DESIGNER])
        await async_client.post(url, json={"action": "start_design"}, headers=designer)

        response = await async_client.post(url, json={"action": "submit_mockups"}, headers=designer)

        assert response.status_code == 422

    async def test_payment_without_design(self, async_client, auth_headers, actors, order_payload):
        order_payload["needs_design"] = False
        created = await async_client.post(
            ORDERS, json=order_payload, headers=auth_headers(actors[AppRole.SALES])
        )

        response = await async_client.post(
            f"{ORDERS}/{created.json()['id']}/transitions",
            json={"action": "confirm_payment", "payment_method": "advanced", "deposit_amount": "50"},
            headers=auth_headers(actors[AppRole.ACCOUNTANT]),
        )

        assert response.status_code == 200
        order = response.json()["order"]
        assert order["status"] == "Ready for Production"
        assert order["payment_status"] == "partial"
        assert Decimal(order["balance_due"]) == Decimal("150")


class TestOrderActivityEndpoints:
    async def test_reprice(self, async_client, auth_headers, actors, created_order):
        response = await async_client.post(
            f"{ORDERS}/{created_order['id']}/reprice",
            json={"exchange_rate": "2"},
            headers=auth_headers(actors[AppRole.SALES]),
        )

        assert response.status_code == 200
        assert Decimal(response.json()["total_price_foreign"]) == Decimal("100")
        assert Decimal(response.json()["total_price_company"]) == Decimal("200")

    async def test_attachments(self, async_client, auth_headers, actors, created_order):
        url = f"{ORDERS}/{created_order['id']}/attachments"
        headers = auth_headers(actors[AppRole.SALES])

        created = await async_client.post(
            url,
            json={
                "file_type": "client_reference",
                "file_url": "https://files.example/logo.svg",
                "file_name": "logo.svg",
            },
            headers=headers,
        )
        archived = await async_client.post(
            url,
            json={
                "file_type": "archived_mockup",
                "file_url": "https://files.example/old.png",
                "file_name": "old.png",
            },
            headers=headers,
        )
        listed = await async_client.get(url, params={"view": "all"}, headers=headers)

        assert created.status_code == 201
        assert archived.status_code == 422
        assert [a["file_name"] for a in listed.json()] == ["logo.svg"]

    async def test_comments(self, async_client, auth_headers, actors, created_order):
        url = f"{ORDERS}/{created_order['id']}/comments"

        created = await async_client.post(
            url, json={"content": "Rush job"}, headers=auth_headers(actors[AppRole.SALES])
        )
        listed = await async_client.get(url, headers=auth_headers(actors[AppRole.PRODUCTION]))

        assert created.status_code == 201
        assert [c["content"] for c in listed.json()] == ["Rush job"]

    async def test_history(self, async_client, auth_headers, actors, created_order):
        designer = auth_headers(actors[AppRole.DESIGNER])
        await async_client.post(
            f"{ORDERS}/{created_order['id']}/transitions",
            json={"action": "start_design"},
            headers=designer,
        )

        response = await async_client.get(
            f"{ORDERS}/{created_order['id']}/history", headers=designer
        )

        history = response.json()
        assert [h["new_status"] for h in history] == ["Ready for Design", "In Design"]
        assert [h["is_current"] for h in history] == [False, True]
        assert history[0]["action_details"] == "Order created"
        assert history[0]["duration_ms"] >= 0
        assert isinstance(history[0]["duration"], str)
