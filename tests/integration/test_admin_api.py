"""
Tests for the admin API over an in-process ASGI transport.
"""

import logging

import pytest
from httpx import ASGITransport, AsyncClient

from reserve_delivery.api import create_app
from reserve_delivery.config import load_settings
from reserve_delivery.core.outbox import OutboxStatus

ADMIN_KEY = "test-admin-key"
HEADERS = {"X-Admin-Key": ADMIN_KEY, "X-Operator-Id": "ops-anna"}


def build_client(db, clock, admin_key=ADMIN_KEY) -> AsyncClient:
    environ = {"ADMIN_API_KEY": admin_key} if admin_key else {}
    app = create_app(load_settings(environ), db=db, clock=clock)
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


@pytest.fixture
async def client(db, clock):
    async with build_client(db, clock) as client:
        yield client


async def dead_letter(store, record):
    """Enqueue a row and move it straight to FAILED."""
    await store.enqueue(record)
    await store.claim_batch(None, limit=100)
    await store.mark_dead_letter(record.id, 5, "boom")
    return record


class TestAuthentication:

    async def test_disabled_without_configured_key(self, db, clock):
        async with build_client(db, clock, admin_key=None) as client:
            response = await client.get("/api/admin/notifications", headers=HEADERS)

        assert response.status_code == 503
        assert response.json()["error"]["code"] == "SERVICE_UNAVAILABLE"

    async def test_wrong_key(self, client):
        response = await client.get("/api/admin/notifications", headers={"X-Admin-Key": "nope"})

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "UNAUTHORIZED"

    async def test_missing_key(self, client):
        response = await client.get("/api/admin/outbox/stats")
        assert response.status_code == 401

    async def test_health_is_public(self, client):
        response = await client.get("/api/admin/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "database": "healthy"}


class TestNotifications:

    async def test_list(self, client, notifications, new_notification):
        await notifications.enqueue(new_notification())
        await dead_letter(notifications, new_notification(event="reminder"))

        response = await client.get("/api/admin/notifications", headers=HEADERS)
        body = response.json()

        assert response.status_code == 200
        assert body["total"] == 2
        assert body["limit"] == 25
        assert body["offset"] == 0
        assert all("guest_contact" not in item for item in body["items"])

        failed = await client.get(
            "/api/admin/notifications", params={"status": "FAILED"}, headers=HEADERS
        )
        assert [item["event"] for item in failed.json()["items"]] == ["reminder"]

    async def test_invalid_status_filter(self, client):
        response = await client.get(
            "/api/admin/notifications", params={"status": "LOST"}, headers=HEADERS
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    async def test_requeue_failed(self, client, notifications, new_notification, caplog):
        caplog.set_level(logging.INFO)
        record = await dead_letter(notifications, new_notification())

        response = await client.post(
            f"/api/admin/notifications/{record.id}/requeue", headers=HEADERS
        )

        assert response.status_code == 200
        item = response.json()["item"]
        assert item["status"] == "PENDING"
        assert item["attempts"] == 0
        assert item["last_error"] is None
        assert (await notifications.get(record.id)).status == OutboxStatus.PENDING
        assert "by ops-anna" in caplog.text

    async def test_requeue_pending_conflicts(self, client, notifications, new_notification):
        record = await notifications.enqueue(new_notification())

        response = await client.post(
            f"/api/admin/notifications/{record.id}/requeue", headers=HEADERS
        )

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "INVALID_STATUS_TRANSITION"

    async def test_requeue_missing(self, client):
        response = await client.post("/api/admin/notifications/nope/requeue", headers=HEADERS)

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "NOTIFICATION_NOT_FOUND"


class TestWebhookEndpoints:

    async def test_create_and_list(self, client):
        response = await client.post(
            "/api/admin/webhooks/endpoints",
            json={
                "url": "https://pos.test/hooks",
                "description": "POS integration",
                "events": ["reservation.created", "reservation.cancelled"],
                "secret": "whsec_pos",
            },
            headers=HEADERS,
        )

        assert response.status_code == 201
        created = response.json()
        assert created["url"] == "https://pos.test/hooks"
        assert "secret" not in created

        listed = await client.get("/api/admin/webhooks/endpoints", headers=HEADERS)
        assert listed.json()["total"] == 1
        assert listed.json()["items"][0]["id"] == created["id"]

    async def test_duplicate_url(self, client):
        payload = {"url": "https://pos.test/hooks"}
        await client.post("/api/admin/webhooks/endpoints", json=payload, headers=HEADERS)

        response = await client.post("/api/admin/webhooks/endpoints", json=payload, headers=HEADERS)

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "DUPLICATE_ENDPOINT"

    @pytest.mark.parametrize("payload", [
        {"url": "ftp://pos.test/hooks"},
        {"url": "not a url"},
        {"url": "https://pos.test/hooks", "events": ["reservation.paid"]},
    ])
    async def test_invalid_registration(self, client, payload):
        response = await client.post("/api/admin/webhooks/endpoints", json=payload, headers=HEADERS)

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    async def test_deactivate(self, client):
        created = (await client.post(
            "/api/admin/webhooks/endpoints", json={"url": "https://pos.test/hooks"}, headers=HEADERS
        )).json()

        response = await client.patch(
            f"/api/admin/webhooks/endpoints/{created['id']}",
            json={"is_active": False},
            headers=HEADERS,
        )

        assert response.status_code == 200
        assert response.json()["is_active"] is False

    async def test_deactivate_missing(self, client):
        response = await client.patch(
            "/api/admin/webhooks/endpoints/nope", json={"is_active": False}, headers=HEADERS
        )

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "ENDPOINT_NOT_FOUND"

    async def test_rotate_secret(self, client):
        created = (await client.post(
            "/api/admin/webhooks/endpoints", json={"url": "https://pos.test/hooks"}, headers=HEADERS
        )).json()

        response = await client.post(
            f"/api/admin/webhooks/endpoints/{created['id']}/secret", headers=HEADERS
        )

        assert response.status_code == 200
        assert len(response.json()["secret"]) == 64
        assert response.headers["Cache-Control"] == "no-store"


class TestWebhookDeliveries:

    async def _endpoint(self, client, url="https://pos.test/hooks"):
        response = await client.post("/api/admin/webhooks/endpoints", json={"url": url}, headers=HEADERS)
        return response.json()["id"]

    async def test_list_by_endpoint(self, client, deliveries, new_delivery):
        first = await self._endpoint(client, "https://a.test/hooks")
        second = await self._endpoint(client, "https://b.test/hooks")
        await deliveries.enqueue(new_delivery(first))
        await deliveries.enqueue(new_delivery(second))

        response = await client.get(
            "/api/admin/webhooks/deliveries", params={"endpoint_id": first}, headers=HEADERS
        )

        assert response.status_code == 200
        assert response.json()["total"] == 1
        assert response.json()["items"][0]["endpoint_id"] == first

    async def test_redeliver(self, client, deliveries, new_delivery):
        endpoint_id = await self._endpoint(client)
        record = await dead_letter(deliveries, new_delivery(endpoint_id))

        response = await client.post(
            f"/api/admin/webhooks/deliveries/{record.id}/redeliver", headers=HEADERS
        )

        assert response.status_code == 200
        assert response.json()["status"] == "requeued"
        assert response.json()["item"]["status"] == "PENDING"

    async def test_redeliver_missing(self, client):
        response = await client.post(
            "/api/admin/webhooks/deliveries/nope/redeliver", headers=HEADERS
        )

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "DELIVERY_NOT_FOUND"


class TestOutboxStats:

    async def test_stats(self, client, notifications, deliveries, new_notification, new_delivery):
        await notifications.enqueue(new_notification())
        await dead_letter(notifications, new_notification())
        endpoint_id = (await client.post(
            "/api/admin/webhooks/endpoints", json={"url": "https://pos.test/hooks"}, headers=HEADERS
        )).json()["id"]
        await deliveries.enqueue(new_delivery(endpoint_id))

        response = await client.get("/api/admin/outbox/stats", headers=HEADERS)
        body = response.json()

        assert response.status_code == 200
        assert body["total_failed"] == 1
        assert body["total_pending"] == 2
        assert body["tables"]["notification_outbox"] == {"PENDING": 1, "SUCCESS": 0, "FAILED": 1}
        assert body["tables"]["webhook_deliveries"]["PENDING"] == 1
