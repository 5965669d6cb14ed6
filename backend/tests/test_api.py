"""
HTTP layer tests: routing, auth and error envelopes
"""
import pytest
import pytest_asyncio
from unittest.mock import AsyncMock, MagicMock, patch
from httpx import ASGITransport, AsyncClient
from jose import jwt
from sqlalchemy.exc import IntegrityError

from momento.core.config import settings
from momento.db.models.enums import DeviceType

from fakes import make_token

API = settings.API_PREFIX


def bearer(user_id="user-1", role="user"):
    token = jwt.encode(
        {"sub": user_id, "role": role, "type": "access"},
        settings.SECRET_KEY,
        algorithm=settings.ALGORITHM,
    )
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture
async def client(dispatcher):
    from main import app

    app.state.dispatcher = dispatcher
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as http:
        yield http
    app.state.dispatcher = None


class TestDeviceTokens:

    @pytest.mark.asyncio
    async def test_requires_authentication(self, client):
        response = await client.post(f"{API}/device-tokens", json={"token": make_token("a"), "device_type": "ios"})

        assert response.status_code == 401
        assert response.json()["success"] is False
        assert response.json()["error"]["code"] == "UNAUTHORIZED"

    @pytest.mark.asyncio
    async def test_register_and_deactivate(self, client, token_service):
        token = make_token("a")
        response = await client.post(
            f"{API}/device-tokens",
            json={"token": token, "device_type": "android"},
            headers=bearer(),
        )

        assert response.status_code == 201
        assert response.json()["device_type"] == "android"
        assert response.json()["is_active"] is True

        response = await client.post(f"{API}/device-tokens/deactivate", json={"token": token}, headers=bearer())

        assert response.status_code == 200
        assert await token_service.get_active_tokens_for_user("user-1") == []

    @pytest.mark.asyncio
    async def test_malformed_token_is_a_bad_request(self, client):
        response = await client.post(
            f"{API}/device-tokens",
            json={"token": "nope", "device_type": "web"},
            headers=bearer(),
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_TOKEN_FORMAT"


    @pytest.mark.asyncio
    async def test_duplicate_registration_is_a_conflict(self, client, dispatcher):
        error = IntegrityError(
            "INSERT INTO device_tokens", {}, Exception("UNIQUE constraint failed: device_tokens.user_id, device_tokens.token")
        )
        with patch.object(dispatcher.token_service, "save_token", AsyncMock(side_effect=error)):
            response = await client.post(
                f"{API}/device-tokens",
                json={"token": make_token("a"), "device_type": "ios"},
                headers=bearer(),
            )

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "CONFLICT"
        assert response.json()["error"]["message"] == "This device token is already registered for the user"


class TestNotificationFeed:

    @pytest.mark.asyncio
    async def test_list_mark_and_mark_all(self, client, notification_store):
        from momento.db.schemas.notification import NotificationPayload
        from momento.services.notification_store import FeedOwner

        owner = FeedOwner.user("user-1")
        first = await notification_store.store_notification(owner, NotificationPayload(title="a", body="b"))
        await notification_store.store_notification(owner, NotificationPayload(title="c", body="d"))

        response = await client.get(f"{API}/notifications", params={"limit": 10}, headers=bearer())
        assert response.status_code == 200
        assert response.json()["count"] == 2

        response = await client.put(f"{API}/notifications/{first}/read", headers=bearer())
        assert response.status_code == 200
        assert response.json()["status"] == "read"

        response = await client.put(f"{API}/notifications/read-all", headers=bearer())
        assert response.json() == {"updated": 1}

    @pytest.mark.asyncio
    async def test_mark_missing_notification(self, client):
        response = await client.put(f"{API}/notifications/missing/read", headers=bearer())
        assert response.status_code == 404


class TestAdminSends:

    @pytest.mark.asyncio
    async def test_non_admin_is_forbidden(self, client):
        response = await client.post(
            f"{API}/notifications/send",
            json={"user_id": "user-2", "notification": {"title": "t", "body": "b"}},
            headers=bearer(),
        )
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_failed_dispatch_is_a_200_with_error(self, client):
        response = await client.post(
            f"{API}/notifications/send",
            json={"user_id": "user-2", "notification": {"title": "t", "body": "b"}},
            headers=bearer("admin-1", "admin"),
        )

        assert response.status_code == 200
        assert response.json()["success"] is False
        assert response.json()["error"] == "no active tokens"

    @pytest.mark.asyncio
    async def test_send_many(self, client, token_service):
        await token_service.save_token("user-2", make_token("a"), DeviceType.IOS)

        response = await client.post(
            f"{API}/notifications/send-many",
            json={"user_ids": ["user-2", "user-3"], "notification": {"title": "t", "body": "b"}},
            headers=bearer("admin-1", "superadmin"),
        )

        assert response.json()["success"] is True
        assert response.json()["success_count"] == 1

    @pytest.mark.asyncio
    async def test_broadcast_is_queued(self, client):
        task = MagicMock(id="task-123")
        with patch("momento.api.routers.notifications.broadcast_notification.delay", return_value=task) as delay:
            response = await client.post(
                f"{API}/notifications/broadcast",
                json={"notification": {"title": "t", "body": "b", "data": {"k": 1}}},
                headers=bearer("admin-1", "admin"),
            )

        assert response.status_code == 202
        assert response.json() == {"task_id": "task-123", "status": "queued"}
        delay.assert_called_once_with(title="t", body="b", data={"k": "1"})

    @pytest.mark.asyncio
    async def test_topic(self, client):
        response = await client.post(
            f"{API}/notifications/topic",
            json={"topic": "bad topic", "notification": {"title": "t", "body": "b"}},
            headers=bearer("admin-1", "admin"),
        )
        assert response.json()["error"] == "invalid topic format"


class TestGuestEndpoints:

    @pytest.mark.asyncio
    async def test_device_header_is_required(self, client):
        response = await client.get(f"{API}/guest/notifications")
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_register_device(self, client):
        response = await client.post(
            f"{API}/guest/devices",
            json={"firebase_token": make_token("g"), "timezone": "UTC"},
            headers={"X-Device-ID": "device-1"},
        )

        assert response.status_code == 200
        assert response.json()["device_id"] == "device-1"
        assert response.json()["has_push_token"] is True

    @pytest.mark.asyncio
    async def test_register_device_rejects_malformed_token(self, client):
        response = await client.post(
            f"{API}/guest/devices",
            json={"firebase_token": "bad"},
            headers={"X-Device-ID": "device-1"},
        )
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_guest_feed(self, client, dispatcher, guest_device_service):
        await guest_device_service.find_or_create("device-1", make_token("g"))
        await dispatcher.send_notification_to_device("device-1", "Hi", "There")
        headers = {"X-Device-ID": "device-1"}

        response = await client.get(f"{API}/guest/notifications", headers=headers)
        assert response.json()["count"] == 1
        notification_id = response.json()["notifications"][0]["id"]

        response = await client.put(f"{API}/guest/notifications/{notification_id}/read", headers=headers)
        assert response.json()["status"] == "read"

        response = await client.put(f"{API}/guest/notifications/read-all", headers=headers)
        assert response.json() == {"updated": 0}


class TestHealth:

    @pytest.mark.asyncio
    async def test_health(self, client):
        response = await client.get(f"{API}/health")
        assert response.json()["status"] == "healthy"

    @pytest.mark.asyncio
    async def test_push_health(self, client):
        response = await client.get(f"{API}/health/push")
        assert response.json() == {"status": "healthy", "transport": "initialized", "feed": "initialized"}

    @pytest.mark.asyncio
    async def test_request_id_is_echoed(self, client):
        response = await client.get(f"{API}/health", headers={"X-Request-ID": "req-42"})
        assert response.headers["X-Request-ID"] == "req-42"
