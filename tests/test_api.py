"""HTTP route tests for notifications, templates and health."""

from datetime import datetime, timedelta, timezone

import pytest

from notifyhub.api.routes.notifications import format_sse
from notifyhub.models.notification import NotificationView

BASE = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

TEMPLATE_BODY = {
    "id": "welcome",
    "name": "Welcome",
    "channel": "PUSH",
    "params": [{"key": "name", "type": "string", "required": True}],
    "translations": {
        "en": {"subject": "Welcome", "body": "Welcome, ${name}!"},
        "az": {"subject": "Xoş gəldiniz", "body": "Xoş gəldiniz, ${name}!"},
    },
    "createdBy": "ops",
}


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------

async def test_health_check(client):
    response = await client.get("/api/v1/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["service"] == "notifyhub"


async def test_readiness_in_local_mode(client):
    response = await client.get("/api/v1/health/ready")
    assert response.status_code == 200
    data = response.json()
    assert data["checks"] == {"database": "ok", "redis": "disabled"}
    assert data["queue_topic"] == "notification-requests"
    assert data["queued_requests"] == 0
    assert data["live_sessions"] == 0


class _UnreachableRedis:
    async def ping(self):
        raise ConnectionError("connection refused")


async def test_readiness_reports_unreachable_redis(client, app):
    app.state.redis = _UnreachableRedis()
    response = await client.get("/api/v1/health/ready")
    assert response.status_code == 503
    data = response.json()
    assert data["status"] == "not_ready"
    assert data["checks"]["database"] == "ok"
    assert data["checks"]["redis"] == "error: connection refused"


async def test_liveness(client):
    response = await client.get("/api/v1/health/live")
    assert response.status_code == 200
    assert response.json() == {"status": "alive"}


async def test_trace_id_is_echoed(client):
    response = await client.get("/api/v1/health", headers={"X-Trace-Id": "trc_test"})
    assert response.headers["X-Trace-Id"] == "trc_test"


# ---------------------------------------------------------------------------
# Accept
# ---------------------------------------------------------------------------

async def test_send_returns_202_with_id(client, app, make_template):
    await make_template()
    response = await client.post(
        "/api/v1/notifications/send",
        json={
            "templateId": "payment-success-sms",
            "userId": "user-1",
            "channel": "SMS",
            "params": {"name": "Ali", "amount": 10},
        },
    )
    assert response.status_code == 202
    notification_id = response.json()["notification_id"]
    assert notification_id.startswith("ntf_")

    queue = app.state.notification_queue
    assert queue.qsize() == 1
    message = await queue.receive(timeout=0.1)
    assert message.notification_id == notification_id
    assert message.key == "user-1"
    assert message.payload["templateId"] == "payment-success-sms"


async def test_send_missing_required_params_is_still_accepted(client, make_template):
    await make_template()
    response = await client.post(
        "/api/v1/notifications/send",
        json={"templateId": "payment-success-sms", "userId": "user-1", "channel": "SMS"},
    )
    assert response.status_code == 202


async def test_send_unknown_template_returns_404(client, app):
    response = await client.post(
        "/api/v1/notifications/send",
        json={"templateId": "nope", "userId": "user-1", "channel": "SMS"},
    )
    assert response.status_code == 404
    error = response.json()["error"]
    assert error["code"] == "TEMPLATE_NOT_FOUND"
    assert error["details"] == {"resource_id": "nope"}
    assert app.state.notification_queue.qsize() == 0


@pytest.mark.parametrize("body", [
    {"userId": "user-1", "channel": "SMS"},
    {"templateId": "payment-success-sms", "userId": "  ", "channel": "SMS"},
    {"templateId": "payment-success-sms", "userId": "user-1"},
])
async def test_send_rejects_incomplete_requests(client, body):
    response = await client.post("/api/v1/notifications/send", json=body)
    assert response.status_code == 422


async def test_send_queue_full_returns_503(client, app, make_template):
    from notifyhub.workers.queue import LocalQueue

    await make_template()
    app.state.notification_queue = LocalQueue("notification-requests", maxsize=1)
    body = {"templateId": "payment-success-sms", "userId": "user-1", "channel": "SMS"}

    assert (await client.post("/api/v1/notifications/send", json=body)).status_code == 202
    response = await client.post("/api/v1/notifications/send", json=body)
    assert response.status_code == 503
    assert response.json()["error"]["code"] == "PUBLISH_FAILED"


# ---------------------------------------------------------------------------
# Read and status
# ---------------------------------------------------------------------------

async def test_list_notifications(client, make_notification):
    for i in range(3):
        await make_notification(f"ntf_{i}", created_at=BASE + timedelta(minutes=i))
    await make_notification("ntf_read", created_at=BASE, read=True)

    response = await client.get(
        "/api/v1/notifications/user-1",
        params={"read": "false", "size": 2, "sortBy": "createdAt", "sortDirection": "ASC"},
        headers={"Accept-Language": "EN"},
    )
    assert response.status_code == 200
    data = response.json()
    assert data["total_count"] == 3
    assert data["total_pages"] == 2
    assert data["has_next"] is True
    assert [n["id"] for n in data["notifications"]] == ["ntf_0", "ntf_1"]
    assert data["notifications"][0]["subject"] == "Subject (en)"


async def test_unsupported_language_returns_400(client, make_notification):
    await make_notification("ntf_1")
    response = await client.get(
        "/api/v1/notifications/notification/ntf_1", headers={"Accept-Language": "fr"}
    )
    assert response.status_code == 400
    assert response.json()["error"]["code"] == "VALIDATION_ERROR"


async def test_default_language_when_header_absent(client, make_notification):
    await make_notification("ntf_1")
    response = await client.get("/api/v1/notifications/notification/ntf_1")
    assert response.status_code == 200
    assert response.json()["content"] == "Body (az)"


async def test_get_unknown_notification_returns_404(client):
    response = await client.get("/api/v1/notifications/notification/ntf_missing")
    assert response.status_code == 404
    assert response.json()["error"]["code"] == "NOTIFICATION_NOT_FOUND"


async def test_read_and_unread_count(client, make_notification):
    await make_notification("ntf_1")
    await make_notification("ntf_2")

    assert (await client.get("/api/v1/notifications/user-1/unread-count")).json() == {"count": 2}
    response = await client.put("/api/v1/notifications/notification/ntf_1/read")
    assert response.status_code == 200
    assert response.json() == {"notification_id": "ntf_1", "read": True}
    assert (await client.get("/api/v1/notifications/user-1/unread-count")).json() == {"count": 1}

    response = await client.put("/api/v1/notifications/user-1/mark-all-read")
    assert response.json() == {"count": 1}


async def test_mark_read_unknown_returns_404(client):
    response = await client.put("/api/v1/notifications/notification/ntf_missing/read")
    assert response.status_code == 404


async def test_disable_and_purge(client, make_notification):
    await make_notification("ntf_1")
    await make_notification("ntf_2")

    response = await client.put("/api/v1/notifications/notification/ntf_1/disable")
    assert response.status_code == 200
    assert (await client.get("/api/v1/notifications/notification/ntf_1")).status_code == 404

    assert (await client.put("/api/v1/notifications/user-1/disable-all")).json() == {"count": 1}
    assert (await client.delete("/api/v1/notifications/user-1/disabled")).json() == {"count": 2}
    assert (await client.get("/api/v1/notifications/user-1")).json()["total_count"] == 0


async def test_unsubscribe_without_session(client):
    response = await client.post("/api/v1/notifications/unsubscribe/user-1")
    assert response.status_code == 200
    assert response.json() == {"user_id": "user-1", "closed": False}


async def test_unsubscribe_closes_live_session(client, app):
    handle = app.state.session_manager.subscribe("user-1")
    response = await client.post("/api/v1/notifications/unsubscribe/user-1")
    assert response.json()["closed"] is True
    assert handle.cancelled


def test_format_sse_frame():
    view = NotificationView(id="ntf_1", subject="Hi", content="Body", read=False)
    frame = format_sse(view)
    assert frame.startswith("id: ntf_1\nevent: notification\ndata: {")
    assert frame.endswith("}\n\n")
    assert '"subject": "Hi"' in frame


# ---------------------------------------------------------------------------
# Templates
# ---------------------------------------------------------------------------

async def test_template_crud(client):
    response = await client.post("/api/v1/templates", json=TEMPLATE_BODY)
    assert response.status_code == 201
    assert response.json() == {"template_id": "welcome"}

    response = await client.get("/api/v1/templates/welcome")
    assert response.status_code == 200
    template = response.json()
    assert template["translations"]["az"]["body"] == "Xoş gəldiniz, ${name}!"
    assert template["params"][0]["required"] is True
    assert template["created_by"] == "ops"

    updated = {**TEMPLATE_BODY, "createdBy": "someone-else", "active": False}
    updated["translations"] = {"en": {"subject": "Hello", "content": "Hello, ${name}"}}
    response = await client.put("/api/v1/templates/welcome", json=updated)
    assert response.status_code == 200
    template = response.json()
    assert template["created_by"] == "ops"
    assert template["active"] is False
    assert template["translations"] == {"en": {"subject": "Hello", "body": "Hello, ${name}"}}

    listing = await client.get("/api/v1/templates", params={"active_only": "true"})
    assert listing.json() == []


async def test_create_duplicate_template_returns_409(client):
    assert (await client.post("/api/v1/templates", json=TEMPLATE_BODY)).status_code == 201
    response = await client.post("/api/v1/templates", json=TEMPLATE_BODY)
    assert response.status_code == 409


async def test_create_template_generates_id(client):
    body = {key: value for key, value in TEMPLATE_BODY.items() if key != "id"}
    response = await client.post("/api/v1/templates", json=body)
    assert response.json()["template_id"].startswith("tpl_")


async def test_unknown_template_returns_404(client):
    response = await client.get("/api/v1/templates/nope")
    assert response.status_code == 404
    assert response.json()["error"]["code"] == "TEMPLATE_NOT_FOUND"


async def test_send_then_consume_end_to_end(client, app):
    """Accepted request flows through the consumer into the notification store."""
    from notifyhub.workers.consumer import NotificationConsumer

    await client.post("/api/v1/templates", json=TEMPLATE_BODY)
    response = await client.post(
        "/api/v1/notifications/send",
        json={"templateId": "welcome", "userId": "user-9", "channel": "PUSH", "params": {"name": "Leyla"}},
        headers={"Accept-Language": "en"},
    )
    notification_id = response.json()["notification_id"]

    queue = app.state.notification_queue
    consumer = NotificationConsumer(queue, app.state.processor)
    assert await consumer.handle(await queue.receive(timeout=0.1)) == notification_id

    response = await client.get(
        f"/api/v1/notifications/notification/{notification_id}", headers={"Accept-Language": "en"}
    )
    assert response.json()["content"] == "Welcome, Leyla!"
