from dataclasses import replace

import pytest
from fastapi.testclient import TestClient
from twilio.request_validator import RequestValidator

from family_tasks.errors import ProviderError
from family_tasks.main import create_app

WEBHOOK = "/api/notifications/webhook"


@pytest.fixture()
def client(settings, engine, gateway):
    app = create_app(settings=settings, engine=engine, gateway=gateway)
    with TestClient(app) as test_client:
        yield test_client


def _create_user(client, **fields) -> dict:
    payload = {"name": "Dana", "phone_number": "972501234567"}
    payload.update(fields)
    response = client.post("/api/users", json=payload)
    assert response.status_code == 201
    return response.json()


def test_health(client) -> None:
    body = client.get("/health").json()
    assert body["status"] == "healthy"
    assert body["gateway"] is True
    assert body["scheduler"] is False


def test_create_user_normalizes_phone(client) -> None:
    user = _create_user(client)
    assert user["phone_number"] == "+972501234567"
    assert user["notification_preference"] == "sms"
    assert client.get(f"/api/users/{user['id']}").json()["name"] == "Dana"
    assert client.get("/api/users/999").status_code == 404


def test_create_recurring_task_expands_series(client) -> None:
    user = _create_user(client)
    response = client.post("/api/tasks", json={
        "title": "Water the garden",
        "assigned_to": user["id"],
        "due_date": "2024-01-01T18:00:00Z",
        "reminder_time": "2024-01-01T17:00:00Z",
        "is_recurring": True,
        "recurrence_pattern": "weekly",
        "recurrence_end_date": "2024-01-22T18:00:00Z",
    })

    assert response.status_code == 201
    body = response.json()
    assert body["occurrences_created"] == 3
    assert body["task"]["is_recurring"] is True
    assert client.get("/api/tasks").json()["count"] == 4


def test_create_task_rejects_bad_input(client) -> None:
    user = _create_user(client)

    bad_date = client.post("/api/tasks", json={"title": "x", "assigned_to": user["id"], "due_date": "next tuesday"})
    assert bad_date.status_code == 400
    assert bad_date.json()["code"] == "VALIDATION_ERROR"

    no_pattern = client.post("/api/tasks", json={"title": "x", "is_recurring": True, "due_date": "2024-01-01T08:00:00"})
    assert no_pattern.status_code == 400

    unknown_user = client.post("/api/tasks", json={"title": "x", "assigned_to": 999})
    assert unknown_user.status_code == 404


def test_complete_and_delete_task(client) -> None:
    task = client.post("/api/tasks", json={"title": "Dishes"}).json()["task"]

    completed = client.patch(f"/api/tasks/{task['id']}/complete")
    assert completed.status_code == 200
    assert completed.json()["completed"] is True
    assert client.get("/api/tasks", params={"include_completed": False}).json()["count"] == 0

    assert client.delete(f"/api/tasks/{task['id']}").status_code == 204
    assert client.delete(f"/api/tasks/{task['id']}").status_code == 404
    assert client.patch(f"/api/tasks/{task['id']}/complete").status_code == 404


def test_deleting_parent_leaves_occurrences_standalone(client) -> None:
    parent = client.post("/api/tasks", json={
        "title": "Vacuum",
        "due_date": "2024-01-01T10:00:00Z",
        "is_recurring": True,
        "recurrence_pattern": "daily",
        "recurrence_end_date": "2024-01-03T10:00:00Z",
    }).json()["task"]

    assert client.delete(f"/api/tasks/{parent['id']}").status_code == 204

    remaining = client.get("/api/tasks").json()["tasks"]
    assert len(remaining) == 2
    assert all(task["parent_task_id"] is None for task in remaining)


def test_test_notification_success(client, gateway) -> None:
    user = _create_user(client)

    response = client.post(f"/api/users/{user['id']}/test-notification")

    assert response.status_code == 200
    assert response.json() == {
        "success": True,
        "message": "Test notification sent successfully via sms",
        "status": "sent",
        "channel": "sms",
        "fallback": False,
    }
    assert gateway.last.to == "+972501234567"
    [logged] = client.get(f"/api/users/{user['id']}/notifications").json()
    assert logged["delivery_status"] == "sent"
    assert logged["message_sid"] == "SM1"


def test_test_notification_reports_fallback(client, gateway) -> None:
    user = _create_user(client, notification_preference="whatsapp")
    gateway.queue(ProviderError("Recipient not on WhatsApp", code="63007"))

    body = client.post(f"/api/users/{user['id']}/test-notification").json()

    assert body["fallback"] is True
    assert body["channel"] == "sms"
    assert "WhatsApp unavailable" in body["message"]
    assert client.get(f"/api/users/{user['id']}").json()["notification_preference"] == "sms"


def test_test_notification_error_statuses(client, gateway) -> None:
    assert client.post("/api/users/999/test-notification").status_code == 404

    no_phone = _create_user(client, phone_number=None)
    missing = client.post(f"/api/users/{no_phone['id']}/test-notification")
    assert missing.status_code == 400
    assert missing.json()["success"] is False

    user = _create_user(client)
    gateway.queue(ProviderError("Invalid 'To' Phone Number", code="21211", status=400))
    rejected = client.post(f"/api/users/{user['id']}/test-notification")
    assert rejected.status_code == 400
    assert rejected.json()["message"] == "Invalid 'To' Phone Number"


def test_webhook_reconciles_known_message(client) -> None:
    user = _create_user(client)
    client.post(f"/api/users/{user['id']}/test-notification")

    response = client.post(WEBHOOK, data={"MessageSid": "SM1", "MessageStatus": "delivered"})

    assert response.status_code == 200
    assert response.json() == {"received": True, "matched": True}
    [logged] = client.get("/api/notifications/logs", params={"status": "delivered"}).json()
    assert logged["delivery_attempts"] == 2


def test_webhook_ignores_unknown_message(client) -> None:
    response = client.post(WEBHOOK, data={
        "MessageSid": "SM-unknown",
        "MessageStatus": "failed",
        "ErrorCode": "30008",
        "ErrorMessage": "Unknown error",
    })
    assert response.status_code == 200
    assert response.json()["matched"] is False
    assert client.get("/api/notifications/logs").json() == []


def test_webhook_requires_sid_and_status(client) -> None:
    assert client.post(WEBHOOK, data={"MessageSid": "SM1"}).status_code == 400


def test_webhook_signature_enforcement(settings, engine, gateway) -> None:
    enforced = replace(settings, webhook_signature_mode="enforce")
    params = {"MessageSid": "SM-unknown", "MessageStatus": "delivered"}
    signature = RequestValidator(enforced.twilio_auth_token).compute_signature(enforced.status_callback_url, params)

    with TestClient(create_app(settings=enforced, engine=engine, gateway=gateway)) as client:
        assert client.post(WEBHOOK, data=params).status_code == 403
        assert client.post(WEBHOOK, data=params, headers={"X-Twilio-Signature": "bogus"}).status_code == 403
        signed = client.post(WEBHOOK, data=params, headers={"X-Twilio-Signature": signature})
        assert signed.status_code == 200


def test_mark_notification_read(client) -> None:
    user = _create_user(client)
    client.post(f"/api/users/{user['id']}/test-notification")
    [logged] = client.get("/api/notifications/logs").json()

    assert client.post(f"/api/notifications/{logged['id']}/read").json()["read"] is True
    assert client.post("/api/notifications/999/read").status_code == 404


def test_logs_reject_unknown_status_filter(client) -> None:
    assert client.get("/api/notifications/logs", params={"status": "bounced"}).status_code == 400


def test_metrics_endpoint(client) -> None:
    body = client.get("/metrics").json()
    assert "reminders_dispatched_total" in body["counters"]


def test_update_user_restores_whatsapp_after_downgrade(client, gateway) -> None:
    user = _create_user(client, notification_preference="whatsapp")
    gateway.queue(ProviderError("Recipient not on WhatsApp", code="63007"))
    client.post(f"/api/users/{user['id']}/test-notification")
    assert client.get(f"/api/users/{user['id']}").json()["notification_preference"] == "sms"

    response = client.patch(f"/api/users/{user['id']}", json={
        "notification_preference": "whatsapp",
        "phone_number": "972521112222",
    })

    assert response.status_code == 200
    body = response.json()
    assert body["notification_preference"] == "whatsapp"
    assert body["phone_number"] == "+972521112222"
    assert body["name"] == "Dana"


def test_update_user_errors(client) -> None:
    user = _create_user(client)
    assert client.patch("/api/users/999", json={"name": "Avi"}).status_code == 404
    assert client.patch(f"/api/users/{user['id']}", json={"notification_preference": "email"}).status_code == 422
    assert client.patch(f"/api/users/{user['id']}", json={"color": None}).status_code == 400
