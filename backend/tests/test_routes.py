import pytest
from fastapi.testclient import TestClient

from app.core.config import settings
from app.core.dependencies import get_container
from app.models import CreatePromocodeRequest
from app.services.payments import generate_token
from main import app


@pytest.fixture
def client(container):
    app.dependency_overrides[get_container] = lambda: container
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def user(client):
    response = client.post("/users/register", json={"external_id": "whatsapp:+15550001111", "first_name": "Ann"})
    return response.json()["user"]


def test_health(client):
    body = client.get("/health").json()
    assert body["status"] == "ok"
    assert set(body["integrations"]) == {"storage", "whatsapp", "payments"}


# ============================================================================
# USERS & HABITS
# ============================================================================

def test_register_is_idempotent(client, user):
    again = client.post("/users/register", json={"external_id": "whatsapp:+15550001111"}).json()
    assert again["is_new"] is False
    assert again["user"]["id"] == user["id"]


def test_profile(client, user):
    profile = client.get(f"/users/{user['id']}/profile").json()
    assert profile["is_premium"] is False
    assert profile["habit_limit"] == 3
    assert client.get("/users/999/profile").status_code == 404


def test_habit_lifecycle(client, user):
    created = client.post("/habits", json={"user_id": user["id"], "name": "Read"})
    assert created.status_code == 201
    habit_id = created.json()["id"]

    completed = client.post(f"/habits/{habit_id}/complete", json={"user_id": user["id"]})
    assert completed.status_code == 200
    assert completed.json()["log"]["completed"] is True
    assert completed.json()["events"] == []

    listing = client.get(f"/habits/user/{user['id']}").json()
    assert listing[0]["completed_today"] is True

    stats = client.get(f"/habits/user/{user['id']}/stats").json()
    assert stats["overall_streak"] == 1
    assert stats["habits"][0]["current_streak"] == 1

    assert client.post(f"/habits/{habit_id}/uncomplete", json={"user_id": user["id"]}).status_code == 200
    assert client.delete(f"/habits/{habit_id}", params={"user_id": user["id"]}).json()["status"] == "success"
    assert client.post(f"/habits/{habit_id}/complete", json={"user_id": user["id"]}).status_code == 404


def test_habit_errors(client, user):
    other = client.post("/users/register", json={"external_id": "whatsapp:+15550002222"}).json()["user"]
    habit_id = client.post("/habits", json={"user_id": user["id"], "name": "Read"}).json()["id"]

    assert client.post(f"/habits/{habit_id}/complete", json={"user_id": other["id"]}).status_code == 403
    assert client.post("/habits", json={"user_id": user["id"], "name": "x", "reminder_time": "7am"}).status_code == 422
    assert client.put(f"/habits/{habit_id}/reminder", json={"user_id": user["id"], "reminder_time": "07:30"}).json()["reminder_time"] == "07:30"

    for name in ("B", "C"):
        client.post("/habits", json={"user_id": user["id"], "name": name})
    assert client.post("/habits", json={"user_id": user["id"], "name": "D"}).status_code == 409


def test_referrals_and_achievements(client, user):
    referrals = client.get(f"/referrals/{user['id']}").json()
    assert referrals["stats"]["can_invite"] is False
    assert referrals["referred_by"] is None

    achievements = client.get(f"/achievements/{user['id']}").json()
    assert achievements["unlocked"] == []
    assert achievements["next"]["tier"]["type"] == "streak_7"


# ============================================================================
# PAYMENTS
# ============================================================================

def test_payment_notification_flow(client, http, user, sent):
    http.post.return_value.json.return_value = {
        "Success": True, "PaymentId": 42, "Status": "NEW", "PaymentURL": "https://pay.example/42"
    }
    order_id = client.post("/payments", json={"user_id": user["id"]}).json()["order_id"]

    payload = {"TerminalKey": "TestTerminal", "OrderId": order_id, "Success": True,
               "Status": "CONFIRMED", "PaymentId": 42, "Amount": 19900}
    payload["Token"] = generate_token(payload, "test-password")

    response = client.post("/payments/notification", json=payload)
    assert response.status_code == 200
    assert response.text == "OK"
    assert "Payment received" in sent[-1][1]

    assert client.post("/payments/notification", json=payload).text == "OK"
    assert len(sent) == 1

    forged = {**payload, "Token": "bad"}
    assert client.post("/payments/notification", json=forged).status_code == 403


def test_payment_gateway_failure(client, http, user):
    http.post.return_value.json.return_value = {"Success": False, "ErrorCode": "7"}
    assert client.post("/payments", json={"user_id": user["id"]}).status_code == 502


# ============================================================================
# WHATSAPP
# ============================================================================

def test_whatsapp_webhook_replies(client, sent):
    response = client.post("/whatsapp", data={"From": "whatsapp:+15550003333", "Body": "help", "ProfileName": "Cy"})
    assert response.status_code == 200
    assert response.json() == {"status": "success", "message_sid": "SM1"}
    assert sent[0][0] == "whatsapp:+15550003333"
    assert sent[0][1].startswith("Here's what I understand")


def test_whatsapp_webhook_requires_sender(client):
    assert client.post("/whatsapp", data={"Body": "help"}).status_code == 400


# ============================================================================
# ADMIN
# ============================================================================

def test_admin_requires_token(client, monkeypatch):
    monkeypatch.setattr(settings, "ADMIN_TOKEN", "secret")
    assert client.get("/admin/broadcasts").status_code == 403
    assert client.get("/admin/broadcasts", headers={"X-Admin-Token": "wrong"}).status_code == 403


def test_admin_broadcast_flow(client, monkeypatch, user):
    monkeypatch.setattr(settings, "ADMIN_TOKEN", "secret")
    headers = {"X-Admin-Token": "secret"}

    created = client.post("/admin/broadcasts", json={"name": "n", "text": "hello"}, headers=headers)
    assert created.status_code == 201
    broadcast_id = created.json()["id"]

    started = client.post(f"/admin/broadcasts/{broadcast_id}/start", headers=headers).json()
    assert started["status"] == "running"
    assert started["total_users"] == 1

    other = client.post("/admin/broadcasts", json={"name": "m", "text": "hi"}, headers=headers).json()
    assert client.post(f"/admin/broadcasts/{other['id']}/start", headers=headers).status_code == 409
    assert client.post(f"/admin/broadcasts/{broadcast_id}/pause", headers=headers).json()["status"] == "paused"
    assert client.post("/admin/broadcasts/999/start", headers=headers).status_code == 404


def test_admin_ads(client, monkeypatch):
    monkeypatch.setattr(settings, "ADMIN_TOKEN", "secret")
    headers = {"X-Admin-Token": "secret"}

    assert client.post("/admin/ads", json={"name": "promo", "text": "Try it"}, headers=headers).status_code == 201
    assert [ad["name"] for ad in client.get("/admin/ads", headers=headers).json()] == ["promo"]


def test_admin_promocodes(client, monkeypatch):
    monkeypatch.setattr(settings, "ADMIN_TOKEN", "secret")
    headers = {"X-Admin-Token": "secret"}

    created = client.post("/admin/promocodes", json={"code": "earlybird", "discount_percent": 40, "max_uses": 20},
                          headers=headers)
    assert created.status_code == 201
    assert created.json()["code"] == "EARLYBIRD"
    assert client.post("/admin/promocodes", json={"code": "EARLYBIRD", "discount_percent": 10},
                       headers=headers).status_code == 409
    assert client.post("/admin/promocodes", json={"code": "NOPE", "discount_percent": 100},
                       headers=headers).status_code == 422

    toggled = client.patch("/admin/promocodes/earlybird", json={"is_active": False}, headers=headers)
    assert toggled.json()["is_active"] is False
    assert [p["code"] for p in client.get("/admin/promocodes", headers=headers).json()] == ["EARLYBIRD"]

    assert client.delete("/admin/promocodes/EARLYBIRD", headers=headers).status_code == 204
    assert client.delete("/admin/promocodes/EARLYBIRD", headers=headers).status_code == 404
    assert client.patch("/admin/promocodes/EARLYBIRD", json={"is_active": True}, headers=headers).status_code == 404


def test_apply_promocode(client, container, user):
    container.promocodes.create_promocode(CreatePromocodeRequest(code="SPRING", discount_percent=30))

    applied = client.post(f"/users/{user['id']}/promocode", json={"code": "spring"})
    assert applied.status_code == 200
    assert applied.json()["discount_percent"] == 30
    assert client.post(f"/users/{user['id']}/promocode", json={"code": "WINTER"}).status_code == 422
    assert client.post("/users/999/promocode", json={"code": "SPRING"}).status_code == 404
