"""Tests for the notification service API."""

import pytest


def _notify(client, user_id="user-1", message="Your order #abc123 is now ready", **extra):
    response = client.post(
        "/notifications",
        json={"user_id": user_id, "message": message, "category": "order_update", **extra},
    )
    assert response.status_code == 201, response.text
    return response.json()


class TestCreateNotification:
    def test_create(self, notification_client):
        data = _notify(notification_client, order_id="order-1")
        assert data["user_id"] == "user-1"
        assert data["category"] == "order_update"
        assert data["order_id"] == "order-1"
        assert data["read"] is False
        assert "id" in data

    def test_order_id_optional(self, notification_client):
        assert _notify(notification_client)["order_id"] is None

    @pytest.mark.parametrize(
        "payload",
        [
            {"user_id": "user-1", "message": "hi", "category": "spam"},
            {"user_id": "user-1", "category": "system"},
        ],
    )
    def test_invalid(self, notification_client, payload):
        assert notification_client.post("/notifications", json=payload).status_code == 400


class TestListNotifications:
    def test_newest_first_per_user(self, notification_client):
        first = _notify(notification_client, message="first")
        _notify(notification_client, user_id="user-2", message="other")
        second = _notify(notification_client, message="second")

        response = notification_client.get("/notifications", params={"user": "user-1"})
        assert [n["id"] for n in response.json()] == [second["id"], first["id"]]

    def test_unread_only(self, notification_client):
        read = _notify(notification_client, message="old")
        unread = _notify(notification_client, message="new")
        notification_client.patch(f"/notifications/{read['id']}/read")

        response = notification_client.get(
            "/notifications", params={"user": "user-1", "unread_only": "true"}
        )
        assert [n["id"] for n in response.json()] == [unread["id"]]

    def test_user_required(self, notification_client):
        assert notification_client.get("/notifications").status_code == 400


class TestReadState:
    def test_mark_read(self, notification_client):
        n = _notify(notification_client)
        response = notification_client.patch(f"/notifications/{n['id']}/read")
        assert response.status_code == 200
        assert response.json()["read"] is True

    def test_mark_read_missing(self, notification_client):
        assert notification_client.patch("/notifications/nope/read").status_code == 404

    def test_mark_all_read(self, notification_client):
        _notify(notification_client)
        _notify(notification_client)
        other = _notify(notification_client, user_id="user-2")

        response = notification_client.post("/notifications/read-all", params={"user": "user-1"})
        assert response.status_code == 200
        assert response.json()["updated"] == 2

        remaining = notification_client.get(
            "/notifications", params={"user": "user-1", "unread_only": "true"}
        ).json()
        assert remaining == []
        assert notification_client.get(f"/notifications/{other['id']}").json()["read"] is False


class TestDeleteNotification:
    def test_delete(self, notification_client):
        n = _notify(notification_client)
        assert notification_client.delete(f"/notifications/{n['id']}").status_code == 200
        assert notification_client.get(f"/notifications/{n['id']}").status_code == 404

    def test_delete_missing(self, notification_client):
        assert notification_client.delete("/notifications/nope").status_code == 404


def test_health(notification_client):
    assert notification_client.get("/health").json()["service"] == "notification-service"
