"""Tests for the admin overview and the /api/me admin flag."""

from tests.fakes import ADMIN_EMAIL, auth


class TestAdminOverview:
    def test_admin_sees_counts(self, client):
        client.post("/api/tools/brief", json={"text": "x"}, headers=auth("alice@example.com"))
        client.post("/api/create-subscription", headers=auth("alice@example.com"))

        response = client.get("/api/admin/overview", headers=auth(ADMIN_EMAIL))

        assert response.status_code == 200
        body = response.json()
        assert body["users"] == 2
        assert body["subscriptions"] == {"active": 0, "canceled": 0, "past_due": 0, "incomplete": 1}
        assert body["toolUsage"]["brief"] == 1
        assert body["toolUsage"]["proposal"] == 0
        assert body["historyRecords"] == 1

    def test_non_admin_forbidden(self, client):
        response = client.get("/api/admin/overview", headers=auth("alice@example.com"))

        assert response.status_code == 403
        assert response.json()["detail"]["error"]["code"] == "FORBIDDEN"

    def test_me_reports_admin(self, client):
        body = client.get("/api/me", headers=auth(ADMIN_EMAIL)).json()

        assert body["isAdmin"] is True

    def test_admin_is_pro_without_trial_or_subscription(self, client):
        body = client.get("/api/subscription", headers=auth(ADMIN_EMAIL)).json()

        assert body["isPro"] is True


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"
