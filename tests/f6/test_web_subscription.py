"""Tests for GET /api/subscription."""

from datetime import datetime, timedelta, timezone

from skoo.db import repository
from skoo.web.deps import get_stripe_status_checker


class TestSubscription:
    def test_no_access(self, client, auth):
        response = client.get("/api/subscription", headers=auth)

        assert response.status_code == 200
        data = response.json()
        assert data["is_subscribed"] is False
        assert data["source"] == "none"
        assert data["trial"]["is_trialing"] is False

    def test_trialing(self, client, temp_db):
        started = (datetime.now(timezone.utc) - timedelta(days=2)).isoformat()
        repository.create_profile(
            first_name="Nina", api_token="token-nina", selected_tier="major", trial_started_at=started
        )

        response = client.get("/api/subscription", headers={"Authorization": "Bearer token-nina"})

        data = response.json()
        assert data["is_subscribed"] is True
        assert data["tier"] == "major"
        assert data["source"] == "trial"
        assert data["trial"]["days_remaining"] == 5

    def test_school_member(self, client, auth, user):
        repository.add_school_member(user["id"], "school-1")

        data = client.get("/api/subscription", headers=auth).json()

        assert (data["tier"], data["source"]) == ("major", "school")

    def test_stripe_subscriber(self, app, client, auth):
        app.dependency_overrides[get_stripe_status_checker] = lambda: (
            lambda user_id: {"subscribed": True, "product_id": "prod_major"}
        )

        data = client.get("/api/subscription", headers=auth).json()

        assert (data["is_subscribed"], data["tier"], data["source"]) == (True, "major", "stripe")

    def test_requires_auth(self, client):
        assert client.get("/api/subscription").status_code == 401
