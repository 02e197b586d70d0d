"""Tests for the inbox HTTP API."""

import asyncio

import pytest
from fastapi.testclient import TestClient

from email_assistant.inbox import InboxSession
from email_assistant.main import create_app
from email_assistant.models import Email

from conftest import GRACE_SECONDS


@pytest.fixture
def inbox(client, settings, scheduler, service):
    session = InboxSession(client, settings, scheduler=scheduler)
    session.emails = [Email.model_validate(e) for e in service.emails]
    return session


@pytest.fixture
def api(inbox):
    """Test client without lifespan; the inbox is attached directly."""
    app = create_app()
    app.state.inbox = inbox
    return TestClient(app)


def _select(api, *ids):
    for email_id in ids:
        response = api.post(f"/api/inbox/selection/{email_id}/toggle")
        assert response.status_code == 200


class TestSelection:
    """Tests for selection endpoints."""

    def test_toggle_selection(self, api):
        response = api.post("/api/inbox/selection/A/toggle")
        assert response.json() == {"email_id": "A", "selected": True, "selected_ids": ["A"]}

        response = api.post("/api/inbox/selection/A/toggle")
        assert response.json()["selected"] is False

    def test_clear_selection(self, api):
        _select(api, "A", "B")
        response = api.delete("/api/inbox/selection")
        assert response.json()["selected_ids"] == []

    def test_list_emails_reports_selection(self, api):
        _select(api, "B")
        data = api.get("/api/inbox/emails").json()
        assert data["count"] == 3
        assert data["selected_count"] == 1
        selected = [e["id"] for e in data["emails"] if e["selected"]]
        assert selected == ["B"]


class TestBulkDelete:
    """Tests for the deferred bulk delete endpoints."""

    def test_bulk_delete_schedules_action(self, api):
        _select(api, "A", "B")
        response = api.post("/api/inbox/bulk-delete")

        assert response.status_code == 202
        data = response.json()
        assert data["target_ids"] == ["A", "B"]
        assert data["status"] == "scheduled"
        assert data["remaining_seconds"] == GRACE_SECONDS

        emails = api.get("/api/inbox/emails").json()["emails"]
        statuses = {e["id"]: e["status"] for e in emails}
        assert statuses == {"A": "pending_removal", "B": "pending_removal", "C": "normal"}

        pending = api.get("/api/inbox/pending").json()
        assert pending["total"] == 1
        assert pending["pending"][0]["message"] == "2 email(s) will be deleted in 2 minutes"

    def test_bulk_delete_empty_selection_conflict(self, api):
        response = api.post("/api/inbox/bulk-delete")
        assert response.status_code == 409

    def test_bulk_delete_overlap_conflict(self, api):
        _select(api, "A")
        api.post("/api/inbox/bulk-delete")
        _select(api, "A")

        response = api.post("/api/inbox/bulk-delete")

        assert response.status_code == 409
        assert response.json()["detail"]["conflicting_ids"] == ["A"]

    def test_undo(self, api):
        _select(api, "C")
        action_id = api.post("/api/inbox/bulk-delete").json()["action_id"]

        response = api.post(f"/api/inbox/actions/{action_id}/undo")
        assert response.json() == {
            "action_id": action_id,
            "outcome": "cancelled",
            "status": "cancelled",
        }

        response = api.post(f"/api/inbox/actions/{action_id}/undo")
        assert response.json()["outcome"] == "already_resolved"
        assert api.get("/api/inbox/pending").json()["total"] == 0

    def test_undo_unknown_action(self, api):
        response = api.post("/api/inbox/actions/nope/undo")
        assert response.status_code == 404

    def test_commit_removes_emails(self, api, scheduler, service):
        _select(api, "A")
        api.post("/api/inbox/bulk-delete")

        asyncio.run(scheduler.advance(GRACE_SECONDS))

        assert service.deleted == [["A"]]
        ids = [e["id"] for e in api.get("/api/inbox/emails").json()["emails"]]
        assert ids == ["B", "C"]

    def test_failed_commit_listed_and_dismissed(self, api, scheduler, service):
        service.delete_status = 500
        _select(api, "A")
        action_id = api.post("/api/inbox/bulk-delete").json()["action_id"]
        asyncio.run(scheduler.advance(GRACE_SECONDS))

        failed = api.get("/api/inbox/failed").json()
        assert failed["total"] == 1
        assert failed["failed"][0]["status"] == "failed"

        email = api.get("/api/inbox/emails").json()["emails"][0]
        assert email["failed"] is True

        response = api.post(f"/api/inbox/actions/{action_id}/dismiss")
        assert response.json()["dismissed"] is True
        assert api.get("/api/inbox/failed").json()["total"] == 0

    def test_retry_non_failed_conflict(self, api):
        _select(api, "A")
        action_id = api.post("/api/inbox/bulk-delete").json()["action_id"]
        response = api.post(f"/api/inbox/actions/{action_id}/retry")
        assert response.status_code == 409


class TestSettings:
    """Tests for summary and settings endpoints."""

    def test_update_interval(self, api, service):
        response = api.put("/api/inbox/settings/interval", json={"hours": 6})
        assert response.status_code == 200
        assert response.json()["check_interval_hours"] == 6
        assert service.interval == "6"

    def test_update_interval_invalid(self, api):
        response = api.put("/api/inbox/settings/interval", json={"hours": 7})
        assert response.status_code == 422

    def test_service_error_maps_to_bad_gateway(self, api, service):
        service.down = True
        response = api.post("/api/inbox/refresh")
        assert response.status_code == 502

    def test_malformed_record_maps_to_bad_gateway(self, api, service):
        service.emails.append({"id": 42, "subject": "broken"})
        response = api.post("/api/inbox/refresh")
        assert response.status_code == 502


class TestHealth:
    """Tests for the health endpoint."""

    def test_health_reports_queue(self, api):
        _select(api, "A")
        api.post("/api/inbox/bulk-delete")

        response = api.get("/health/")
        data = response.json()
        assert data["status"] == "healthy"
        assert data["pending_actions"] == 1
        assert "X-Request-ID" in response.headers

    def test_health_without_inbox(self):
        app = create_app()
        data = TestClient(app).get("/health/").json()
        assert data["inbox"] == "unavailable"
