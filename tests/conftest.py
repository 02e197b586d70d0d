"""Shared fixtures for Email Assistant tests."""

from __future__ import annotations

import json

import httpx
import pytest

from email_assistant.bulk import (
    ActionExecutor,
    DeferredActionQueue,
    ManualScheduler,
    StateReconciler,
)
from email_assistant.client import EmailServiceClient
from email_assistant.config import Settings

GRACE_SECONDS = 120.0


class RecordingCommitter:
    """Async commit function that records calls and can be told to fail."""

    def __init__(self) -> None:
        self.calls: list[list[str]] = []
        self.error: Exception | None = None

    async def __call__(self, ids: list[str]) -> None:
        self.calls.append(list(ids))
        if self.error is not None:
            raise self.error


class FakeEmailService:
    """In-memory stand-in for the remote email service, served over httpx.MockTransport."""

    def __init__(self) -> None:
        self.emails = [
            {"id": "A", "sender": "alice@example.com", "account": "me@gmail.com",
             "subject": "Lunch?", "summary": "Alice asks about lunch.", "time": "9:00"},
            {"id": "B", "sender": "bob@example.com", "account": "me@gmail.com",
             "subject": "Invoice", "summary": "Invoice attached.", "time": "9:30",
             "webLink": "https://outlook.live.com/mail/B"},
            {"id": "C", "sender": "carol@example.com", "account": "me@gmail.com",
             "subject": "Newsletter", "summary": "Weekly digest.", "time": "10:00"},
        ]
        self.accounts = [
            {"id": "acc-1", "provider": "google", "email": "me@gmail.com"},
            {"id": "acc-2", "provider": "microsoft", "email": "me@outlook.com"},
        ]
        self.deleted: list[list[str]] = []
        self.interval: str | None = None
        self.delete_status = 200
        self.down = False
        self.requests: list[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if self.down:
            return httpx.Response(503, json={"error": "unavailable"})

        if request.method == "GET" and path == "/api/emails":
            return httpx.Response(200, json={"emails": self.emails})
        if request.method == "GET" and path == "/api/accounts":
            return httpx.Response(200, json={"accounts": self.accounts})
        if request.method == "POST" and path == "/api/emails/delete":
            if self.delete_status >= 400:
                return httpx.Response(self.delete_status, json={"error": "boom"})
            ids = json.loads(request.content)["emailIds"]
            self.deleted.append(ids)
            self.emails = [e for e in self.emails if e["id"] not in ids]
            return httpx.Response(200, json={"success": True})
        if request.method == "POST" and path == "/api/accounts/remove":
            account_id = json.loads(request.content)["accountId"]
            self.accounts = [a for a in self.accounts if a["id"] != account_id]
            return httpx.Response(200, json={"success": True})
        if request.method == "POST" and path == "/api/settings/interval":
            self.interval = json.loads(request.content)["interval"]
            return httpx.Response(200, json={"success": True})
        return httpx.Response(404, json={"error": "not found"})

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def scheduler():
    """Fake clock starting at t=0."""
    return ManualScheduler()


@pytest.fixture
def reconciler():
    return StateReconciler()


@pytest.fixture
def committer():
    return RecordingCommitter()


@pytest.fixture
def executor(committer, reconciler):
    return ActionExecutor(committer, reconciler)


@pytest.fixture
def queue(executor, reconciler, scheduler):
    return DeferredActionQueue(
        executor, reconciler, scheduler=scheduler, grace_seconds=GRACE_SECONDS
    )


@pytest.fixture
def settings():
    return Settings(
        api_url="http://email-service.test",
        api_token="test-token-123456",
        grace_period_seconds=GRACE_SECONDS,
        _env_file=None,
    )


@pytest.fixture
def service():
    return FakeEmailService()


@pytest.fixture
def client(service, settings):
    return EmailServiceClient(
        settings.api_url, token=settings.api_token, transport=service.transport
    )
