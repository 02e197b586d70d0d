"""Async HTTP client for the remote email service."""

from __future__ import annotations

from typing import Any

import httpx
import structlog
from pydantic import ValidationError

from email_assistant import __version__
from email_assistant.models import Account, Email

logger = structlog.get_logger(__name__)

TIMEOUT_SECONDS = 25.0


class EmailServiceError(Exception):
    """Raised when the email service rejects or fails a request."""

    def __init__(self, reason: str, status_code: int | None = None):
        super().__init__(reason)
        self.reason = reason
        self.status_code = status_code


class EmailServiceClient:
    """Bearer-token client for the email service API.

    Uses a single httpx.AsyncClient for connection pooling. Requests are
    not retried: callers decide whether a failure is worth repeating.
    """

    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        timeout: float = TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            base_url: Base URL of the service (e.g., http://localhost:3001)
            token: Session bearer token obtained by the login flow
            timeout: Request timeout in seconds
            transport: Optional transport override (used by tests)
        """
        headers = {
            "Content-Type": "application/json",
            "User-Agent": f"email-assistant/{__version__}",
        }
        if token:
            headers["Authorization"] = f"Bearer {token}"

        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=httpx.Timeout(timeout),
            headers=headers,
            transport=transport,
        )

    async def list_emails(self) -> list[Email]:
        path = "/api/emails"
        data = await self._request("GET", path)
        try:
            return [Email.model_validate(e) for e in data.get("emails") or []]
        except ValidationError as e:
            raise EmailServiceError(f"Invalid payload from {path}") from e

    async def list_accounts(self) -> list[Account]:
        path = "/api/accounts"
        data = await self._request("GET", path)
        try:
            return [Account.model_validate(a) for a in data.get("accounts") or []]
        except ValidationError as e:
            raise EmailServiceError(f"Invalid payload from {path}") from e

    async def delete_emails(self, email_ids: list[str]) -> None:
        """Permanently remove emails. This is the bulk action commit."""
        await self._request("POST", "/api/emails/delete", json={"emailIds": email_ids})
        logger.info("emails_deleted", count=len(email_ids))

    async def remove_account(self, account_id: str) -> None:
        await self._request("POST", "/api/accounts/remove", json={"accountId": account_id})

    async def update_check_interval(self, hours: int) -> None:
        await self._request("POST", "/api/settings/interval", json={"interval": str(hours)})

    async def aclose(self) -> None:
        """Close the HTTP client and release resources."""
        await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs: Any) -> dict:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            raise EmailServiceError(f"Request to {path} timed out") from e
        except httpx.HTTPError as e:
            raise EmailServiceError(f"Cannot reach email service: {e}") from e

        if response.status_code >= 400:
            logger.warning(
                "email_service_error",
                method=method,
                path=path,
                status_code=response.status_code,
            )
            raise EmailServiceError(
                f"{method} {path} failed with HTTP {response.status_code}",
                status_code=response.status_code,
            )

        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as e:
            raise EmailServiceError(f"Invalid JSON from {path}") from e
