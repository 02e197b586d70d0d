"""Data returned by the remote email service."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

GMAIL_WEB_URL = "https://mail.google.com/mail/u/0/#inbox/{id}"


class Email(BaseModel):
    """An unread email with its AI summary."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str
    sender: str | None = None
    account: str | None = None
    subject: str | None = None
    summary: str | None = None
    time: str | None = None
    web_link: str | None = Field(default=None, alias="webLink")

    @property
    def web_url(self) -> str:
        """Link that opens the email in the provider's web client."""
        return self.web_link or GMAIL_WEB_URL.format(id=self.id)


class Account(BaseModel):
    """A linked mailbox."""

    model_config = ConfigDict(extra="ignore")

    id: str
    provider: str
    email: str

    @property
    def display_name(self) -> str:
        return "Gmail" if self.provider == "google" else "Outlook"
