"""Inbox session state for the Email Assistant UI."""

from email_assistant.inbox.session import EmailView, InboxSession, UndoNotification

__all__ = ["EmailView", "InboxSession", "UndoNotification"]
