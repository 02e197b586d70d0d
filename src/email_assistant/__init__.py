"""Email Assistant - inbox client with deferred, undoable bulk actions."""

__version__ = "0.1.0"
