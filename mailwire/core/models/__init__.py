"""Domain models shared by the protocol sessions."""

from .email import ClientConfig, Email
from .session import (
    EventKind,
    MailboxSummary,
    Response,
    RetrievedMessage,
    SessionEvent,
    SessionState,
)

__all__ = [
    "ClientConfig",
    "Email",
    "EventKind",
    "MailboxSummary",
    "Response",
    "RetrievedMessage",
    "SessionEvent",
    "SessionState",
]
