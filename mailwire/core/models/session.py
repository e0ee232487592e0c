"""Session domain models: states, responses, events and retrieval results."""

import re
from dataclasses import asdict, dataclass, field
from email.message import EmailMessage
from email.parser import Parser
from email.policy import default as default_policy
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from mailwire.utils.errors import MailwireError

_REPLY_CODE = re.compile(r"^(\d{3})(?:[ -]|$)")


class SessionState(Enum):
    """Lifecycle states shared by submission and retrieval sessions."""

    CONNECTED = "connected"
    GREETING_READ = "greeting_read"
    UPGRADED = "upgraded"
    AUTHENTICATED = "authenticated"
    READY = "ready"
    CLOSED = "closed"


@dataclass(frozen=True)
class Response:
    """One server reply, consumed right after the command that caused it."""

    ok: bool
    status_line: str
    extra_lines: Tuple[str, ...] = ()

    @property
    def code(self) -> Optional[int]:
        """Numeric reply code for SMTP-style lines, ``None`` otherwise."""
        match = _REPLY_CODE.match(self.status_line)
        return int(match.group(1)) if match else None

    @property
    def lines(self) -> List[str]:
        return [self.status_line, *self.extra_lines]

    def __str__(self) -> str:
        return self.status_line


@dataclass(frozen=True)
class MailboxSummary:
    """Parsed STAT reply."""

    message_count: int
    size_octets: Optional[int] = None

    def fetch_window(self, n: int) -> range:
        """Ids of the last ``n`` messages, ascending."""
        if n < 1:
            raise ValueError(f"Fetch count must be at least 1, got {n}")
        start = max(1, self.message_count - n + 1)
        return range(start, self.message_count + 1)


@dataclass
class RetrievedMessage:
    """Outcome of fetching one message id."""

    message_id: int
    lines: List[str] = field(default_factory=list)
    error: Optional[MailwireError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def text(self) -> str:
        return "\n".join(self.lines)

    def as_message(self) -> EmailMessage:
        """Parse the retrieved text into a standard library message."""
        return Parser(policy=default_policy).parsestr(self.text)


class EventKind(Enum):
    """Kinds of structured events emitted while a session runs."""

    COMMAND_SENT = "command_sent"
    RESPONSE_RECEIVED = "response_received"
    STATE_CHANGED = "state_changed"
    UPGRADED = "upgraded"
    ERROR = "error"


@dataclass(frozen=True)
class SessionEvent:
    """A single observable step of a session.

    Credentials never appear here: commands carrying them are replaced by
    their redacted display form before the event is built.
    """

    kind: EventKind
    protocol: str
    command: Optional[str] = None
    response: Optional[str] = None
    state: Optional[str] = None
    error: Optional[str] = None
    message_id: Optional[int] = None

    def as_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["kind"] = self.kind.value
        return data
