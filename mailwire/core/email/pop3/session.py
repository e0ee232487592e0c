"""POP3 retrieval session over an implicitly encrypted connection."""

from typing import List, Optional

from mailwire.core.email.dialect import POP3_DIALECT
from mailwire.core.email.session import BaseSession
from mailwire.core.models.session import (
    EventKind,
    MailboxSummary,
    RetrievedMessage,
    SessionState,
)
from mailwire.utils.errors import ParseError, ProtocolError

from .constants import DEFAULT_FETCH_COUNT, REDACTED_PASS

_S = SessionState


def parse_stat(status_line: str) -> MailboxSummary:
    """Parse ``+OK <count> [<octets> ...]``.

    Raises:
        ParseError: If the count token is missing or not a number
    """
    parts = status_line.split()
    details = {"response": status_line}

    if len(parts) < 2:
        raise ParseError("STAT reply carries no message count", details=details)

    count = parts[1]
    if not (count.isascii() and count.isdigit()):
        raise ParseError(f"STAT message count is not a number: {count!r}", details=details)

    size: Optional[int] = None
    if len(parts) > 2 and parts[2].isascii() and parts[2].isdigit():
        size = int(parts[2])

    return MailboxSummary(message_count=int(count), size_octets=size)


def fetch_window(message_count: int, n: int) -> range:
    """Ids of the last ``n`` of ``message_count`` messages, ascending."""
    return MailboxSummary(message_count=message_count).fetch_window(n)


class RetrievalSession(BaseSession):
    """Reads the most recent messages of a mailbox.

    The TLS handshake runs before any protocol byte is exchanged, so the
    greeting is the first thing read over the encrypted stream.
    """

    dialect = POP3_DIALECT
    TRANSITIONS = {
        _S.CONNECTED: frozenset({_S.UPGRADED}),
        _S.UPGRADED: frozenset({_S.GREETING_READ}),
        _S.GREETING_READ: frozenset({_S.AUTHENTICATED}),
        _S.AUTHENTICATED: frozenset({_S.READY}),
        _S.READY: frozenset({_S.READY}),
    }
    QUIT_STATES = frozenset({_S.GREETING_READ, _S.AUTHENTICATED, _S.READY})

    greeting: Optional[str] = None

    async def open(self) -> None:
        """Upgrade to TLS, then read and check the greeting."""
        self._require(_S.CONNECTED, operation="open the session")

        async with self._fatal():
            await self._channel.upgrade(
                verify_certificate=self.options.verify_certificate,
                timeout=self.options.handshake_timeout,
            )
            self._advance(_S.UPGRADED)

            greeting = await self._channel.read_response()
            self._check(greeting, "greeting")
            self.greeting = greeting.status_line
            self._advance(_S.GREETING_READ)

    async def authenticate(self) -> None:
        """USER / PASS login."""
        self._require(_S.GREETING_READ, operation="authenticate")

        async with self._fatal():
            await self._command(f"USER {self.config.user_email}")
            await self._command(f"PASS {self.config.user_key}", display=REDACTED_PASS)
            self._advance(_S.AUTHENTICATED)

    async def stat(self) -> MailboxSummary:
        """Query the mailbox size.

        Raises:
            ParseError: If the reply does not carry a message count
        """
        self._require(_S.AUTHENTICATED, _S.READY, operation="query the mailbox")

        async with self._fatal():
            response = await self._command("STAT")

        summary = parse_stat(response.status_line)
        self._advance(_S.READY)
        return summary

    async def retrieve(self, message_id: int) -> List[str]:
        """Fetch one message body, dot-stuffing reversed.

        A rejected RETR raises ``ProtocolError`` and leaves the session
        usable; I/O failures abort it.
        """
        self._require(_S.AUTHENTICATED, _S.READY, operation="retrieve a message")

        async with self._fatal(isolated=(ProtocolError,)):
            response = await self._command(f"RETR {message_id}", multiline=True)

        return list(response.extra_lines)

    async def fetch_last(self, n: int = DEFAULT_FETCH_COUNT) -> List[RetrievedMessage]:
        """Fetch the ``n`` most recent messages, oldest first.

        Each id is fetched independently: a rejected RETR is recorded on that
        message's result and the remaining ids are still fetched.
        """
        if n < 1:
            raise ValueError(f"Fetch count must be at least 1, got {n}")

        summary = await self.stat()
        results = []

        for message_id in summary.fetch_window(n):
            try:
                lines = await self.retrieve(message_id)

            except ProtocolError as e:
                self._emit(EventKind.ERROR, error=str(e), message_id=message_id)
                results.append(RetrievedMessage(message_id=message_id, error=e))

            else:
                results.append(RetrievedMessage(message_id=message_id, lines=lines))

        return results
