"""
Test helper utilities: a scripted in-memory mail server and session builders
"""
import asyncio
from collections import deque
from typing import List, Optional

from mailwire.core.email.channel import LineChannel
from mailwire.core.email.dialect import POP3_DIALECT, SMTP_DIALECT
from mailwire.core.email.events import EventBus
from mailwire.core.email.pop3 import RetrievalSession
from mailwire.core.email.session import SessionOptions
from mailwire.core.email.smtp import SubmissionSession
from mailwire.core.email.transport import Stream

SILENT = None  # Scripted reply that never arrives


class FakeWriter:
    """Stands in for asyncio.StreamWriter and forwards bytes to the server"""

    def __init__(self, server):
        self.server = server
        self.closed = False
        self.tls_calls = []

    def write(self, data: bytes) -> None:
        self.server.receive(data)

    async def drain(self) -> None:
        if self.server.write_error is not None:
            raise self.server.write_error

    def close(self) -> None:
        self.closed = True

    async def wait_closed(self) -> None:
        return None

    async def start_tls(self, context, *, server_hostname=None, ssl_handshake_timeout=None):
        self.tls_calls.append(server_hostname)
        if self.server.tls_error is not None:
            raise self.server.tls_error


class ScriptedServer:
    """Answers each complete command line with the next scripted reply.

    A reply may hold several CRLF-separated lines. After ``DATA`` is answered
    with a 354 reply, lines are collected until the lone dot and only then is
    the next reply sent. When the script runs out the server closes the
    connection; a ``SILENT`` entry is consumed without answering.
    """

    def __init__(self, greeting: Optional[str] = None, replies: Optional[List] = None,
                 tls_error: Optional[BaseException] = None):
        self.reader = asyncio.StreamReader()
        self.writer = FakeWriter(self)
        self.replies = deque(replies or [])
        self.tls_error = tls_error
        self.write_error: Optional[BaseException] = None
        self.commands: List[str] = []
        self.data_lines: List[bytes] = []
        self.raw = b""
        self._buffer = b""
        self._in_data = False

        if greeting is not None:
            self._feed(greeting)

    @property
    def tls_started(self) -> bool:
        return bool(self.writer.tls_calls)

    def _feed(self, reply: str) -> None:
        self.reader.feed_data(reply.encode("utf-8") + b"\r\n")

    def _reply(self) -> Optional[str]:
        if not self.replies:
            self.reader.feed_eof()
            return None

        reply = self.replies.popleft()
        if reply is not SILENT:
            self._feed(reply)
        return reply

    def _handle_line(self, line: bytes) -> None:
        if self._in_data:
            if line == b".":
                self._in_data = False
                self._reply()
            else:
                self.data_lines.append(line)
            return

        command = line.decode("utf-8")
        self.commands.append(command)
        reply = self._reply()
        if command.upper() == "DATA" and reply and reply.startswith("354"):
            self._in_data = True

    def receive(self, data: bytes) -> None:
        self.raw += data
        self._buffer += data
        while b"\r\n" in self._buffer:
            line, self._buffer = self._buffer.split(b"\r\n", 1)
            self._handle_line(line)

    def stream(self, host: str = "mail.test", port: int = 587) -> Stream:
        return Stream(self.reader, self.writer, host=host, port=port)


def pop3_body(status: str, lines: List[str]) -> str:
    """Build a multi-line POP3 reply with dot-stuffing applied"""
    stuffed = ["." + line if line.startswith(".") else line for line in lines]
    return "\r\n".join([status, *stuffed, "."])


def build_session(session_cls, server: ScriptedServer, config, events: Optional[list] = None,
                  timeout: float = 1.0, **kwargs):
    """Wire a session to a scripted server, recording events into ``events``"""
    bus = EventBus()
    if events is not None:
        bus.subscribe(events.append)

    dialect = SMTP_DIALECT if session_cls is SubmissionSession else POP3_DIALECT
    channel = LineChannel(server.stream(), dialect, timeout=timeout, events=bus)
    options = kwargs.pop("options", SessionOptions(command_timeout=timeout))
    return session_cls(channel, config, options=options, **kwargs)


SMTP_GREETING = "220 smtp.test ESMTP ready"


def smtp_login_script() -> List[str]:
    """Replies for EHLO, STARTTLS, EHLO and the three AUTH LOGIN steps"""
    return [
        "250-smtp.test greets you\r\n250-STARTTLS\r\n250 AUTH LOGIN",
        "220 2.0.0 Ready to start TLS",
        "250-smtp.test greets you\r\n250-SIZE 35882577\r\n250 AUTH LOGIN PLAIN",
        "334 VXNlcm5hbWU6",
        "334 UGFzc3dvcmQ6",
        "235 2.7.0 Accepted",
    ]


def smtp_send_script(final: str = "250 2.0.0 OK queued") -> List[str]:
    """Replies for MAIL FROM, RCPT TO, DATA and the end of data"""
    return ["250 2.1.0 OK", "250 2.1.5 OK", "354 Go ahead", final]


POP3_GREETING = "+OK POP3 server ready"


def pop3_login_script() -> List[str]:
    """Replies for USER and PASS"""
    return ["+OK send PASS", "+OK Logged in"]
