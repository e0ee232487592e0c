"""Line-oriented command channel over a ``Stream``.

Every command written is followed by exactly one reply read before the next
command may be sent. Replies are either a single status line (possibly with
SMTP continuation lines) or a status line followed by a dot-terminated body.
"""

import asyncio
from typing import Iterable, List, Optional, Tuple

from mailwire.core.models.session import EventKind, Response, SessionEvent
from mailwire.utils.errors import (
    MailwireError,
    ProtocolError,
    ReadError,
    TransportError,
    WriteError,
)

from . import transport
from .constants import LINE_TERMINATOR, SENTINEL, WIRE_ENCODING, Timeouts
from .dialect import ProtocolDialect
from .events import EventBus
from .transport import Stream

DATA_TERMINATOR = SENTINEL.encode("ascii") + LINE_TERMINATOR


def dot_stuff(chunk: bytes, at_line_start: bool = True) -> Tuple[bytes, bool]:
    """Double every leading dot in ``chunk``.

    Returns the stuffed bytes and whether the next chunk starts a new line.
    """
    stuffed = chunk.replace(b"\n.", b"\n..")
    if at_line_start and stuffed.startswith(b"."):
        stuffed = b"." + stuffed
    return stuffed, chunk.endswith(b"\n")


def dot_unstuff(line: str) -> str:
    """Reverse dot-stuffing on one body line."""
    if line.startswith(".."):
        return line[1:]
    return line


class LineChannel:
    """Strict request/response framing with per-operation deadlines."""

    def __init__(
        self,
        stream: Stream,
        dialect: ProtocolDialect,
        *,
        timeout: float = Timeouts.COMMAND,
        events: Optional[EventBus] = None,
    ):
        self._stream = stream
        self.dialect = dialect
        self.timeout = timeout
        self.events = events if events is not None else EventBus()
        self._pending = False
        self._broken = False

    @property
    def stream(self) -> Stream:
        return self._stream

    @property
    def pending(self) -> bool:
        """True while a sent command's reply has not been fully read."""
        return self._pending

    @property
    def closed(self) -> bool:
        return self._stream.closed

    def _emit(self, kind: EventKind, **fields) -> None:
        if len(self.events):
            self.events.emit(
                SessionEvent(kind=kind, protocol=self.dialect.name, **fields)
            )

    def _check_usable(self) -> None:
        if self._broken:
            raise TransportError(
                "Channel is unusable after an earlier I/O failure",
                details={"peer": self._stream.peer},
            )

    ## Raw I/O

    async def _write(self, data: bytes) -> None:
        self._check_usable()
        details = {"peer": self._stream.peer}

        try:
            self._stream.write(data)
            await asyncio.wait_for(self._stream.drain(), timeout=self.timeout)

        except asyncio.TimeoutError as e:
            self._broken = True
            raise WriteError(
                f"Write not completed within {self.timeout}s", details=details
            ) from e

        except TransportError as e:
            raise WriteError(e.message, details=details) from e

        except OSError as e:
            self._broken = True
            raise WriteError(f"Write failed: {e}", details=details) from e

    async def _read_raw_line(self) -> str:
        self._check_usable()
        details = {"peer": self._stream.peer}

        try:
            raw = await asyncio.wait_for(self._stream.readline(), timeout=self.timeout)

        except asyncio.TimeoutError as e:
            self._broken = True
            raise ReadError(
                f"No response within {self.timeout}s", details=details
            ) from e

        except asyncio.IncompleteReadError as e:
            self._broken = True
            raise ReadError("Connection closed by server", details=details) from e

        except asyncio.LimitOverrunError as e:
            self._broken = True
            raise ReadError("Response line too long", details=details) from e

        except TransportError as e:
            raise ReadError(e.message, details=details) from e

        except OSError as e:
            self._broken = True
            raise ReadError(f"Read failed: {e}", details=details) from e

        # Only the terminator goes; a CR inside the line is content.
        if raw.endswith(LINE_TERMINATOR):
            raw = raw[: -len(LINE_TERMINATOR)]
        else:
            raw = raw[:-1]
        return raw.decode(WIRE_ENCODING, errors="replace")

    async def _read_body(self) -> List[str]:
        lines = []
        while True:
            line = await self._read_raw_line()
            if line == SENTINEL:
                return lines
            lines.append(dot_unstuff(line))

    async def _read_reply(self) -> Response:
        status_line = await self._read_raw_line()
        line = status_line
        extra = []
        while self.dialect.is_continuation(line):
            line = await self._read_raw_line()
            extra.append(line)

        return Response(
            ok=self.dialect.is_positive(status_line),
            status_line=status_line,
            extra_lines=tuple(extra),
        )

    ## Public operations

    async def send(self, line: str, *, display: Optional[str] = None) -> None:
        """Write one command line followed by CRLF.

        Args:
            line: Command text without terminator
            display: Replacement shown in events (for credentials)

        Raises:
            ProtocolError: If the line embeds CR/LF or a reply is still pending
            WriteError: If the write fails or exceeds the deadline
        """
        shown = line if display is None else display

        if "\r" in line or "\n" in line:
            raise ProtocolError(
                "Command line must not contain CR or LF", details={"command": shown}
            )
        if self._pending:
            raise ProtocolError(
                "Cannot send a command before the previous reply was read",
                details={"command": shown},
            )

        await self._write(line.encode(WIRE_ENCODING) + LINE_TERMINATOR)
        self._pending = True
        self._emit(EventKind.COMMAND_SENT, command=shown)

    async def read_line(self) -> str:
        """Read a single line with its terminator stripped."""
        line = await self._read_raw_line()
        self._pending = False
        self._emit(EventKind.RESPONSE_RECEIVED, response=line)
        return line

    async def read_multiline(self) -> List[str]:
        """Read lines up to the lone-dot sentinel, unstuffing each one."""
        lines = await self._read_body()
        self._pending = False
        return lines

    async def read_response(self) -> Response:
        """Read one complete reply (greeting, post-DATA acknowledgement)."""
        response = await self._read_reply()
        self._pending = False
        self._emit(EventKind.RESPONSE_RECEIVED, response=response.status_line)
        return response

    async def send_and_read(
        self, line: str, *, multiline: bool = False, display: Optional[str] = None
    ) -> Response:
        """Send a command and read its reply.

        With ``multiline=True`` a positive status is followed by a
        dot-terminated body, which is returned in ``extra_lines``.
        """
        await self.send(line, display=display)
        response = await self._read_reply()

        if multiline and response.ok:
            body = await self._read_body()
            response = Response(
                ok=response.ok,
                status_line=response.status_line,
                extra_lines=response.extra_lines + tuple(body),
            )

        self._pending = False
        self._emit(EventKind.RESPONSE_RECEIVED, response=response.status_line)
        return response

    async def send_data(self, chunks: Iterable[bytes]) -> None:
        """Transmit a message body followed by the sentinel line.

        ``chunks`` is dot-stuffed on the fly; the body counts as one command
        whose reply must be read next.
        """
        if self._pending:
            raise ProtocolError(
                "Cannot send message data before the previous reply was read"
            )

        at_line_start = True
        try:
            for chunk in chunks:
                if not chunk:
                    continue
                stuffed, at_line_start = dot_stuff(chunk, at_line_start)
                await self._write(stuffed)

            if not at_line_start:
                await self._write(LINE_TERMINATOR)
            await self._write(DATA_TERMINATOR)

        except MailwireError:
            # A partial body is on the wire; the exchange cannot be resumed.
            self._broken = True
            raise

        self._pending = True
        self._emit(EventKind.COMMAND_SENT, command="<message data>")

    async def upgrade(
        self, verify_certificate: bool = False, timeout: float = Timeouts.HANDSHAKE
    ) -> None:
        """Replace the owned stream with its TLS-upgraded successor."""
        self._check_usable()
        if self._pending:
            raise ProtocolError("Cannot upgrade while a reply is pending")

        self._stream = await transport.upgrade(
            self._stream, verify_certificate=verify_certificate, timeout=timeout
        )
        self._emit(EventKind.UPGRADED, state="encrypted")

    async def close(self) -> None:
        """Release the stream. Safe to call more than once."""
        self._pending = False
        await self._stream.close()

    def __repr__(self) -> str:
        return f"<LineChannel {self.dialect.name} {self._stream!r}>"
