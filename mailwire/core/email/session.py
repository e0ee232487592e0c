"""Session state machine shared by the submission and retrieval clients.

A session owns one ``LineChannel`` (and through it one ``Stream``) for its
whole life. Concrete sessions declare their protocol dialect and a forward
transition table; any state may fail straight to ``CLOSED``.
"""

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import ClassVar, Dict, FrozenSet, Optional, Tuple, Type

from mailwire.core.models.email import ClientConfig
from mailwire.core.models.session import EventKind, Response, SessionEvent, SessionState
from mailwire.utils.errors import MailwireError, ProtocolError, SessionStateError

from . import transport
from .channel import LineChannel
from .constants import Timeouts
from .dialect import ProtocolDialect
from .events import EventBus, EventHandler


@dataclass(frozen=True)
class SessionOptions:
    """Per-session tunables. Deadlines are in seconds."""

    connect_timeout: float = Timeouts.CONNECT
    command_timeout: float = Timeouts.COMMAND
    handshake_timeout: float = Timeouts.HANDSHAKE
    verify_certificate: bool = False
    local_hostname: str = "localhost"
    rehello_after_upgrade: bool = True


class BaseSession:
    """Lifecycle and error policy common to both protocols."""

    dialect: ClassVar[ProtocolDialect]
    TRANSITIONS: ClassVar[Dict[SessionState, FrozenSet[SessionState]]] = {}
    # States in which the server is known to be listening for commands.
    QUIT_STATES: ClassVar[FrozenSet[SessionState]] = frozenset()

    def __init__(
        self,
        channel: LineChannel,
        config: ClientConfig,
        *,
        options: Optional[SessionOptions] = None,
    ):
        if channel.dialect is not self.dialect:
            raise ValueError(
                f"{type(self).__name__} needs a {self.dialect.name} channel, "
                f"got {channel.dialect.name}"
            )

        self._channel = channel
        self.config = config
        self.options = options or SessionOptions()
        self._state = SessionState.CONNECTED

    @classmethod
    async def connect(
        cls,
        config: ClientConfig,
        *,
        options: Optional[SessionOptions] = None,
        on_event: Optional[EventHandler] = None,
        **kwargs,
    ):
        """Open a stream to ``config`` and wrap it in a new session.

        The session is returned unstarted; use ``start()`` or ``async with``.

        Raises:
            ConnectError: If the TCP connection cannot be established
        """
        options = options or SessionOptions()
        events = EventBus()
        if on_event is not None:
            events.subscribe(on_event)

        stream = await transport.connect(
            config.address, config.port, timeout=options.connect_timeout
        )
        channel = LineChannel(
            stream, cls.dialect, timeout=options.command_timeout, events=events
        )

        try:
            return cls(channel, config, options=options, **kwargs)

        except Exception:
            await stream.close()
            raise

    ## Properties

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def closed(self) -> bool:
        return self._state is SessionState.CLOSED

    @property
    def channel(self) -> LineChannel:
        return self._channel

    @property
    def events(self) -> EventBus:
        return self._channel.events

    ## State machine

    def _emit(self, kind: EventKind, **fields) -> None:
        if len(self.events):
            self.events.emit(
                SessionEvent(kind=kind, protocol=self.dialect.name, **fields)
            )

    def _require(self, *states: SessionState, operation: str) -> None:
        if self._state not in states:
            raise SessionStateError(
                f"Cannot {operation} while session is {self._state.value}",
                details={"state": self._state.value, "operation": operation},
            )

    def _advance(self, new_state: SessionState) -> None:
        allowed = self.TRANSITIONS.get(self._state, frozenset())
        if new_state is not SessionState.CLOSED and new_state not in allowed:
            raise SessionStateError(
                f"Illegal transition {self._state.value} -> {new_state.value}",
                details={"state": self._state.value, "target": new_state.value},
            )

        if new_state is not self._state:
            self._state = new_state
            self._emit(EventKind.STATE_CHANGED, state=new_state.value)

    async def _abort(self, error: BaseException) -> None:
        self._emit(EventKind.ERROR, error=str(error), state=self._state.value)
        await self._channel.close()
        self._advance(SessionState.CLOSED)

    @asynccontextmanager
    async def _fatal(self, isolated: Tuple[Type[MailwireError], ...] = ()):
        """Abort the session on any failure not listed in ``isolated``."""
        try:
            yield

        except isolated:
            raise

        except MailwireError as e:
            await self._abort(e)
            raise

        except asyncio.CancelledError as e:
            await self._abort(e)
            raise

    ## Command helpers

    def _check(self, response: Response, command: str) -> Response:
        if not response.ok:
            raise ProtocolError(
                f"{command} rejected: {response.status_line}",
                details={"command": command, "response": response.status_line},
                response=response,
            )
        return response

    async def _command(
        self, line: str, *, display: Optional[str] = None, multiline: bool = False
    ) -> Response:
        response = await self._channel.send_and_read(
            line, display=display, multiline=multiline
        )
        return self._check(response, display or line)

    ## Lifecycle

    async def open(self) -> None:
        raise NotImplementedError

    async def authenticate(self) -> None:
        raise NotImplementedError

    async def start(self) -> None:
        """Greet, upgrade and authenticate."""
        await self.open()
        await self.authenticate()

    async def close(self) -> Optional[Response]:
        """Send QUIT when the server is listening, then release the stream.

        QUIT is best-effort: its failure is reported as an event and the
        stream is released regardless. Safe to call more than once.
        """
        if self._state is SessionState.CLOSED:
            return None

        response = None
        try:
            if self._state in self.QUIT_STATES and not self._channel.pending:
                self._channel.timeout = min(self._channel.timeout, Timeouts.QUIT)
                response = await self._channel.send_and_read("QUIT")

        except MailwireError as e:
            self._emit(EventKind.ERROR, error=str(e), state=self._state.value)

        finally:
            await self._channel.close()
            self._advance(SessionState.CLOSED)

        return response

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.config.peer} {self._state.value}>"
