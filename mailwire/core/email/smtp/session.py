"""SMTP submission session: greeting, STARTTLS, AUTH LOGIN and DATA."""

import base64
from typing import List, Optional

from mailwire.core.email.channel import LineChannel
from mailwire.core.email.dialect import SMTP_DIALECT
from mailwire.core.email.mime import MimeComposer
from mailwire.core.email.session import BaseSession, SessionOptions
from mailwire.core.models.email import ClientConfig, Email
from mailwire.core.models.session import Response, SessionState
from mailwire.utils.errors import ProtocolError

from .constants import REDACTED_CREDENTIAL, SMTPResponse

_S = SessionState


def _b64(value: str) -> str:
    return base64.b64encode(value.encode("utf-8")).decode("ascii")


class SubmissionSession(BaseSession):
    """Submits messages over one authenticated, STARTTLS-upgraded connection.

    Usage:
        >>> session = await SubmissionSession.connect(config)
        >>> async with session:
        ...     await session.send_email(email)
    """

    dialect = SMTP_DIALECT
    TRANSITIONS = {
        _S.CONNECTED: frozenset({_S.GREETING_READ}),
        _S.GREETING_READ: frozenset({_S.UPGRADED}),
        _S.UPGRADED: frozenset({_S.AUTHENTICATED}),
        _S.AUTHENTICATED: frozenset({_S.READY}),
        _S.READY: frozenset({_S.READY}),
    }
    QUIT_STATES = frozenset(
        {_S.GREETING_READ, _S.UPGRADED, _S.AUTHENTICATED, _S.READY}
    )

    def __init__(
        self,
        channel: LineChannel,
        config: ClientConfig,
        *,
        options: Optional[SessionOptions] = None,
        composer: Optional[MimeComposer] = None,
    ):
        super().__init__(channel, config, options=options)
        self.composer = composer or MimeComposer()
        self.capabilities: List[str] = []

    def _expect_code(self, response: Response, command: str, *codes: int) -> Response:
        self._check(response, command)
        if response.code not in codes:
            raise ProtocolError(
                f"{command} got unexpected reply: {response.status_line}",
                details={"command": command, "response": response.status_line},
                response=response,
            )
        return response

    def _expect_success(self, response: Response, command: str) -> Response:
        self._check(response, command)
        if response.code is None or response.code // 100 != 2:
            raise ProtocolError(
                f"{command} not completed: {response.status_line}",
                details={"command": command, "response": response.status_line},
                response=response,
            )
        return response

    async def _ehlo(self) -> None:
        response = await self._command(f"EHLO {self.options.local_hostname}")
        self._expect_success(response, "EHLO")
        self.capabilities = [line[4:].strip() for line in response.extra_lines]

    def supports(self, keyword: str) -> bool:
        """Whether the last EHLO reply advertised ``keyword``."""
        keyword = keyword.upper()
        return any(
            capability.upper().split(" ", 1)[0] == keyword
            for capability in self.capabilities
        )

    async def open(self) -> None:
        """Read the greeting, say EHLO and upgrade with STARTTLS."""
        self._require(_S.CONNECTED, operation="read the greeting")

        async with self._fatal():
            greeting = await self._channel.read_response()
            self._expect_success(greeting, "greeting")
            self._advance(_S.GREETING_READ)

            await self._ehlo()

            response = await self._command("STARTTLS")
            self._expect_code(response, "STARTTLS", SMTPResponse.SERVICE_READY)
            await self._channel.upgrade(
                verify_certificate=self.options.verify_certificate,
                timeout=self.options.handshake_timeout,
            )
            self._advance(_S.UPGRADED)

            # Capabilities learned before the handshake must be discarded.
            if self.options.rehello_after_upgrade:
                await self._ehlo()

    async def authenticate(self) -> None:
        """AUTH LOGIN with base64 identity and secret."""
        self._require(_S.UPGRADED, operation="authenticate")

        async with self._fatal():
            response = await self._command("AUTH LOGIN")
            self._expect_code(response, "AUTH LOGIN", SMTPResponse.AUTH_CONTINUE)

            response = await self._command(
                _b64(self.config.user_email), display=REDACTED_CREDENTIAL
            )
            self._expect_code(response, "AUTH identity", SMTPResponse.AUTH_CONTINUE)

            response = await self._command(
                _b64(self.config.user_key), display=REDACTED_CREDENTIAL
            )
            self._expect_success(response, "AUTH secret")
            self._advance(_S.AUTHENTICATED)

    async def send_email(self, email: Email) -> Response:
        """Submit one message and return the server's final acknowledgement.

        The message is prepared before any command is sent, so a missing
        attachment or malformed header raises without touching the session.

        Raises:
            AttachmentReadError: If the attachment cannot be opened
            ComposeError: If the message cannot be built
            ProtocolError: If the server rejects any step (session aborted)
            TransportError: On I/O failure or deadline (session aborted)
        """
        self._require(_S.AUTHENTICATED, _S.READY, operation="send a message")

        message = self.composer.prepare(self.config.user_email, email)
        with message:
            async with self._fatal():
                await self._command(f"MAIL FROM:<{self.config.user_email}>")
                await self._command(f"RCPT TO:<{email.recipient}>")

                response = await self._command("DATA")
                self._expect_code(response, "DATA", SMTPResponse.START_MAIL)

                await self._channel.send_data(message)
                response = await self._channel.read_response()
                self._expect_success(response, "message data")
                self._advance(_S.READY)

        return response
