"""Byte-stream transport: TCP connection setup and in-place TLS upgrade.

A ``Stream`` is an owned handle over an asyncio reader/writer pair.
``upgrade`` consumes a plaintext handle and returns a new, encrypted one over
the same socket and the same ``StreamReader``, so bytes the server sent
before the handshake and that are still buffered stay readable. The old
handle is detached: any further use raises ``TransportError``.
"""

import asyncio
import contextlib
import ssl

from mailwire.utils.errors import ConnectError, HandshakeError, TransportError

from .constants import MAX_LINE_BYTES, Timeouts


class Stream:
    """Owned handle over one connection."""

    def __init__(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        *,
        host: str,
        port: int,
        encrypted: bool = False,
    ):
        self._reader = reader
        self._writer = writer
        self.host = host
        self.port = port
        self._encrypted = encrypted
        self._detached = False
        self._closed = False

    @property
    def encrypted(self) -> bool:
        return self._encrypted

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def detached(self) -> bool:
        return self._detached

    @property
    def peer(self) -> str:
        return f"{self.host}:{self.port}"

    def _check_usable(self) -> None:
        if self._detached:
            raise TransportError(
                "Stream handle was replaced by its upgraded successor",
                details={"peer": self.peer},
            )
        if self._closed:
            raise TransportError("Stream is closed", details={"peer": self.peer})

    def _detach(self) -> None:
        self._detached = True

    def write(self, data: bytes) -> None:
        self._check_usable()
        self._writer.write(data)

    async def drain(self) -> None:
        self._check_usable()
        await self._writer.drain()

    async def readline(self) -> bytes:
        """Read through the next ``\\n``, terminator included."""
        self._check_usable()
        return await self._reader.readuntil(b"\n")

    async def close(self) -> None:
        """Close the connection. Safe to call more than once.

        A detached handle no longer owns the socket, so closing it only
        marks it closed.
        """
        if self._closed:
            return
        self._closed = True
        if self._detached:
            return

        self._writer.close()
        with contextlib.suppress(OSError, ssl.SSLError, asyncio.TimeoutError):
            await asyncio.wait_for(self._writer.wait_closed(), timeout=Timeouts.QUIT)

    def __repr__(self) -> str:
        flags = []
        if self._encrypted:
            flags.append("tls")
        if self._detached:
            flags.append("detached")
        if self._closed:
            flags.append("closed")
        return f"<Stream {self.peer} {' '.join(flags) or 'plain'}>"


def create_ssl_context(verify_certificate: bool = False) -> ssl.SSLContext:
    """Build the client context used for every upgrade.

    With ``verify_certificate=False`` neither the chain nor the hostname is
    checked; that mirrors development servers with self-signed certificates.
    """
    if verify_certificate:
        return ssl.create_default_context()

    context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
    context.check_hostname = False
    context.verify_mode = ssl.CERT_NONE
    return context


async def connect(address: str, port: int, timeout: float = Timeouts.CONNECT) -> Stream:
    """Open a plaintext TCP stream.

    Raises:
        ConnectError: On DNS failure, refusal or timeout
    """
    details = {"address": address, "port": port}

    try:
        reader, writer = await asyncio.wait_for(
            asyncio.open_connection(address, port, limit=MAX_LINE_BYTES),
            timeout=timeout,
        )

    except asyncio.TimeoutError as e:
        raise ConnectError(
            f"Connection to {address}:{port} timed out after {timeout}s",
            details=details,
        ) from e

    except OSError as e:
        raise ConnectError(
            f"Failed to connect to {address}:{port}: {e}", details=details
        ) from e

    return Stream(reader, writer, host=address, port=port)


async def upgrade(
    stream: Stream,
    verify_certificate: bool = False,
    timeout: float = Timeouts.HANDSHAKE,
) -> Stream:
    """Run the TLS handshake over ``stream`` and return the encrypted handle.

    Raises:
        HandshakeError: If the handshake fails or times out
        TransportError: If ``stream`` is closed or already detached
    """
    stream._check_usable()
    details = {"peer": stream.peer, "verify_certificate": verify_certificate}

    if stream.encrypted:
        raise HandshakeError("Stream is already encrypted", details=details)

    context = create_ssl_context(verify_certificate)

    try:
        await stream._writer.start_tls(
            context,
            server_hostname=stream.host,
            ssl_handshake_timeout=timeout,
        )

    except asyncio.TimeoutError as e:
        raise HandshakeError(
            f"TLS handshake with {stream.peer} timed out after {timeout}s",
            details=details,
        ) from e

    except (ssl.SSLError, OSError) as e:
        raise HandshakeError(
            f"TLS handshake with {stream.peer} failed: {e}", details=details
        ) from e

    upgraded = Stream(
        stream._reader,
        stream._writer,
        host=stream.host,
        port=stream.port,
        encrypted=True,
    )
    stream._detach()
    return upgraded
