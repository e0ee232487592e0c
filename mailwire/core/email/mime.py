"""Multipart message writer for outgoing mail.

Renders an ``Email`` as ``multipart/mixed`` with one ``text/plain`` part and
at most one base64 attachment part. The attachment is read and encoded in
fixed-size chunks while the message is being transmitted; the encoded form
of a file is never held in memory as a whole.

Delimiter lines always start with ``--``. ``-`` is outside the base64
alphabet, so no encoded attachment line can be mistaken for a delimiter;
the text body is checked line by line against the chosen boundary.
"""

import base64
import mimetypes
import re
import secrets
from email.header import Header
from email.utils import encode_rfc2231, formatdate, make_msgid
from pathlib import Path
from typing import BinaryIO, Iterator, List, Optional

from mailwire.core.models.email import Email
from mailwire.utils.errors import AttachmentReadError, ComposeError

from .constants import MimeDefaults

CRLF = "\r\n"

_LINE_BREAK = re.compile(r"\r\n|\r|\n")
_BOUNDARY_CHARS = re.compile(r"^[0-9A-Za-z'()+_,\-./:=? ]{0,69}[0-9A-Za-z'()+_,\-./:=?]$")


def _split_lines(text: str) -> List[str]:
    return _LINE_BREAK.split(text) if text else []


def _check_header_value(name: str, value: str) -> str:
    if "\r" in value or "\n" in value:
        raise ComposeError(
            f"{name} header must not contain line breaks", details={"header": name}
        )
    return value


def _encode_header_value(value: str) -> str:
    if value.isascii():
        return value
    return Header(value, "utf-8").encode(linesep=CRLF)


def _disposition_filename(name: str) -> str:
    _check_header_value("Content-Disposition", name)
    if name.isascii():
        escaped = name.replace("\\", "\\\\").replace('"', '\\"')
        return f'filename="{escaped}"'
    return f"filename*={encode_rfc2231(name, 'utf-8')}"


def boundary_collides(boundary: str, lines: List[str]) -> bool:
    """True if any of ``lines`` would read as a delimiter for ``boundary``."""
    delimiter = f"--{boundary}"
    return any(line.startswith(delimiter) for line in lines)


class ComposedMessage:
    """A rendered message, iterated as CRLF-aligned byte chunks.

    Owns the open attachment file until iteration finishes or ``close`` is
    called. Iterate it once.
    """

    def __init__(
        self,
        head: bytes,
        boundary: str,
        attachment: Optional[BinaryIO] = None,
        attachment_head: bytes = b"",
        attachment_path: Optional[Path] = None,
        wrap_width: int = MimeDefaults.WRAP_WIDTH,
        chunk_lines: int = MimeDefaults.CHUNK_LINES,
    ):
        self._head = head
        self.boundary = boundary
        self._attachment = attachment
        self._attachment_head = attachment_head
        self._attachment_path = attachment_path
        self._raw_per_line = wrap_width // 4 * 3
        self._chunk_size = self._raw_per_line * chunk_lines
        self._closing = f"--{boundary}--{CRLF}".encode("ascii")

    @property
    def has_attachment(self) -> bool:
        return self._attachment is not None

    def _encode_lines(self, data: bytes) -> bytes:
        encoded = base64.b64encode(data)
        width = self._raw_per_line // 3 * 4
        lines = [encoded[i : i + width] for i in range(0, len(encoded), width)]
        return b"\r\n".join(lines) + b"\r\n"

    def _read_attachment(self) -> bytes:
        try:
            return self._attachment.read(self._chunk_size)
        except OSError as e:
            raise AttachmentReadError(
                f"Failed to read attachment {self._attachment_path}: {e}",
                details={"path": str(self._attachment_path)},
            ) from e

    def _iter_attachment(self) -> Iterator[bytes]:
        pending = b""
        while True:
            data = self._read_attachment()
            if not data:
                break
            pending += data
            usable = len(pending) - len(pending) % self._raw_per_line
            if usable:
                yield self._encode_lines(pending[:usable])
                pending = pending[usable:]

        if pending:
            yield self._encode_lines(pending)

    def __iter__(self) -> Iterator[bytes]:
        try:
            yield self._head
            if self._attachment is not None:
                yield self._attachment_head
                yield from self._iter_attachment()
            yield self._closing
        finally:
            self.close()

    def close(self) -> None:
        if self._attachment is not None and not self._attachment.closed:
            self._attachment.close()

    def __enter__(self) -> "ComposedMessage":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


class MimeComposer:
    """Builds the DATA payload for one message.

    Args:
        boundary: Fixed boundary token; a random one is drawn per message
            when omitted
        wrap_width: Base64 characters per attachment line (multiple of 4)
    """

    def __init__(
        self,
        boundary: Optional[str] = None,
        wrap_width: int = MimeDefaults.WRAP_WIDTH,
        chunk_lines: int = MimeDefaults.CHUNK_LINES,
    ):
        if boundary is not None and not _BOUNDARY_CHARS.match(boundary):
            raise ValueError(f"Invalid MIME boundary: {boundary!r}")
        if wrap_width < 4 or wrap_width % 4:
            raise ValueError(f"Wrap width must be a positive multiple of 4: {wrap_width}")
        if chunk_lines < 1:
            raise ValueError(f"Chunk size must be at least one line: {chunk_lines}")

        self._boundary = boundary
        self.wrap_width = wrap_width
        self.chunk_lines = chunk_lines

    def _choose_boundary(self, body_lines: List[str]) -> str:
        if self._boundary is not None:
            if boundary_collides(self._boundary, body_lines):
                raise ComposeError(
                    "Message body contains the MIME boundary",
                    details={"boundary": self._boundary},
                )
            return self._boundary

        while True:
            candidate = f"{MimeDefaults.BOUNDARY_PREFIX}{secrets.token_hex(12)}"
            if not boundary_collides(candidate, body_lines):
                return candidate

    def _render_head(
        self, from_identity: str, email: Email, boundary: str, body_lines: List[str]
    ) -> str:
        domain = from_identity.rpartition("@")[2] or "localhost"
        body = CRLF.join(body_lines)
        transfer_encoding = "7bit" if body.isascii() else "8bit"

        headers = [
            f"From: {_check_header_value('From', from_identity)}",
            f"To: {_check_header_value('To', email.recipient)}",
            f"Subject: {_encode_header_value(_check_header_value('Subject', email.subject))}",
            f"Date: {formatdate(localtime=True)}",
            f"Message-ID: {make_msgid(domain=domain)}",
            "MIME-Version: 1.0",
            f'Content-Type: multipart/mixed; boundary="{boundary}"',
        ]
        text_part = [
            f"--{boundary}",
            'Content-Type: text/plain; charset="UTF-8"',
            f"Content-Transfer-Encoding: {transfer_encoding}",
            "Content-Disposition: inline",
        ]

        return (
            CRLF.join(headers)
            + CRLF * 2
            + CRLF.join(text_part)
            + CRLF * 2
            + body
            + CRLF * 2
        )

    def _render_attachment_head(self, email: Email, boundary: str) -> str:
        name = email.attachment_name
        content_type = mimetypes.guess_type(name)[0] or MimeDefaults.FALLBACK_CONTENT_TYPE

        lines = [
            f"--{boundary}",
            f"Content-Type: {content_type}",
            "Content-Transfer-Encoding: base64",
            f"Content-Disposition: attachment; {_disposition_filename(name)}",
        ]
        return CRLF.join(lines) + CRLF * 2

    def prepare(self, from_identity: str, email: Email) -> ComposedMessage:
        """Render headers and open the attachment.

        Returns:
            ComposedMessage yielding the payload in line-aligned chunks

        Raises:
            AttachmentReadError: If the attachment cannot be opened
            ComposeError: If a header is malformed or the boundary collides
        """
        body_lines = _split_lines(email.body)

        try:
            boundary = self._choose_boundary(body_lines)
            head = self._render_head(from_identity, email, boundary, body_lines)
            attachment_head = ""
            if email.attachment_path is not None:
                attachment_head = self._render_attachment_head(email, boundary)
            head_bytes = head.encode("utf-8")
            attachment_head_bytes = attachment_head.encode("ascii")

        except ComposeError:
            raise

        except (UnicodeError, ValueError, TypeError) as e:
            raise ComposeError(f"Failed to build message: {e}") from e

        attachment = None
        if email.attachment_path is not None:
            try:
                attachment = open(email.attachment_path, "rb")
            except OSError as e:
                raise AttachmentReadError(
                    f"Cannot open attachment {email.attachment_path}: {e}",
                    details={"path": str(email.attachment_path)},
                ) from e

        return ComposedMessage(
            head_bytes,
            boundary,
            attachment=attachment,
            attachment_head=attachment_head_bytes,
            attachment_path=email.attachment_path,
            wrap_width=self.wrap_width,
            chunk_lines=self.chunk_lines,
        )

    def compose(self, from_identity: str, email: Email) -> bytes:
        """Render the complete message in memory."""
        with self.prepare(from_identity, email) as message:
            return b"".join(message)
