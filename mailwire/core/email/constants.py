"""Shared constants for the mail protocols.

Centralised configuration for:
- Line framing (terminator, sentinel, encoding)
- Timeout settings
- MIME composition parameters

Every session reads its defaults from here, so tuning a deadline or the
attachment chunk size only needs a change in one place.
"""

LINE_TERMINATOR = b"\r\n"
SENTINEL = "."
WIRE_ENCODING = "utf-8"

# asyncio.StreamReader limit; SMTP allows 998 characters per line but
# retrieved message bodies are not always that disciplined.
MAX_LINE_BYTES = 64 * 1024


class Timeouts:
    """Timeout settings for protocol operations (in seconds)."""

    CONNECT = 10.0
    HANDSHAKE = 10.0
    COMMAND = 30.0
    QUIT = 5.0


class MimeDefaults:
    """Parameters of the multipart writer."""

    WRAP_WIDTH = 76  # base64 characters per line
    CHUNK_LINES = 64  # encoded lines produced per attachment read
    BOUNDARY_PREFIX = "mailwire-"
    FALLBACK_CONTENT_TYPE = "application/octet-stream"
