"""Mail protocol engine: SMTP submission and POP3 retrieval.

Layers, leaf to root:
- transport: TCP streams and in-place TLS upgrade
- channel: one command, one reply; dot-terminated bodies
- mime: streamed multipart rendering of outgoing messages
- session: state machines driving each protocol

Usage Examples
----------------

Send a message:
    >>> from mailwire.core.email import SubmissionSession
    >>>
    >>> session = await SubmissionSession.connect(config)
    >>> async with session:
    ...     await session.send_email(email)

Fetch the latest messages:
    >>> from mailwire.core.email import RetrievalSession
    >>>
    >>> session = await RetrievalSession.connect(config)
    >>> async with session:
    ...     for message in await session.fetch_last(5):
    ...         print(message.message_id, message.ok)

Observe a session:
    >>> from mailwire.utils.logging import log_session_event
    >>>
    >>> session = await RetrievalSession.connect(config, on_event=log_session_event)

Notes
-----
- Every step is awaited before the next command is written; nothing runs
  in the background
- Every read and write is bounded by the channel's deadline
- The core never logs; subscribe to session events instead
"""

from .channel import LineChannel
from .dialect import POP3_DIALECT, SMTP_DIALECT, ProtocolDialect
from .events import EventBus
from .mime import ComposedMessage, MimeComposer
from .pop3 import RetrievalSession
from .session import BaseSession, SessionOptions
from .smtp import SubmissionSession
from .transport import Stream, connect, create_ssl_context, upgrade

__all__ = [
    # Transport
    "Stream",
    "connect",
    "create_ssl_context",
    "upgrade",
    # Framing
    "LineChannel",
    "ProtocolDialect",
    "SMTP_DIALECT",
    "POP3_DIALECT",
    "EventBus",
    # Composition
    "ComposedMessage",
    "MimeComposer",
    # Sessions
    "BaseSession",
    "SessionOptions",
    "SubmissionSession",
    "RetrievalSession",
]
