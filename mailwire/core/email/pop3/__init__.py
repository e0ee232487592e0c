"""POP3 retrieval client.

Usage:
    >>> from mailwire.core.email.pop3 import RetrievalSession
    >>>
    >>> session = await RetrievalSession.connect(config)
    >>> async with session:
    ...     messages = await session.fetch_last(5)
"""

from .constants import DEFAULT_FETCH_COUNT, POP3Ports
from .session import RetrievalSession, fetch_window, parse_stat

__all__ = [
    "DEFAULT_FETCH_COUNT",
    "POP3Ports",
    "RetrievalSession",
    "fetch_window",
    "parse_stat",
]
