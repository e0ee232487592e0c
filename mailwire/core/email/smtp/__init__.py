"""SMTP submission client.

Usage:
    >>> from mailwire.core.email.smtp import SubmissionSession
    >>>
    >>> session = await SubmissionSession.connect(config)
    >>> async with session:
    ...     await session.send_email(email)
"""

from .constants import SMTPPorts, SMTPResponse
from .session import SubmissionSession

__all__ = [
    "SMTPPorts",
    "SMTPResponse",
    "SubmissionSession",
]
