"""SMTP constants and configuration values."""


class SMTPResponse:
    """Standard SMTP response codes used by the submission session."""

    # 2xx Success
    SERVICE_READY = 220  # Greeting; also "ready to start TLS"
    CLOSING = 221  # Service closing transmission channel
    AUTH_SUCCESSFUL = 235  # Authentication succeeded
    OK = 250  # Requested mail action okay, completed

    # 3xx Intermediate
    AUTH_CONTINUE = 334  # Server challenge, send next credential line
    START_MAIL = 354  # Start mail input; end with <CRLF>.<CRLF>

    # 4xx Transient Failure
    SERVICE_NOT_AVAILABLE = 421  # Service not available, closing channel
    MAILBOX_BUSY = 450  # Mailbox unavailable (e.g., busy)

    # 5xx Permanent Failure
    SYNTAX_ERROR = 500  # Syntax error, command unrecognized
    BAD_SEQUENCE = 503  # Bad sequence of commands
    AUTH_FAILED = 535  # Authentication credentials invalid
    MAILBOX_UNAVAILABLE = 550  # Mailbox unavailable


class SMTPPorts:
    """Standard SMTP port numbers."""

    SUBMISSION = 587  # STARTTLS (recommended)
    SMTP = 25  # Plain SMTP (server-to-server)


# Shown in events instead of the base64 credential lines.
REDACTED_CREDENTIAL = "<credential>"
