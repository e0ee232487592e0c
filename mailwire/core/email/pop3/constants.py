"""POP3 constants and configuration values."""


class POP3Ports:
    """Standard POP3 port numbers."""

    POP3 = 110  # Plaintext
    POP3_SSL = 995  # Implicit TLS


DEFAULT_FETCH_COUNT = 5

# Shown in events instead of the PASS argument.
REDACTED_PASS = "PASS ********"
