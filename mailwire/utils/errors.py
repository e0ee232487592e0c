"""Centralised error taxonomy for mailwire."""

from enum import Enum
from typing import Any, Dict, Optional

from mailwire.utils.logging import get_logger

_logger = None


def _get_logger():
    """Get logger with lazy initialisation."""
    global _logger
    if _logger is None:
        _logger = get_logger(__name__)
    return _logger


## Error Categories


class ErrorCategory(Enum):
    """Categories of errors for better handling."""

    NETWORK = "network"
    PROTOCOL = "protocol"
    AUTHENTICATION = "authentication"
    COMPOSITION = "composition"
    FILE_SYSTEM = "file_system"
    CONFIGURATION = "configuration"
    UNKNOWN = "unknown"


## Custom Exceptions


class MailwireError(Exception):
    """Base exception for all mailwire errors."""

    category = ErrorCategory.UNKNOWN
    user_message = "An error occurred"

    def __init__(
        self, message: str | None = None, details: Dict[str, Any] | None = None
    ):
        """Initialise MailwireError with optional message and details."""
        self.message = message or self.user_message
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert error details to a dictionary."""
        return {
            "error_type": self.__class__.__name__,
            "category": self.category.value,
            "message": self.message,
            "details": self.details,
        }


## Network Errors


class NetworkError(MailwireError):
    """Base exception for network-related errors."""

    category = ErrorCategory.NETWORK
    user_message = "A network error occurred"


class ConnectError(NetworkError):
    """DNS failure, refusal or timeout while opening a stream."""

    user_message = "Failed to connect to the mail server"


class HandshakeError(NetworkError):
    """TLS upgrade of an open stream failed."""

    user_message = "Failed to establish an encrypted connection"


class TransportError(NetworkError):
    """I/O failure on an established stream."""

    user_message = "The connection to the mail server failed"


class WriteError(TransportError):
    """Writing a line failed or exceeded its deadline."""

    user_message = "Failed to write to the mail server"


class ReadError(TransportError):
    """Reading a line failed, hit end of stream or exceeded its deadline."""

    user_message = "Failed to read from the mail server"


## Protocol Errors


class ProtocolError(MailwireError):
    """The server rejected a command or the exchange went out of sequence."""

    category = ErrorCategory.PROTOCOL
    user_message = "The mail server rejected the request"

    def __init__(
        self,
        message: str | None = None,
        details: Dict[str, Any] | None = None,
        response: Optional[Any] = None,
    ):
        super().__init__(message, details)
        self.response = response


class ParseError(ProtocolError):
    """A status line did not carry the expected field."""

    user_message = "Unexpected response from the mail server"


class SessionStateError(ProtocolError):
    """An operation was attempted from a state that does not allow it."""

    user_message = "Operation not allowed in the current session state"


## Composition Errors


class ComposeError(MailwireError):
    """The outgoing message could not be constructed."""

    category = ErrorCategory.COMPOSITION
    user_message = "Failed to build the email message"


class AttachmentReadError(ComposeError):
    """The attachment file could not be opened or read."""

    category = ErrorCategory.FILE_SYSTEM
    user_message = "Failed to read the attachment"


## File System Errors


class FileSystemError(MailwireError):
    """Base exception for file system-related errors."""

    category = ErrorCategory.FILE_SYSTEM
    user_message = "A file system error occurred"


## Authentication Errors


class AuthenticationError(MailwireError):
    """Base exception for authentication-related errors."""

    category = ErrorCategory.AUTHENTICATION
    user_message = "An authentication error occurred"


class MissingCredentialsError(AuthenticationError):
    """Exception for missing login credentials."""

    user_message = "Email credentials not configured"


## Configuration Errors


class ConfigurationError(MailwireError):
    """Base exception for configuration-related errors."""

    category = ErrorCategory.CONFIGURATION
    user_message = "A configuration error occurred"


class MissingConfigError(ConfigurationError):
    """Exception for a missing configuration file."""

    user_message = "Missing configuration settings"


class InvalidConfigError(ConfigurationError):
    """Exception for invalid configuration settings."""

    user_message = "Invalid configuration settings"


## Error Handler


class ErrorHandler:
    """Centralized error logging for the command-line layer."""

    @staticmethod
    def handle(
        error: Exception, context: str = "", log_traceback: bool = True
    ) -> Dict[str, Any]:
        """Handle errors with logging and user-friendly message."""
        if isinstance(error, MailwireError):
            _get_logger().error(f"{context}: {error.message}", extra=error.details)
            if log_traceback:
                _get_logger().exception(error)
            return error.to_dict()
        else:
            _get_logger().error(f"{context}: {str(error)}")
            if log_traceback:
                _get_logger().exception(error)
            return {
                "error_type": "UnknownError",
                "category": ErrorCategory.UNKNOWN.value,
                "message": str(error),
                "details": {"context": context},
            }


## Utility Functions


def format_error_message(error: Exception) -> str:
    """Format an error message for display."""
    if isinstance(error, MailwireError):
        return error.message
    else:
        return "An unexpected error occurred - check logs for details."
