"""Argument parser configuration for the mailwire CLI"""

import argparse

from mailwire import __version__
from mailwire.core.email.pop3.constants import DEFAULT_FETCH_COUNT

DEFAULT_SUBJECT = "Test Email with JPEG"
DEFAULT_BODY = "This is a test email with a JPEG attachment."


## Argument Adding Utilities

def add_global_arguments(parser: argparse.ArgumentParser) -> None:
    """Add options shared by every command."""

    parser.add_argument(
        "--config",
        metavar="PATH",
        help="Path to the JSON configuration file (default: $MAILWIRE_CONFIG or ~/.mailwire/config.json)"
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Override the configured log level"
    )
    parser.add_argument(
        "--verify-certificates",
        action="store_true",
        help="Validate server certificates during the TLS handshake"
    )


def positive_int(value: str) -> int:
    """argparse type for counts that must be at least 1."""

    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {number}")
    return number


## Command Setup Functions

def setup_send_command(subparsers) -> None:
    """Setup the send command."""

    send_parser = subparsers.add_parser(
        "send",
        help="Send an email",
        description="Submit one message, optionally with a file attachment"
    )
    send_parser.add_argument(
        "--to",
        required=True,
        help="Recipient email address"
    )
    send_parser.add_argument(
        "--subject",
        default=DEFAULT_SUBJECT,
        help=f"Email subject (default: {DEFAULT_SUBJECT!r})"
    )
    send_parser.add_argument(
        "--body",
        default=DEFAULT_BODY,
        help="Email body text"
    )
    send_parser.add_argument(
        "--attach",
        metavar="PATH",
        help="Path to a file to attach"
    )


def setup_fetch_command(subparsers) -> None:
    """Setup the fetch command."""

    fetch_parser = subparsers.add_parser(
        "fetch",
        help="Fetch the latest emails",
        description="Retrieve the most recent messages from the mailbox"
    )
    fetch_parser.add_argument(
        "--count",
        type=positive_int,
        default=DEFAULT_FETCH_COUNT,
        help=f"Number of messages to fetch (default: {DEFAULT_FETCH_COUNT})"
    )
    fetch_parser.add_argument(
        "--raw",
        action="store_true",
        help="Print the full text of each message"
    )


def setup_argument_parser() -> argparse.ArgumentParser:
    """Setup the main argument parser for the mailwire CLI."""

    parser = argparse.ArgumentParser(
        prog="mailwire",
        description="Minimal mail client - send over SMTP, fetch over POP3",
        epilog="Use 'mailwire <command> --help' for command-specific help."
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"mailwire {__version__}",
    )
    add_global_arguments(parser)

    subparsers = parser.add_subparsers(
        dest="command",
        required=True,
        help="Command to execute"
    )

    setup_send_command(subparsers)
    setup_fetch_command(subparsers)

    return parser
