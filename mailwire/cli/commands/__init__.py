"""CLI command handlers."""

from .base import BaseCommandHandler, CommandResult
from .fetch import FetchCommandHandler
from .send import SendCommandHandler

COMMAND_HANDLERS = {
    SendCommandHandler.name: SendCommandHandler,
    FetchCommandHandler.name: FetchCommandHandler,
}

__all__ = [
    "BaseCommandHandler",
    "COMMAND_HANDLERS",
    "CommandResult",
    "FetchCommandHandler",
    "SendCommandHandler",
]
