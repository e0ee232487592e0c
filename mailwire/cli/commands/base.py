"""Base command class for CLI commands."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from rich.console import Console

from mailwire.utils.config import AppConfig
from mailwire.utils.console import get_console, print_error
from mailwire.utils.errors import ErrorHandler, MailwireError, format_error_message
from mailwire.utils.logging import get_logger


@dataclass
class CommandResult:
    """Standard command result structure."""

    success: bool
    data: Optional[Any] = None
    error: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


class BaseCommandHandler(ABC):
    """Runs one CLI command and turns typed failures into a result."""

    name = "command"

    def __init__(self, console: Optional[Console] = None):
        self.console = console or get_console()
        self.logger = get_logger(f"cli.{self.name}")

    @abstractmethod
    async def execute(self, args, config: AppConfig) -> CommandResult:
        """Perform the command; may raise any MailwireError."""

    async def run(self, args, config: AppConfig) -> CommandResult:
        """Execute the command, reporting failures to the console and log."""

        try:
            return await self.execute(args, config)

        except MailwireError as e:
            ErrorHandler.handle(e, context=self.name, log_traceback=False)
            print_error(f"Error: {format_error_message(e)}", self.console)
            return CommandResult(success=False, error=e.message)
