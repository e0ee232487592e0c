"""Main CLI entry point."""

import asyncio
from pathlib import Path
from typing import Optional, Sequence

from rich.console import Console

from mailwire.utils.config import AppConfig, load_config
from mailwire.utils.console import get_console, print_error, print_warning
from mailwire.utils.errors import ConfigurationError, FileSystemError, format_error_message
from mailwire.utils.logging import async_log_call, get_logger, init_logging

from .cli_parser import setup_argument_parser
from .commands import COMMAND_HANDLERS

logger = get_logger(__name__)


@async_log_call
async def dispatch_command(args, config: AppConfig, console: Console) -> int:
    """Dispatch command to its handler.

    Returns:
        Exit code (0 = success, 1 = error)
    """
    handler = COMMAND_HANDLERS[args.command](console)
    result = await handler.run(args, config)

    return 0 if result.success else 1


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main CLI entry point.

    Returns:
        Exit code
    """
    console = get_console()
    parser = setup_argument_parser()
    args = parser.parse_args(argv)

    try:
        config = load_config(Path(args.config) if args.config else None)
    except ConfigurationError as e:
        print_error(f"Configuration error: {format_error_message(e)}", console)
        return 1

    try:
        init_logging(args.log_level or config.logging.log_level)
    except (FileSystemError, ValueError) as e:
        print_warning(f"Logging disabled: {e}", console)

    try:
        exit_code = asyncio.run(dispatch_command(args, config, console))
        logger.info(f"Command '{args.command}' finished with exit code {exit_code}")
        return exit_code

    except KeyboardInterrupt:
        print_warning("Interrupted by user", console)
        return 130  # Standard SIGINT exit code


if __name__ == "__main__":
    raise SystemExit(main())
