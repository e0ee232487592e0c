"""Fetch command - retrieve the latest emails over POP3"""

from typing import List

from rich.markup import escape
from rich.table import Table

from mailwire.core.email.pop3 import RetrievalSession
from mailwire.core.models.session import RetrievedMessage
from mailwire.utils.config import AppConfig
from mailwire.utils.console import print_status, print_warning
from mailwire.utils.logging import async_log_call, log_session_event

from .base import BaseCommandHandler, CommandResult


def build_summary_table(messages: List[RetrievedMessage]) -> Table:
    """Tabulate id, sender, subject and outcome of each fetched message."""

    table = Table(title="Fetched messages")
    table.add_column("#", justify="right", style="cyan")
    table.add_column("From")
    table.add_column("Subject")
    table.add_column("Status")

    for message in messages:
        if message.ok:
            parsed = message.as_message()
            table.add_row(
                str(message.message_id),
                escape(str(parsed.get("From", ""))),
                escape(str(parsed.get("Subject", ""))),
                "[green]ok[/]",
            )
        else:
            table.add_row(
                str(message.message_id),
                "",
                "",
                f"[red]{escape(message.error.message)}[/]",
            )

    return table


class FetchCommandHandler(BaseCommandHandler):
    """Handler for the 'fetch' command."""

    name = "fetch"

    @async_log_call
    async def execute(self, args, config: AppConfig) -> CommandResult:
        client_config = config.retrieval_client()
        options = config.session_options(
            verify_certificate=True if args.verify_certificates else None
        )

        print_status(f"Connecting to {client_config.peer}...", self.console)
        session = await RetrievalSession.connect(
            client_config, options=options, on_event=log_session_event
        )

        async with session:
            messages = await session.fetch_last(args.count)

        if not messages:
            print_warning("No emails to retrieve.", self.console)
            return CommandResult(success=True, data=[])

        self.console.print(build_summary_table(messages))

        if args.raw:
            for message in messages:
                if message.ok:
                    self.console.rule(f"Message {message.message_id}")
                    self.console.print(message.text, markup=False, highlight=False)

        failed = [message.message_id for message in messages if not message.ok]
        self.logger.info(
            "Fetched emails",
            extra={"fetched": len(messages) - len(failed), "failed": len(failed)},
        )

        return CommandResult(
            success=True,
            data=messages,
            metadata={"failed_ids": failed},
        )
