"""Send command - submit one email over SMTP"""

from pathlib import Path

from mailwire.core.email.smtp import SubmissionSession
from mailwire.core.models.email import Email
from mailwire.utils.config import AppConfig
from mailwire.utils.console import print_status, print_success
from mailwire.utils.errors import ComposeError
from mailwire.utils.logging import async_log_call, log_session_event

from .base import BaseCommandHandler, CommandResult


class SendCommandHandler(BaseCommandHandler):
    """Handler for the 'send' command."""

    name = "send"

    @async_log_call
    async def execute(self, args, config: AppConfig) -> CommandResult:
        client_config = config.submission_client()
        options = config.session_options(
            verify_certificate=True if args.verify_certificates else None
        )

        try:
            email = Email(
                recipient=args.to,
                subject=args.subject,
                body=args.body,
                attachment_path=Path(args.attach) if args.attach else None,
            )

        except ValueError as e:
            raise ComposeError(str(e), details={"recipient": args.to}) from e

        print_status(f"Connecting to {client_config.peer}...", self.console)
        session = await SubmissionSession.connect(
            client_config, options=options, on_event=log_session_event
        )

        async with session:
            response = await session.send_email(email)

        self.logger.info(
            "Email sent",
            extra={"response": response.status_line},
        )
        print_success(f"Message to {email.recipient} accepted: {response.status_line}", self.console)

        return CommandResult(
            success=True,
            data=response.status_line,
            metadata={"attachment": email.attachment_name},
        )
