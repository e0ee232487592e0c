"""Email domain models"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional


@dataclass(frozen=True)
class ClientConfig:
    """Server address and account credentials for one session."""

    address: str
    port: int
    user_email: str
    user_key: str = field(repr=False)

    def __post_init__(self):
        if not self.address or not self.address.strip():
            raise ValueError("Server address cannot be empty")
        if not 0 < self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}")

    @property
    def peer(self) -> str:
        return f"{self.address}:{self.port}"


@dataclass(frozen=True)
class Email:
    """A single outgoing message: text body plus an optional attachment."""

    recipient: str
    subject: str
    body: str
    attachment_path: Optional[Path] = None

    def __post_init__(self):
        if not self.recipient or not self.recipient.strip():
            raise ValueError("Recipient cannot be empty")
        if self.attachment_path is not None and not isinstance(
            self.attachment_path, Path
        ):
            object.__setattr__(self, "attachment_path", Path(self.attachment_path))

    @property
    def attachment_name(self) -> Optional[str]:
        """Base filename of the attachment, directory components stripped."""
        if self.attachment_path is None:
            return None
        return self.attachment_path.name
