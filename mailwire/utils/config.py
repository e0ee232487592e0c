"""Configuration loading for the command-line program.

Settings live in a JSON file validated with pydantic. The protocol core never
reads this file; it receives ``ClientConfig`` and ``SessionOptions`` values
built from it.
"""

import json
import os
from pathlib import Path
from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError

from .errors import (
    ConfigurationError,
    InvalidConfigError,
    MissingConfigError,
    MissingCredentialsError,
)
from .logging import log_call
from .paths import CONFIG_PATH

CONFIG_ENV_VAR = "MAILWIRE_CONFIG"


class ServerConfig(BaseModel):
    """Pydantic model for one server endpoint."""

    model_config = ConfigDict(frozen=True)

    address: str = Field(min_length=1)
    port: int = Field(ge=1, le=65535)


class AccountConfig(BaseModel):
    """Pydantic model for account credentials.

    Accepts the ``user_email``/``user_key`` keys and the shorter
    ``email``/``password`` spelling.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    user_email: str = Field(
        default="", validation_alias=AliasChoices("user_email", "email")
    )
    user_key: str = Field(
        default="",
        repr=False,
        validation_alias=AliasChoices("user_key", "password"),
    )


class NetworkConfig(BaseModel):
    """Pydantic model for deadlines and TLS policy (in seconds)."""

    model_config = ConfigDict(frozen=True)

    connect_timeout: float = Field(default=10.0, gt=0)
    command_timeout: float = Field(default=30.0, gt=0)
    handshake_timeout: float = Field(default=10.0, gt=0)
    verify_certificate: bool = False
    local_hostname: str = "localhost"


class LoggingConfig(BaseModel):
    """Pydantic model for logging settings."""

    model_config = ConfigDict(frozen=True)

    log_level: str = "INFO"


class AppConfig(BaseModel):
    """Pydantic model for overall application configuration."""

    model_config = ConfigDict(frozen=True)

    submission: ServerConfig = Field(
        default_factory=lambda: ServerConfig(address="smtp.gmail.com", port=587)
    )
    retrieval: ServerConfig = Field(
        default_factory=lambda: ServerConfig(address="pop.gmail.com", port=995)
    )
    account: AccountConfig = Field(default_factory=AccountConfig)
    network: NetworkConfig = Field(default_factory=NetworkConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    def _client_config(self, server: ServerConfig):
        from mailwire.core.models.email import ClientConfig

        if not self.account.user_email or not self.account.user_key:
            raise MissingCredentialsError(
                "Account identity and secret must both be configured"
            )

        return ClientConfig(
            address=server.address,
            port=server.port,
            user_email=self.account.user_email,
            user_key=self.account.user_key,
        )

    def submission_client(self):
        """ClientConfig for the SMTP server."""
        return self._client_config(self.submission)

    def retrieval_client(self):
        """ClientConfig for the POP3 server."""
        return self._client_config(self.retrieval)

    def session_options(self, verify_certificate: Optional[bool] = None):
        """SessionOptions built from the network section."""
        from mailwire.core.email.session import SessionOptions

        verify = (
            self.network.verify_certificate
            if verify_certificate is None
            else verify_certificate
        )
        return SessionOptions(
            connect_timeout=self.network.connect_timeout,
            command_timeout=self.network.command_timeout,
            handshake_timeout=self.network.handshake_timeout,
            verify_certificate=verify,
            local_hostname=self.network.local_hostname,
        )


def resolve_config_path(path: Optional[Path] = None) -> Path:
    """Explicit path, then ``$MAILWIRE_CONFIG``, then the default location."""
    if path is not None:
        return Path(path).expanduser()

    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path).expanduser()

    return CONFIG_PATH


@log_call
def load_config(path: Optional[Path] = None) -> AppConfig:
    """Load and validate the configuration file.

    Raises:
        MissingConfigError: If the file does not exist
        InvalidConfigError: If the file is not valid JSON or fails validation
        ConfigurationError: If the file cannot be read
    """
    config_path = resolve_config_path(path)

    if not config_path.exists():
        raise MissingConfigError(
            f"Configuration file not found: {config_path}",
            details={"path": str(config_path)},
        )

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = json.load(f)

    except json.JSONDecodeError as e:
        raise InvalidConfigError(
            f"Configuration file is not valid JSON: {e}",
            details={"path": str(config_path)},
        ) from e

    except OSError as e:
        raise ConfigurationError(
            f"Failed to read configuration: {e}", details={"path": str(config_path)}
        ) from e

    if not isinstance(data, dict):
        raise InvalidConfigError(
            "Configuration file must contain a JSON object",
            details={"path": str(config_path)},
        )

    # A bare {"user_email": ..., "user_key": ...} file holds only the account.
    if "account" not in data and ("user_email" in data or "user_key" in data):
        data = {
            "account": {
                "user_email": data.pop("user_email", ""),
                "user_key": data.pop("user_key", ""),
            },
            **data,
        }

    try:
        return AppConfig.model_validate(data)

    except ValidationError as e:
        raise InvalidConfigError(
            f"Configuration data does not match expected schema: {e}",
            details={"path": str(config_path)},
        ) from e
