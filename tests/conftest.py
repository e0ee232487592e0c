"""
Shared test fixtures and configuration for pytest
"""
import json
import shutil
import ssl
import subprocess

import pytest

from mailwire.core.models.email import ClientConfig
from mailwire.utils.console import reset_console
from mailwire.utils.logging import reset_logging


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch, tmp_path):
    """Keep tests away from the user's configuration and shared singletons"""
    monkeypatch.setenv("MAILWIRE_CONFIG", str(tmp_path / "missing-config.json"))
    yield
    reset_logging()
    reset_console()


@pytest.fixture
def client_config():
    """Credentials for a fake mail server"""
    return ClientConfig(
        address="mail.test",
        port=587,
        user_email="sender@example.com",
        user_key="s3cret-app-key",
    )


@pytest.fixture
def attachment_file(tmp_path):
    """A binary attachment larger than one encoding chunk"""
    path = tmp_path / "photo.jpeg"
    path.write_bytes(bytes(range(256)) * 40)
    return path


@pytest.fixture
def config_file(tmp_path):
    """A complete configuration file with credentials"""
    path = tmp_path / "config.json"
    path.write_text(json.dumps({
        "submission": {"address": "smtp.test", "port": 587},
        "retrieval": {"address": "pop.test", "port": 995},
        "account": {"user_email": "sender@example.com", "user_key": "s3cret-app-key"},
        "network": {"command_timeout": 5},
        "logging": {"log_level": "DEBUG"},
    }))
    return path


@pytest.fixture(scope="session")
def server_ssl_context(tmp_path_factory):
    """Server-side TLS context with a throwaway self-signed certificate"""
    if shutil.which("openssl") is None:
        pytest.skip("openssl is not available")

    cert_dir = tmp_path_factory.mktemp("tls")
    key_file = cert_dir / "key.pem"
    cert_file = cert_dir / "cert.pem"
    subprocess.run(
        [
            "openssl", "req", "-x509", "-newkey", "rsa:2048",
            "-keyout", str(key_file), "-out", str(cert_file),
            "-days", "1", "-nodes", "-subj", "/CN=localhost",
        ],
        check=True,
        capture_output=True,
    )

    context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
    context.load_cert_chain(str(cert_file), str(key_file))
    return context
