"""Centralized path definitions for mailwire.

Single source of truth for the per-user directories used by the
configuration and logging layers.
"""

from pathlib import Path

# Base application directory
MAILWIRE_DIR = Path.home() / ".mailwire"

# Subdirectories
LOGS_DIR = MAILWIRE_DIR / "logs"

# Specific files
CONFIG_PATH = MAILWIRE_DIR / "config.json"
