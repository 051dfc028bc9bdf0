"""CLI command groups for lskysync.

- config: Configuration management commands
"""

from lskysync.cli.commands.config import config

__all__ = ["config"]
