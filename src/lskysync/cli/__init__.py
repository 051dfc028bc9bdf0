"""CLI package for lskysync.

Usage:
    from lskysync.cli import app
    from lskysync.cli import ui
"""

from __future__ import annotations

from lskysync.cli import ui
from lskysync.cli.main import app

__all__ = ["app", "ui"]
