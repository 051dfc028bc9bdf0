"""Centralized constants for lskysync.

This module contains the hardcoded defaults used throughout the codebase.
Grouping them here makes it easier to find and modify default values.
"""

from __future__ import annotations

# =============================================================================
# Remote Service
# =============================================================================

DEFAULT_SERVER_URL = "https://lsky.example.com/api/v1"
DEFAULT_STRATEGY_ID = 1  # Some Lsky setups reject uploads without a strategy
DEFAULT_HTTP_TIMEOUT = 30.0  # seconds
DEFAULT_USER_AGENT = "lskysync/0.3.0"

# Pacing between sequential requests against the image host
DEFAULT_LIST_PAGE_DELAY = 0.08  # seconds between image list pages
DEFAULT_DELETE_DELAY = 0.15  # seconds between deletions

# =============================================================================
# Path Resolution
# =============================================================================

# Order in which alternative storage paths are tried for a local reference
DEFAULT_RESOLVER_STRATEGIES: tuple[str, ...] = (
    "primary",
    "strip_attachments",
    "as_is",
    "attachments_prefix",
    "note_folder",
    "capitalized_attachments",
    "same_name_folder",
)
DEFAULT_ATTACHMENTS_FOLDER = "attachments"
DEFAULT_CAPITALIZED_ATTACHMENTS_FOLDER = "Attachments"

# =============================================================================
# Naming
# =============================================================================

DEFAULT_UPLOAD_EXTENSION = "bin"
DEFAULT_DOWNLOAD_FILENAME = "image"
DEFAULT_UPLOAD_BASENAME = "file"
NOTE_EXTENSION = ".md"

# =============================================================================
# Cleanup
# =============================================================================

DEFAULT_CLEANUP_PREVIEW_LIMIT = 20  # Orphan URLs listed in the confirmation

# =============================================================================
# Logging
# =============================================================================

DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_LOG_ROTATION = "10 MB"
DEFAULT_LOG_RETENTION = "7 days"
DEFAULT_LOG_DIR = "~/.lskysync/logs"

# =============================================================================
# Paths and Filenames
# =============================================================================

CONFIG_FILENAME = "lskysync.json"
DEFAULT_VAULT_DIR = "."
DEFAULT_JSON_INDENT = 2

# =============================================================================
# MIME Types
# =============================================================================

EXTENSION_TO_MIME: dict[str, str] = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".jfif": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".webp": "image/webp",
    ".bmp": "image/bmp",
    ".svg": "image/svg+xml",
    ".ico": "image/x-icon",
}

DEFAULT_MIME_TYPE = "application/octet-stream"
