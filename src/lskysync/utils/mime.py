"""MIME type utilities for image uploads.

This module provides helper functions for MIME type operations,
using the centralized mapping defined in constants.py.
"""

from __future__ import annotations

from lskysync.constants import DEFAULT_MIME_TYPE, EXTENSION_TO_MIME


def get_mime_type(extension: str, default: str = DEFAULT_MIME_TYPE) -> str:
    """Get MIME type from file extension.

    Args:
        extension: File extension (with or without leading dot), e.g. ".jpg" or "jpg"
        default: Default MIME type if extension is not recognized

    Returns:
        MIME type string, e.g. "image/jpeg"

    Examples:
        >>> get_mime_type(".jpg")
        'image/jpeg'
        >>> get_mime_type("JFIF")
        'image/jpeg'
        >>> get_mime_type(".unknown")
        'application/octet-stream'
    """
    ext = extension.lower()
    if not ext.startswith("."):
        ext = f".{ext}"
    return EXTENSION_TO_MIME.get(ext, default)
