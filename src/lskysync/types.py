"""Shared types for lskysync."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from pydantic import BaseModel, ConfigDict


class ReferenceForm(str, Enum):
    """Textual syntax used to embed an image in a note."""

    MARKDOWN = "markdown"  # ![alt](path)
    HTML = "html"  # <img src="path">
    WIKI = "wiki"  # ![[path]]


class ReferenceFilter(str, Enum):
    """Which references extraction should return."""

    ALL = "all"
    LOCAL = "local"
    REMOTE = "remote"  # Only URLs on the configured service origin


class LinkTarget(str, Enum):
    """Direction of a rewrite, which decides the canonical output form."""

    REMOTE = "remote"  # ![alt](url)
    LOCAL = "local"  # ![[filename]]


@dataclass(frozen=True, slots=True)
class ImageReference:
    """One image reference found in a note.

    Attributes:
        form: Syntax the reference was written in
        raw_path: Path or URL exactly as written (unmodified)
        matched_text: The full matched reference text
        alt: Alt text (markdown alt or HTML alt attribute, empty for wiki)
    """

    form: ReferenceForm
    raw_path: str
    matched_text: str
    alt: str = ""


class ImageLinks(BaseModel):
    """Links block of a remote image."""

    model_config = ConfigDict(extra="ignore")

    url: str
    thumbnail_url: str | None = None


class RemoteImageItem(BaseModel):
    """One image stored on the remote service.

    ``key`` is the deletion handle, ``links.url`` is what notes reference.
    """

    model_config = ConfigDict(extra="ignore")

    key: str
    name: str = ""
    origin_name: str | None = None
    pathname: str | None = None
    size: float | None = None
    links: ImageLinks
