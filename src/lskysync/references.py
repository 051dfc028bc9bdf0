"""Image reference extraction.

Recognizes the three syntaxes notes use to embed an image:

- markdown: ``![alt](path)``
- inline HTML: ``<img ... src="path" ...>``
- wiki embed: ``![[path]]`` (an optional ``|alias`` suffix is not part of the path)

This is a plain string scan, not a markdown parser. It never mutates its
input, so it can be re-run on the same or rewritten text at any time.
"""

from __future__ import annotations

import re
from urllib.parse import urlparse

from lskysync.types import ImageReference, ReferenceFilter, ReferenceForm

MARKDOWN_IMAGE_PATTERN = re.compile(r"!\[([^\]\n]*)\]\(\s*([^)\n]+?)\s*\)")

HTML_IMAGE_PATTERN = re.compile(
    r"""<img\b[^>]*?(?<![\w-])src\s*=\s*(?:"([^"]+)"|'([^']+)')[^>]*>""",
    re.IGNORECASE,
)

HTML_ALT_PATTERN = re.compile(
    r"""(?<![\w-])alt\s*=\s*(?:"([^"]*)"|'([^']*)')""", re.IGNORECASE
)

WIKI_IMAGE_PATTERN = re.compile(r"!\[\[([^\]|\n]+)(?:\|[^\]\n]*)?\]\]")

_REMOTE_PREFIXES = ("http://", "https://")


def get_server_origin(server_url: str) -> str | None:
    """Return the ``scheme://host[:port]`` part of a server URL.

    Args:
        server_url: Configured API URL, e.g. "https://img.example.com/api/v1"

    Returns:
        The origin, or None when the URL has no scheme or host
    """
    try:
        parsed = urlparse(server_url.strip())
        port = parsed.port
    except ValueError:
        return None
    if not parsed.scheme or not parsed.hostname:
        return None
    host = parsed.hostname if port is None else f"{parsed.hostname}:{port}"
    return f"{parsed.scheme}://{host}"


def is_local_path(path: str) -> bool:
    """Check whether a reference points at a file in the vault.

    Remote URLs (http/https), protocol-relative URLs and data: URIs are not local.
    """
    if not path:
        return False
    lowered = path.lower()
    if lowered.startswith(_REMOTE_PREFIXES):
        return False
    if path.startswith("//"):
        return False
    return not lowered.startswith("data:")


def matches_origin(url: str, origin: str) -> bool:
    """Check whether a URL belongs to the given service origin.

    The origin must be followed by the end of the URL or a path, query or
    fragment delimiter, so "https://img.example.com.evil.org" does not match
    "https://img.example.com".
    """
    if not origin or not url.startswith(origin):
        return False
    rest = url[len(origin) :]
    return not rest or rest[0] in "/?#"


def _html_alt(tag: str) -> str:
    match = HTML_ALT_PATTERN.search(tag)
    if not match:
        return ""
    return match.group(1) if match.group(1) is not None else match.group(2)


def _scan(text: str) -> list[ImageReference]:
    """Scan every form independently, in precedence order."""
    found: list[ImageReference] = []

    for match in MARKDOWN_IMAGE_PATTERN.finditer(text):
        found.append(
            ImageReference(
                form=ReferenceForm.MARKDOWN,
                raw_path=match.group(2).strip(),
                matched_text=match.group(0),
                alt=match.group(1),
            )
        )

    for match in HTML_IMAGE_PATTERN.finditer(text):
        src = match.group(1) if match.group(1) is not None else match.group(2)
        found.append(
            ImageReference(
                form=ReferenceForm.HTML,
                raw_path=src.strip(),
                matched_text=match.group(0),
                alt=_html_alt(match.group(0)),
            )
        )

    for match in WIKI_IMAGE_PATTERN.finditer(text):
        found.append(
            ImageReference(
                form=ReferenceForm.WIKI,
                raw_path=match.group(1).strip(),
                matched_text=match.group(0),
            )
        )

    return found


def extract_references(
    text: str,
    filter: ReferenceFilter = ReferenceFilter.ALL,
    origin: str | None = None,
) -> list[ImageReference]:
    """Extract image references from note text.

    Results are ordered markdown first, then HTML, then wiki embeds, and
    de-duplicated by raw path (the first occurrence wins).

    Args:
        text: Note content
        filter: Which references to keep
        origin: Service origin, required for ReferenceFilter.REMOTE

    Returns:
        Ordered list of unique references

    Raises:
        ValueError: If filter is REMOTE and no origin is given
    """
    if filter is ReferenceFilter.REMOTE and not origin:
        raise ValueError("A service origin is required to extract remote references")

    seen: set[str] = set()
    references: list[ImageReference] = []
    for ref in _scan(text):
        if not ref.raw_path or ref.raw_path in seen:
            continue
        if filter is ReferenceFilter.LOCAL and not is_local_path(ref.raw_path):
            continue
        if filter is ReferenceFilter.REMOTE and not matches_origin(
            ref.raw_path, origin or ""
        ):
            continue
        seen.add(ref.raw_path)
        references.append(ref)
    return references


def extract_remote_urls(text: str, origin: str) -> list[str]:
    """Return the unique service URLs referenced by a note, in extraction order."""
    return [
        ref.raw_path
        for ref in extract_references(text, ReferenceFilter.REMOTE, origin=origin)
    ]
