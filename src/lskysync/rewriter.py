"""Image link rewriting.

A rewrite replaces every reference to one path or URL, in all three
syntaxes, with a single canonical form:

- towards the image host: ``![alt](url)`` (alt kept from markdown/HTML)
- towards a local file:   ``![[filename]]``

The path is escaped before it goes into a pattern, and all three forms are
matched by one alternation so every replacement is applied to disjoint
spans of the original text in a single pass. Text between matches is
copied through untouched.
"""

from __future__ import annotations

import re

from lskysync.references import HTML_ALT_PATTERN
from lskysync.types import LinkTarget


def _reference_pattern(raw_path: str) -> re.Pattern[str]:
    # Tag and attribute names are case-insensitive, the path itself is not
    escaped = re.escape(raw_path)
    return re.compile(
        rf"(?P<markdown>!\[(?P<alt>[^\]\n]*)\]\(\s*{escaped}\s*\))"
        rf"|(?P<html><(?i:img)\b[^>]*?(?<![\w-])(?i:src)\s*=\s*"
        rf"(?:\"\s*{escaped}\s*\"|'\s*{escaped}\s*')[^>]*>)"
        rf"|(?P<wiki>!\[\[\s*{escaped}\s*(?:\|[^\]\n]*)?\]\])"
    )


def _alt_text(match: re.Match[str]) -> str:
    if match.group("markdown") is not None:
        return match.group("alt")
    if match.group("html") is not None:
        alt = HTML_ALT_PATTERN.search(match.group("html"))
        if alt:
            return alt.group(1) if alt.group(1) is not None else alt.group(2)
    return ""


def rewrite_reference(
    text: str,
    raw_path: str,
    replacement: str,
    target: LinkTarget,
) -> str:
    """Replace every reference to ``raw_path`` with the canonical form for ``target``.

    Args:
        text: Note content (working copy)
        raw_path: Path or URL exactly as it appears in the references
        replacement: New URL (REMOTE) or local file name (LOCAL)
        target: Rewrite direction

    Returns:
        The updated text; unchanged if ``raw_path`` is not referenced.
        Applying the same rewrite again returns the same text.
    """
    if not raw_path:
        return text
    pattern = _reference_pattern(raw_path)

    def substitute(match: re.Match[str]) -> str:
        if target is LinkTarget.LOCAL:
            return f"![[{replacement}]]"
        return f"![{_alt_text(match)}]({replacement})"

    # A callable keeps backslashes in the replacement literal
    return pattern.sub(substitute, text)


def rewrite_to_remote(text: str, raw_path: str, url: str) -> str:
    """Point every reference to a local path at an uploaded URL."""
    return rewrite_reference(text, raw_path, url, LinkTarget.REMOTE)


def rewrite_to_local(text: str, url: str, filename: str) -> str:
    """Point every reference to a remote URL at a downloaded file."""
    return rewrite_reference(text, url, filename, LinkTarget.LOCAL)
