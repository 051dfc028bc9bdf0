"""Local image path resolution.

Notes reference local images in many inconsistent ways: Windows
separators, percent-encoded names, wiki brackets, "./" prefixes, paths
relative to the vault root or to the note, files parked in an
"attachments" folder or in a folder named after the note. PathResolver
turns one raw reference into an ordered list of storage paths to try, and
falls back to a vault-wide file name search.

The order of the alternative strategies is configurable (ResolverConfig);
the default is:

1. primary resolution (vault root for "/..." paths, else the note's folder)
2. the path with an "attachments/" prefix stripped
3. the path as-is
4. the path with an "attachments/" prefix added
5. the path relative to the note's folder
6. the path with an "Attachments/" prefix added
7. <note folder>/<note basename>/<file name>

Each strategy runs for the raw and the percent-decoded spelling.
"""

from __future__ import annotations

import posixpath
from collections.abc import Callable
from urllib.parse import unquote

from loguru import logger

from lskysync.config import ResolverConfig
from lskysync.errors import ImageNotFoundError
from lskysync.vault import DocumentStore, join_vault_path, note_basename, note_folder


def decode_path(path: str) -> str:
    """Percent-decode a path, returning it unchanged if it is not valid UTF-8."""
    try:
        return unquote(path, errors="strict")
    except UnicodeDecodeError:
        return path


def _dedupe(paths: list[str]) -> list[str]:
    return list(dict.fromkeys(p for p in paths if p))


class PathResolver:
    """Resolve raw local image references to storage paths."""

    def __init__(self, config: ResolverConfig | None = None) -> None:
        self.config = config or ResolverConfig()
        self._attachments = self.config.attachments_folder.strip("/") + "/"
        self._capitalized = self.config.capitalized_attachments_folder.strip("/") + "/"
        self._strategies: dict[str, Callable[[str, str], str | None]] = {
            "primary": self.resolve,
            "strip_attachments": self._strip_attachments,
            "as_is": lambda path, _note: path,
            "attachments_prefix": self._attachments_prefix,
            "note_folder": self._note_folder,
            "capitalized_attachments": lambda path, _note: self._capitalized + path,
            "same_name_folder": self._same_name_folder,
        }

    @staticmethod
    def normalize(raw_path: str) -> str:
        """Clean up a raw reference before resolution.

        Converts backslashes, decodes %20, strips wiki brackets and a
        leading "./", and trims whitespace.
        """
        path = raw_path.strip().replace("\\", "/").replace("%20", " ")
        if path.startswith("[["):
            path = path[2:]
        if path.endswith("]]"):
            path = path[:-2]
        if path.startswith("./"):
            path = path[2:]
        return path.strip()

    def resolve(self, raw_path: str, note_path: str) -> str:
        """Return the primary storage path for a reference.

        Absolute paths ("/img/a.png") are relative to the vault root,
        everything else is relative to the note's folder.
        """
        path = self.normalize(raw_path)
        if path.startswith("/"):
            return path[1:]
        return join_vault_path(note_folder(note_path), path) if path else ""

    def _strip_attachments(self, path: str, _note: str) -> str | None:
        if self._attachments in path:
            return path.replace(self._attachments, "", 1)
        return None

    def _attachments_prefix(self, path: str, _note: str) -> str | None:
        if path.startswith(self._attachments):
            return None
        return self._attachments + path

    def _note_folder(self, path: str, note_path: str) -> str | None:
        folder = note_folder(note_path)
        return f"{folder}/{path}" if folder else None

    def _same_name_folder(self, path: str, note_path: str) -> str | None:
        name = path.split("/")[-1]
        if not name:
            return None
        return join_vault_path(note_folder(note_path), note_basename(note_path), name)

    def alternatives(self, raw_path: str, note_path: str) -> list[str]:
        """Return alternative storage paths in strategy order, without duplicates."""
        normalized = self.normalize(raw_path)
        variants = _dedupe([normalized, decode_path(normalized)])

        paths: list[str] = []
        for variant in variants:
            for name in self.config.strategies:
                candidate = self._strategies[name](variant, note_path)
                if candidate:
                    paths.append(candidate)
        return _dedupe(paths)

    def candidates(self, raw_path: str, note_path: str) -> list[str]:
        """Return every storage path to try, the decoded primary path first."""
        primary = self.resolve(decode_path(raw_path), note_path)
        return _dedupe([primary, *self.alternatives(raw_path, note_path)])

    async def locate(self, raw_path: str, note_path: str, store: DocumentStore) -> str:
        """Find the stored file a reference points at.

        Tries every candidate path, then searches the whole store for a
        file with the same name (raw, then decoded); the first match wins.

        Raises:
            ImageNotFoundError: If no candidate exists and no file name matches
        """
        candidates = self.candidates(raw_path, note_path)
        for candidate in candidates:
            if await store.exists(candidate):
                return candidate

        name = posixpath.basename(self.normalize(raw_path))
        if name:
            files = await store.list_files()
            for wanted in _dedupe([name, decode_path(name)]):
                for path in files:
                    if posixpath.basename(path) == wanted:
                        logger.debug(f"Resolved {raw_path} by file name search: {path}")
                        return path

        raise ImageNotFoundError(
            raw_path,
            primary_path=candidates[0] if candidates else raw_path,
            candidates=candidates,
        )
