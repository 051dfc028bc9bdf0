"""Document store access.

Workflows talk to the note collection through the DocumentStore protocol.
Paths are vault-relative strings with "/" separators ("notes/day.md"), the
same convention image references use, so resolver candidates can be checked
without translating separators.

FileSystemVault is the concrete store backed by a directory on disk.
"""

from __future__ import annotations

import asyncio
import os
import posixpath
from pathlib import Path
from typing import Protocol

import aiofiles
from loguru import logger

from lskysync.constants import NOTE_EXTENSION
from lskysync.errors import NoteReadError
from lskysync.security import (
    atomic_write_text_async,
    validate_path_within_base,
    write_bytes_async,
)


class DocumentStore(Protocol):
    """Async interface to the note collection and its binary files."""

    async def list_documents(self) -> list[str]: ...

    async def list_files(self) -> list[str]: ...

    async def read_text(self, path: str) -> str: ...

    async def write_text(self, path: str, content: str) -> None: ...

    async def read_binary(self, path: str) -> bytes: ...

    async def write_binary(self, path: str, data: bytes) -> None: ...

    async def create_folder(self, path: str) -> None: ...

    async def exists(self, path: str) -> bool: ...


def note_folder(note_path: str) -> str:
    """Return the folder containing a note ("" for the vault root)."""
    return posixpath.dirname(note_path)


def note_basename(note_path: str) -> str:
    """Return a note's file name without extension."""
    name = posixpath.basename(note_path)
    stem, _ext = posixpath.splitext(name)
    return stem or name


def join_vault_path(*parts: str) -> str:
    """Join vault path segments, ignoring empty ones."""
    return "/".join(part.strip("/") for part in parts if part and part.strip("/"))


class FileSystemVault:
    """DocumentStore backed by a local directory.

    Args:
        root: Vault root directory
        skip_hidden: Ignore files under dot-directories (.obsidian, .trash, .git)
    """

    def __init__(self, root: Path | str, skip_hidden: bool = True) -> None:
        self.root = Path(root).expanduser().resolve()
        self.skip_hidden = skip_hidden

    def __repr__(self) -> str:
        return f"FileSystemVault({str(self.root)!r})"

    def _fs_path(self, path: str) -> Path:
        """Map a vault path to a filesystem path inside the root.

        Raises:
            ValueError: If the path is empty or escapes the vault root
        """
        relative = path.replace("\\", "/").lstrip("/")
        if not relative:
            raise ValueError("Empty vault path")
        return validate_path_within_base(self.root / relative, self.root)

    def _walk(self, notes_only: bool) -> list[str]:
        found: list[str] = []
        for dirpath, dirnames, filenames in os.walk(self.root):
            if self.skip_hidden:
                dirnames[:] = [d for d in dirnames if not d.startswith(".")]
            dirnames.sort()
            rel_dir = Path(dirpath).relative_to(self.root).as_posix()
            for filename in sorted(filenames):
                if self.skip_hidden and filename.startswith("."):
                    continue
                if notes_only and not filename.lower().endswith(NOTE_EXTENSION):
                    continue
                found.append(filename if rel_dir == "." else f"{rel_dir}/{filename}")
        return found

    async def list_documents(self) -> list[str]:
        """List every markdown note, sorted by path."""
        return await asyncio.to_thread(self._walk, True)

    async def list_files(self) -> list[str]:
        """List every file in the vault, sorted by path."""
        return await asyncio.to_thread(self._walk, False)

    async def read_text(self, path: str) -> str:
        """Read a note as UTF-8, keeping its line endings.

        Raises:
            NoteReadError: If the note is not valid UTF-8
        """
        async with aiofiles.open(
            self._fs_path(path), encoding="utf-8", newline=""
        ) as f:
            try:
                return await f.read()
            except UnicodeDecodeError as e:
                raise NoteReadError(path, str(e)) from e

    async def write_text(self, path: str, content: str) -> None:
        await atomic_write_text_async(self._fs_path(path), content)
        logger.debug(f"Written note: {path}")

    async def read_binary(self, path: str) -> bytes:
        async with aiofiles.open(self._fs_path(path), "rb") as f:
            return await f.read()

    async def write_binary(self, path: str, data: bytes) -> None:
        """Create or overwrite a binary file."""
        await write_bytes_async(self._fs_path(path), data)

    async def create_folder(self, path: str) -> None:
        """Create a folder (and parents) if it does not exist."""
        if not path:
            return
        self._fs_path(path).mkdir(parents=True, exist_ok=True)

    async def exists(self, path: str) -> bool:
        """Check whether a vault path names an existing file.

        Paths outside the vault root never exist.
        """
        try:
            return self._fs_path(path).is_file()
        except ValueError:
            return False
