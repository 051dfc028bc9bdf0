"""Filesystem safety for vault writes.

Notes are replaced atomically (sibling temp file, then rename) so an
interrupted run never leaves a half-written note. Every vault path is
checked against the vault root before it is touched.
"""

from __future__ import annotations

import asyncio
import contextlib
import sys
from pathlib import Path

import aiofiles
import aiofiles.os
import aiofiles.tempfile

# On Windows an editor or indexer can hold the note open for a moment
_REPLACE_ATTEMPTS = 5 if sys.platform == "win32" else 1
_REPLACE_BACKOFF = 0.05


async def _replace(src: str, dst: Path) -> None:
    for attempt in range(1, _REPLACE_ATTEMPTS + 1):
        try:
            await aiofiles.os.replace(src, dst)
            return
        except PermissionError:
            if attempt == _REPLACE_ATTEMPTS:
                raise
            await asyncio.sleep(_REPLACE_BACKOFF * attempt)


async def atomic_write_text_async(
    path: Path, content: str, encoding: str = "utf-8"
) -> None:
    """Replace a text file in one step, keeping the content's line endings."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    tmp_name: str | None = None
    try:
        async with aiofiles.tempfile.NamedTemporaryFile(
            "w",
            encoding=encoding,
            newline="",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
        ) as tmp:
            tmp_name = tmp.name
            await tmp.write(content)
        await _replace(tmp_name, path)
    except BaseException:
        if tmp_name is not None:
            with contextlib.suppress(FileNotFoundError):
                await aiofiles.os.remove(tmp_name)
        raise


async def write_bytes_async(path: Path, data: bytes) -> None:
    """Create or overwrite a binary file, creating missing folders."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    async with aiofiles.open(path, "wb") as f:
        await f.write(data)


def validate_path_within_base(path: Path, base_dir: Path) -> Path:
    """Resolve ``path`` and make sure it stays under ``base_dir``.

    Raises:
        ValueError: If the resolved path escapes the base directory
    """
    resolved = path.resolve()
    if not resolved.is_relative_to(base_dir.resolve()):
        raise ValueError(f"Path escapes the vault: {path}")
    return resolved
