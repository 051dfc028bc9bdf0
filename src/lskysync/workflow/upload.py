"""Upload the local images of a note and point its references at the host."""

from __future__ import annotations

import posixpath
import re
import time
from collections.abc import Callable
from dataclasses import dataclass

from loguru import logger

from lskysync.client import LskyClient
from lskysync.constants import DEFAULT_UPLOAD_BASENAME, DEFAULT_UPLOAD_EXTENSION
from lskysync.errors import ImageNotFoundError, ProtocolError, TransportError
from lskysync.references import extract_references
from lskysync.resolver import PathResolver
from lskysync.rewriter import rewrite_to_remote
from lskysync.types import ReferenceFilter
from lskysync.utils.mime import get_mime_type
from lskysync.utils.progress import NullProgress, ProgressReporter
from lskysync.vault import DocumentStore, note_basename
from lskysync.workflow.helpers import BatchReport

_UNSAFE_FILENAME_CHARS = re.compile(r"[^\w\-.]+")

# Per-item failures; configuration and authorization errors abort the batch
_ITEM_ERRORS = (ImageNotFoundError, TransportError, ProtocolError, OSError)


class UploadNamer:
    """Collision-resistant upload names: ``<note>-<millis>.<ext>``.

    The millisecond token never repeats within one namer, even when two
    images are named in the same millisecond.
    """

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._last = 0

    def next_token(self) -> int:
        token = int(self._clock() * 1000)
        if token <= self._last:
            token = self._last + 1
        self._last = token
        return token

    def filename(self, original_name: str, note_path: str | None = None) -> str:
        safe_name = _UNSAFE_FILENAME_CHARS.sub("_", original_name)
        _stem, ext = posixpath.splitext(safe_name)
        ext = ext.lstrip(".") or DEFAULT_UPLOAD_EXTENSION
        base = note_basename(note_path) if note_path else DEFAULT_UPLOAD_BASENAME
        return f"{base}-{self.next_token()}.{ext}"


@dataclass
class UploadReport(BatchReport):
    """Result of uploading one note's images.

    ``succeeded`` maps raw reference -> uploaded URL, ``failed`` maps raw
    reference -> reason.
    """

    operation = "upload"

    note_path: str = ""
    total: int = 0  # local references found
    persisted: bool = False


async def upload_note_images(
    note_path: str,
    *,
    store: DocumentStore,
    client: LskyClient,
    resolver: PathResolver | None = None,
    progress: ProgressReporter | None = None,
    namer: UploadNamer | None = None,
) -> UploadReport:
    """Upload every local image a note references and rewrite the references.

    References are processed in extraction order on an in-memory copy; a
    failing reference is recorded and skipped. The note is written once, at
    the end, if at least one upload succeeded.

    Args:
        note_path: Vault path of the note
        store: Document store
        client: Image host client
        resolver: Path resolver (default policy if omitted)
        progress: Progress sink
        namer: Upload file namer

    Returns:
        UploadReport with per-reference outcomes
    """
    resolver = resolver or PathResolver()
    progress = progress or NullProgress()
    namer = namer or UploadNamer()

    content = await store.read_text(note_path)
    references = extract_references(content, ReferenceFilter.LOCAL)
    report = UploadReport(note_path=note_path, total=len(references))
    if not references:
        logger.info(f"No local images in {note_path}")
        return report

    logger.info(f"Found {len(references)} local images in {note_path}, uploading")
    progress.set_total(len(references))

    updated = content
    for ref in references:
        display_name = posixpath.basename(ref.raw_path.replace("\\", "/"))
        try:
            stored_path = await resolver.locate(ref.raw_path, note_path, store)
            data = await store.read_binary(stored_path)
            stored_name = posixpath.basename(stored_path)
            url = await client.upload_binary(
                data,
                namer.filename(stored_name, note_path),
                get_mime_type(posixpath.splitext(stored_name)[1]),
            )
        except _ITEM_ERRORS as e:
            logger.warning(f"Upload failed: {ref.raw_path} - {e}")
            report.failed[ref.raw_path] = str(e)
            progress.increment(f"failed: {display_name}")
            continue

        updated = rewrite_to_remote(updated, ref.raw_path, url)
        report.succeeded[ref.raw_path] = url
        logger.info(
            f"Uploaded ({len(report.succeeded)}/{report.total}): {display_name}"
        )
        progress.increment(display_name)

    if report.succeeded:
        await store.write_text(note_path, updated)
        report.persisted = True

    logger.info(
        f"Upload complete: {len(report.succeeded)}/{report.total} for {note_path}"
    )
    return report
