"""Download host images back into the vault and point references at them.

Images are saved next to the note in a folder named after it
(``<note folder>/<note basename>/<file name>``) and every reference is
rewritten to ``![[file name]]``. The reference never goes back to the
form it had before upload; download always produces the wiki embed.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from urllib.parse import urlparse

from loguru import logger

from lskysync.client import LskyClient
from lskysync.constants import DEFAULT_DOWNLOAD_FILENAME
from lskysync.errors import (
    NoteReadError,
    PartialBatchFailure,
    ProtocolError,
    TransportError,
)
from lskysync.references import extract_remote_urls
from lskysync.resolver import decode_path
from lskysync.rewriter import rewrite_to_local
from lskysync.utils.progress import NullProgress, ProgressReporter
from lskysync.vault import DocumentStore, join_vault_path, note_basename, note_folder
from lskysync.workflow.helpers import BatchReport

_ITEM_ERRORS = (TransportError, ProtocolError, OSError)


def filename_from_url(url: str) -> str:
    """Return the percent-decoded last path segment of a URL.

    Separators produced by decoding ("%2F") are replaced so the name stays
    a single path segment.
    """
    try:
        name = urlparse(url).path.split("/")[-1]
    except ValueError:
        return DEFAULT_DOWNLOAD_FILENAME
    name = decode_path(name).replace("/", "_").replace("\\", "_").strip()
    if name in ("", ".", ".."):
        return DEFAULT_DOWNLOAD_FILENAME
    return name


def _unique_name(name: str, taken: set[str]) -> str:
    """Suffix a name already saved for another URL of the same note."""
    candidate = name
    stem, dot, ext = name.rpartition(".")
    if not dot:
        stem, ext = name, ""
    counter = 1
    while candidate in taken:
        candidate = f"{stem}-{counter}.{ext}" if ext else f"{stem}-{counter}"
        counter += 1
    return candidate


def download_folder(note_path: str) -> str:
    """Folder that holds a note's downloaded images."""
    return join_vault_path(note_folder(note_path), note_basename(note_path))


@dataclass
class NoteDownloadResult(BatchReport):
    """Result for one note: URL -> saved vault path, or URL -> reason."""

    operation = "download"

    note_path: str = ""
    persisted: bool = False

    def failure_lines(self) -> dict[str, str]:
        """Failures keyed "<note>: <url>"; an unreadable note is keyed by its path."""
        return {
            item if item == self.note_path else f"{self.note_path}: {item}": reason
            for item, reason in self.failed.items()
        }


@dataclass
class DownloadReport:
    """Result of downloading images for one or more notes."""

    notes: list[NoteDownloadResult] = field(default_factory=list)

    @property
    def succeeded_count(self) -> int:
        return sum(len(n.succeeded) for n in self.notes)

    @property
    def failed_count(self) -> int:
        return sum(len(n.failed) for n in self.notes)

    def raise_for_failures(self) -> None:
        """Raise PartialBatchFailure if any image in any note failed."""
        failures: dict[str, str] = {}
        for note in self.notes:
            failures.update(note.failure_lines())
        if failures:
            raise PartialBatchFailure(
                "download", succeeded=self.succeeded_count, failures=failures
            )


async def _download_note(
    note_path: str,
    content: str,
    *,
    store: DocumentStore,
    client: LskyClient,
    origin: str,
    on_item: Callable[[str], None] | None = None,
) -> NoteDownloadResult:
    result = NoteDownloadResult(note_path=note_path)
    urls = extract_remote_urls(content, origin)
    if not urls:
        return result

    folder = download_folder(note_path)
    await store.create_folder(folder)

    updated = content
    taken: set[str] = set()
    for url in urls:
        name = _unique_name(filename_from_url(url), taken)
        target = join_vault_path(folder, name)
        try:
            data = await client.download_binary(url)
            await store.write_binary(target, data)
        except _ITEM_ERRORS as e:
            logger.warning(f"Download failed: {url} - {e}")
            result.failed[url] = str(e)
            if on_item is not None:
                on_item(f"failed: {name}")
            continue

        taken.add(name)
        updated = rewrite_to_local(updated, url, name)
        result.succeeded[url] = target
        logger.debug(f"Downloaded: {url} -> {target}")
        if on_item is not None:
            on_item(name)

    if updated != content:
        await store.write_text(note_path, updated)
        result.persisted = True
    return result


async def download_note_images(
    note_path: str,
    *,
    store: DocumentStore,
    client: LskyClient,
    origin: str,
    progress: ProgressReporter | None = None,
) -> DownloadReport:
    """Download the host images referenced by one note.

    Args:
        note_path: Vault path of the note
        store: Document store
        client: Image host client (used for fetching)
        origin: Service origin; only URLs on it are downloaded
        progress: Progress sink, advanced once per image

    Returns:
        DownloadReport with a single note entry
    """
    progress = progress or NullProgress()
    content = await store.read_text(note_path)
    progress.set_total(len(extract_remote_urls(content, origin)))

    result = await _download_note(
        note_path,
        content,
        store=store,
        client=client,
        origin=origin,
        on_item=progress.increment,
    )
    if not result.attempted:
        logger.info(f"No host images to download in {note_path}")
    else:
        logger.info(
            f"Download complete: {len(result.succeeded)}/{result.attempted} images"
        )
    return DownloadReport(notes=[result])


async def download_all_images(
    *,
    store: DocumentStore,
    client: LskyClient,
    origin: str,
    progress: ProgressReporter | None = None,
) -> DownloadReport:
    """Download the host images referenced by every note, one note at a time.

    A failing image is recorded and skipped; it never stops the remaining
    images or notes. A note that cannot be decoded is recorded as a failure
    keyed by its own path.

    Args:
        store: Document store
        client: Image host client (used for fetching)
        origin: Service origin; only URLs on it are downloaded
        progress: Progress sink, advanced once per note

    Returns:
        DownloadReport with an entry for every note that referenced host
        images or could not be read
    """
    progress = progress or NullProgress()
    notes = await store.list_documents()
    progress.set_total(len(notes))

    report = DownloadReport()
    for note_path in notes:
        try:
            content = await store.read_text(note_path)
        except NoteReadError as e:
            logger.warning(f"Skipping note: {e}")
            result = NoteDownloadResult(note_path=note_path)
            result.failed[note_path] = e.reason
        else:
            result = await _download_note(
                note_path, content, store=store, client=client, origin=origin
            )
        if result.attempted:
            report.notes.append(result)
        progress.increment(note_basename(note_path))

    logger.info(
        f"Download complete: {report.succeeded_count} images "
        f"from {len(report.notes)} notes"
    )
    return report
