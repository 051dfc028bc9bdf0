"""Reconcile the host inventory with the notes and delete unused images.

The decision is always made on a fresh listing: the inventory is fetched
on every run and nothing is cached between runs. Deletion happens only
after the caller's confirmation callback accepts the summary.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field

from loguru import logger

from lskysync.client import LskyClient
from lskysync.constants import DEFAULT_CLEANUP_PREVIEW_LIMIT
from lskysync.errors import ProtocolError, TransportError
from lskysync.references import extract_remote_urls
from lskysync.types import RemoteImageItem
from lskysync.utils.progress import NullProgress, ProgressReporter
from lskysync.vault import DocumentStore
from lskysync.workflow.helpers import BatchReport


@dataclass(frozen=True)
class CleanupSummary:
    """What a cleanup run is about to delete, shown for confirmation."""

    total: int  # images on the host
    orphans: list[RemoteImageItem] = field(default_factory=list)
    preview_limit: int = DEFAULT_CLEANUP_PREVIEW_LIMIT

    @property
    def sample(self) -> list[str]:
        """URLs of the first ``preview_limit`` orphans."""
        return [item.links.url for item in self.orphans[: self.preview_limit]]

    @property
    def remaining(self) -> int:
        """Orphans not included in the sample."""
        return max(0, len(self.orphans) - self.preview_limit)


Confirmer = Callable[[CleanupSummary], Awaitable[bool]]


@dataclass
class CleanupReport(BatchReport):
    """Result of a cleanup run.

    ``succeeded`` maps deleted URL -> key, ``failed`` maps URL -> reason.
    """

    operation = "cleanup"

    total: int = 0
    orphan_count: int = 0
    cancelled: bool = False

    @property
    def nothing_to_clean(self) -> bool:
        return self.orphan_count == 0


async def collect_used_urls(store: DocumentStore, origin: str) -> set[str]:
    """Collect every host URL referenced by any note.

    An unreadable note raises NoteReadError: skipping it could hide a
    reference and delete an image that is still in use.
    """
    used: set[str] = set()
    for note_path in await store.list_documents():
        content = await store.read_text(note_path)
        used.update(extract_remote_urls(content, origin))
    logger.debug(f"Notes reference {len(used)} host images")
    return used


def find_orphans(
    inventory: Iterable[RemoteImageItem], used_urls: set[str]
) -> list[RemoteImageItem]:
    """Return inventory items whose URL no note references, in inventory order."""
    return [item for item in inventory if item.links.url not in used_urls]


async def cleanup_unused_images(
    *,
    store: DocumentStore,
    client: LskyClient,
    origin: str,
    confirm: Confirmer,
    progress: ProgressReporter | None = None,
    preview_limit: int = DEFAULT_CLEANUP_PREVIEW_LIMIT,
) -> CleanupReport:
    """Delete host images that no note references.

    The notes scan and the inventory listing run concurrently. Deletions run
    one at a time with ``client.pacing.delete_delay`` between them; a failed
    deletion is recorded and the rest continue.

    Args:
        store: Document store
        client: Image host client
        origin: Service origin used to recognize host URLs in notes
        confirm: Async callback; deletion only proceeds if it returns True
        progress: Progress sink, advanced once per deletion
        preview_limit: Orphan URLs included in the confirmation sample

    Returns:
        CleanupReport; ``cancelled`` is set if confirmation was declined
    """
    progress = progress or NullProgress()

    used, inventory = await asyncio.gather(
        collect_used_urls(store, origin),
        client.list_all_images(),
    )
    orphans = find_orphans(inventory, used)
    report = CleanupReport(total=len(inventory), orphan_count=len(orphans))
    logger.info(f"Host has {len(inventory)} images, {len(orphans)} unused")

    if not orphans:
        return report

    summary = CleanupSummary(
        total=len(inventory), orphans=orphans, preview_limit=preview_limit
    )
    if not await confirm(summary):
        logger.info("Cleanup cancelled")
        report.cancelled = True
        return report

    progress.set_total(len(orphans))
    for index, item in enumerate(orphans):
        url = item.links.url
        try:
            await client.delete_image_by_key(item.key)
        except (TransportError, ProtocolError) as e:
            logger.warning(f"Delete failed: {url} - {e}")
            report.failed[url] = str(e)
        else:
            report.succeeded[url] = item.key
        progress.increment(item.name or url)
        if index < len(orphans) - 1:
            await asyncio.sleep(client.pacing.delete_delay)

    logger.info(
        f"Cleanup complete: {len(report.succeeded)} deleted, {len(report.failed)} failed"
    )
    return report
