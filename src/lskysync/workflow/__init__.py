"""Sync workflows: upload, download and cleanup.

Each workflow drives the extractor, resolver, client and rewriter over
one or more notes and returns a report instead of raising on per-image
failures.
"""

from lskysync.workflow.cleanup import (
    CleanupReport,
    CleanupSummary,
    Confirmer,
    cleanup_unused_images,
    collect_used_urls,
    find_orphans,
)
from lskysync.workflow.download import (
    DownloadReport,
    NoteDownloadResult,
    download_all_images,
    download_note_images,
    filename_from_url,
)
from lskysync.workflow.helpers import BatchReport, require_origin
from lskysync.workflow.upload import UploadNamer, UploadReport, upload_note_images

__all__ = [
    "BatchReport",
    "CleanupReport",
    "CleanupSummary",
    "Confirmer",
    "DownloadReport",
    "NoteDownloadResult",
    "UploadNamer",
    "UploadReport",
    "cleanup_unused_images",
    "collect_used_urls",
    "download_all_images",
    "download_note_images",
    "filename_from_url",
    "find_orphans",
    "require_origin",
    "upload_note_images",
]
