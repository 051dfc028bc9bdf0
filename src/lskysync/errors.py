"""Structured error classes for lskysync.

Every failure raised by the library derives from LskySyncError so callers
can catch one base class at the command boundary, while batch workflows
catch per-item failures and record them without aborting siblings.

Error Hierarchy:
    LskySyncError (base)
    ├── ConfigurationError (invalid server URL, missing credentials)
    ├── TransportError (HTTP status or network failure)
    ├── ProtocolError (response parsed but lacks the expected envelope)
    ├── UnauthorizedError (401 survived the single refresh-and-retry)
    ├── ImageNotFoundError (no storage path matched a local reference)
    ├── NoteReadError (a note is not valid UTF-8 text)
    └── PartialBatchFailure (batch finished with some items failing)

Usage:
    try:
        url = await client.upload_binary(data, "a.png", "image/png")
    except TransportError as e:
        print(f"HTTP {e.status_code}: {e.detail}")
    except ProtocolError as e:
        print(f"Unexpected response: {e}")
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence


class LskySyncError(Exception):
    """Base exception for all lskysync errors."""


class ConfigurationError(LskySyncError):
    """Raised when the configuration cannot be used (e.g. invalid server URL)."""


class TransportError(LskySyncError):
    """Error raised when an HTTP request fails.

    Attributes:
        status_code: HTTP status, or None when the request never got a response
        detail: Server-provided body text or the underlying network error
    """

    __slots__ = ("status_code", "detail")

    def __init__(
        self,
        message: str | None = None,
        *,
        status_code: int | None = None,
        detail: str | None = None,
    ) -> None:
        self.status_code = status_code
        self.detail = detail or None
        if message is None:
            message = f"HTTP {status_code}" if status_code is not None else "Request failed"
            if self.detail:
                message = f"{message} - {self.detail}"
        super().__init__(message)


class ProtocolError(LskySyncError):
    """Error raised when a response parses but lacks the expected shape."""


class UnauthorizedError(LskySyncError):
    """Error raised when the server still rejects the request after a token refresh."""


class ImageNotFoundError(LskySyncError):
    """Error raised when a local image reference cannot be resolved.

    Attributes:
        raw_path: The reference exactly as written in the note
        primary_path: The storage path the reference resolved to first
        candidates: Every storage path that was tried
    """

    __slots__ = ("raw_path", "primary_path", "candidates")

    def __init__(
        self,
        raw_path: str,
        *,
        primary_path: str,
        candidates: Sequence[str] = (),
    ) -> None:
        super().__init__(f"Image file not found: {primary_path}")
        self.raw_path = raw_path
        self.primary_path = primary_path
        self.candidates = list(candidates)


class NoteReadError(LskySyncError):
    """Error raised when a note cannot be decoded as text.

    Attributes:
        note_path: Vault path of the note
        reason: Decoder message
    """

    __slots__ = ("note_path", "reason")

    def __init__(self, note_path: str, reason: str) -> None:
        super().__init__(f"Cannot read note {note_path}: {reason}")
        self.note_path = note_path
        self.reason = reason


class PartialBatchFailure(LskySyncError):
    """Error raised when a batch completed but some items failed.

    The batch itself is not aborted; this is raised afterwards by
    ``raise_for_failures()`` on the batch report.

    Attributes:
        operation: Name of the batch operation ("upload", "download", "cleanup")
        succeeded: Number of items that succeeded
        failures: Mapping of failed item to reason
    """

    __slots__ = ("operation", "succeeded", "failures")

    def __init__(
        self,
        operation: str,
        *,
        succeeded: int,
        failures: Mapping[str, str],
    ) -> None:
        super().__init__(
            f"{operation}: {len(failures)} failed, {succeeded} succeeded"
        )
        self.operation = operation
        self.succeeded = succeeded
        self.failures = dict(failures)
