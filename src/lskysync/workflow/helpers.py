"""Shared helpers for the sync workflows."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import ClassVar

from lskysync.errors import ConfigurationError, PartialBatchFailure
from lskysync.references import get_server_origin


@dataclass
class BatchReport:
    """Outcome of a batch: every item lands in exactly one of the two maps.

    Attributes:
        succeeded: item -> result (URL, local path or key)
        failed: item -> failure reason
    """

    operation: ClassVar[str] = "batch"

    succeeded: dict[str, str] = field(default_factory=dict)
    failed: dict[str, str] = field(default_factory=dict)

    @property
    def attempted(self) -> int:
        return len(self.succeeded) + len(self.failed)

    @property
    def partial(self) -> bool:
        """True when some items failed and others succeeded."""
        return bool(self.failed) and bool(self.succeeded)

    def raise_for_failures(self) -> None:
        """Raise PartialBatchFailure if any item failed."""
        if self.failed:
            raise PartialBatchFailure(
                self.operation, succeeded=len(self.succeeded), failures=self.failed
            )


def require_origin(server_url: str) -> str:
    """Return the service origin for a server URL.

    Raises:
        ConfigurationError: If the URL has no scheme or host
    """
    origin = get_server_origin(server_url)
    if origin is None:
        raise ConfigurationError(f"Invalid server URL: {server_url!r}")
    return origin
