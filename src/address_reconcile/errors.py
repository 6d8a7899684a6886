from __future__ import annotations

from typing import Dict, Sequence


class ReconcileError(Exception):
    """Base class for reconciliation errors."""


class ConfigurationError(ReconcileError):
    """Raised when configuration values are out of range."""


class InvalidInput(ReconcileError):
    """Raised when the input adapter violates the record contract."""


class MalformedAddress(ReconcileError):
    """Raised when mandatory address components are missing."""

    def __init__(self, missing: Sequence[str], record_id: str | None = None) -> None:
        self.missing = tuple(missing)
        self.record_id = record_id
        label = f"record {record_id}: " if record_id is not None else ""
        super().__init__(f"{label}missing {', '.join(self.missing)}")


class SnapshotVersionMismatch(ReconcileError):
    """Raised when a snapshot blob has an unrecognised format or version."""

    def __init__(self, found: object, expected: object) -> None:
        self.found = found
        self.expected = expected
        super().__init__(f"unsupported snapshot version {found!r} (expected {expected!r})")


class Cancelled(ReconcileError):
    """Raised when a run stops early because its cancellation token fired."""

    def __init__(self, reason: str, processed: int, total: int, partial_results: Dict | None = None) -> None:
        self.reason = reason
        self.processed = processed
        self.total = total
        self.partial_results = partial_results or {}
        super().__init__(f"run cancelled ({reason}) after {processed}/{total} records")
