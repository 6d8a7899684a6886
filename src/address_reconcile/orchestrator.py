"""
Batch driver for a full reconciliation run.

The spatial index is built once on the calling thread. Normalization and
matching fan out over a bounded thread pool; every unit only reads the index
and the config. Duplicate flagging, conflict detection, drift and the diff
need the whole result set and run on the calling thread.
"""

from __future__ import annotations

import threading
from collections import Counter
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union

from loguru import logger

from .components import (
    ConflictRecord,
    DiffEntry,
    DriftEntry,
    MatchResult,
    NormalizedRecord,
    RawAddressRecord,
    ReferenceFeature,
    SkippedFeature,
)
from .config import ReconcileConfig
from .conflicts import ConflictDetector
from .diff import SNAPSHOT_VERSION, Snapshot, diff_snapshots, dump_snapshot, load_snapshot, summarize_diff
from .drift import measure_drift
from .engine import AddressMatcher, flag_duplicates
from .errors import Cancelled, InvalidInput, MalformedAddress, SnapshotVersionMismatch
from .parser import normalize_record
from .progress import CancellationToken, ProgressChannel
from .spatial_index import SpatialIndex


@dataclass
class ReconciliationReport:
    results: Dict[str, MatchResult]
    conflicts: List[ConflictRecord]
    skipped_features: Tuple[SkippedFeature, ...] = ()
    malformed: int = 0
    drift: List[DriftEntry] = field(default_factory=list)
    diff: Optional[List[DiffEntry]] = None
    diff_error: Optional[str] = None

    def summary(self) -> Dict[str, int]:
        counts = Counter(result.status.value for result in self.results.values())
        summary = {
            "records": len(self.results),
            "matched": counts.get("matched", 0),
            "unmatched": counts.get("unmatched", 0),
            "ambiguous": counts.get("ambiguous", 0),
            "duplicate": counts.get("duplicate", 0),
            "malformed": self.malformed,
            "conflicts": len(self.conflicts),
            "skipped_features": len(self.skipped_features),
        }
        if self.diff is not None:
            summary.update({f"diff_{kind}": count for kind, count in summarize_diff(self.diff).items()})
        return summary

    def snapshot(self) -> Snapshot:
        return Snapshot(dict(self.results))

    def dump_snapshot(self) -> str:
        return dump_snapshot(self.snapshot())

    def as_dict(self) -> Dict:
        return {
            "results": [self.results[record_id].as_dict() for record_id in sorted(self.results)],
            "conflicts": [conflict.as_dict() for conflict in self.conflicts],
            "skipped_features": [skipped.as_dict() for skipped in self.skipped_features],
            "drift": [entry.as_dict() for entry in self.drift],
            "diff": None if self.diff is None else [entry.as_dict() for entry in self.diff],
            "diff_error": self.diff_error,
            "summary": self.summary(),
        }


def _normalize_unit(
    record: RawAddressRecord, token: CancellationToken
) -> Union[NormalizedRecord, MalformedAddress, None]:
    if token.cancelled:
        return None
    try:
        return normalize_record(record)
    except MalformedAddress as exc:
        return exc


def _match_unit(matcher: AddressMatcher, record: NormalizedRecord, token: CancellationToken) -> Optional[MatchResult]:
    if token.cancelled:
        return None
    return matcher.match(record)


class BatchOrchestrator:
    def __init__(self, config: ReconcileConfig | None = None) -> None:
        self.config = config or ReconcileConfig()

    def run(
        self,
        records: Iterable[RawAddressRecord],
        features: Iterable[ReferenceFeature],
        prior: Union[Snapshot, str, bytes, None] = None,
        progress: Optional[ProgressChannel] = None,
        cancel: Optional[CancellationToken] = None,
    ) -> ReconciliationReport:
        records = list(records)
        seen = set()
        for record in records:
            if record.record_id in seen:
                raise InvalidInput(f"record id {record.record_id!r} appears more than once")
            seen.add(record.record_id)

        prior, diff_error = self._load_prior(prior)

        token = cancel or CancellationToken()
        timer = None
        if self.config.timeout_seconds:
            timer = threading.Timer(self.config.timeout_seconds, token.cancel, args=("timeout",))
            timer.daemon = True
            timer.start()
        try:
            return self._run(records, features, prior, diff_error, progress, token)
        finally:
            if timer is not None:
                timer.cancel()
            if progress is not None:
                progress.close()

    def _run(
        self,
        records: Sequence[RawAddressRecord],
        features: Iterable[ReferenceFeature],
        prior: Optional[Snapshot],
        diff_error: Optional[str],
        progress: Optional[ProgressChannel],
        token: CancellationToken,
    ) -> ReconciliationReport:
        config = self.config
        total = len(records)
        logger.info(f"Reconciling {total} records with {config.worker_count} workers")

        index = SpatialIndex(features, config.excluded_statuses)
        matcher = AddressMatcher(index, config)
        results: Dict[str, MatchResult] = {}
        normalized: Dict[str, NormalizedRecord] = {}
        malformed = 0

        with ThreadPoolExecutor(max_workers=config.worker_count, thread_name_prefix="reconcile") as pool:
            futures = [pool.submit(_normalize_unit, record, token) for record in records]
            for record, future in zip(records, futures):
                outcome = future.result()
                if outcome is None:
                    continue
                if isinstance(outcome, MalformedAddress):
                    malformed += 1
                    logger.debug(f"Record {record.record_id} is malformed: {outcome}")
                    results[record.record_id] = MatchResult.unmatched(
                        record.record_id, f"malformed address: missing {', '.join(outcome.missing)}"
                    )
                else:
                    normalized[record.record_id] = outcome
            if token.cancelled:
                raise self._cancelled(token, results, total)

            duplicates = flag_duplicates(list(normalized.values()), config.duplicate_tolerance)
            for record_id, original in duplicates.items():
                results[record_id] = MatchResult.duplicate(record_id, original, normalized[record_id].notes)
            if progress is not None:
                progress.publish(len(results), total)

            pending: Dict[Future, str] = {
                pool.submit(_match_unit, matcher, record, token): record.record_id
                for record in normalized.values()
                if record.record_id not in duplicates
            }
            for future in as_completed(pending):
                if token.cancelled:
                    for other in pending:
                        other.cancel()
                if future.cancelled():
                    continue
                result = future.result()
                if result is None:
                    continue
                results[result.record_id] = result
                if progress is not None:
                    progress.publish(len(results), total)

        if token.cancelled:
            raise self._cancelled(token, results, total)

        results = {record_id: results[record_id] for record_id in sorted(results)}
        conflicts = ConflictDetector(index, config).detect(results, normalized)

        drift: List[DriftEntry] = []
        if config.drift_threshold is not None:
            drift = measure_drift(results, normalized, index, config.drift_threshold)

        diff = None
        if prior is not None:
            diff = diff_snapshots(prior, Snapshot(results))

        report = ReconciliationReport(
            results=results,
            conflicts=conflicts,
            skipped_features=index.skipped,
            malformed=malformed,
            drift=drift,
            diff=diff,
            diff_error=diff_error,
        )
        logger.info(f"Reconciliation complete: {report.summary()}")
        return report

    @staticmethod
    def _load_prior(prior: Union[Snapshot, str, bytes, None]) -> Tuple[Optional[Snapshot], Optional[str]]:
        """A prior snapshot that cannot be read disables the diff, never the match report."""
        error: Optional[SnapshotVersionMismatch] = None
        if isinstance(prior, (str, bytes)):
            try:
                prior = load_snapshot(prior)
            except SnapshotVersionMismatch as exc:
                error = exc
        elif prior is not None and prior.version != SNAPSHOT_VERSION:
            error = SnapshotVersionMismatch(prior.version, SNAPSHOT_VERSION)
        if error is not None:
            logger.warning(f"Prior snapshot rejected, skipping diff: {error}")
            return None, str(error)
        return prior, None

    @staticmethod
    def _cancelled(token: CancellationToken, results: Dict[str, MatchResult], total: int) -> Cancelled:
        reason = token.reason or "cancelled"
        logger.warning(f"Run cancelled ({reason}) after {len(results)}/{total} records")
        return Cancelled(reason, len(results), total, dict(results))
