"""
Snapshots of match reports and the diff between two of them.

A snapshot is a versioned JSON blob. Loading refuses any format or version
it does not know rather than guessing at the layout.
"""

from __future__ import annotations

import json
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Union

from loguru import logger

from .components import ChangeKind, DiffEntry, MatchResult
from .errors import SnapshotVersionMismatch

SNAPSHOT_FORMAT = "address-reconcile-snapshot"
SNAPSHOT_VERSION = 1


@dataclass(frozen=True)
class Snapshot:
    results: Mapping[str, MatchResult] = field(default_factory=dict)
    version: int = SNAPSHOT_VERSION

    @classmethod
    def from_results(cls, results: Iterable[MatchResult]) -> "Snapshot":
        return cls({result.record_id: result for result in sorted(results, key=lambda r: r.record_id)})


def dump_snapshot(snapshot: Snapshot) -> str:
    payload = {
        "format": SNAPSHOT_FORMAT,
        "format_version": snapshot.version,
        "results": [snapshot.results[record_id].as_dict() for record_id in sorted(snapshot.results)],
    }
    return json.dumps(payload, sort_keys=True, indent=2)


def load_snapshot(blob: Union[str, bytes]) -> Snapshot:
    if isinstance(blob, bytes):
        blob = blob.decode("utf-8")
    try:
        payload = json.loads(blob)
    except json.JSONDecodeError as exc:
        raise SnapshotVersionMismatch("unreadable", SNAPSHOT_VERSION) from exc
    if not isinstance(payload, dict) or payload.get("format") != SNAPSHOT_FORMAT:
        found = payload.get("format") if isinstance(payload, dict) else type(payload).__name__
        raise SnapshotVersionMismatch(found, SNAPSHOT_FORMAT)
    version = payload.get("format_version")
    if version != SNAPSHOT_VERSION:
        raise SnapshotVersionMismatch(version, SNAPSHOT_VERSION)

    results = [MatchResult.from_dict(item) for item in payload.get("results", [])]
    return Snapshot.from_results(results)


def classify(prior: MatchResult | None, current: MatchResult | None) -> ChangeKind:
    if prior is None and current is None:
        raise ValueError("at least one side must be present")
    if prior is None:
        return ChangeKind.ADDED
    if current is None:
        return ChangeKind.REMOVED
    if prior.outcome_key() == current.outcome_key():
        return ChangeKind.UNCHANGED
    return ChangeKind.CHANGED


def diff_snapshots(prior: Snapshot, current: Snapshot) -> List[DiffEntry]:
    """One entry per record id present in either snapshot, sorted by id."""
    entries = []
    for record_id in sorted(set(prior.results) | set(current.results)):
        before = prior.results.get(record_id)
        after = current.results.get(record_id)
        entries.append(DiffEntry(record_id, classify(before, after), before, after))
    logger.info(f"Diffed {len(entries)} records: {summarize_diff(entries)}")
    return entries


def summarize_diff(entries: Iterable[DiffEntry]) -> Dict[str, int]:
    counts = Counter(entry.change for entry in entries)
    return {kind.value: counts.get(kind, 0) for kind in ChangeKind}
