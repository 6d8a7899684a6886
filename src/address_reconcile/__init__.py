"""Address reconciliation engine: normalize, match, detect conflicts, diff."""

from .boundary import BoundaryPartition, partition_by_boundary
from .components import (
    AddressStatus,
    ChangeKind,
    ConflictKind,
    ConflictRecord,
    DiffEntry,
    DriftEntry,
    MatchCandidate,
    MatchMethod,
    MatchResult,
    MatchStatus,
    NormalizedAddress,
    NormalizedRecord,
    RawAddressRecord,
    ReferenceFeature,
    SkippedFeature,
)
from .config import ReconcileConfig
from .conflicts import ConflictDetector
from .diff import Snapshot, diff_snapshots, dump_snapshot, load_snapshot, summarize_diff
from .drift import measure_drift
from .engine import AddressMatcher, flag_duplicates
from .errors import (
    Cancelled,
    ConfigurationError,
    InvalidInput,
    MalformedAddress,
    ReconcileError,
    SnapshotVersionMismatch,
)
from .orchestrator import BatchOrchestrator, ReconciliationReport
from .parser import normalize_fields, normalize_record, parse_address, parse_street_line
from .progress import CancellationToken, ProgressChannel
from .spatial_index import SpatialIndex

__all__ = [
    "AddressMatcher",
    "AddressStatus",
    "BatchOrchestrator",
    "BoundaryPartition",
    "Cancelled",
    "CancellationToken",
    "ChangeKind",
    "ConfigurationError",
    "ConflictDetector",
    "ConflictKind",
    "ConflictRecord",
    "DiffEntry",
    "DriftEntry",
    "InvalidInput",
    "MalformedAddress",
    "MatchCandidate",
    "MatchMethod",
    "MatchResult",
    "MatchStatus",
    "NormalizedAddress",
    "NormalizedRecord",
    "ProgressChannel",
    "RawAddressRecord",
    "ReconcileConfig",
    "ReconcileError",
    "ReconciliationReport",
    "ReferenceFeature",
    "SkippedFeature",
    "Snapshot",
    "SnapshotVersionMismatch",
    "SpatialIndex",
    "diff_snapshots",
    "dump_snapshot",
    "flag_duplicates",
    "load_snapshot",
    "measure_drift",
    "normalize_fields",
    "normalize_record",
    "parse_address",
    "parse_street_line",
    "partition_by_boundary",
    "summarize_diff",
]
