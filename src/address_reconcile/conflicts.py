from __future__ import annotations

from typing import Dict, List, Mapping, Set

from loguru import logger

from .components import (
    ConflictKind,
    ConflictRecord,
    MatchResult,
    MatchStatus,
    NormalizedRecord,
)
from .config import ReconcileConfig
from .spatial_index import SpatialIndex


class ConflictDetector:
    """Scans a complete result set for duplicates, overlaps and disagreements.

    Results are only read; conflicts are returned as a separate list.
    """

    def __init__(self, index: SpatialIndex, config: ReconcileConfig | None = None) -> None:
        self.index = index
        self.config = config or ReconcileConfig()

    def detect(
        self, results: Mapping[str, MatchResult], records: Mapping[str, NormalizedRecord]
    ) -> List[ConflictRecord]:
        conflicts: List[ConflictRecord] = []
        conflicts.extend(self.duplicate_inputs(results))
        conflicts.extend(self.duplicate_references())
        conflicts.extend(self.attribute_mismatches(results, records))
        conflicts.extend(self.geometry_overlaps())
        conflicts.sort(key=ConflictRecord.sort_key)
        logger.info(f"Detected {len(conflicts)} conflicts")
        return conflicts

    def duplicate_inputs(self, results: Mapping[str, MatchResult]) -> List[ConflictRecord]:
        by_reference: Dict[str, List[str]] = {}
        for result in results.values():
            if result.status is MatchStatus.MATCHED and result.reference_id:
                by_reference.setdefault(result.reference_id, []).append(result.record_id)

        conflicts = []
        for reference_id, record_ids in sorted(by_reference.items()):
            if len(record_ids) < 2:
                continue
            record_ids = sorted(record_ids)
            conflicts.append(
                ConflictRecord(
                    kind=ConflictKind.DUPLICATE_INPUT,
                    record_ids=tuple(record_ids),
                    reference_ids=(reference_id,),
                    description=f"{len(record_ids)} input records matched reference {reference_id}",
                )
            )
        return conflicts

    def duplicate_references(self) -> List[ConflictRecord]:
        """Groups of features sharing one location under different match keys."""
        tolerance = self.config.duplicate_tolerance
        visited: Set[str] = set()
        conflicts = []
        for feature in self.index.features:
            if feature.reference_id in visited:
                continue
            # Flood fill over features sharing the same geometry.
            group = {feature.reference_id: feature}
            pending = [feature]
            while pending:
                current = pending.pop()
                for other in self.index.neighbours(current, tolerance):
                    if other.reference_id in group:
                        continue
                    if current.geometry.hausdorff_distance(other.geometry) <= tolerance:
                        group[other.reference_id] = other
                        pending.append(other)
            visited.update(group)

            keys = sorted({f.match_key for f in group.values() if f.match_key})
            if len(keys) < 2:
                continue
            reference_ids = tuple(sorted(group))
            conflicts.append(
                ConflictRecord(
                    kind=ConflictKind.DUPLICATE_REFERENCE,
                    reference_ids=reference_ids,
                    description=f"features {', '.join(reference_ids)} share a location under keys {', '.join(keys)}",
                )
            )
        return conflicts

    def attribute_mismatches(
        self, results: Mapping[str, MatchResult], records: Mapping[str, NormalizedRecord]
    ) -> List[ConflictRecord]:
        conflicts = []
        for record_id in sorted(results):
            result = results[record_id]
            if result.status is not MatchStatus.MATCHED or record_id not in records:
                continue
            feature = self.index.get(result.reference_id)
            if feature is None:
                continue
            given = records[record_id].address
            reference = feature.address
            differences = []
            for name, left, right in (
                ("unit", given.unit_value, reference.unit_value),
                ("city", given.city, reference.city),
                ("postal_code", given.postal_code, reference.postal_code),
            ):
                # A blank input value is not a disagreement.
                if left and left != right:
                    differences.append(f"{name} {left!r} != {right!r}")
            if differences:
                conflicts.append(
                    ConflictRecord(
                        kind=ConflictKind.ATTRIBUTE_MISMATCH,
                        record_ids=(record_id,),
                        reference_ids=(feature.reference_id,),
                        description="; ".join(differences),
                    )
                )
        return conflicts

    def geometry_overlaps(self) -> List[ConflictRecord]:
        threshold = self.config.overlap_fraction_threshold
        conflicts = []
        for left, right in self.index.polygon_pairs():
            smaller = min(left.geometry.area, right.geometry.area)
            if smaller <= 0:
                continue
            overlap = left.geometry.intersection(right.geometry).area
            fraction = overlap / smaller
            if fraction > threshold:
                conflicts.append(
                    ConflictRecord(
                        kind=ConflictKind.GEOMETRY_OVERLAP,
                        reference_ids=tuple(sorted((left.reference_id, right.reference_id))),
                        description=f"polygons overlap by {fraction:.1%} of the smaller area",
                    )
                )
        return conflicts
