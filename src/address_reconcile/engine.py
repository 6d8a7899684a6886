from __future__ import annotations

from typing import Dict, List, Optional, Sequence

from loguru import logger
from shapely.geometry.base import BaseGeometry

from .components import MatchCandidate, MatchMethod, MatchResult, NormalizedRecord
from .config import ReconcileConfig
from .spatial_index import SpatialIndex
from .strategies import generate


def _same_location(left: Optional[BaseGeometry], right: Optional[BaseGeometry], tolerance: float) -> bool:
    if left is None and right is None:
        return True
    if left is None or right is None:
        return False
    return left.distance(right) <= tolerance


def flag_duplicates(records: Sequence[NormalizedRecord], tolerance: float = 0.5) -> Dict[str, str]:
    """Map each duplicate record id to the earliest record with the same address.

    Records are duplicates when match key and unit agree and their geometries
    do not tell them apart (both absent, or within ``tolerance``).
    """
    originals: Dict[tuple, List[NormalizedRecord]] = {}
    duplicates: Dict[str, str] = {}
    for record in records:
        key = record.address.match_key
        if key is None:
            continue
        seen = originals.setdefault((key, record.address.unit_value), [])
        original = next((r for r in seen if _same_location(r.geometry, record.geometry, tolerance)), None)
        if original is None:
            seen.append(record)
        else:
            duplicates[record.record_id] = original.record_id
    return duplicates


def _rank_key(candidate: MatchCandidate):
    distance = candidate.distance if candidate.distance is not None else 0.0
    return (-candidate.score, distance, candidate.reference_id)


class AddressMatcher:
    def __init__(self, index: SpatialIndex, config: ReconcileConfig | None = None) -> None:
        self.index = index
        self.config = config or ReconcileConfig()

    def candidates(self, record: NormalizedRecord) -> List[MatchCandidate]:
        """Ranked candidates for one record, best first."""
        exact = generate(MatchMethod.EXACT_KEY, record, self.index, self.config)
        if len(exact) == 1:
            return exact
        method = MatchMethod.SPATIAL if record.geometry is not None else MatchMethod.FUZZY
        return sorted(generate(method, record, self.index, self.config), key=_rank_key)

    def resolve(self, record: NormalizedRecord, candidates: Sequence[MatchCandidate]) -> MatchResult:
        config = self.config
        notes = record.notes

        if len(candidates) == 1 and candidates[0].method is MatchMethod.EXACT_KEY:
            return MatchResult.matched(record.record_id, candidates[0].reference_id, 1.0, MatchMethod.EXACT_KEY, notes)
        if not candidates:
            return MatchResult.unmatched(record.record_id, "no candidates", notes)

        top = candidates[0]
        keyed = {feature.reference_id for feature in self.index.lookup_key(record.address.match_key)}
        if top.score < config.min_candidate_score:
            shared = [c for c in candidates if c.reference_id in keyed]
            if shared:
                return MatchResult.ambiguous(record.record_id, tuple(shared[: config.max_candidates]), notes)
            return MatchResult.unmatched(
                record.record_id, f"best candidate {top.reference_id} scored {top.score:.3f}", notes
            )

        runner_up = candidates[1].score if len(candidates) > 1 else 0.0
        gap = round(top.score - runner_up, 6)
        decisive = gap >= config.ambiguity_margin and gap > config.tie_tolerance
        if top.score >= config.high_confidence_threshold and decisive:
            return MatchResult.matched(record.record_id, top.reference_id, top.score, top.method, notes)

        # Everything within the margin of the top stays, ties included; the
        # rest above the minimum or sharing the key fills up to max_candidates.
        close = [c for c in candidates if round(top.score - c.score, 6) <= config.ambiguity_margin]
        rest = [
            c for c in candidates[len(close):] if c.score >= config.min_candidate_score or c.reference_id in keyed
        ]
        kept = close + rest[: max(0, config.max_candidates - len(close))]
        return MatchResult.ambiguous(record.record_id, tuple(kept), notes)

    def match(self, record: NormalizedRecord) -> MatchResult:
        result = self.resolve(record, self.candidates(record))
        logger.debug(f"Record {record.record_id}: {result.status.value}")
        return result

    def match_all(self, records: Sequence[NormalizedRecord]) -> Dict[str, MatchResult]:
        """Sequentially flag duplicates and match every record, in input order."""
        duplicates = flag_duplicates(records, self.config.duplicate_tolerance)
        results: Dict[str, MatchResult] = {}
        for record in records:
            if record.record_id in duplicates:
                results[record.record_id] = MatchResult.duplicate(
                    record.record_id, duplicates[record.record_id], record.notes
                )
            else:
                results[record.record_id] = self.match(record)
        return results
