from __future__ import annotations

from typing import Dict, List, Tuple

from .components import MatchCandidate, MatchMethod, NormalizedRecord, ReferenceFeature
from .config import ReconcileConfig
from .scorer import combined_score, score_components
from .spatial_index import SpatialIndex


def exact_key_candidates(
    record: NormalizedRecord, index: SpatialIndex, config: ReconcileConfig
) -> List[MatchCandidate]:
    return [
        MatchCandidate(
            record_id=record.record_id,
            reference_id=feature.reference_id,
            method=MatchMethod.EXACT_KEY,
            score=1.0,
            comparison={"reason": "match_key"},
        )
        for feature in index.lookup_key(record.address.match_key)
    ]


def spatial_candidates(
    record: NormalizedRecord, index: SpatialIndex, config: ReconcileConfig
) -> List[MatchCandidate]:
    """Features within the radius, plus same-key features beyond it.

    A same-key feature outside the radius gets no distance share, so it
    competes on attributes alone.
    """
    if record.geometry is None:
        return []
    found: Dict[str, Tuple[ReferenceFeature, float]] = {
        feature.reference_id: (feature, distance)
        for feature, distance in index.within(record.geometry, config.match_radius)
    }
    for feature in index.lookup_key(record.address.match_key):
        if feature.reference_id not in found:
            found[feature.reference_id] = (feature, feature.geometry.distance(record.geometry))

    candidates: List[MatchCandidate] = []
    for feature, distance in found.values():
        breakdown = score_components(record.address, feature.address)
        candidates.append(
            MatchCandidate(
                record_id=record.record_id,
                reference_id=feature.reference_id,
                method=MatchMethod.SPATIAL,
                score=combined_score(breakdown.score, distance, config.match_radius),
                distance=round(distance, 6),
                comparison=breakdown.comparisons,
            )
        )
    return candidates


def fuzzy_candidates(
    record: NormalizedRecord, index: SpatialIndex, config: ReconcileConfig
) -> List[MatchCandidate]:
    features: Dict[str, ReferenceFeature] = {}
    for feature in index.lookup_key(record.address.match_key):
        features[feature.reference_id] = feature
    for feature in index.street_candidates(record.address.street_name, cutoff=config.fuzzy_street_cutoff):
        features.setdefault(feature.reference_id, feature)

    candidates: List[MatchCandidate] = []
    for feature in features.values():
        breakdown = score_components(record.address, feature.address)
        candidates.append(
            MatchCandidate(
                record_id=record.record_id,
                reference_id=feature.reference_id,
                method=MatchMethod.FUZZY,
                score=combined_score(breakdown.score, None, config.match_radius),
                comparison=breakdown.comparisons,
            )
        )
    return candidates


def generate(
    method: MatchMethod, record: NormalizedRecord, index: SpatialIndex, config: ReconcileConfig
) -> List[MatchCandidate]:
    if method is MatchMethod.EXACT_KEY:
        return exact_key_candidates(record, index, config)
    if method is MatchMethod.SPATIAL:
        return spatial_candidates(record, index, config)
    if method is MatchMethod.FUZZY:
        return fuzzy_candidates(record, index, config)
    raise ValueError(f"unhandled match method {method!r}")
