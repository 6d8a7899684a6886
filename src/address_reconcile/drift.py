from __future__ import annotations

from typing import List, Mapping

from .components import DriftEntry, MatchResult, MatchStatus, NormalizedRecord
from .spatial_index import SpatialIndex


def measure_drift(
    results: Mapping[str, MatchResult],
    records: Mapping[str, NormalizedRecord],
    index: SpatialIndex,
    threshold: float = 0.0,
) -> List[DriftEntry]:
    """Matched records whose own location sits more than ``threshold`` from their feature.

    Largest drift first; records without a geometry are not measured.
    """
    entries = []
    for record_id, result in results.items():
        if result.status is not MatchStatus.MATCHED:
            continue
        record = records.get(record_id)
        feature = index.get(result.reference_id)
        if record is None or record.geometry is None or feature is None:
            continue
        distance = round(float(record.geometry.distance(feature.geometry)), 6)
        if distance > threshold:
            entries.append(DriftEntry(record_id, feature.reference_id, distance))
    entries.sort(key=lambda entry: (-entry.distance, entry.record_id))
    return entries
