"""
Spatial index over reference features.

Built once per run and never mutated afterwards, so worker threads can share
one instance without locking. Exact match-key lookups go through a dict;
distance queries go through a shapely ``STRtree``.
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np
import shapely
from loguru import logger
from rapidfuzz import fuzz, process
from shapely.geometry import box
from shapely.geometry.base import BaseGeometry
from shapely.strtree import STRtree
from shapely.validation import explain_validity

from .components import AddressStatus, ReferenceFeature, SkippedFeature


def geometry_problem(geometry: Optional[BaseGeometry]) -> Optional[str]:
    """Return why a geometry cannot be indexed, or None when it is usable."""
    if geometry is None:
        return "missing geometry"
    if geometry.is_empty:
        return "empty geometry"
    coords = shapely.get_coordinates(geometry)
    if not np.isfinite(coords).all():
        return "non-finite coordinate"
    if not geometry.is_valid:
        return f"invalid geometry: {explain_validity(geometry)}"
    return None


class SpatialIndex:
    """Read-only lookup structure over the reference features of one run."""

    def __init__(
        self,
        features: Iterable[ReferenceFeature],
        excluded_statuses: Sequence[AddressStatus] = (),
    ) -> None:
        excluded = set(excluded_statuses)
        kept: List[ReferenceFeature] = []
        skipped: List[SkippedFeature] = []
        by_id: Dict[str, ReferenceFeature] = {}
        seen_ids = set()
        excluded_count = 0

        for feature in features:
            if feature.reference_id in seen_ids:
                reason = "duplicate reference id"
            elif feature.invalid:
                reason = "marked invalid by source"
            else:
                reason = geometry_problem(feature.geometry)
            seen_ids.add(feature.reference_id)
            if reason is not None:
                logger.warning(f"Skipping reference feature {feature.reference_id}: {reason}")
                skipped.append(SkippedFeature(feature.reference_id, reason))
                continue
            if feature.status in excluded:
                excluded_count += 1
                continue
            by_id[feature.reference_id] = feature
            kept.append(feature)

        self._features: Tuple[ReferenceFeature, ...] = tuple(kept)
        self._by_id = by_id
        self._position = {feature.reference_id: idx for idx, feature in enumerate(kept)}
        self.skipped: Tuple[SkippedFeature, ...] = tuple(skipped)

        by_key: Dict[str, List[ReferenceFeature]] = {}
        by_street: Dict[str, List[ReferenceFeature]] = {}
        for feature in kept:
            key = feature.match_key
            if key:
                by_key.setdefault(key, []).append(feature)
            if feature.address.street_name:
                by_street.setdefault(feature.address.street_name, []).append(feature)
        self._by_key = {key: tuple(group) for key, group in by_key.items()}
        self._by_street = {name: tuple(group) for name, group in by_street.items()}
        self._street_names = sorted(self._by_street)

        self._geometries = [feature.geometry for feature in kept]
        self._tree = STRtree(self._geometries) if kept else None

        logger.info(
            f"Indexed {len(kept)} reference features "
            f"({len(skipped)} skipped, {excluded_count} excluded by status)"
        )

    def __len__(self) -> int:
        return len(self._features)

    def __contains__(self, reference_id: object) -> bool:
        return reference_id in self._by_id

    @property
    def features(self) -> Tuple[ReferenceFeature, ...]:
        return self._features

    def get(self, reference_id: str) -> Optional[ReferenceFeature]:
        return self._by_id.get(reference_id)

    def lookup_key(self, match_key: Optional[str]) -> Tuple[ReferenceFeature, ...]:
        if not match_key:
            return ()
        return self._by_key.get(match_key, ())

    def within(self, geometry: BaseGeometry, radius: float) -> List[Tuple[ReferenceFeature, float]]:
        """Features within ``radius`` of ``geometry``, nearest first."""
        if self._tree is None or geometry is None or geometry.is_empty:
            return []
        minx, miny, maxx, maxy = geometry.bounds
        window = box(minx - radius, miny - radius, maxx + radius, maxy + radius)
        hits = []
        for idx in self._tree.query(window):
            idx = int(idx)
            distance = geometry.distance(self._geometries[idx])
            if distance <= radius:
                hits.append((self._features[idx], float(distance)))
        hits.sort(key=lambda hit: (hit[1], hit[0].reference_id))
        return hits

    def nearest(self, geometry: BaseGeometry, k: int = 1) -> List[Tuple[ReferenceFeature, float]]:
        """The ``k`` nearest features regardless of distance."""
        if self._tree is None or geometry is None or geometry.is_empty or k < 1:
            return []
        idx = self._tree.nearest(geometry)
        if idx is None:
            return []
        radius = geometry.distance(self._geometries[int(idx)])
        hits = self.within(geometry, radius)
        # Widen until k features are inside the window.
        while len(hits) < min(k, len(self)):
            radius = radius * 2 if radius > 0 else 1.0
            hits = self.within(geometry, radius)
        return hits[:k]

    def street_candidates(self, street_name: str, cutoff: float = 80.0, limit: int = 5) -> List[ReferenceFeature]:
        """Features on streets whose name is similar to ``street_name``."""
        if not street_name or not self._street_names:
            return []
        if street_name in self._by_street:
            names = [street_name]
        else:
            names = [
                name
                for name, _score, _idx in process.extract(
                    street_name, self._street_names, scorer=fuzz.ratio, limit=limit, score_cutoff=cutoff
                )
            ]
        features: List[ReferenceFeature] = []
        for name in names:
            features.extend(self._by_street[name])
        return features

    def neighbours(self, feature: ReferenceFeature, tolerance: float) -> List[ReferenceFeature]:
        """Other indexed features whose geometry lies within ``tolerance`` of ``feature``."""
        if feature.reference_id not in self._position:
            return []
        own = self._position[feature.reference_id]
        return [
            other
            for other, _distance in self.within(self._geometries[own], tolerance)
            if other.reference_id != feature.reference_id
        ]

    def polygon_pairs(self) -> List[Tuple[ReferenceFeature, ReferenceFeature]]:
        """Pairs of polygonal features whose bounding boxes intersect."""
        pairs = []
        if self._tree is None:
            return pairs
        for idx, geometry in enumerate(self._geometries):
            if geometry.geom_type not in ("Polygon", "MultiPolygon"):
                continue
            for other in self._tree.query(geometry):
                other = int(other)
                if other <= idx or self._geometries[other].geom_type not in ("Polygon", "MultiPolygon"):
                    continue
                pairs.append((self._features[idx], self._features[other]))
        pairs.sort(key=lambda pair: (pair[0].reference_id, pair[1].reference_id))
        return pairs
