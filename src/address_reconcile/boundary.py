from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Tuple

from loguru import logger
from shapely.geometry.base import BaseGeometry
from shapely.prepared import prep

from .components import RawAddressRecord


@dataclass(frozen=True)
class BoundaryPartition:
    inside: Tuple[RawAddressRecord, ...]
    outside: Tuple[RawAddressRecord, ...]


def partition_by_boundary(records: Iterable[RawAddressRecord], boundary: BaseGeometry) -> BoundaryPartition:
    """Split records by whether their geometry falls within a service boundary.

    Records without a geometry cannot be placed and land in ``outside``.
    Input order is preserved on both sides.
    """
    prepared = prep(boundary)
    inside = []
    outside = []
    for record in records:
        if record.geometry is not None and prepared.contains(record.geometry):
            inside.append(record)
        else:
            outside.append(record)
    logger.info(f"Boundary split: {len(inside)} inside, {len(outside)} outside")
    return BoundaryPartition(tuple(inside), tuple(outside))
