from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional

from rapidfuzz.distance import Levenshtein

from .components import NormalizedAddress

DISTANCE_WEIGHT = 0.6
ATTRIBUTE_WEIGHT = 0.4

# House numbers further apart than this score zero closeness.
HOUSE_NUMBER_SPAN = 100

_WEIGHTS = {
    "street_name": 0.40,
    "house_number": 0.25,
    "directional": 0.05,
    "street_type": 0.05,
    "unit": 0.05,
    "city": 0.12,
    "postal_code": 0.08,
}


@dataclass(frozen=True)
class MatchBreakdown:
    score: float
    weights: Dict[str, float]
    comparisons: Dict[str, str]


def street_similarity(a: str, b: str) -> float:
    """Normalized Levenshtein similarity between two street names."""
    if not a or not b:
        return 0.0
    if a == b:
        return 1.0
    return Levenshtein.normalized_similarity(a, b)


def house_number_closeness(left: NormalizedAddress, right: NormalizedAddress) -> float:
    if left.house_number is None or right.house_number is None:
        return 0.0
    gap = abs(left.house_number - right.house_number)
    closeness = max(0.0, 1.0 - gap / HOUSE_NUMBER_SPAN)
    if gap == 0 and left.house_number_suffix != right.house_number_suffix:
        closeness = 0.9
    return closeness


def _agreement(a: str, b: str) -> float:
    # Both blank agree; one blank is unknown.
    if not a and not b:
        return 1.0
    if not a or not b:
        return 0.5
    return 1.0 if a == b else 0.0


def score_components(left: NormalizedAddress, right: NormalizedAddress) -> MatchBreakdown:
    """Compare two component sets and produce a weighted attribute score."""

    weights = dict(_WEIGHTS)
    comparisons: Dict[str, str] = {}
    score = 0.0

    score += weights["street_name"] * street_similarity(left.street_name, right.street_name)
    comparisons["street_name"] = f"{left.street_name}|{right.street_name}"

    score += weights["house_number"] * house_number_closeness(left, right)
    comparisons["house_number"] = f"{left.house_label}|{right.house_label}"

    directional = (
        _agreement(left.pre_directional, right.pre_directional)
        + _agreement(left.post_directional, right.post_directional)
    ) / 2
    score += weights["directional"] * directional
    comparisons["directional"] = (
        f"{left.pre_directional}{left.post_directional}|{right.pre_directional}{right.post_directional}"
    )

    score += weights["street_type"] * _agreement(left.street_type, right.street_type)
    comparisons["street_type"] = f"{left.street_type}|{right.street_type}"

    score += weights["unit"] * _agreement(left.unit_value, right.unit_value)
    comparisons["unit"] = f"{left.unit_value}|{right.unit_value}"

    score += weights["city"] * _agreement(left.city, right.city)
    comparisons["city"] = f"{left.city}|{right.city}"

    score += weights["postal_code"] * _agreement(left.postal_code, right.postal_code)
    comparisons["postal_code"] = f"{left.postal_code}|{right.postal_code}"

    return MatchBreakdown(score=round(score, 6), weights=weights, comparisons=comparisons)


def distance_score(distance: float, radius: float) -> float:
    """Closer is higher: 1.0 on top of the feature, 0.0 at the search radius."""
    return max(0.0, 1.0 - distance / radius)


def combined_score(attribute_score: float, distance: Optional[float], radius: float) -> float:
    if distance is None:
        return round(attribute_score, 6)
    return round(DISTANCE_WEIGHT * distance_score(distance, radius) + ATTRIBUTE_WEIGHT * attribute_score, 6)
