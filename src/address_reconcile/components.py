from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple

from shapely.geometry.base import BaseGeometry

RANGE_ADDRESS_NOTE = "RangeAddress"


class AddressStatus(str, Enum):
    CURRENT = "current"
    PENDING = "pending"
    TEMPORARY = "temporary"
    RETIRED = "retired"
    VIRTUAL = "virtual"
    OTHER = "other"


class MatchMethod(str, Enum):
    EXACT_KEY = "exact_key"
    SPATIAL = "spatial"
    FUZZY = "fuzzy"


class MatchStatus(str, Enum):
    MATCHED = "matched"
    UNMATCHED = "unmatched"
    AMBIGUOUS = "ambiguous"
    DUPLICATE = "duplicate"


class ConflictKind(str, Enum):
    DUPLICATE_INPUT = "duplicate_input"
    DUPLICATE_REFERENCE = "duplicate_reference"
    ATTRIBUTE_MISMATCH = "attribute_mismatch"
    GEOMETRY_OVERLAP = "geometry_overlap"


class ChangeKind(str, Enum):
    ADDED = "added"
    REMOVED = "removed"
    CHANGED = "changed"
    UNCHANGED = "unchanged"


@dataclass(frozen=True)
class NormalizedAddress:
    """Normalized components for an address record."""

    house_number: Optional[int] = None
    house_number_suffix: str = ""
    pre_directional: str = ""
    street_name: str = ""
    street_type: str = ""
    post_directional: str = ""
    unit_designator: str = ""
    unit_value: str = ""
    city: str = ""
    state: str = ""
    postal_code: str = ""

    @property
    def house_label(self) -> str:
        if self.house_number is None:
            return ""
        if "/" in self.house_number_suffix:
            return f"{self.house_number} {self.house_number_suffix}"
        return f"{self.house_number}{self.house_number_suffix}"

    @property
    def match_key(self) -> Optional[str]:
        """Return a canonical key suitable for deterministic lookups."""
        if self.house_number is None or not self.street_name:
            return None
        parts = [
            self.house_label,
            self.pre_directional,
            self.street_name,
            self.street_type,
            self.post_directional,
        ]
        return "|".join(parts)

    @property
    def unit(self) -> str:
        return " ".join(part for part in (self.unit_designator, self.unit_value) if part)

    def street_line(self) -> str:
        parts = [self.house_label, self.pre_directional, self.street_name, self.street_type, self.post_directional]
        return " ".join(part for part in parts if part)

    def to_fields(self) -> Dict[str, str]:
        """Render back to raw input fields; normalizing these yields ``self``."""
        return {
            "house_number": self.house_label,
            "pre_directional": self.pre_directional,
            "street_name": self.street_name,
            "street_type": self.street_type,
            "post_directional": self.post_directional,
            "unit_designator": self.unit_designator,
            "unit_value": self.unit_value,
            "city": self.city,
            "state": self.state,
            "postal_code": self.postal_code,
        }

    def as_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = self.to_fields()
        data["house_number"] = self.house_number
        data["house_number_suffix"] = self.house_number_suffix
        data["match_key"] = self.match_key
        return data


@dataclass(frozen=True)
class RawAddressRecord:
    """An incoming record that requires address matching."""

    record_id: str
    fields: Mapping[str, str] = field(default_factory=dict)
    geometry: Optional[BaseGeometry] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "fields", MappingProxyType(dict(self.fields)))


@dataclass(frozen=True)
class NormalizedRecord:
    """A raw record after normalization, with notes carried alongside."""

    record_id: str
    address: NormalizedAddress
    geometry: Optional[BaseGeometry] = None
    notes: Tuple[str, ...] = ()


@dataclass(frozen=True)
class ReferenceFeature:
    """An authoritative address we can match against."""

    reference_id: str
    address: NormalizedAddress
    geometry: Optional[BaseGeometry] = None
    status: AddressStatus = AddressStatus.CURRENT
    invalid: bool = False

    @property
    def match_key(self) -> Optional[str]:
        return self.address.match_key

    @classmethod
    def from_fields(
        cls,
        reference_id: str,
        fields: Mapping[str, str],
        geometry: Optional[BaseGeometry] = None,
        status: AddressStatus = AddressStatus.CURRENT,
        invalid: bool = False,
    ) -> "ReferenceFeature":
        from .parser import normalize_fields

        address, _ = normalize_fields(fields)
        return cls(reference_id, address, geometry, status, invalid)


@dataclass(frozen=True)
class SkippedFeature:
    """A reference feature left out of the index, and why."""

    reference_id: str
    reason: str

    def as_dict(self) -> Dict[str, str]:
        return {"reference_id": self.reference_id, "reason": self.reason}


@dataclass(frozen=True)
class MatchCandidate:
    """Candidate match supplied by a matching strategy."""

    record_id: str
    reference_id: str
    method: MatchMethod
    score: float
    distance: Optional[float] = None
    comparison: Mapping[str, str] = field(default_factory=dict)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "reference_id": self.reference_id,
            "method": self.method.value,
            "score": self.score,
            "distance": self.distance,
        }

    @classmethod
    def from_dict(cls, record_id: str, data: Mapping[str, Any]) -> "MatchCandidate":
        return cls(
            record_id=record_id,
            reference_id=data["reference_id"],
            method=MatchMethod(data["method"]),
            score=data["score"],
            distance=data.get("distance"),
        )


@dataclass(frozen=True)
class MatchResult:
    """Chosen outcome for one input record.

    Which payload fields are populated depends on ``status``: ``reference_id``,
    ``confidence`` and ``method`` for matched records, ``candidates`` for
    ambiguous ones and ``duplicate_of`` for duplicates.
    """

    record_id: str
    status: MatchStatus
    reference_id: Optional[str] = None
    confidence: float = 0.0
    method: Optional[MatchMethod] = None
    candidates: Tuple[MatchCandidate, ...] = ()
    duplicate_of: Optional[str] = None
    notes: Tuple[str, ...] = ()
    diagnostic: Optional[str] = None

    @classmethod
    def matched(
        cls,
        record_id: str,
        reference_id: str,
        confidence: float,
        method: MatchMethod,
        notes: Tuple[str, ...] = (),
    ) -> "MatchResult":
        return cls(
            record_id, MatchStatus.MATCHED, reference_id=reference_id, confidence=confidence, method=method, notes=notes
        )

    @classmethod
    def unmatched(cls, record_id: str, diagnostic: Optional[str] = None, notes: Tuple[str, ...] = ()) -> "MatchResult":
        return cls(record_id, MatchStatus.UNMATCHED, notes=notes, diagnostic=diagnostic)

    @classmethod
    def ambiguous(
        cls, record_id: str, candidates: Tuple[MatchCandidate, ...], notes: Tuple[str, ...] = ()
    ) -> "MatchResult":
        return cls(record_id, MatchStatus.AMBIGUOUS, candidates=tuple(candidates), notes=notes)

    @classmethod
    def duplicate(cls, record_id: str, duplicate_of: str, notes: Tuple[str, ...] = ()) -> "MatchResult":
        return cls(record_id, MatchStatus.DUPLICATE, duplicate_of=duplicate_of, notes=notes)

    @property
    def candidate_ids(self) -> Tuple[str, ...]:
        return tuple(c.reference_id for c in self.candidates)

    def referenced_ids(self) -> Tuple[str, ...]:
        """Reference feature ids this result points at."""
        if self.status is MatchStatus.MATCHED:
            return (self.reference_id,) if self.reference_id else ()
        if self.status is MatchStatus.AMBIGUOUS:
            return self.candidate_ids
        if self.status in (MatchStatus.UNMATCHED, MatchStatus.DUPLICATE):
            return ()
        raise ValueError(f"unhandled match status {self.status!r}")

    def outcome_key(self) -> Tuple[Any, ...]:
        """Structural identity of the outcome, ignoring scores and notes."""
        if self.status is MatchStatus.MATCHED:
            return (self.status.value, self.reference_id)
        if self.status is MatchStatus.AMBIGUOUS:
            return (self.status.value, tuple(sorted(self.candidate_ids)))
        if self.status is MatchStatus.DUPLICATE:
            return (self.status.value, self.duplicate_of)
        if self.status is MatchStatus.UNMATCHED:
            return (self.status.value,)
        raise ValueError(f"unhandled match status {self.status!r}")

    def as_dict(self) -> Dict[str, Any]:
        return {
            "record_id": self.record_id,
            "status": self.status.value,
            "reference_id": self.reference_id,
            "confidence": self.confidence,
            "method": self.method.value if self.method else None,
            "candidates": [c.as_dict() for c in self.candidates],
            "duplicate_of": self.duplicate_of,
            "notes": list(self.notes),
            "diagnostic": self.diagnostic,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "MatchResult":
        record_id = data["record_id"]
        method = data.get("method")
        return cls(
            record_id=record_id,
            status=MatchStatus(data["status"]),
            reference_id=data.get("reference_id"),
            confidence=data.get("confidence", 0.0),
            method=MatchMethod(method) if method else None,
            candidates=tuple(MatchCandidate.from_dict(record_id, c) for c in data.get("candidates", ())),
            duplicate_of=data.get("duplicate_of"),
            notes=tuple(data.get("notes", ())),
            diagnostic=data.get("diagnostic"),
        )


@dataclass(frozen=True)
class ConflictRecord:
    """A detected inconsistency between inputs and/or reference features."""

    kind: ConflictKind
    record_ids: Tuple[str, ...] = ()
    reference_ids: Tuple[str, ...] = ()
    description: str = ""

    def sort_key(self) -> Tuple[str, int, Tuple[str, ...], Tuple[str, ...]]:
        first = self.record_ids[0] if self.record_ids else (self.reference_ids[0] if self.reference_ids else "")
        return (first, list(ConflictKind).index(self.kind), self.record_ids, self.reference_ids)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "record_ids": list(self.record_ids),
            "reference_ids": list(self.reference_ids),
            "description": self.description,
        }


@dataclass(frozen=True)
class DiffEntry:
    record_id: str
    change: ChangeKind
    prior: Optional[MatchResult] = None
    current: Optional[MatchResult] = None

    def as_dict(self) -> Dict[str, Any]:
        return {
            "record_id": self.record_id,
            "change": self.change.value,
            "prior": self.prior.as_dict() if self.prior else None,
            "current": self.current.as_dict() if self.current else None,
        }


@dataclass(frozen=True)
class DriftEntry:
    """Distance between a record's own location and its matched feature."""

    record_id: str
    reference_id: str
    distance: float

    def as_dict(self) -> Dict[str, Any]:
        return {"record_id": self.record_id, "reference_id": self.reference_id, "distance": self.distance}
