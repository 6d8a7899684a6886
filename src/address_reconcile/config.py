"""
Run configuration for the reconciliation engine.

Values come from keyword arguments, then ``ADDRESS_RECONCILE_*`` environment
variables, then an optional ``.env`` file. Any invalid value raises
:class:`ConfigurationError` before a single record is processed.
"""

from __future__ import annotations

import os
from typing import Optional, Tuple

from pydantic import Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .components import AddressStatus
from .errors import ConfigurationError


def _default_workers() -> int:
    return os.cpu_count() or 1


class ReconcileConfig(BaseSettings):
    """Matching, conflict and scheduling settings for one run."""

    model_config = SettingsConfigDict(
        env_prefix="ADDRESS_RECONCILE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    # Distances are in the units of the reference CRS (metres for most
    # projected state plane / UTM data).
    match_radius: float = 50.0
    high_confidence_threshold: float = 0.85
    ambiguity_margin: float = 0.10
    min_candidate_score: float = 0.50
    worker_count: int = Field(default_factory=_default_workers)
    overlap_fraction_threshold: float = 0.30

    tie_tolerance: float = 0.01
    duplicate_tolerance: float = 0.5
    max_candidates: int = 10
    fuzzy_street_cutoff: float = 80.0
    drift_threshold: Optional[float] = None
    timeout_seconds: Optional[float] = None
    excluded_statuses: Tuple[AddressStatus, ...] = ()

    def __init__(self, **values) -> None:
        try:
            super().__init__(**values)
        except ValidationError as exc:
            raise ConfigurationError(str(exc)) from exc

    @field_validator("match_radius")
    @classmethod
    def positive_radius(cls, v: float) -> float:
        if not v > 0:
            raise ValueError("match_radius must be positive")
        return v

    @field_validator(
        "high_confidence_threshold",
        "ambiguity_margin",
        "min_candidate_score",
        "overlap_fraction_threshold",
        "tie_tolerance",
    )
    @classmethod
    def unit_interval(cls, v: float) -> float:
        if not 0.0 <= v <= 1.0:
            raise ValueError("must be within [0, 1]")
        return v

    @field_validator("worker_count", "max_candidates")
    @classmethod
    def positive_int(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be a positive integer")
        return v

    @field_validator("duplicate_tolerance")
    @classmethod
    def non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError("must not be negative")
        return v

    @field_validator("fuzzy_street_cutoff")
    @classmethod
    def percentage(cls, v: float) -> float:
        if not 0.0 <= v <= 100.0:
            raise ValueError("must be within [0, 100]")
        return v

    @field_validator("drift_threshold", "timeout_seconds")
    @classmethod
    def optional_positive(cls, v: Optional[float]) -> Optional[float]:
        if v is not None and not v > 0:
            raise ValueError("must be positive when set")
        return v

    @model_validator(mode="after")
    def ordered_thresholds(self) -> "ReconcileConfig":
        if self.min_candidate_score > self.high_confidence_threshold:
            raise ValueError("min_candidate_score must not exceed high_confidence_threshold")
        return self
