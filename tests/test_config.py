import pytest

from address_reconcile.components import AddressStatus
from address_reconcile.config import ReconcileConfig
from address_reconcile.errors import ConfigurationError


def test_defaults():
    config = ReconcileConfig()
    assert config.match_radius == 50.0
    assert config.high_confidence_threshold == 0.85
    assert config.ambiguity_margin == 0.10
    assert config.min_candidate_score == 0.50
    assert config.overlap_fraction_threshold == 0.30
    assert config.worker_count >= 1
    assert config.drift_threshold is None


@pytest.mark.parametrize(
    "overrides",
    [
        {"match_radius": -1},
        {"match_radius": 0},
        {"high_confidence_threshold": 1.5},
        {"ambiguity_margin": -0.1},
        {"worker_count": 0},
        {"min_candidate_score": 0.9, "high_confidence_threshold": 0.8},
        {"timeout_seconds": 0},
    ],
)
def test_out_of_range_values_fail_fast(overrides):
    with pytest.raises(ConfigurationError):
        ReconcileConfig(**overrides)


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("ADDRESS_RECONCILE_MATCH_RADIUS", "75")
    monkeypatch.setenv("ADDRESS_RECONCILE_WORKER_COUNT", "3")

    config = ReconcileConfig()

    assert config.match_radius == 75.0
    assert config.worker_count == 3


def test_invalid_environment_value_is_a_configuration_error(monkeypatch):
    monkeypatch.setenv("ADDRESS_RECONCILE_MATCH_RADIUS", "-5")
    with pytest.raises(ConfigurationError):
        ReconcileConfig()


def test_config_is_immutable():
    config = ReconcileConfig(excluded_statuses=[AddressStatus.RETIRED])
    assert config.excluded_statuses == (AddressStatus.RETIRED,)
    with pytest.raises(Exception):
        config.match_radius = 10
