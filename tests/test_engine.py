from shapely.geometry import Point

from address_reconcile.components import MatchMethod, MatchStatus, RawAddressRecord, ReferenceFeature
from address_reconcile.config import ReconcileConfig
from address_reconcile.engine import AddressMatcher, flag_duplicates
from address_reconcile.parser import normalize_record
from address_reconcile.spatial_index import SpatialIndex


def build_feature(reference_id: str, address: str, geometry=None):
    if geometry is None:
        geometry = Point(0, 0)
    return ReferenceFeature.from_fields(reference_id, {"address": address}, geometry=geometry)


def build_record(record_id: str, geometry=None, **fields):
    return normalize_record(RawAddressRecord(record_id, fields, geometry))


def build_matcher(*features, **config):
    return AddressMatcher(SpatialIndex(features), ReconcileConfig(worker_count=1, **config))


def test_exact_key_match_has_full_confidence():
    matcher = build_matcher(build_feature("A", "100 MAIN ST", Point(0, 0)))

    result = matcher.match(build_record("1", house="100", street="Main St"))

    assert result.status is MatchStatus.MATCHED
    assert result.reference_id == "A"
    assert result.confidence == 1.0
    assert result.method is MatchMethod.EXACT_KEY


def test_exact_key_wins_over_closer_feature():
    matcher = build_matcher(
        build_feature("A", "100 Main St", Point(40, 0)),
        build_feature("B", "102 Main St", Point(0, 0)),
    )

    result = matcher.match(build_record("1", geometry=Point(0, 0), house="100", street="Main St"))

    assert result.reference_id == "A"
    assert result.confidence == 1.0


def test_spatial_match_tolerates_misspelled_street():
    matcher = build_matcher(
        build_feature("A", "100 Main St", Point(0, 0)),
        build_feature("B", "300 Oak Ave", Point(40, 0)),
    )

    result = matcher.match(build_record("1", geometry=Point(1, 0), house="100", street="Mian St"))

    assert result.status is MatchStatus.MATCHED
    assert result.reference_id == "A"
    assert result.method is MatchMethod.SPATIAL
    assert 0.85 <= result.confidence < 1.0


def test_equidistant_candidates_are_ambiguous():
    matcher = build_matcher(
        build_feature("B", "100 S Main St", Point(-5, 0)),
        build_feature("A", "100 N Main St", Point(5, 0)),
    )

    result = matcher.match(build_record("1", geometry=Point(0, 0), house="100", street="Main St"))

    assert result.status is MatchStatus.AMBIGUOUS
    assert result.candidate_ids == ("A", "B")
    assert result.candidates[0].score == result.candidates[1].score


def test_ambiguous_result_keeps_every_candidate_within_margin():
    features = [build_feature(f"F{i}", f"{100 + i} Main St", Point(i, 0)) for i in range(6)]
    matcher = build_matcher(*features)
    record = build_record("1", geometry=Point(2.5, 0), house="103", street="Maine St")

    candidates = matcher.candidates(record)
    result = matcher.resolve(record, candidates)

    assert result.status is MatchStatus.AMBIGUOUS
    top = candidates[0].score
    within_margin = {c.reference_id for c in candidates if top - c.score <= 0.10}
    assert within_margin <= set(result.candidate_ids)
    scores = [c.score for c in result.candidates]
    assert scores == sorted(scores, reverse=True)


def test_shared_key_without_geometry_is_ambiguous():
    matcher = build_matcher(
        build_feature("A", "100 Main St, Springfield, OR"),
        build_feature("B", "100 Main St, Eugene, OR"),
    )

    result = matcher.match(build_record("1", house="100", street="Main St"))

    assert result.status is MatchStatus.AMBIGUOUS
    assert result.candidate_ids == ("A", "B")


def test_city_breaks_a_shared_key():
    matcher = build_matcher(
        build_feature("A", "100 Main St, Springfield, OR"),
        build_feature("B", "100 Main St, Eugene, OR"),
    )

    result = matcher.match(build_record("1", house="100", street="Main St", city="Eugene"))

    assert result.status is MatchStatus.MATCHED
    assert result.reference_id == "B"
    assert result.method is MatchMethod.FUZZY


def test_shared_key_beyond_radius_is_ambiguous_not_unmatched():
    matcher = build_matcher(
        build_feature("A", "100 Main St, Springfield", Point(1000, 0)),
        build_feature("B", "100 Main St, Eugene", Point(-1000, 0)),
    )

    result = matcher.match(build_record("1", geometry=Point(0, 0), house="100", street="Main St"))

    assert result.status is MatchStatus.AMBIGUOUS
    assert result.candidate_ids == ("A", "B")
    assert [c.distance for c in result.candidates] == [1000.0, 1000.0]


def test_no_candidates_is_unmatched():
    matcher = build_matcher(build_feature("A", "500 Elm Street"))

    result = matcher.match(build_record("1", house="99", street="Unknown Road"))

    assert result.status is MatchStatus.UNMATCHED
    assert result.reference_id is None
    assert result.diagnostic == "no candidates"


def test_later_identical_record_is_duplicate_of_earliest():
    records = [
        build_record("1", house="100", street="Main St"),
        build_record("2", house="100", street="MAIN STREET"),
        build_record("3", house="100", street="Main St"),
    ]

    assert flag_duplicates(records) == {"2": "1", "3": "1"}


def test_distinct_units_or_locations_are_not_duplicates():
    records = [
        build_record("1", house="100", street="Main St", unit="Apt 1"),
        build_record("2", house="100", street="Main St", unit="Apt 2"),
        build_record("3", geometry=Point(0, 0), house="200", street="Oak Ave"),
        build_record("4", geometry=Point(500, 0), house="200", street="Oak Ave"),
    ]

    assert flag_duplicates(records) == {}


def test_match_all_marks_duplicates_in_input_order():
    matcher = build_matcher(build_feature("A", "100 Main St"))
    records = [
        build_record("1", house="100", street="Main St"),
        build_record("2", house="100", street="Main Street"),
    ]

    results = matcher.match_all(records)

    assert results["1"].status is MatchStatus.MATCHED
    assert results["2"].status is MatchStatus.DUPLICATE
    assert results["2"].duplicate_of == "1"
