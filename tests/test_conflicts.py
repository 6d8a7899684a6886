from shapely.geometry import Point, box

from address_reconcile.components import ConflictKind, RawAddressRecord, ReferenceFeature
from address_reconcile.config import ReconcileConfig
from address_reconcile.conflicts import ConflictDetector
from address_reconcile.engine import AddressMatcher
from address_reconcile.parser import normalize_record
from address_reconcile.spatial_index import SpatialIndex


def build_feature(reference_id: str, address: str, geometry):
    return ReferenceFeature.from_fields(reference_id, {"address": address}, geometry=geometry)


def run_detector(features, raw_records=()):
    config = ReconcileConfig(worker_count=1)
    index = SpatialIndex(features)
    records = {r.record_id: normalize_record(r) for r in raw_records}
    results = AddressMatcher(index, config).match_all(list(records.values()))
    return results, ConflictDetector(index, config).detect(results, records)


def of_kind(conflicts, kind):
    return [conflict for conflict in conflicts if conflict.kind is kind]


def test_two_inputs_on_one_feature_are_reported():
    _, conflicts = run_detector(
        [build_feature("A", "100 Main St", Point(0, 0))],
        [
            RawAddressRecord("r1", {"address": "100 Main St Apt 1"}),
            RawAddressRecord("r2", {"address": "100 Main St Apt 2"}),
        ],
    )

    duplicates = of_kind(conflicts, ConflictKind.DUPLICATE_INPUT)
    assert len(duplicates) == 1
    assert duplicates[0].record_ids == ("r1", "r2")
    assert duplicates[0].reference_ids == ("A",)


def test_features_sharing_a_location_under_different_keys():
    _, conflicts = run_detector(
        [
            build_feature("A", "100 Main St", Point(0, 0)),
            build_feature("B", "102 Main St", Point(0.1, 0)),
            build_feature("C", "300 Oak Ave", Point(50, 50)),
        ]
    )

    duplicates = of_kind(conflicts, ConflictKind.DUPLICATE_REFERENCE)
    assert [conflict.reference_ids for conflict in duplicates] == [("A", "B")]


def test_city_disagreement_on_exact_match():
    _, conflicts = run_detector(
        [build_feature("A", "100 Main St, Springfield, OR 97477", Point(0, 0))],
        [RawAddressRecord("r1", {"house": "100", "street": "Main St", "city": "Eugene", "zip": "97477"})],
    )

    mismatches = of_kind(conflicts, ConflictKind.ATTRIBUTE_MISMATCH)
    assert len(mismatches) == 1
    assert mismatches[0].record_ids == ("r1",)
    assert "city" in mismatches[0].description
    assert "postal_code" not in mismatches[0].description


def test_blank_input_attributes_do_not_conflict():
    _, conflicts = run_detector(
        [build_feature("A", "100 Main St, Springfield, OR 97477", Point(0, 0))],
        [RawAddressRecord("r1", {"house": "100", "street": "Main St"})],
    )

    assert of_kind(conflicts, ConflictKind.ATTRIBUTE_MISMATCH) == []


def test_overlapping_parcels_above_threshold():
    _, conflicts = run_detector(
        [
            build_feature("P1", "1 Main St", box(0, 0, 10, 10)),
            build_feature("P2", "3 Main St", box(5, 0, 15, 10)),
            build_feature("P3", "5 Main St", box(14, 0, 24, 10)),
        ]
    )

    overlaps = of_kind(conflicts, ConflictKind.GEOMETRY_OVERLAP)
    assert [conflict.reference_ids for conflict in overlaps] == [("P1", "P2")]
    assert "50.0%" in overlaps[0].description


def test_detection_leaves_results_untouched():
    results, _ = run_detector(
        [build_feature("A", "100 Main St", Point(0, 0))],
        [
            RawAddressRecord("r1", {"address": "100 Main St Apt 1"}),
            RawAddressRecord("r2", {"address": "100 Main St Apt 2"}),
        ],
    )
    before = {record_id: result.as_dict() for record_id, result in results.items()}

    index = SpatialIndex([build_feature("A", "100 Main St", Point(0, 0))])
    ConflictDetector(index).detect(results, {})

    assert {record_id: result.as_dict() for record_id, result in results.items()} == before


def test_conflicts_are_sorted_by_first_identifier():
    _, conflicts = run_detector(
        [
            build_feature("A", "100 Main St", Point(0, 0)),
            build_feature("B", "200 Oak Ave, Medford", Point(100, 0)),
        ],
        [
            RawAddressRecord("r2", {"address": "100 Main St Apt 9"}),
            RawAddressRecord("r1", {"house": "200", "street": "Oak Ave", "city": "Ashland"}),
        ],
    )

    assert [conflict.sort_key() for conflict in conflicts] == sorted(c.sort_key() for c in conflicts)
    assert conflicts[0].record_ids == ("r1",)
