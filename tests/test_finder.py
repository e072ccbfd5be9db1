import copy
import math

from services.clinic import Clinic
from services.finder import find_clinics, format_miles, parse_reference
from tests.conftest import DETROIT, SAMPLE_CLINICS


def _clinics():
    clinics = [Clinic.from_document(doc_id, data) for doc_id, data in SAMPLE_CLINICS.items()]
    return [c for c in clinics if c.coords is not None]


def test_no_reference_makes_radius_inert():
    clinics = _clinics()
    results = find_clinics(clinics, radius_miles=50)
    assert len(results) == len(clinics)
    assert all(math.isinf(c.miles) for c in results)


def test_sorted_by_distance_with_reference():
    results = find_clinics(_clinics(), reference=DETROIT, radius_miles=100)
    assert [c.id for c in results] == ["detroit-dental", "troy-counseling", "ann-arbor"]
    miles = [c.miles for c in results]
    assert miles == sorted(miles)


def test_radius_cutoff_for_ann_arbor():
    within_25 = [c.id for c in find_clinics(_clinics(), reference=DETROIT, radius_miles=25)]
    within_50 = [c.id for c in find_clinics(_clinics(), reference=DETROIT, radius_miles=50)]
    assert "ann-arbor" not in within_25
    assert "ann-arbor" in within_50


def test_service_filter_is_case_insensitive_substring():
    results = find_clinics(_clinics(), service_text="PEDIA")
    assert [c.id for c in results] == ["ann-arbor"]
    results = find_clinics(_clinics(), service_text="health")
    assert [c.id for c in results] == ["troy-counseling"]


def test_blank_service_filter_is_skipped():
    assert len(find_clinics(_clinics(), service_text="   ")) == 3


def test_empty_services_excluded_by_filter():
    clinic = Clinic.from_document("empty", {"name": "Empty", "coords": [42.3, -83.0], "services": ""})
    assert clinic.services == []
    assert find_clinics([clinic], service_text="Dental") == []
    assert len(find_clinics([clinic])) == 1


def test_verified_only():
    results = find_clinics(_clinics(), verified_only=True, reference=DETROIT)
    assert [c.id for c in results] == ["detroit-dental", "troy-counseling"]


def test_idempotent_and_does_not_mutate_input():
    clinics = _clinics()
    before = copy.deepcopy([c.to_dict() for c in clinics])

    first = find_clinics(clinics, service_text="e", reference=DETROIT, radius_miles=50)
    second = find_clinics(clinics, service_text="e", reference=DETROIT, radius_miles=50)

    assert [c.to_dict() for c in first] == [c.to_dict() for c in second]
    assert [c.to_dict() for c in clinics] == before
    assert all(c.miles is None for c in clinics)


def test_parse_reference():
    assert parse_reference("42.33", "-83.05") == DETROIT
    assert parse_reference(None, "-83.05") is None
    assert parse_reference("abc", "-83.05") is None
    assert parse_reference("95", "-83.05") is None
    # reference points are not bound to the clinic region
    assert parse_reference("51.5", "-0.12") == (51.5, -0.12)


def test_format_miles():
    assert format_miles(3.14159) == "3.1"
    assert format_miles(37.4) == "37"
    assert format_miles(math.inf) is None
    assert format_miles(None) is None
