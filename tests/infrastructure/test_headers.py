from parcel_audit.infrastructure.parsing.headers import (
    CARRIER_TRACKING,
    POS_TRACKING,
    normalize_header,
    resolve,
)


def test_normalize_header_strips_punctuation_and_case():
    assert normalize_header("Tracking #") == "tracking"
    assert normalize_header("Tracking_Number") == "trackingnumber"


def test_resolves_alias():
    assert resolve({"Tracking #": "1Z1"}, CARRIER_TRACKING) == "1Z1"


def test_resolves_by_normalized_header():
    assert resolve({"TRACKING_NUMBER": " 1Z9 "}, CARRIER_TRACKING) == "1Z9"


def test_exact_match_wins_over_normalized_alias():
    record = {"Tracking_Number": "B", "Tracking Number": "A"}
    assert resolve(record, POS_TRACKING) == "A"


def test_first_non_empty_candidate_wins():
    record = {"Tracking Number": "", "Tracking #": "X"}
    assert resolve(record, POS_TRACKING) == "X"


def test_colliding_normalized_headers_use_the_first_column():
    record = {"Tracking-Number": "first", "tracking number": "second"}
    assert resolve(record, ("TrackingNumber",)) == "first"


def test_unresolved_field_is_empty():
    assert resolve({"Other": "value"}, CARRIER_TRACKING) == ""
