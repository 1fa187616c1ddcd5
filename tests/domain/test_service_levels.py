from datetime import date, datetime, time

from parcel_audit.domain.service_levels import (
    END_OF_DAY,
    add_business_days,
    carrier_family,
    match_service,
    promised_by,
)

FRIDAY = date(2024, 1, 5)


def test_business_days_skip_weekends():
    assert add_business_days(FRIDAY, 1) == date(2024, 1, 8)
    assert add_business_days(FRIDAY, 3) == date(2024, 1, 10)
    assert add_business_days(date(2024, 1, 8), 0) == date(2024, 1, 8)


def test_narrower_service_names_win():
    assert match_service("UPS", "UPS Next Day Air Saver").key == "NEXT DAY AIR SAVER"
    assert match_service("UPS", "UPS NEXT DAY AIR EARLY").key == "NEXT DAY AIR EARLY"
    assert match_service("UPS", "ups  next day   air").key == "NEXT DAY AIR"
    assert match_service("UPS", "UPS 2nd Day Air A.M.").key == "2ND DAY AIR A.M."


def test_ground_is_the_catch_all():
    assert match_service("UPS", "UPS Ground Residential").key == "GROUND"


def test_unknown_service_or_carrier():
    assert match_service("UPS", "Mail Innovations") is None
    assert match_service("USPS", "Priority Mail") is None
    assert match_service("UPS", "") is None


def test_carrier_family():
    assert carrier_family("FedEx") == "FEDEX"
    assert carrier_family("", "FEDEX PRIORITY OVERNIGHT") == "FEDEX"
    assert carrier_family("United Parcel Service (UPS)") == "UPS"
    assert carrier_family("USPS") == "USPS"
    assert carrier_family("") == "UPS"


def test_promised_by_uses_cutoff():
    rule = match_service("UPS", "UPS NEXT DAY AIR")
    assert promised_by(rule, FRIDAY) == datetime(2024, 1, 8, 10, 30)
    assert rule.cutoff == time(10, 30)
    assert match_service("UPS", "UPS 2ND DAY AIR").cutoff == END_OF_DAY
