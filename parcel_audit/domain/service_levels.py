"""Carrier service-level guarantees and business-day arithmetic.

Service text is matched by substring containment, so table order matters:
narrower names ("NEXT DAY AIR EARLY") must precede the broader names they
contain ("NEXT DAY AIR"), and catch-alls such as "GROUND" go last.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta

END_OF_DAY = time(23, 59, 59, 999000)


@dataclass(frozen=True)
class ServiceRule:
    key: str
    business_days: int
    cutoff: time


UPS_SERVICE_LEVELS: tuple[ServiceRule, ...] = (
    ServiceRule("NEXT DAY AIR EARLY", 1, time(8, 0)),
    ServiceRule("NEXT DAY AIR SAVER", 1, END_OF_DAY),
    ServiceRule("NEXT DAY AIR", 1, time(10, 30)),
    ServiceRule("2ND DAY AIR A.M.", 2, time(10, 30)),
    ServiceRule("2ND DAY AIR AM", 2, time(10, 30)),
    ServiceRule("2ND DAY AIR", 2, END_OF_DAY),
    ServiceRule("3 DAY SELECT", 3, END_OF_DAY),
    ServiceRule("GROUND", 5, END_OF_DAY),
)

FEDEX_SERVICE_LEVELS: tuple[ServiceRule, ...] = (
    ServiceRule("FIRST OVERNIGHT", 1, time(8, 0)),
    ServiceRule("PRIORITY OVERNIGHT", 1, time(10, 30)),
    ServiceRule("STANDARD OVERNIGHT", 1, time(17, 0)),
    ServiceRule("2DAY A.M.", 2, time(10, 30)),
    ServiceRule("2DAY AM", 2, time(10, 30)),
    ServiceRule("2DAY", 2, time(17, 0)),
    ServiceRule("2 DAY", 2, time(17, 0)),
    ServiceRule("EXPRESS SAVER", 3, time(17, 0)),
    ServiceRule("GROUND", 5, END_OF_DAY),
)

SERVICE_LEVELS: dict[str, tuple[ServiceRule, ...]] = {
    "UPS": UPS_SERVICE_LEVELS,
    "FEDEX": FEDEX_SERVICE_LEVELS,
}


def carrier_family(carrier: str, service: str = "", default: str = "UPS") -> str:
    text = f"{carrier} {service}".upper().replace(" ", "")
    if "FEDEX" in text:
        return "FEDEX"
    if "UPS" in text:
        return "UPS"
    if "USPS" in text or "POSTAL" in text:
        return "USPS"
    return default


def match_service(carrier: str, service: str) -> ServiceRule | None:
    rules = SERVICE_LEVELS.get(carrier)
    if not rules or not service:
        return None
    text = re.sub(r"\s+", " ", service.upper()).strip()
    for rule in rules:
        if rule.key in text:
            return rule
    return None


def add_business_days(start: date, days: int) -> date:
    """Advance ``days`` weekdays from ``start``; Saturdays and Sundays are skipped."""
    current = start
    remaining = days
    while remaining > 0:
        current += timedelta(days=1)
        if current.weekday() < 5:
            remaining -= 1
    return current


def promised_by(rule: ServiceRule, ship_date: date) -> datetime:
    return datetime.combine(add_business_days(ship_date, rule.business_days), rule.cutoff)
