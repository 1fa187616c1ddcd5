"""Header resolution for exports whose column names drift between files.

A logical field is a prioritized tuple of header aliases. Resolution first
tries each alias verbatim, then retries against headers normalized to
lowercase alphanumerics, so "Tracking #", "TRACKING_#" and "tracking#" all
land on the same column. Exact matching runs first because two distinct
columns can normalize to the same key.
"""
from __future__ import annotations

import re
from functools import lru_cache
from typing import Sequence

from parcel_audit.domain.models import RawRecord

CARRIER_TRACKING = (
    "Tracking Number",
    "Tracking Number 1",
    "Package Tracking Number",
    "Tracking #",
    "Tracking ID",
    "Air Waybill",
    "AWB",
    "Shipment Number",
    "Express or Ground Tracking ID",
)
POS_TRACKING = ("Tracking Number", "Tracking #", "Tracking")
BILLED_AMOUNT = ("Billed Charge", "Total Charges", "Net Charges", "Transportation Charges", "Net Amount")
INVOICE_NUMBER = ("Invoice Number",)
POSTALMATE_AMOUNT = ("PostalMate",)
SHIPRITE_TRACKING = ("Tracking Number", "Tracking #", "Tracking")
SHIPRITE_AMOUNT = ("Total Charges", "Total", "Base Charge")

CARRIER = ("Carrier", "Carrier Name")
SERVICE = ("Service", "Service Level", "Service Type", "Service Description")
SHIP_DATE = ("Ship Date", "Shipment Date", "Pickup Date")
DELIVERY_DATE = ("Delivery Date", "Delivery Date/Time", "Delivered Date", "Delivered", "POD Date")
DELIVERY_TIME = ("Delivery Time", "Delivered Time", "POD Time")
PROMISED_DELIVERY = (
    "Guaranteed Delivery",
    "Guaranteed Delivery Date",
    "Promised Delivery",
    "Promised Delivery Date",
    "Scheduled Delivery",
)
BILLED_WEIGHT = ("Billed Weight", "Rated Weight")
ACTUAL_WEIGHT = ("Actual Weight", "Entered Weight", "Weight")
LENGTH = ("Length", "Length (in)", "Package Length")
WIDTH = ("Width", "Width (in)", "Package Width")
HEIGHT = ("Height", "Height (in)", "Package Height")
FUEL_SURCHARGE = ("Fuel Surcharge", "Fuel Surcharge Amount", "Fuel")
TRANSPORTATION = ("Transportation Charges", "Base Charge", "Base Rate", "Freight Charges")
RESIDENTIAL = ("Residential", "Residential Flag", "Is Residential", "Address Type")
VOIDED = ("Voided", "Void", "Is Voided")

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def normalize_header(header: str) -> str:
    return _NON_ALNUM.sub("", str(header).lower())


@lru_cache(maxsize=256)
def _normalized_lookup(headers: tuple[str, ...]) -> dict[str, str]:
    lookup: dict[str, str] = {}
    for header in headers:
        lookup.setdefault(normalize_header(header), header)
    return lookup


def _present(record: RawRecord, header: str | None) -> str:
    if header is None:
        return ""
    value = record.get(header)
    if value is None:
        return ""
    return str(value).strip()


def resolve(record: RawRecord, candidates: Sequence[str]) -> str:
    """Return the first non-empty value among ``candidates``, or ``""``."""
    for candidate in candidates:
        value = _present(record, candidate)
        if value:
            return value
    lookup = _normalized_lookup(tuple(record.keys()))
    for candidate in candidates:
        value = _present(record, lookup.get(normalize_header(candidate)))
        if value:
            return value
    return ""
