"""Raw export rows to canonical shipment rows for the audit rules."""
from __future__ import annotations

import re
from functools import lru_cache
from typing import Iterable, Sequence

from parcel_audit.config import SETTINGS, Settings
from parcel_audit.domain.models import ChargeLine, RawRecord, ShipmentRow
from parcel_audit.infrastructure.parsing.headers import (
    ACTUAL_WEIGHT,
    BILLED_AMOUNT,
    BILLED_WEIGHT,
    CARRIER,
    CARRIER_TRACKING,
    DELIVERY_DATE,
    DELIVERY_TIME,
    FUEL_SURCHARGE,
    HEIGHT,
    INVOICE_NUMBER,
    LENGTH,
    PROMISED_DELIVERY,
    RESIDENTIAL,
    SERVICE,
    SHIP_DATE,
    SHIPRITE_AMOUNT,
    SHIPRITE_TRACKING,
    TRANSPORTATION,
    VOIDED,
    WIDTH,
    normalize_header,
    resolve,
)
from parcel_audit.infrastructure.parsing.utils import (
    parse_address_flag,
    parse_bool,
    parse_date,
    parse_money,
    parse_timestamp,
)

_DESCRIPTION_HEADER = re.compile(r"^(?:charge)?description(\d*)$")
_AMOUNT_HEADER = re.compile(r"^(?:charge|net)?amount(\d*)$")


@lru_cache(maxsize=256)
def charge_columns(headers: tuple[str, ...]) -> tuple[tuple[str, str], ...]:
    """Pair description columns with amount columns.

    Columns sharing a numeric suffix ("Charge Description 2" / "Charge Amount 2",
    or pandas' "Description.1" / "Amount.1") are paired first; whatever is left
    is paired by position.
    """
    descriptions: list[tuple[str, str]] = []
    amounts: list[tuple[str, str]] = []
    for header in headers:
        normalized = normalize_header(header)
        match = _DESCRIPTION_HEADER.match(normalized)
        if match:
            descriptions.append((header, match.group(1)))
            continue
        match = _AMOUNT_HEADER.match(normalized)
        if match:
            amounts.append((header, match.group(1)))

    pairs: list[tuple[str, str]] = []
    unmatched: list[str] = []
    remaining = list(amounts)
    for description, suffix in descriptions:
        partner = next((item for item in remaining if item[1] == suffix), None)
        if partner is None:
            unmatched.append(description)
            continue
        remaining.remove(partner)
        pairs.append((description, partner[0]))
    pairs.extend(zip(unmatched, [header for header, _ in remaining]))
    return tuple(pairs)


def extract_charges(record: RawRecord) -> tuple[ChargeLine, ...]:
    lines: list[ChargeLine] = []
    for description_header, amount_header in charge_columns(tuple(record.keys())):
        description = str(record.get(description_header, "")).strip()
        if not description:
            continue
        lines.append(ChargeLine(description=description, amount=parse_money(record.get(amount_header))))
    return tuple(lines)


def normalize_rows(
    records: Iterable[RawRecord],
    tracking_fields: Sequence[str],
    amount_fields: Sequence[str],
    settings: Settings = SETTINGS,
    source: str = "",
) -> list[ShipmentRow]:
    rows: list[ShipmentRow] = []
    for idx, record in enumerate(records):
        tracking = resolve(record, tracking_fields)
        if not tracking:
            continue
        amount_text = resolve(record, amount_fields)
        rows.append(
            ShipmentRow(
                tracking=tracking,
                carrier=resolve(record, CARRIER) or settings.default_carrier,
                service=resolve(record, SERVICE),
                ship_date=parse_date(resolve(record, SHIP_DATE)),
                delivered_at=parse_timestamp(resolve(record, DELIVERY_DATE), resolve(record, DELIVERY_TIME)),
                promised_at=parse_timestamp(resolve(record, PROMISED_DELIVERY)),
                billed_amount=parse_money(amount_text) if amount_text else None,
                invoice=resolve(record, INVOICE_NUMBER),
                fuel_amount=parse_money(resolve(record, FUEL_SURCHARGE)),
                transportation_amount=parse_money(resolve(record, TRANSPORTATION)),
                billed_weight=parse_money(resolve(record, BILLED_WEIGHT)),
                actual_weight=parse_money(resolve(record, ACTUAL_WEIGHT)),
                length=parse_money(resolve(record, LENGTH)),
                width=parse_money(resolve(record, WIDTH)),
                height=parse_money(resolve(record, HEIGHT)),
                residential=parse_address_flag(resolve(record, RESIDENTIAL)),
                voided=parse_bool(resolve(record, VOIDED)),
                charges=extract_charges(record),
                source=source,
                lineage=f"row={idx}",
            )
        )
    return rows


def normalize_carrier_rows(records: Iterable[RawRecord], settings: Settings = SETTINGS) -> list[ShipmentRow]:
    return normalize_rows(records, CARRIER_TRACKING, BILLED_AMOUNT, settings, source="carrier")


def normalize_shiprite_rows(records: Iterable[RawRecord], settings: Settings = SETTINGS) -> list[ShipmentRow]:
    return normalize_rows(records, SHIPRITE_TRACKING, SHIPRITE_AMOUNT, settings, source="shiprite")

