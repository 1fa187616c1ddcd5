"""Per-source indices keyed by tracking number."""
from __future__ import annotations

from decimal import Decimal
from typing import Iterable, Sequence

from parcel_audit.domain.models import AggregatedEntry, RawRecord
from parcel_audit.infrastructure.parsing.headers import resolve
from parcel_audit.infrastructure.parsing.utils import parse_address_flag, parse_money


def build_index(
    records: Iterable[RawRecord],
    key_fields: Sequence[str],
    amount_fields: Sequence[str],
    reference_fields: Sequence[str] = (),
) -> dict[str, AggregatedEntry]:
    """Sum amounts per tracking number.

    A carrier invoice lists base charge, surcharges and adjustments for one
    package as separate lines, so repeated keys are added together rather
    than overwritten. The first non-empty reference (e.g. invoice number)
    seen for a key is kept.
    """
    totals: dict[str, Decimal] = {}
    references: dict[str, str] = {}
    counts: dict[str, int] = {}
    for record in records:
        key = resolve(record, key_fields)
        if not key:
            continue
        amount = parse_money(resolve(record, amount_fields))
        totals[key] = totals.get(key, Decimal("0")) + amount
        counts[key] = counts.get(key, 0) + 1
        reference = resolve(record, reference_fields) if reference_fields else ""
        if not references.get(key):
            references[key] = reference
    return {
        key: AggregatedEntry(key=key, amount=total, reference=references.get(key, ""), rows=counts[key])
        for key, total in totals.items()
    }


def build_flag_index(
    records: Iterable[RawRecord],
    key_fields: Sequence[str],
    flag_fields: Sequence[str],
) -> dict[str, bool]:
    """First known residential (True) / business (False) flag per key; blanks stay unknown."""
    flags: dict[str, bool] = {}
    for record in records:
        key = resolve(record, key_fields)
        if not key or key in flags:
            continue
        flag = parse_address_flag(resolve(record, flag_fields))
        if flag is not None:
            flags[key] = flag
    return flags
