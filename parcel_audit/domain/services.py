"""Domain services implementing carrier-vs-POS comparison rules."""
from __future__ import annotations

from decimal import Decimal
from typing import Iterable, Mapping, Sequence

from .models import (
    CARRIER_ONLY,
    MATCH_OK,
    OVERBILLED,
    POS_ONLY,
    UNDERBILLED,
    AggregatedEntry,
    Discrepancy,
    MembershipRecord,
)

ZERO = Decimal("0")


class ComparisonEngine:
    """Compares aggregated carrier and POS indices keyed by tracking number.

    Two views are offered and they are never merged:

    * ``compare_amounts`` treats a key missing on one side as an amount of
      zero, so a carrier-only key comes out as ``Overbilled`` and a POS-only
      key as ``Underbilled – Review``.
    * ``compare_membership`` only looks at which side holds a key.
    """

    def __init__(self, tolerance: Decimal | None = None) -> None:
        if tolerance is None:
            tolerance = Decimal("0.01")
        self._tolerance = tolerance

    def compare_amounts(
        self,
        carrier: Mapping[str, AggregatedEntry],
        pos: Mapping[str, AggregatedEntry],
    ) -> tuple[Discrepancy, ...]:
        discrepancies: list[Discrepancy] = []
        for key in _union_keys(carrier, pos):
            carrier_entry = carrier.get(key)
            pos_entry = pos.get(key)
            carrier_amount = carrier_entry.amount if carrier_entry else ZERO
            pos_amount = pos_entry.amount if pos_entry else ZERO
            difference = carrier_amount - pos_amount
            discrepancies.append(
                Discrepancy(
                    tracking=key,
                    invoice=carrier_entry.reference if carrier_entry else "",
                    carrier_amount=carrier_amount,
                    pos_amount=pos_amount,
                    difference=difference,
                    note=self.classify(difference),
                    carrier_lines=carrier_entry.rows if carrier_entry else 0,
                )
            )
        return rank_discrepancies(discrepancies)

    def compare_membership(
        self,
        carrier: Mapping[str, AggregatedEntry],
        pos: Mapping[str, AggregatedEntry],
    ) -> tuple[MembershipRecord, ...]:
        carrier_only = [
            MembershipRecord(tracking=key, status=CARRIER_ONLY, amount=entry.amount)
            for key, entry in carrier.items()
            if key not in pos
        ]
        pos_only = [
            MembershipRecord(tracking=key, status=POS_ONLY, amount=entry.amount)
            for key, entry in pos.items()
            if key not in carrier
        ]
        carrier_only.sort(key=lambda record: record.tracking)
        pos_only.sort(key=lambda record: record.tracking)
        return tuple(carrier_only + pos_only)

    def classify(self, difference: Decimal) -> str:
        if self._values_equal(difference, ZERO):
            return MATCH_OK
        return OVERBILLED if difference > 0 else UNDERBILLED

    def _values_equal(self, left: Decimal, right: Decimal) -> bool:
        return abs(left - right) <= self._tolerance


def rank_discrepancies(discrepancies: Iterable[Discrepancy]) -> tuple[Discrepancy, ...]:
    """Disputes first, largest absolute difference first within each group."""
    return tuple(
        sorted(
            discrepancies,
            key=lambda d: (d.is_match, -abs(d.difference), d.tracking),
        )
    )


def _union_keys(*indices: Mapping[str, AggregatedEntry]) -> Sequence[str]:
    seen: dict[str, None] = {}
    for index in indices:
        for key in index:
            seen.setdefault(key, None)
    return list(seen)
