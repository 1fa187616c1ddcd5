"""Domain models for the parcel audit pipeline.

Raw rows come in as plain header-keyed mappings; everything the audit derives
from them is a frozen dataclass owned by a single run.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Mapping, Sequence

RawRecord = Mapping[str, str]

MATCH_OK = "Match – OK"
OVERBILLED = "Overbilled"
UNDERBILLED = "Underbilled – Review"

CARRIER_ONLY = "CarrierOnly"
POS_ONLY = "POSOnly"


@dataclass(frozen=True)
class SourceFile:
    """An uploaded file as received from the user."""

    name: str
    content: bytes


@dataclass(frozen=True)
class FileFailure:
    name: str
    reason: str


@dataclass(frozen=True)
class SourceBatch:
    """All rows of one upload slot, flattened in upload order."""

    records: Sequence[RawRecord] = field(default_factory=tuple)
    files: Sequence[str] = field(default_factory=tuple)
    failures: Sequence[FileFailure] = field(default_factory=tuple)

    def __len__(self) -> int:
        return len(self.records)


@dataclass(frozen=True)
class ChargeLine:
    description: str
    amount: Decimal


@dataclass(frozen=True)
class ShipmentRow:
    """Normalized view of one raw row, as consumed by the audit rules."""

    tracking: str
    carrier: str
    service: str = ""
    ship_date: date | None = None
    delivered_at: datetime | None = None
    billed_amount: Decimal | None = None
    invoice: str = ""
    fuel_amount: Decimal = Decimal("0")
    transportation_amount: Decimal = Decimal("0")
    billed_weight: Decimal = Decimal("0")
    actual_weight: Decimal = Decimal("0")
    length: Decimal = Decimal("0")
    width: Decimal = Decimal("0")
    height: Decimal = Decimal("0")
    promised_at: datetime | None = None
    residential: bool | None = None
    voided: bool = False
    charges: Sequence[ChargeLine] = field(default_factory=tuple)
    source: str = ""
    lineage: str | None = None


@dataclass(frozen=True)
class AggregatedEntry:
    key: str
    amount: Decimal
    reference: str = ""
    rows: int = 1


@dataclass(frozen=True)
class Discrepancy:
    """Amount comparison for one tracking number across both sources."""

    tracking: str
    invoice: str
    carrier_amount: Decimal
    pos_amount: Decimal
    difference: Decimal
    note: str
    carrier_lines: int = 0

    @property
    def is_match(self) -> bool:
        return self.note == MATCH_OK


@dataclass(frozen=True)
class MembershipRecord:
    """A tracking number present on only one side, amounts ignored."""

    tracking: str
    status: str
    amount: Decimal


@dataclass(frozen=True)
class LateDeliveryRecord:
    tracking: str
    carrier: str
    service: str
    shipped_at: datetime | None
    promised_by: datetime
    delivered_at: datetime
    late_by_minutes: int
    billed_amount: Decimal | None
    claim_deadline: date


@dataclass(frozen=True)
class ChargeIssue:
    tracking: str
    carrier: str
    description: str
    amount: Decimal
    note: str = ""


@dataclass(frozen=True)
class DimWeightIssue:
    tracking: str
    carrier: str
    length: Decimal
    width: Decimal
    height: Decimal
    divisor: int
    dim_weight: Decimal
    actual_weight: Decimal
    expected_weight: Decimal
    billed_weight: Decimal

    @property
    def variance(self) -> Decimal:
        return self.billed_weight - self.expected_weight


@dataclass(frozen=True)
class ClaimRecord:
    """A flagged tracking number still inside the carrier's claim window."""

    tracking: str
    carrier: str
    reasons: str
    delivered_at: datetime
    days_since_delivery: int
    claim_deadline: date
