"""Domain-level results for a parcel audit run."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Sequence

from .models import (
    CARRIER_ONLY,
    OVERBILLED,
    POS_ONLY,
    UNDERBILLED,
    ChargeIssue,
    ClaimRecord,
    DimWeightIssue,
    Discrepancy,
    LateDeliveryRecord,
    MembershipRecord,
)


@dataclass(frozen=True)
class AuditSummary:
    carrier_rows: int
    pos_rows: int
    total_keys: int
    matched: int
    overbilled: int
    underbilled: int
    overbilled_amount: Decimal
    underbilled_amount: Decimal
    carrier_only: int
    pos_only: int
    late_deliveries: int
    charge_issues: int
    dim_weight_issues: int
    claims: int
    generated_at: datetime


@dataclass(frozen=True)
class AuditReport:
    summary: AuditSummary
    discrepancies: Sequence[Discrepancy] = field(default_factory=tuple)
    membership: Sequence[MembershipRecord] = field(default_factory=tuple)
    late_deliveries: Sequence[LateDeliveryRecord] = field(default_factory=tuple)
    charge_issues: Sequence[ChargeIssue] = field(default_factory=tuple)
    dim_weight_issues: Sequence[DimWeightIssue] = field(default_factory=tuple)
    claims: Sequence[ClaimRecord] = field(default_factory=tuple)

    def is_empty(self) -> bool:
        return not (self.summary.carrier_rows or self.summary.pos_rows)

    def has_issues(self) -> bool:
        return any(
            [
                self.summary.overbilled,
                self.summary.underbilled,
                self.summary.late_deliveries,
                self.summary.charge_issues,
                self.summary.dim_weight_issues,
            ]
        )


def summarize(
    carrier_rows: int,
    pos_rows: int,
    discrepancies: Sequence[Discrepancy],
    membership: Sequence[MembershipRecord],
    late_deliveries: Sequence[LateDeliveryRecord],
    charge_issues: Sequence[ChargeIssue],
    dim_weight_issues: Sequence[DimWeightIssue],
    generated_at: datetime,
    claims: Sequence[ClaimRecord] = (),
) -> AuditSummary:
    over = [d for d in discrepancies if d.note == OVERBILLED]
    under = [d for d in discrepancies if d.note == UNDERBILLED]
    return AuditSummary(
        carrier_rows=carrier_rows,
        pos_rows=pos_rows,
        total_keys=len(discrepancies),
        matched=len(discrepancies) - len(over) - len(under),
        overbilled=len(over),
        underbilled=len(under),
        overbilled_amount=sum((d.difference for d in over), Decimal("0")),
        underbilled_amount=sum((-d.difference for d in under), Decimal("0")),
        carrier_only=len([m for m in membership if m.status == CARRIER_ONLY]),
        pos_only=len([m for m in membership if m.status == POS_ONLY]),
        late_deliveries=len(late_deliveries),
        charge_issues=len(charge_issues),
        dim_weight_issues=len(dim_weight_issues),
        claims=len(claims),
        generated_at=generated_at,
    )
