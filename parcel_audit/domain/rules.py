"""Independent audit rules over normalized shipment rows.

Every rule is a pure function: it takes rows (and, for cross checks, a POS-side
index) and returns the issues it found. A row may trigger several rules.
"""
from __future__ import annotations

import re
from collections import defaultdict
from datetime import date, datetime, timedelta
from decimal import ROUND_CEILING, ROUND_HALF_UP, Decimal
from typing import Mapping, Sequence

from parcel_audit.config import SETTINGS, Settings

from .models import ChargeIssue, ClaimRecord, DimWeightIssue, LateDeliveryRecord, ShipmentRow
from .service_levels import carrier_family, match_service, promised_by

CENT = Decimal("0.01")

DUPLICATE_CHARGE = "Possible duplicate charge"
FUEL_ANOMALY = "Fuel surcharge anomaly"
VOIDED_LABEL = "Voided label charged"
FUEL_MISSING = "Fuel surcharge missing"
RESIDENTIAL = "Residential surcharge"

# First match wins; residential is checked against the POS address flag.
SURCHARGE_PATTERNS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"address\s*correction", re.I), "Address correction"),
    (re.compile(r"residential|\bresi\b", re.I), RESIDENTIAL),
    (re.compile(r"saturday", re.I), "Saturday delivery"),
    (re.compile(r"delivery\s*area|\bdas\b", re.I), "Delivery area surcharge"),
    (re.compile(r"additional\s*handling|\bahs\b", re.I), "Additional handling"),
    (re.compile(r"over\s*size|large\s*package", re.I), "Oversize / large package"),
    (re.compile(r"fuel", re.I), "Fuel surcharge"),
)

RESIDENTIAL_MISMATCH_NOTE = "POS records a business address; residential surcharge may be disputable"


def find_late_deliveries(
    rows: Sequence[ShipmentRow], settings: Settings = SETTINGS
) -> tuple[LateDeliveryRecord, ...]:
    """Rows delivered after their promise; one record per tracking number.

    An explicit guaranteed/promised delivery column wins over the service
    table. Otherwise the promise is derived from ship date and service level.
    """
    late: list[LateDeliveryRecord] = []
    seen: set[str] = set()
    for row in rows:
        if row.delivered_at is None or row.tracking in seen:
            continue
        family = carrier_family(row.carrier, row.service, settings.default_carrier)
        deadline = _promise_for(row, family)
        if deadline is None:
            continue
        seen.add(row.tracking)
        if row.delivered_at <= deadline:
            continue
        late.append(
            LateDeliveryRecord(
                tracking=row.tracking,
                carrier=row.carrier or family,
                service=row.service,
                shipped_at=datetime.combine(row.ship_date, datetime.min.time()) if row.ship_date else None,
                promised_by=deadline,
                delivered_at=row.delivered_at,
                late_by_minutes=int((row.delivered_at - deadline).total_seconds() // 60),
                billed_amount=row.billed_amount,
                claim_deadline=row.delivered_at.date() + timedelta(days=settings.claim_window_days),
            )
        )
    late.sort(key=lambda record: (-record.late_by_minutes, record.tracking))
    return tuple(late)


def _promise_for(row: ShipmentRow, family: str) -> datetime | None:
    if row.promised_at is not None:
        return row.promised_at
    if row.ship_date is None:
        return None
    rule = match_service(family, row.service)
    return promised_by(rule, row.ship_date) if rule else None


def has_itemized_charges(rows: Sequence[ShipmentRow]) -> bool:
    return any(row.charges for row in rows)


def find_duplicate_charges(rows: Sequence[ShipmentRow]) -> tuple[ChargeIssue, ...]:
    counts: dict[tuple[str, str, Decimal], int] = defaultdict(int)
    carriers: dict[tuple[str, str, Decimal], str] = {}
    for row in rows:
        for charge in row.charges:
            group = (row.tracking, charge.description, charge.amount.quantize(CENT, rounding=ROUND_HALF_UP))
            counts[group] += 1
            carriers.setdefault(group, row.carrier)

    issues = [
        ChargeIssue(
            tracking=tracking,
            carrier=carriers[(tracking, description, amount)],
            description=DUPLICATE_CHARGE,
            amount=amount,
            note=f"'{description}' billed {count} times",
        )
        for (tracking, description, amount), count in counts.items()
        if count >= 2
    ]
    issues.sort(key=lambda issue: (issue.tracking, issue.note))
    return tuple(issues)


def find_surcharges(
    rows: Sequence[ShipmentRow], pos_residential: Mapping[str, bool] | None = None
) -> tuple[ChargeIssue, ...]:
    pos_residential = pos_residential or {}
    issues: list[ChargeIssue] = []
    for row in rows:
        for charge in row.charges:
            name = _match_surcharge(charge.description)
            if name is None:
                continue
            note = charge.description
            if name == RESIDENTIAL and pos_residential.get(row.tracking) is False:
                note = f"{note}; {RESIDENTIAL_MISMATCH_NOTE}"
            issues.append(
                ChargeIssue(
                    tracking=row.tracking,
                    carrier=row.carrier,
                    description=name,
                    amount=charge.amount,
                    note=note,
                )
            )
    return tuple(issues)


def _match_surcharge(description: str) -> str | None:
    for pattern, name in SURCHARGE_PATTERNS:
        if pattern.search(description):
            return name
    return None


def find_fuel_anomalies(
    rows: Sequence[ShipmentRow], settings: Settings = SETTINGS
) -> tuple[ChargeIssue, ...]:
    """Coarse per-key fuel check, used only when no itemized charges exist."""
    fuel: dict[str, Decimal] = defaultdict(Decimal)
    transport: dict[str, Decimal] = defaultdict(Decimal)
    carriers: dict[str, str] = {}
    for row in rows:
        fuel[row.tracking] += row.fuel_amount
        transport[row.tracking] += row.transportation_amount
        carriers.setdefault(row.tracking, row.carrier)

    issues: list[ChargeIssue] = []
    for tracking, transportation in transport.items():
        if transportation == 0:
            continue
        ratio = fuel[tracking] / transportation
        if ratio > settings.fuel_ratio_limit or ratio < 0:
            issues.append(
                ChargeIssue(
                    tracking=tracking,
                    carrier=carriers[tracking],
                    description=FUEL_ANOMALY,
                    amount=fuel[tracking],
                    note=f"Fuel is {ratio:.1%} of transportation charges",
                )
            )
    return tuple(issues)


def ceil_to(value: Decimal, step: Decimal) -> Decimal:
    if step <= 0:
        return value.to_integral_value(rounding=ROUND_CEILING)
    return (value / step).to_integral_value(rounding=ROUND_CEILING) * step


def find_dim_weight_mismatches(
    rows: Sequence[ShipmentRow], settings: Settings = SETTINGS
) -> tuple[DimWeightIssue, ...]:
    issues: list[DimWeightIssue] = []
    seen: set[str] = set()
    for row in rows:
        if row.tracking in seen:
            continue
        if not (row.length > 0 and row.width > 0 and row.height > 0 and row.billed_weight > 0):
            continue
        seen.add(row.tracking)
        divisor = settings.dim_divisor_for(carrier_family(row.carrier, row.service, settings.default_carrier))
        dim_weight = ceil_to(row.length * row.width * row.height / Decimal(divisor), settings.pound_rounding)
        expected = max(row.actual_weight, dim_weight)
        if abs(row.billed_weight - expected) < settings.dim_variance_threshold:
            continue
        issues.append(
            DimWeightIssue(
                tracking=row.tracking,
                carrier=row.carrier,
                length=row.length,
                width=row.width,
                height=row.height,
                divisor=divisor,
                dim_weight=dim_weight,
                actual_weight=row.actual_weight,
                expected_weight=expected,
                billed_weight=row.billed_weight,
            )
        )
    issues.sort(key=lambda issue: (-abs(issue.variance), issue.tracking))
    return tuple(issues)


def find_voided_charges(rows: Sequence[ShipmentRow]) -> tuple[ChargeIssue, ...]:
    issues: list[ChargeIssue] = []
    for row in rows:
        void_lines = [c for c in row.charges if "void" in c.description.lower() and c.amount > 0]
        if void_lines:
            amount = sum((c.amount for c in void_lines), Decimal("0"))
            note = ", ".join(c.description for c in void_lines)
        elif row.voided and (row.billed_amount or 0) > 0:
            amount = row.billed_amount
            note = "Label marked voided but still billed"
        else:
            continue
        issues.append(
            ChargeIssue(
                tracking=row.tracking,
                carrier=row.carrier,
                description=VOIDED_LABEL,
                amount=amount,
                note=note,
            )
        )
    return tuple(issues)


def find_missing_fuel(rows: Sequence[ShipmentRow], settings: Settings = SETTINGS) -> tuple[ChargeIssue, ...]:
    """UPS/FedEx tracking numbers billed transportation with no fuel surcharge at all."""
    fuel: dict[str, Decimal] = defaultdict(Decimal)
    transport: dict[str, Decimal] = defaultdict(Decimal)
    carriers: dict[str, str] = {}
    for row in rows:
        if carrier_family(row.carrier, row.service, settings.default_carrier) not in ("UPS", "FEDEX"):
            continue
        fuel[row.tracking] += row.fuel_amount
        fuel[row.tracking] += sum((c.amount for c in row.charges if "fuel" in c.description.lower()), Decimal("0"))
        transport[row.tracking] += row.transportation_amount
        carriers.setdefault(row.tracking, row.carrier)

    return tuple(
        ChargeIssue(
            tracking=tracking,
            carrier=carriers[tracking],
            description=FUEL_MISSING,
            amount=Decimal("0"),
            note=f"No fuel billed on {transportation:.2f} of transportation charges",
        )
        for tracking, transportation in transport.items()
        if transportation > 0 and fuel[tracking] == 0
    )


# Charge findings a carrier will refund through its dispute process.
CLAIMABLE_CHARGES = (DUPLICATE_CHARGE, "Address correction", VOIDED_LABEL)


def find_claim_eligible(
    rows: Sequence[ShipmentRow],
    late_deliveries: Sequence[LateDeliveryRecord],
    charge_issues: Sequence[ChargeIssue],
    dim_weight_issues: Sequence[DimWeightIssue],
    today: date,
    settings: Settings = SETTINGS,
) -> tuple[ClaimRecord, ...]:
    """Flagged tracking numbers delivered no more than ``claim_window_days`` ago.

    Rows without a delivery timestamp cannot be claimed and are left out.
    """
    reasons: dict[str, list[str]] = defaultdict(list)
    for record in late_deliveries:
        reasons[record.tracking].append("Late delivery")
    for issue in dim_weight_issues:
        reasons[issue.tracking].append("DIM weight mismatch")
    for issue in charge_issues:
        if issue.description in CLAIMABLE_CHARGES and issue.description not in reasons[issue.tracking]:
            reasons[issue.tracking].append(issue.description)

    delivered: dict[str, ShipmentRow] = {}
    for row in rows:
        if row.delivered_at is not None:
            delivered.setdefault(row.tracking, row)

    claims: list[ClaimRecord] = []
    for tracking, found in reasons.items():
        row = delivered.get(tracking)
        if not found or row is None:
            continue
        days = (today - row.delivered_at.date()).days
        if days > settings.claim_window_days:
            continue
        claims.append(
            ClaimRecord(
                tracking=tracking,
                carrier=row.carrier,
                reasons="; ".join(found),
                delivered_at=row.delivered_at,
                days_since_delivery=days,
                claim_deadline=row.delivered_at.date() + timedelta(days=settings.claim_window_days),
            )
        )
    claims.sort(key=lambda claim: (claim.claim_deadline, claim.tracking))
    return tuple(claims)
