"""CSV exports for audit findings."""
from __future__ import annotations

import csv
import io
from datetime import date, datetime
from decimal import Decimal
from typing import Sequence

from parcel_audit.domain.models import (
    ChargeIssue,
    ClaimRecord,
    DimWeightIssue,
    Discrepancy,
    LateDeliveryRecord,
    MembershipRecord,
    ShipmentRow,
)

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M"


def money(value: Decimal | None) -> str:
    if value is None:
        return ""
    return f"{value:.2f}"


def export_filename(purpose: str, extension: str, today: date | None = None) -> str:
    today = today or date.today()
    return f"{purpose}_{today.isoformat()}.{extension}"


def discrepancies_to_rows(discrepancies: Sequence[Discrepancy]) -> list[dict[str, str]]:
    return [
        {
            "Tracking #": item.tracking,
            "Invoice #": item.invoice,
            "Carrier Billed Charge": money(item.carrier_amount),
            "POS Amount": money(item.pos_amount),
            "Difference": money(item.difference),
            "Carrier Lines": str(item.carrier_lines),
            "Note": item.note,
        }
        for item in discrepancies
    ]


def membership_to_rows(records: Sequence[MembershipRecord]) -> list[dict[str, str]]:
    return [
        {"Tracking #": item.tracking, "Status": item.status, "Amount": money(item.amount)}
        for item in records
    ]


def late_deliveries_to_rows(records: Sequence[LateDeliveryRecord]) -> list[dict[str, str]]:
    return [
        {
            "Tracking #": item.tracking,
            "Carrier": item.carrier,
            "Service": item.service,
            "Ship Date": item.shipped_at.date().isoformat() if item.shipped_at else "",
            "Promised By": item.promised_by.strftime(TIMESTAMP_FORMAT),
            "Delivered": item.delivered_at.strftime(TIMESTAMP_FORMAT),
            "Late By (min)": str(item.late_by_minutes),
            "Billed Amount": money(item.billed_amount),
            "Claim Deadline": item.claim_deadline.isoformat(),
        }
        for item in records
    ]


def charge_issues_to_rows(issues: Sequence[ChargeIssue]) -> list[dict[str, str]]:
    return [
        {
            "Tracking #": item.tracking,
            "Carrier": item.carrier,
            "Issue": item.description,
            "Amount": money(item.amount),
            "Note": item.note,
        }
        for item in issues
    ]


def dim_weight_issues_to_rows(issues: Sequence[DimWeightIssue]) -> list[dict[str, str]]:
    return [
        {
            "Tracking #": item.tracking,
            "Carrier": item.carrier,
            "Dimensions (in)": f"{item.length} x {item.width} x {item.height}",
            "DIM Divisor": str(item.divisor),
            "DIM Weight": str(item.dim_weight),
            "Actual Weight": str(item.actual_weight),
            "Expected Billable": str(item.expected_weight),
            "Billed Weight": str(item.billed_weight),
            "Variance": str(item.variance),
        }
        for item in issues
    ]


def claims_to_rows(claims: Sequence[ClaimRecord]) -> list[dict[str, str]]:
    return [
        {
            "Tracking #": item.tracking,
            "Carrier": item.carrier,
            "Reasons": item.reasons,
            "Delivered": item.delivered_at.strftime(TIMESTAMP_FORMAT),
            "Days Since Delivery": str(item.days_since_delivery),
            "Claim Deadline": item.claim_deadline.isoformat(),
        }
        for item in claims
    ]


def _timestamp(value: datetime | None) -> str:
    return value.strftime(TIMESTAMP_FORMAT) if value else ""


def shipment_rows_to_rows(rows: Sequence[ShipmentRow]) -> list[dict[str, str]]:
    """Every audited row with its normalized fields, for the full export."""
    return [
        {
            "Source": item.source,
            "Row": item.lineage or "",
            "Tracking #": item.tracking,
            "Carrier": item.carrier,
            "Service": item.service,
            "Invoice #": item.invoice,
            "Ship Date": item.ship_date.isoformat() if item.ship_date else "",
            "Promised By": _timestamp(item.promised_at),
            "Delivered": _timestamp(item.delivered_at),
            "Billed Amount": money(item.billed_amount),
            "Transportation": money(item.transportation_amount),
            "Fuel": money(item.fuel_amount),
            "Billed Weight": str(item.billed_weight),
            "Actual Weight": str(item.actual_weight),
            "Dimensions (in)": f"{item.length} x {item.width} x {item.height}",
            "Residential": "" if item.residential is None else str(item.residential),
            "Voided": str(item.voided),
            "Charges": "; ".join(f"{c.description} {money(c.amount)}" for c in item.charges),
        }
        for item in rows
    ]


def render_csv(rows: Sequence[dict[str, str]]) -> bytes:
    """Header row plus one line per row; cells with commas, quotes or newlines are quoted."""
    buffer = io.StringIO()
    writer = csv.DictWriter(
        buffer,
        fieldnames=list(rows[0].keys()) if rows else [],
        lineterminator="\n",
        quoting=csv.QUOTE_MINIMAL,
    )
    if rows:
        writer.writeheader()
        writer.writerows(rows)
    return buffer.getvalue().encode("utf-8")
