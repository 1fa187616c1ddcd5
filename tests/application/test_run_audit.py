import asyncio
from datetime import datetime
from decimal import Decimal

import pytest

from parcel_audit.application.state import CARRIER_SLOT, POS_SLOT, SHIPRITE_SLOT, AuditState
from parcel_audit.application.use_cases import AuditContext, LoadSourceUseCase, RunAuditUseCase
from parcel_audit.domain.errors import MissingUploadError
from parcel_audit.domain.models import CARRIER_ONLY, MATCH_OK, OVERBILLED, POS_ONLY, SourceBatch, SourceFile
from parcel_audit.domain.services import ComparisonEngine
from parcel_audit.infrastructure.repositories.csv_repositories import (
    CarrierInvoiceRepository,
    PosShipmentRepository,
)


def run(state: AuditState):
    return RunAuditUseCase(AuditContext(engine=ComparisonEngine())).execute(state)


def loaded(carrier_records, pos_records) -> AuditState:
    return (
        AuditState()
        .with_batch(CARRIER_SLOT, SourceBatch(records=tuple(carrier_records)), 1)
        .with_batch(POS_SLOT, SourceBatch(records=tuple(pos_records)), 2)
    )


def test_split_carrier_lines_match_single_pos_amount():
    state = loaded(
        [
            {"Tracking Number": "1Z1", "Billed Charge": "10.00", "Invoice Number": "INV-1"},
            {"Tracking Number": "1Z1", "Billed Charge": "5.00", "Invoice Number": ""},
        ],
        [{"Tracking #": "1Z1", "PostalMate": "15.00"}],
    )

    report = run(state).report

    assert len(report.discrepancies) == 1
    (row,) = report.discrepancies
    assert row.note == MATCH_OK
    assert row.carrier_amount == Decimal("15.00")
    assert row.invoice == "INV-1"
    assert report.membership == ()
    assert not report.has_issues()


def test_missing_uploads_are_reported():
    with pytest.raises(MissingUploadError) as carrier_missing:
        run(AuditState())
    assert carrier_missing.value.slot == CARRIER_SLOT

    with pytest.raises(MissingUploadError) as pos_missing:
        run(AuditState().with_batch(CARRIER_SLOT, SourceBatch(), 1))
    assert pos_missing.value.slot == POS_SLOT


def test_empty_uploads_produce_an_empty_report():
    report = run(loaded([], [])).report
    assert report.is_empty()
    assert report.discrepancies == ()
    assert report.summary.total_keys == 0


def test_summary_counts_every_view():
    state = loaded(
        [
            {"Tracking Number": "A", "Billed Charge": "12.00"},
            {"Tracking Number": "B", "Billed Charge": "3.00", "Voided": "Yes"},
        ],
        [{"Tracking #": "A", "PostalMate": "10.00"}, {"Tracking #": "C", "PostalMate": "4.00"}],
    )

    response = run(state)
    summary = response.report.summary

    assert summary.carrier_rows == 2
    assert summary.pos_rows == 2
    assert summary.total_keys == 3
    assert summary.overbilled == 2
    assert summary.underbilled == 1
    assert summary.overbilled_amount == Decimal("5.00")
    assert summary.underbilled_amount == Decimal("4.00")
    assert summary.carrier_only == 1
    assert summary.pos_only == 1
    assert summary.charge_issues == 1
    assert len(response.audited_rows) == 2


def test_rerunning_on_the_same_state_gives_the_same_findings():
    state = loaded(
        [{"Tracking Number": "A", "Billed Charge": "12.00"}],
        [{"Tracking #": "A", "PostalMate": "10.00"}],
    )
    first = run(state).report
    second = run(state).report
    assert first.discrepancies == second.discrepancies


def test_audit_from_uploaded_files():
    carrier_csv = "\n".join(
        [
            "Invoice Number,Tracking Number,Carrier,Service,Ship Date,Delivery Date,Delivery Time,Billed Charge",
            "INV-9,1Z1,UPS,UPS Next Day Air,01/05/2024,01/08/2024,11:00 AM,25.00",
            "INV-9,1Z2,UPS,UPS Ground,01/05/2024,01/08/2024,2:00 PM,\"$1,010.00\"",
        ]
    )
    pos_lines = [f"PostalMate report line {n}" for n in range(9)]
    pos_lines += ["Tracking #,Residential,PostalMate", "1Z1,No,25.00", "1Z3,Yes,7.50"]

    state = AuditState()
    carrier = CarrierInvoiceRepository([SourceFile("invoice.csv", carrier_csv.encode("utf-8"))])
    pos = PosShipmentRepository([SourceFile("postalmate.csv", "\n".join(pos_lines).encode("utf-8"))])
    state = asyncio.run(LoadSourceUseCase(CARRIER_SLOT, carrier).execute(state, 1))
    state = asyncio.run(LoadSourceUseCase(POS_SLOT, pos).execute(state, 2))

    report = run(state).report

    notes = {d.tracking: d.note for d in report.discrepancies}
    assert notes["1Z1"] == MATCH_OK
    assert notes["1Z2"] == OVERBILLED
    assert report.discrepancies[0].tracking == "1Z2"
    assert report.discrepancies[0].difference == Decimal("1010.00")
    assert [(m.tracking, m.status) for m in report.membership] == [("1Z2", CARRIER_ONLY), ("1Z3", POS_ONLY)]
    assert [late.tracking for late in report.late_deliveries] == ["1Z1"]
    assert report.late_deliveries[0].late_by_minutes == 30


def test_cleared_upload_slot_no_longer_feeds_the_audit():
    state = loaded(
        [{"Tracking Number": "A", "Billed Charge": "12.00"}],
        [{"Tracking #": "A", "PostalMate": "10.00"}],
    )
    run(state)

    with pytest.raises(MissingUploadError) as cleared:
        run(state.without(POS_SLOT))
    assert cleared.value.slot == POS_SLOT


def test_shiprite_rows_join_lateness_and_claims():
    state = loaded(
        [
            {
                "Tracking Number": "1Z1",
                "Carrier": "UPS",
                "Billed Charge": "12.00",
                "Transportation Charges": "12.00",
                "Fuel Surcharge": "0",
                "Delivery Date": "2024-01-08T15:00:00",
            }
        ],
        [{"Tracking #": "1Z1", "PostalMate": "12.00"}],
    ).with_batch(
        SHIPRITE_SLOT,
        SourceBatch(
            records=(
                {
                    "Tracking #": "1ZS",
                    "Carrier": "UPS",
                    "Total Charges": "9.00",
                    "Guaranteed Delivery": "2024-01-08 10:30",
                    "Delivery Date": "2024-01-08T11:00:00",
                },
            )
        ),
        3,
    )
    context = AuditContext(engine=ComparisonEngine(), clock=lambda: datetime(2024, 1, 10, 8, 0))

    response = RunAuditUseCase(context).execute(state)
    report = response.report

    assert [row.source for row in response.audited_rows] == ["carrier", "shiprite"]
    assert [late.tracking for late in report.late_deliveries] == ["1ZS"]
    assert [claim.tracking for claim in report.claims] == ["1ZS"]
    assert report.claims[0].reasons == "Late delivery"
    assert report.summary.claims == 1
    assert report.summary.carrier_rows == 1
    assert [issue.description for issue in report.charge_issues] == ["Fuel surcharge missing"]


def test_audit_without_shiprite_upload_still_runs():
    state = loaded(
        [{"Tracking Number": "A", "Billed Charge": "12.00"}],
        [{"Tracking #": "A", "PostalMate": "12.00"}],
    )
    response = run(state)
    assert response.report.claims == ()
    assert [row.source for row in response.audited_rows] == ["carrier"]
