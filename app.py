"""Streamlit front-end for the parcel audit pipeline."""
from __future__ import annotations

import asyncio
import logging

import pandas as pd
import streamlit as st

from parcel_audit import (
    AuditContext,
    AuditState,
    CarrierInvoiceRepository,
    ComparisonEngine,
    LoadSourceUseCase,
    PosShipmentRepository,
    RunAuditUseCase,
    ShipRiteRepository,
    UploadSequencer,
)
from parcel_audit.application.state import CARRIER_SLOT, POS_SLOT, SHIPRITE_SLOT
from parcel_audit.config import SETTINGS, Settings, settings_from_inputs
from parcel_audit.domain.errors import MissingUploadError
from parcel_audit.domain.models import SourceFile
from parcel_audit.infrastructure.parsing.tabular import HeaderDetection
from parcel_audit.presentation.diff_report import (
    charge_issues_to_rows,
    claims_to_rows,
    dim_weight_issues_to_rows,
    discrepancies_to_rows,
    export_filename,
    late_deliveries_to_rows,
    membership_to_rows,
    render_csv,
    shipment_rows_to_rows,
)
from parcel_audit.presentation.pdf_report import dispute_guide_sections, render_pdf, report_sections

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

st.set_page_config(page_title="Parcel Audit", layout="wide")
st.title("Parcel Audit: Carrier vs PostalMate")


def load_slot(
    slot: str, uploads, repository_cls, settings: Settings, detection: HeaderDetection | None = None
) -> None:
    if not uploads:
        st.session_state["state"] = st.session_state["state"].without(slot)
        return
    files = [SourceFile(name=upload.name, content=upload.getvalue()) for upload in uploads]
    sequencer: UploadSequencer = st.session_state["sequencer"]
    sequence = sequencer.next()
    use_case = LoadSourceUseCase(slot, repository_cls(files, detection=detection, settings=settings))
    state = asyncio.run(use_case.execute(st.session_state["state"], sequence))
    st.session_state["state"] = state
    batch = state.batch(slot)
    for failure in batch.failures if batch else ():
        st.error(f"Could not read {failure.name}: {failure.reason}")


def download_csv(label: str, rows: list[dict[str, str]], purpose: str) -> None:
    st.download_button(
        label,
        data=render_csv(rows),
        file_name=export_filename(purpose, "csv"),
        mime="text/csv",
        disabled=not rows,
    )


if "state" not in st.session_state:
    st.session_state["state"] = AuditState()
    st.session_state["sequencer"] = UploadSequencer()
if "result" not in st.session_state:
    st.session_state["result"] = None

with st.sidebar:
    st.header("Settings")
    settings = settings_from_inputs(
        ups_dim=st.number_input("UPS DIM", min_value=1, value=SETTINGS.dim_divisors["UPS"]),
        fedex_dim=st.number_input("FedEx DIM", min_value=1, value=SETTINGS.dim_divisors["FEDEX"]),
        usps_dim=st.number_input("USPS DIM", min_value=1, value=SETTINGS.dim_divisors["USPS"]),
        claim_window_days=st.number_input("Claim window (days)", min_value=0, value=SETTINGS.claim_window_days),
        pound_rounding=st.number_input(
            "Pound rounding", min_value=0.0, value=float(SETTINGS.pound_rounding), step=0.5
        ),
    )

col1, col2, col3 = st.columns(3)
with col1:
    carrier_files = st.file_uploader(
        "Step 1: carrier invoice CSVs", type=["csv", "xlsx", "xls"], accept_multiple_files=True
    )
with col2:
    pos_files = st.file_uploader("Step 2: PostalMate CSVs", type=["csv", "xlsx", "xls"], accept_multiple_files=True)
    sniff_pos = st.checkbox("Detect the PostalMate header row automatically", value=False)
with col3:
    shiprite_files = st.file_uploader(
        "Step 3 (optional): ShipRite CSVs", type=["csv", "xlsx", "xls"], accept_multiple_files=True
    )

run_btn = st.button("Run Audit")
if run_btn:
    load_slot(CARRIER_SLOT, carrier_files, CarrierInvoiceRepository, settings)
    load_slot(POS_SLOT, pos_files, PosShipmentRepository, settings, HeaderDetection.SNIFF if sniff_pos else None)
    load_slot(SHIPRITE_SLOT, shiprite_files, ShipRiteRepository, settings)
    try:
        with st.spinner("Auditing..."):
            context = AuditContext(engine=ComparisonEngine(settings.tolerance), settings=settings)
            response = RunAuditUseCase(context).execute(st.session_state["state"])
    except MissingUploadError as exc:
        st.warning(str(exc))
        st.session_state["result"] = None
    else:
        st.session_state["result"] = response

st.download_button(
    "Download dispute steps (PDF)",
    data=render_pdf(dispute_guide_sections()),
    file_name=export_filename("UPS_Dispute_and_History", "pdf"),
    mime="application/pdf",
)

response = st.session_state.get("result")
if response is not None:
    report = response.report
    summary = report.summary
    if report.is_empty():
        st.info("No usable rows were found in the uploaded files.")

    st.subheader("Summary")
    metrics = st.columns(6)
    metrics[0].metric("Overbilled", summary.overbilled, f"${summary.overbilled_amount:.2f}")
    metrics[1].metric("Underbilled", summary.underbilled, f"-${summary.underbilled_amount:.2f}")
    metrics[2].metric("Matched", summary.matched)
    metrics[3].metric("Late deliveries", summary.late_deliveries)
    metrics[4].metric("Charge issues", summary.charge_issues)
    metrics[5].metric("Claimable", summary.claims)

    st.download_button(
        "Download audit report (PDF)",
        data=render_pdf(report_sections(report)),
        file_name=export_filename("parcel_audit_report", "pdf"),
        mime="application/pdf",
    )

    tabs = st.tabs(
        ["Claim list", "Discrepancies", "Carrier/POS only", "Late deliveries", "Charges", "DIM weight", "All rows"]
    )
    with tabs[0]:
        rows = claims_to_rows(report.claims)
        st.dataframe(pd.DataFrame(rows))
        download_csv("Download claim list CSV", rows, "claim_list")
    with tabs[1]:
        rows = discrepancies_to_rows(report.discrepancies)
        st.dataframe(pd.DataFrame(rows))
        download_csv("Download discrepancies CSV", rows, "parcel_audit")
    with tabs[2]:
        rows = membership_to_rows(report.membership)
        st.dataframe(pd.DataFrame(rows))
        download_csv("Download unmatched CSV", rows, "unmatched_tracking")
    with tabs[3]:
        rows = late_deliveries_to_rows(report.late_deliveries)
        st.dataframe(pd.DataFrame(rows))
        download_csv("Download late deliveries CSV", rows, "late_deliveries")
    with tabs[4]:
        rows = charge_issues_to_rows(report.charge_issues)
        st.dataframe(pd.DataFrame(rows))
        download_csv("Download charge issues CSV", rows, "charge_issues")
    with tabs[5]:
        rows = dim_weight_issues_to_rows(report.dim_weight_issues)
        st.dataframe(pd.DataFrame(rows))
        download_csv("Download DIM weight CSV", rows, "dim_weight")
    with tabs[6]:
        rows = shipment_rows_to_rows(response.audited_rows)
        st.dataframe(pd.DataFrame(rows))
        download_csv("Export all rows CSV", rows, "all_rows")
