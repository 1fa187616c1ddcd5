"""Paginated PDF documents: the audit summary and the carrier dispute guide."""
from __future__ import annotations

import io
from dataclasses import dataclass
from typing import Sequence

from reportlab.lib.pagesizes import LETTER
from reportlab.lib.utils import simpleSplit
from reportlab.pdfgen import canvas

from parcel_audit.domain.results import AuditReport
from parcel_audit.presentation.diff_report import money

PAGE_WIDTH, PAGE_HEIGHT = LETTER
LEFT_MARGIN = 54
TOP_MARGIN = 64
PAGE_LIMIT = 740  # distance from the top after which a new page starts
WRAP_WIDTH = 500
LINE_HEIGHT = 16
TITLE_ADVANCE = 20
TITLE_FONT = ("Helvetica-Bold", 16)
BODY_FONT = ("Helvetica", 12)

DISPUTE_STEPS = (
    "Log in to ups.com.",
    "Open the Billing Center from the side dashboard.",
    "Go to My Invoices.",
    "Click the blue Invoice Number link for the invoice you want to dispute.",
    "Find your shipment by the Tracking Number.",
    "Under ACTION, click the three dots and choose Dispute.",
    "Select your dispute reason and add any comments.",
    "Click Submit. Dispute Submitted!",
)

HISTORY_STEPS = (
    "In Billing Center, look at the left dashboard.",
    "Click Dispute & Refund History (just below My Invoices).",
    "View the status of submitted disputes, decisions, and refunds.",
    "Use filters (date, invoice) to narrow results.",
)


@dataclass(frozen=True)
class ReportSection:
    title: str
    lines: Sequence[str]


@dataclass(frozen=True)
class PlacedLine:
    text: str
    font: str
    size: int
    top: float


def layout(sections: Sequence[ReportSection]) -> list[list[PlacedLine]]:
    """Wrap and paginate sections; ``top`` is measured down from the page top."""
    pages: list[list[PlacedLine]] = [[]]
    top = TOP_MARGIN

    def place(text: str, font: tuple[str, int], advance: int) -> None:
        nonlocal top
        if top > PAGE_LIMIT:
            pages.append([])
            top = TOP_MARGIN
        pages[-1].append(PlacedLine(text=text, font=font[0], size=font[1], top=top))
        top += advance

    for idx, section in enumerate(sections):
        if idx:
            top += LINE_HEIGHT
        place(section.title, TITLE_FONT, TITLE_ADVANCE)
        for line in section.lines:
            for piece in simpleSplit(line, BODY_FONT[0], BODY_FONT[1], WRAP_WIDTH) or [""]:
                place(piece, BODY_FONT, LINE_HEIGHT)
    return pages


def render_pdf(sections: Sequence[ReportSection]) -> bytes:
    buffer = io.BytesIO()
    pdf = canvas.Canvas(buffer, pagesize=LETTER)
    for page in layout(sections):
        for line in page:
            pdf.setFont(line.font, line.size)
            pdf.drawString(LEFT_MARGIN, PAGE_HEIGHT - line.top, line.text)
        pdf.showPage()
    pdf.save()
    return buffer.getvalue()


def numbered(steps: Sequence[str]) -> list[str]:
    return [f"{idx}. {step}" for idx, step in enumerate(steps, start=1)]


def dispute_guide_sections() -> list[ReportSection]:
    return [
        ReportSection("How to Create a UPS Dispute", numbered(DISPUTE_STEPS)),
        ReportSection("Where to Find Dispute & Refund History", numbered(HISTORY_STEPS)),
    ]


def report_sections(report: AuditReport) -> list[ReportSection]:
    summary = report.summary
    sections = [
        ReportSection(
            "Audit Summary",
            [
                f"Generated: {summary.generated_at:%Y-%m-%d %H:%M}",
                f"Carrier rows: {summary.carrier_rows}    POS rows: {summary.pos_rows}",
                f"Tracking numbers compared: {summary.total_keys}",
                f"Overbilled: {summary.overbilled} (${money(summary.overbilled_amount)})",
                f"Underbilled: {summary.underbilled} (${money(summary.underbilled_amount)})",
                f"Matched: {summary.matched}",
                f"Carrier only: {summary.carrier_only}    POS only: {summary.pos_only}",
                f"Late deliveries: {summary.late_deliveries}",
                f"Charge issues: {summary.charge_issues}",
                f"Dimensional weight issues: {summary.dim_weight_issues}",
                f"Claimable within window: {summary.claims}",
            ],
        )
    ]
    disputes = [d for d in report.discrepancies if not d.is_match]
    if disputes:
        sections.append(
            ReportSection(
                "Billing Discrepancies",
                [
                    f"{d.tracking} (invoice {d.invoice or '-'}): carrier ${money(d.carrier_amount)}, "
                    f"POS ${money(d.pos_amount)}, difference ${money(d.difference)} - {d.note}"
                    for d in disputes
                ],
            )
        )
    if report.late_deliveries:
        sections.append(
            ReportSection(
                "Late Deliveries",
                [
                    f"{r.tracking} {r.service}: promised {r.promised_by:%Y-%m-%d %H:%M}, "
                    f"delivered {r.delivered_at:%Y-%m-%d %H:%M}, claim by {r.claim_deadline.isoformat()}"
                    for r in report.late_deliveries
                ],
            )
        )
    if report.charge_issues:
        sections.append(
            ReportSection(
                "Charge Issues",
                [f"{i.tracking}: {i.description} ${money(i.amount)} {i.note}".rstrip() for i in report.charge_issues],
            )
        )
    if report.dim_weight_issues:
        sections.append(
            ReportSection(
                "Dimensional Weight",
                [
                    f"{i.tracking}: billed {i.billed_weight} lb, expected {i.expected_weight} lb "
                    f"(DIM {i.dim_weight} lb at divisor {i.divisor})"
                    for i in report.dim_weight_issues
                ],
            )
        )
    if report.claims:
        sections.append(
            ReportSection(
                "Claim List",
                [
                    f"{c.tracking} ({c.carrier}): {c.reasons}; file by {c.claim_deadline.isoformat()}"
                    for c in report.claims
                ],
            )
        )
    return sections
