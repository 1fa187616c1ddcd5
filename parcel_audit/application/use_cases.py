"""Application services orchestrating the parcel audit workflow."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable

from parcel_audit.application.dto import AuditResponse
from parcel_audit.application.state import CARRIER_SLOT, POS_SLOT, SHIPRITE_SLOT, AuditState
from parcel_audit.config import SETTINGS, Settings
from parcel_audit.domain import rules
from parcel_audit.domain.errors import MissingUploadError
from parcel_audit.domain.repositories import SourceRepository
from parcel_audit.domain.results import AuditReport, summarize
from parcel_audit.domain.services import ComparisonEngine
from parcel_audit.infrastructure.parsing.headers import (
    BILLED_AMOUNT,
    CARRIER_TRACKING,
    INVOICE_NUMBER,
    POS_TRACKING,
    POSTALMATE_AMOUNT,
    RESIDENTIAL,
    SHIPRITE_TRACKING,
)
from parcel_audit.infrastructure.parsing.indexer import build_flag_index, build_index
from parcel_audit.infrastructure.parsing.normalize import normalize_carrier_rows, normalize_shiprite_rows

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class AuditContext:
    engine: ComparisonEngine
    settings: Settings = field(default=SETTINGS)
    clock: Callable[[], datetime] = field(default=datetime.now)


class LoadSourceUseCase:
    """Loads one upload slot and folds it into the state under a sequence number."""

    def __init__(self, slot: str, repository: SourceRepository) -> None:
        self._slot = slot
        self._repository = repository

    async def execute(self, state: AuditState, sequence: int) -> AuditState:
        batch = await self._repository.load()
        return state.with_batch(self._slot, batch, sequence)


class RunAuditUseCase:
    """Recomputes every finding from the current state; nothing carries over between runs."""

    def __init__(self, context: AuditContext) -> None:
        self._context = context

    def execute(self, state: AuditState) -> AuditResponse:
        carrier_batch = state.batch(CARRIER_SLOT)
        pos_batch = state.batch(POS_SLOT)
        if carrier_batch is None:
            raise MissingUploadError(CARRIER_SLOT, "Upload carrier invoice CSVs first.")
        if pos_batch is None:
            raise MissingUploadError(POS_SLOT, "Upload PostalMate CSV(s) next.")

        settings = self._context.settings
        engine = self._context.engine

        carrier_index = build_index(carrier_batch.records, CARRIER_TRACKING, BILLED_AMOUNT, INVOICE_NUMBER)
        pos_index = build_index(pos_batch.records, POS_TRACKING, POSTALMATE_AMOUNT)
        discrepancies = engine.compare_amounts(carrier_index, pos_index)
        membership = engine.compare_membership(carrier_index, pos_index)

        carrier_rows = normalize_carrier_rows(carrier_batch.records, settings)
        pos_flags = build_flag_index(pos_batch.records, POS_TRACKING, RESIDENTIAL)
        shiprite_batch = state.batch(SHIPRITE_SLOT)
        shiprite_rows = []
        if shiprite_batch is not None:
            shiprite_rows = normalize_shiprite_rows(shiprite_batch.records, settings)
            for key, flag in build_flag_index(shiprite_batch.records, SHIPRITE_TRACKING, RESIDENTIAL).items():
                pos_flags.setdefault(key, flag)
        audited_rows = carrier_rows + shiprite_rows

        late = rules.find_late_deliveries(audited_rows, settings)
        charge_issues = rules.find_duplicate_charges(carrier_rows) + rules.find_surcharges(carrier_rows, pos_flags)
        if not rules.has_itemized_charges(carrier_rows):
            charge_issues += rules.find_fuel_anomalies(carrier_rows, settings)
        charge_issues += rules.find_missing_fuel(carrier_rows, settings)
        charge_issues += rules.find_voided_charges(carrier_rows)
        dim_issues = rules.find_dim_weight_mismatches(audited_rows, settings)

        generated_at = self._context.clock()
        claims = rules.find_claim_eligible(
            audited_rows, late, charge_issues, dim_issues, generated_at.date(), settings
        )

        summary = summarize(
            carrier_rows=len(carrier_batch),
            pos_rows=len(pos_batch),
            discrepancies=discrepancies,
            membership=membership,
            late_deliveries=late,
            charge_issues=charge_issues,
            dim_weight_issues=dim_issues,
            generated_at=generated_at,
            claims=claims,
        )
        logger.info(
            "Audit complete: %d keys, %d overbilled, %d underbilled, %d late, %d charge issues, %d claimable",
            summary.total_keys,
            summary.overbilled,
            summary.underbilled,
            summary.late_deliveries,
            summary.charge_issues,
            summary.claims,
        )
        report = AuditReport(
            summary=summary,
            discrepancies=discrepancies,
            membership=membership,
            late_deliveries=late,
            charge_issues=charge_issues,
            dim_weight_issues=dim_issues,
            claims=claims,
        )
        return AuditResponse(report=report, audited_rows=tuple(audited_rows))
