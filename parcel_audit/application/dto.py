"""Application-level DTOs for parcel audit runs."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from parcel_audit.domain.models import ShipmentRow
from parcel_audit.domain.results import AuditReport


@dataclass(slots=True, frozen=True)
class AuditResponse:
    report: AuditReport
    audited_rows: Sequence[ShipmentRow]
