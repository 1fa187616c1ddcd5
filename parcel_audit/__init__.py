"""Carrier invoice vs. point-of-sale shipping reconciliation toolkit."""
from parcel_audit.application.state import AuditState, UploadSequencer
from parcel_audit.application.use_cases import AuditContext, LoadSourceUseCase, RunAuditUseCase
from parcel_audit.domain.services import ComparisonEngine
from parcel_audit.infrastructure.repositories.csv_repositories import (
    CarrierInvoiceRepository,
    PosShipmentRepository,
    ShipRiteRepository,
)

__all__ = [
    "AuditState",
    "UploadSequencer",
    "AuditContext",
    "LoadSourceUseCase",
    "RunAuditUseCase",
    "ComparisonEngine",
    "CarrierInvoiceRepository",
    "PosShipmentRepository",
    "ShipRiteRepository",
]
