"""Error taxonomy for the audit pipeline."""
from __future__ import annotations


class ParcelAuditError(Exception):
    """Base class for audit errors surfaced to callers."""


class InputFileError(ParcelAuditError):
    """A file could not be read at all; its rows are lost but the batch continues."""

    def __init__(self, name: str, reason: str) -> None:
        super().__init__(f"{name}: {reason}")
        self.name = name
        self.reason = reason


class MissingUploadError(ParcelAuditError):
    """A required upload slot has not been filled before running the audit."""

    def __init__(self, slot: str, message: str) -> None:
        super().__init__(message)
        self.slot = slot
