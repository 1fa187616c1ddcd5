"""Upload-slot repositories backed by CSV/workbook exports."""
from __future__ import annotations

import asyncio
import logging
from io import BytesIO
from pathlib import Path
from typing import Iterable

from parcel_audit.config import SETTINGS, Settings
from parcel_audit.domain.errors import InputFileError
from parcel_audit.domain.models import FileFailure, RawRecord, SourceBatch, SourceFile
from parcel_audit.domain.repositories import SourceRepository
from parcel_audit.infrastructure.parsing.tabular import HeaderDetection, read_tabular
from parcel_audit.infrastructure.parsing.utils import ensure_bytes

logger = logging.getLogger(__name__)


def as_source_file(source: SourceFile | Path | BytesIO | bytes, index: int = 0) -> SourceFile:
    if isinstance(source, SourceFile):
        return source
    name = source.name if isinstance(source, Path) else f"upload-{index + 1}.csv"
    return SourceFile(name=name, content=ensure_bytes(source, name))


class CsvSourceRepository(SourceRepository):
    """Reads every file of one upload slot concurrently and joins them in upload order."""

    detection = HeaderDetection.FIRST_LINE

    def __init__(
        self,
        sources: Iterable[SourceFile | Path | BytesIO | bytes],
        detection: HeaderDetection | None = None,
        settings: Settings = SETTINGS,
    ) -> None:
        self._sources = tuple(sources)
        self._settings = settings
        if detection is not None:
            self.detection = detection

    async def load(self) -> SourceBatch:
        results = await asyncio.gather(
            *(asyncio.to_thread(self._read_one, source, idx) for idx, source in enumerate(self._sources))
        )
        records: list[RawRecord] = []
        names: list[str] = []
        failures: list[FileFailure] = []
        for name, rows, failure in results:
            names.append(name)
            records.extend(rows)
            if failure is not None:
                failures.append(failure)
        logger.info(
            "%s loaded %d rows from %d file(s), %d failed",
            type(self).__name__,
            len(records),
            len(names),
            len(failures),
        )
        return SourceBatch(records=tuple(records), files=tuple(names), failures=tuple(failures))

    def _read_one(
        self, source: SourceFile | Path | BytesIO | bytes, index: int
    ) -> tuple[str, list[RawRecord], FileFailure | None]:
        name = getattr(source, "name", None) or f"upload-{index + 1}"
        try:
            source_file = as_source_file(source, index)
            name = source_file.name
            return name, read_tabular(source_file, self.detection, self._settings), None
        except InputFileError as exc:
            logger.warning("Skipping unreadable file %s: %s", exc.name, exc.reason)
            return name, [], FileFailure(name=exc.name, reason=exc.reason)


class CarrierInvoiceRepository(CsvSourceRepository):
    """Carrier billing exports: the header is the first non-blank line."""

    detection = HeaderDetection.FIRST_LINE


class PosShipmentRepository(CsvSourceRepository):
    """PostalMate shipment reports carry a fixed nine-line title block."""

    detection = HeaderDetection.FIXED_OFFSET


class ShipRiteRepository(CsvSourceRepository):
    """ShipRite shipping detail reports: the header is the first non-blank line."""

    detection = HeaderDetection.FIRST_LINE
