"""Tabular ingestion for carrier and POS exports.

Exports arrive as CSV (occasionally as a workbook) with an unpredictable
amount of title/metadata lines above the real header row. The header row is
located by one of three strategies, then every following non-blank row becomes
a header-keyed record.
"""
from __future__ import annotations

import csv
import io
import logging
import re
from enum import Enum
from io import BytesIO
from pathlib import PurePath
from typing import Sequence

import pandas as pd

from parcel_audit.config import SETTINGS, Settings
from parcel_audit.domain.errors import InputFileError
from parcel_audit.domain.models import RawRecord, SourceFile
from parcel_audit.infrastructure.parsing.utils import decode_text

logger = logging.getLogger(__name__)

EXCEL_ENGINES = {".xlsx": "openpyxl", ".xlsm": "openpyxl", ".xls": "xlrd"}

# Column concepts a real header row is expected to mention.
HEADER_PATTERNS = (
    re.compile(r"track|waybill|\bawb\b|shipment\s*(number|id|#)", re.I),
    re.compile(r"service", re.I),
    re.compile(r"ship\w*\s*date|date\s*shipped|pickup\s*date", re.I),
    re.compile(r"deliver|\bpod\b", re.I),
    re.compile(r"charge|amount|billed|total|cost|postalmate", re.I),
    re.compile(r"recipient|consignee|receiver|ship\s*to", re.I),
)


class HeaderDetection(str, Enum):
    FIRST_LINE = "first_line"
    FIXED_OFFSET = "fixed_offset"
    SNIFF = "sniff"


def score_header(cells: Sequence[str]) -> int:
    return sum(1 for pattern in HEADER_PATTERNS if any(pattern.search(cell) for cell in cells))


def _is_blank(cells: Sequence[str]) -> bool:
    return not any(str(cell).strip() for cell in cells)


def _first_non_blank(rows: Sequence[Sequence[str]], start: int) -> int | None:
    for idx in range(max(start, 0), len(rows)):
        if not _is_blank(rows[idx]):
            return idx
    return None


def locate_header(
    rows: Sequence[Sequence[str]],
    detection: HeaderDetection = HeaderDetection.FIRST_LINE,
    settings: Settings = SETTINGS,
) -> int | None:
    """Index of the header row within ``rows``, or ``None`` for an empty file."""
    if detection is HeaderDetection.FIXED_OFFSET:
        return _first_non_blank(rows, settings.preamble_lines)
    if detection is HeaderDetection.SNIFF:
        for idx, cells in enumerate(rows[: settings.sniff_window]):
            if score_header(cells) >= settings.sniff_min_hits:
                return idx
    return _first_non_blank(rows, 0)


def _split_line(line: str) -> list[str]:
    try:
        return next(csv.reader([line]), [])
    except csv.Error:
        return line.split(",")


def _clean_frame(frame: pd.DataFrame) -> list[RawRecord]:
    frame = frame.fillna("")
    frame.columns = [str(column).strip() for column in frame.columns]
    records: list[RawRecord] = []
    for row in frame.astype(str).to_dict(orient="records"):
        if _is_blank(list(row.values())):
            continue
        records.append(row)
    return records


def _opens_unclosed_quote(line: str) -> bool:
    """True when a field on ``line`` starts a quoted value that never closes.

    A quote only opens a quoted value at the start of a field; a stray quote
    in the middle of a field (`12" box`) is literal text.
    """
    in_quotes = False
    at_field_start = True
    idx = 0
    while idx < len(line):
        char = line[idx]
        if in_quotes:
            if char == '"':
                if line[idx + 1 : idx + 2] == '"':
                    idx += 2
                    continue
                in_quotes = False
        elif char == '"' and at_field_start:
            in_quotes = True
        at_field_start = not in_quotes and char == ","
        idx += 1
    return in_quotes


def _balanced_lines(lines: Sequence[str], first_line_no: int, name: str) -> list[str]:
    """Drop lines carrying an unterminated quoted field.

    Left in place, the open quote would swallow every following line into one
    field. Quoted cells spanning several lines are not supported.
    """
    kept: list[str] = []
    for offset, line in enumerate(lines):
        if _opens_unclosed_quote(line):
            logger.warning("Skipping line %d of %s: unbalanced quote", first_line_no + offset, name)
            continue
        kept.append(line)
    return kept


def _read_csv_body(body: str, name: str) -> pd.DataFrame:
    options = dict(
        dtype=str,
        keep_default_na=False,
        skip_blank_lines=True,
        on_bad_lines="skip",
        engine="python",
    )
    try:
        return pd.read_csv(io.StringIO(body), **options)
    except (pd.errors.ParserError, csv.Error) as exc:
        logger.warning("Re-reading %s without quote handling: %s", name, exc)
    return pd.read_csv(io.StringIO(body), quoting=csv.QUOTE_NONE, **options)


def read_csv_records(
    text: str,
    detection: HeaderDetection = HeaderDetection.FIRST_LINE,
    settings: Settings = SETTINGS,
    name: str = "<text>",
) -> list[RawRecord]:
    lines = text.splitlines()
    header_idx = locate_header([_split_line(line) for line in lines], detection, settings)
    if header_idx is None:
        logger.warning("No header row found in %s", name)
        return []
    logger.debug("Header row for %s at line %d", name, header_idx + 1)
    body = "\n".join([lines[header_idx], *_balanced_lines(lines[header_idx + 1 :], header_idx + 2, name)])
    try:
        frame = _read_csv_body(body, name)
    except (pd.errors.ParserError, pd.errors.EmptyDataError, csv.Error) as exc:
        logger.warning("Skipping unparseable content in %s: %s", name, exc)
        return []
    return _clean_frame(frame)


def _dedupe_headers(cells: Sequence[str]) -> list[str]:
    """Blank and repeated headers get pandas-style names ("Unnamed: 3", "Amount.1")."""
    seen: dict[str, int] = {}
    header: list[str] = []
    for idx, cell in enumerate(cells):
        name = str(cell).strip() or f"Unnamed: {idx}"
        count = seen.get(name, 0)
        seen[name] = count + 1
        header.append(f"{name}.{count}" if count else name)
    return header


def read_excel_records(
    data: bytes,
    engine: str,
    detection: HeaderDetection = HeaderDetection.FIRST_LINE,
    settings: Settings = SETTINGS,
    name: str = "<workbook>",
) -> list[RawRecord]:
    try:
        grid = pd.read_excel(BytesIO(data), sheet_name=0, header=None, dtype=str, engine=engine)
    except Exception as exc:
        raise InputFileError(name, f"unreadable workbook: {exc}") from exc
    rows = grid.fillna("").astype(str).values.tolist()
    header_idx = locate_header(rows, detection, settings)
    if header_idx is None:
        logger.warning("No header row found in %s", name)
        return []
    header = _dedupe_headers(rows[header_idx])
    frame = pd.DataFrame(rows[header_idx + 1 :], columns=header)
    return _clean_frame(frame)


def read_tabular(
    source: SourceFile,
    detection: HeaderDetection = HeaderDetection.FIRST_LINE,
    settings: Settings = SETTINGS,
) -> list[RawRecord]:
    """Parse one uploaded file into header-keyed records in file order."""
    engine = EXCEL_ENGINES.get(PurePath(source.name).suffix.lower())
    if engine is not None:
        return read_excel_records(source.content, engine, detection, settings, name=source.name)
    return read_csv_records(decode_text(source.content), detection, settings, name=source.name)
