"""Shared value normalization for uploaded exports.

None of these helpers raise on bad cell content: one unreadable cell must not
abort a batch of thousands of rows, so they fall back to zero, ``None`` or
``False``.
"""
from __future__ import annotations

import re
import warnings
from datetime import date, datetime, time
from decimal import Decimal, InvalidOperation
from io import BytesIO
from pathlib import Path

import pandas as pd

from parcel_audit.domain.errors import InputFileError

END_OF_DAY = time(23, 59, 59, 999000)

DATE_FORMATS = ("%m/%d/%Y", "%Y-%m-%d", "%Y/%m/%d")

_NON_NUMERIC = re.compile(r"[^0-9.\-]")
_TIME_IN_DATE = re.compile(r"(?:\s+|T)(\d{1,2}:\d{2}(?::\d{2})?(?:\.\d+)?\s*(?:[AaPp][Mm])?)\s*$")
_TRUE_VALUES = {"true", "yes", "1"}


def ensure_bytes(source: BytesIO | Path | bytes, name: str | None = None) -> bytes:
    if isinstance(source, bytes):
        return source
    if isinstance(source, BytesIO):
        return source.getvalue()
    if isinstance(source, Path):
        try:
            return source.read_bytes()
        except OSError as exc:
            raise InputFileError(name or source.name, str(exc)) from exc
    raise TypeError(f"Unsupported source type: {type(source)!r}")


def decode_text(data: bytes) -> str:
    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError:
        return data.decode("latin-1")


def parse_money(value: object) -> Decimal:
    if value is None:
        return Decimal("0")
    s = str(value).strip()
    if not s or s.upper() == "NAN":
        return Decimal("0")
    negative = s.startswith("(") and s.endswith(")")
    s = _NON_NUMERIC.sub("", s)
    if s in {"", "-", ".", "-."}:
        return Decimal("0")
    try:
        result = Decimal(s)
    except InvalidOperation:
        return Decimal("0")
    if negative:
        result = -abs(result)
    return result


def parse_date(value: object) -> date | None:
    if value is None:
        return None
    s = str(value).strip()
    if not s or s.upper() in {"NAN", "NAT"}:
        return None
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(s, fmt).date()
        except ValueError:
            continue
    with warnings.catch_warnings():
        warnings.simplefilter("ignore")
        try:
            parsed = pd.to_datetime(s, errors="coerce")
        except (ValueError, TypeError, OverflowError):
            return None
    if pd.isna(parsed):
        return None
    return parsed.date()


def parse_time(value: object) -> time | None:
    if value is None:
        return None
    raw = str(value).strip()
    if not raw:
        return None
    pm = raw.upper().endswith("PM")
    am = raw.upper().endswith("AM")
    s = re.sub(r"[^0-9:]", "", raw)
    parts = s.split(":") if ":" in s else ([s[:-2], s[-2:]] if len(s) in (3, 4) else [])
    try:
        numbers = [int(p) for p in parts[:3]]
    except ValueError:
        return None
    if len(numbers) < 2:
        return None
    hour, minute = numbers[0], numbers[1]
    second = numbers[2] if len(numbers) > 2 else 0
    if pm and hour < 12:
        hour += 12
    elif am and hour == 12:
        hour = 0
    try:
        return time(hour, minute, second)
    except ValueError:
        return None


def parse_timestamp(date_value: object, time_value: object = None) -> datetime | None:
    """Combine a date cell and an optional time cell.

    Without a usable time the timestamp is pinned to the end of the day, so a
    delivery known only by date counts as delivered as late as possible.
    """
    date_text = "" if date_value is None else str(date_value).strip()
    time_text = "" if time_value is None else str(time_value).strip()
    if not time_text:
        embedded = _TIME_IN_DATE.search(date_text)
        if embedded:
            time_text = embedded.group(1)
            date_text = date_text[: embedded.start()]
    parsed_date = parse_date(date_text)
    if parsed_date is None:
        return None
    return datetime.combine(parsed_date, parse_time(time_text) or END_OF_DAY)


def parse_bool(value: object) -> bool:
    if value is None:
        return False
    return str(value).strip().lower() in _TRUE_VALUES


def parse_address_flag(value: object) -> bool | None:
    """Residential (True), business (False) or unknown (None) from a POS cell."""
    s = "" if value is None else str(value).strip().lower()
    if not s:
        return None
    if "business" in s or "commercial" in s:
        return False
    if s.startswith("resid"):
        return True
    if s in {"false", "no", "0"}:
        return False
    return parse_bool(s)
