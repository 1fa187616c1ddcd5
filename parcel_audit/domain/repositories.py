"""Repository interfaces anchoring the domain layer."""
from __future__ import annotations

from typing import Protocol

from .models import SourceBatch


class SourceRepository(Protocol):
    """Provides the raw rows of one upload slot (carrier invoices or POS exports)."""

    async def load(self) -> SourceBatch:
        ...
