"""Immutable audit state: one named slot per upload source.

Every upload replaces its slot wholesale and the audit is recomputed from the
whole state, so re-uploading a file never duplicates findings. Each upload is
tagged with a sequence number; a read that finishes after a newer upload for
the same slot is discarded instead of overwriting it.
"""
from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Mapping

from parcel_audit.domain.models import SourceBatch

logger = logging.getLogger(__name__)

CARRIER_SLOT = "carrier"
POS_SLOT = "pos"
SHIPRITE_SLOT = "shiprite"


@dataclass(frozen=True)
class SlotState:
    batch: SourceBatch
    sequence: int


@dataclass(frozen=True)
class AuditState:
    slots: Mapping[str, SlotState] = field(default_factory=lambda: MappingProxyType({}))

    def batch(self, slot: str) -> SourceBatch | None:
        current = self.slots.get(slot)
        return current.batch if current else None

    def sequence(self, slot: str) -> int:
        current = self.slots.get(slot)
        return current.sequence if current else 0

    def with_batch(self, slot: str, batch: SourceBatch, sequence: int) -> "AuditState":
        if sequence <= self.sequence(slot):
            logger.warning(
                "Discarding stale %s upload (sequence %d, current %d)", slot, sequence, self.sequence(slot)
            )
            return self
        slots = dict(self.slots)
        slots[slot] = SlotState(batch=batch, sequence=sequence)
        return replace(self, slots=MappingProxyType(slots))

    def without(self, slot: str) -> "AuditState":
        if slot not in self.slots:
            return self
        slots = {name: value for name, value in self.slots.items() if name != slot}
        return replace(self, slots=MappingProxyType(slots))


class UploadSequencer:
    """Hands out monotonically increasing sequence numbers for uploads."""

    def __init__(self) -> None:
        self._counter = itertools.count(1)

    def next(self) -> int:
        return next(self._counter)
