import asyncio

from parcel_audit.application.state import CARRIER_SLOT, POS_SLOT, AuditState, UploadSequencer
from parcel_audit.application.use_cases import LoadSourceUseCase
from parcel_audit.domain.models import SourceBatch


def batch(*keys: str) -> SourceBatch:
    return SourceBatch(records=tuple({"Tracking Number": key} for key in keys), files=("upload.csv",))


class DelayedRepository:
    def __init__(self, result: SourceBatch, delay: float) -> None:
        self._result = result
        self._delay = delay

    async def load(self) -> SourceBatch:
        await asyncio.sleep(self._delay)
        return self._result


def test_newer_upload_replaces_slot():
    state = AuditState().with_batch(CARRIER_SLOT, batch("A"), 1).with_batch(CARRIER_SLOT, batch("B"), 2)
    assert state.batch(CARRIER_SLOT) == batch("B")
    assert state.sequence(CARRIER_SLOT) == 2


def test_stale_upload_is_discarded():
    state = AuditState().with_batch(CARRIER_SLOT, batch("B"), 2)
    assert state.with_batch(CARRIER_SLOT, batch("A"), 1) is state


def test_slots_are_independent():
    state = AuditState().with_batch(CARRIER_SLOT, batch("A"), 5).with_batch(POS_SLOT, batch("P"), 1)
    assert state.batch(POS_SLOT) == batch("P")
    assert state.batch(CARRIER_SLOT) == batch("A")


def test_state_is_not_mutated_by_updates():
    empty = AuditState()
    empty.with_batch(CARRIER_SLOT, batch("A"), 1)
    assert empty.batch(CARRIER_SLOT) is None


def test_without_clears_a_slot():
    state = AuditState().with_batch(POS_SLOT, batch("P"), 1)
    assert state.without(POS_SLOT).batch(POS_SLOT) is None
    assert AuditState().without(POS_SLOT) == AuditState()


def test_sequencer_is_monotonic():
    sequencer = UploadSequencer()
    assert [sequencer.next() for _ in range(3)] == [1, 2, 3]


def test_slow_earlier_upload_cannot_overwrite_newer_one():
    sequencer = UploadSequencer()
    slow_sequence, fast_sequence = sequencer.next(), sequencer.next()
    slow = LoadSourceUseCase(CARRIER_SLOT, DelayedRepository(batch("OLD"), 0.01))
    fast = LoadSourceUseCase(CARRIER_SLOT, DelayedRepository(batch("NEW"), 0))

    state = asyncio.run(fast.execute(AuditState(), fast_sequence))
    state = asyncio.run(slow.execute(state, slow_sequence))

    assert state.batch(CARRIER_SLOT) == batch("NEW")
    assert state.sequence(CARRIER_SLOT) == fast_sequence
