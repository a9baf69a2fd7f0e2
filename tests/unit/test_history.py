"""
test_history.py - Unit tests for history reconstruction

Tests:
- Ordering and decoding of change records
- Terminal step value is kept
- Empty payloads are skipped
- Iterator is closed on success and on every error path
- asset_at() point-in-time lookups
"""

import pytest
from datetime import datetime, timedelta
from decimal import Decimal

from asset_ledger import (
    HistoryStep, HistoryEntry, DecodeError, StoreUnavailable,
    encode, reconstruct_history, load_history, asset_at,
)
from tests.fake_store import (
    FakeStore, ScriptedHistoryIterator, change, steps_from_changes,
    sample_record, run, MSISDN,
)


def _payload(balance: str) -> bytes:
    return encode(sample_record(balance=Decimal(balance)))


class TestReconstructHistory:

    def test_empty_log(self):
        iterator = ScriptedHistoryIterator([HistoryStep(value=None, done=True)])
        assert run(reconstruct_history(iterator)) == []
        assert iterator.closed

    def test_order_preserved(self):
        changes = [change(f"tx{i}", _payload(str(i))) for i in range(4)]
        iterator = ScriptedHistoryIterator(steps_from_changes(changes))
        history = run(reconstruct_history(iterator))
        assert [e.tx_id for e in history] == ["tx0", "tx1", "tx2", "tx3"]
        assert [e.value.balance for e in history] == [Decimal(i) for i in range(4)]
        assert iterator.closed

    def test_terminal_step_value_is_kept(self):
        """The step that reports done=True still contributes its payload."""
        iterator = ScriptedHistoryIterator([
            HistoryStep(value=change("tx1", _payload("100")), done=False),
            HistoryStep(value=change("tx2", _payload("74.5")), done=True),
        ])
        history = run(reconstruct_history(iterator))
        assert [e.tx_id for e in history] == ["tx1", "tx2"]
        assert iterator.next_calls == 2

    def test_single_terminal_step_with_value(self):
        iterator = ScriptedHistoryIterator([
            HistoryStep(value=change("tx1", _payload("1")), done=True),
        ])
        assert len(run(reconstruct_history(iterator))) == 1

    def test_trailing_empty_terminal_step(self):
        iterator = ScriptedHistoryIterator([
            HistoryStep(value=change("tx1", _payload("1")), done=False),
            HistoryStep(value=None, done=True),
        ])
        assert [e.tx_id for e in run(reconstruct_history(iterator))] == ["tx1"]

    def test_empty_payload_skipped(self):
        changes = [
            change("tx1", _payload("100")),
            change("tx2", b"", is_delete=True),
            change("tx3", _payload("50")),
        ]
        iterator = ScriptedHistoryIterator(steps_from_changes(changes))
        history = run(reconstruct_history(iterator))
        assert [e.tx_id for e in history] == ["tx1", "tx3"]

    def test_only_empty_payloads(self):
        iterator = ScriptedHistoryIterator(
            steps_from_changes([change("tx1", b"", is_delete=True)])
        )
        assert run(reconstruct_history(iterator)) == []
        assert iterator.closed

    def test_delete_with_payload_is_kept(self):
        changes = [change("tx1", _payload("5"), is_delete=True)]
        history = run(reconstruct_history(ScriptedHistoryIterator(steps_from_changes(changes))))
        assert history[0].is_delete is True

    def test_entry_fields(self):
        t = datetime(2025, 3, 1, 12, 30)
        changes = [change("abc", _payload("10"), timestamp=t)]
        history = run(reconstruct_history(ScriptedHistoryIterator(steps_from_changes(changes))))
        assert history == [HistoryEntry(
            tx_id="abc", timestamp=t, is_delete=False,
            value=sample_record(balance=Decimal("10")),
        )]

    def test_closed_on_decode_error(self):
        iterator = ScriptedHistoryIterator(steps_from_changes([
            change("tx1", _payload("1")),
            change("tx2", b"{garbage"),
            change("tx3", _payload("3")),
        ]))
        with pytest.raises(DecodeError):
            run(reconstruct_history(iterator))
        assert iterator.closed
        assert iterator.next_calls == 2

    def test_closed_on_iterator_failure(self):
        iterator = ScriptedHistoryIterator(
            steps_from_changes([change("tx1", _payload("1")), change("tx2", _payload("2"))]),
            fail_at=1, error=ConnectionError("reset"),
        )
        with pytest.raises(ConnectionError):
            run(reconstruct_history(iterator))
        assert iterator.closed


class TestLoadHistory:

    def test_opens_iterator_for_key(self):
        store = FakeStore(history={
            MSISDN: steps_from_changes([change("tx1", _payload("100"))]),
        })
        history = run(load_history(store, MSISDN))
        assert len(history) == 1
        assert store.iterators[0].closed

    def test_unknown_key_has_empty_history(self):
        assert run(load_history(FakeStore(), "nobody")) == []

    def test_open_failure_propagates(self):
        store = FakeStore()
        store.fail("get_history_for_key", StoreUnavailable("down"))
        with pytest.raises(StoreUnavailable):
            run(load_history(store, MSISDN))


class TestAssetAt:

    T0 = datetime(2025, 1, 1, 9, 0)

    def _history(self):
        return [
            HistoryEntry("tx1", self.T0, False, sample_record(balance=Decimal("100"))),
            HistoryEntry("tx2", self.T0 + timedelta(hours=1), False,
                         sample_record(balance=Decimal("74.5"))),
            HistoryEntry("tx3", self.T0 + timedelta(hours=2), False,
                         sample_record(balance=Decimal("114.5"))),
        ]

    def test_before_first_entry(self):
        assert asset_at(self._history(), self.T0 - timedelta(seconds=1)) is None

    def test_exact_commit_time(self):
        assert asset_at(self._history(), self.T0).balance == Decimal("100")

    def test_between_commits(self):
        when = self.T0 + timedelta(minutes=90)
        assert asset_at(self._history(), when).balance == Decimal("74.5")

    def test_after_last_commit(self):
        when = self.T0 + timedelta(days=1)
        assert asset_at(self._history(), when).balance == Decimal("114.5")

    def test_empty_history(self):
        assert asset_at([], self.T0) is None

    def test_latest_is_delete(self):
        history = self._history()
        history.append(HistoryEntry("tx4", self.T0 + timedelta(hours=3), True,
                                    sample_record(balance=Decimal("0"))))
        assert asset_at(history, self.T0 + timedelta(hours=4)) is None
        assert asset_at(history, self.T0 + timedelta(hours=2)).balance == Decimal("114.5")
