"""Tests for detached confirmation tracking."""

import threading

import pytest

from conftest import BOB, PATH_USD
from tempo_pay.errors import RpcError
from tempo_pay.ledger import TransactionLedger, TransactionRecord, TransactionStatus
from tempo_pay.tracker import StatusTracker
from tempo_pay.wallet import WalletIdentity


def _pending(session, tx_hash):
    return TransactionRecord(
        hash=tx_hash,
        from_address=session.account.address,
        to=BOB,
        amount="1",
        token=PATH_USD,
        token_symbol="pathUSD",
    )


@pytest.fixture
def ledger():
    return TransactionLedger()


@pytest.fixture
def tracker(ledger_client, ledger):
    t = StatusTracker(ledger_client, ledger, max_workers=4)
    yield t
    t.shutdown(wait=True)


class TestStatusTracker:
    def test_success_receipt_confirms(self, connected, ledger, tracker):
        ledger.record(connected, _pending(connected, "0x01"))
        assert tracker.track(connected, "0x01").result(timeout=5) is TransactionStatus.CONFIRMED
        assert ledger.get(connected, "0x01").status is TransactionStatus.CONFIRMED

    def test_failed_receipt_fails(self, connected, ledger, ledger_client, tracker):
        ledger_client.receipt_status = False
        ledger.record(connected, _pending(connected, "0x01"))
        assert tracker.track(connected, "0x01").result(timeout=5) is TransactionStatus.FAILED
        assert ledger.get(connected, "0x01").status is TransactionStatus.FAILED

    def test_timeout_leaves_record_pending(self, connected, ledger, ledger_client, tracker):
        ledger_client.receipt_error = TimeoutError("no receipt")
        ledger.record(connected, _pending(connected, "0x01"))
        assert tracker.track(connected, "0x01").result(timeout=5) is TransactionStatus.PENDING
        assert ledger.get(connected, "0x01").status is TransactionStatus.PENDING

    def test_lookup_error_leaves_record_pending(self, connected, ledger, ledger_client, tracker):
        ledger_client.receipt_error = RpcError("node down")
        ledger.record(connected, _pending(connected, "0x01"))
        assert tracker.track(connected, "0x01").result(timeout=5) is TransactionStatus.PENDING
        assert ledger.get(connected, "0x01").status is TransactionStatus.PENDING

    def test_concurrent_trackers_update_their_own_records(self, connected, ledger, ledger_client, tracker):
        gate = threading.Event()
        ledger_client.receipt_gate = gate
        hashes = [f"0x{i:02x}" for i in range(6)]
        for h in hashes:
            ledger.record(connected, _pending(connected, h))

        futures = [tracker.track(connected, h) for h in hashes]
        gate.set()
        assert all(f.result(timeout=5) is TransactionStatus.CONFIRMED for f in futures)
        assert ledger.pending(connected) == []

    def test_resume_tracks_unique_pending_hashes(self, connected, ledger, ledger_client, tracker):
        ledger.record(connected, _pending(connected, "0xba"))
        ledger.record(connected, _pending(connected, "0xba"))
        ledger.record(connected, _pending(connected, "0x02"))
        ledger.update_status(connected, "0x02", TransactionStatus.CONFIRMED)

        futures = tracker.resume(connected)
        for f in futures:
            f.result(timeout=5)
        assert ledger_client.receipt_requests == ["0xba"]
        assert ledger.pending(connected) == []

    def test_tracker_after_logout_changes_nothing(self, connected, ledger, ledger_client, tracker, signer):
        gate = threading.Event()
        ledger_client.receipt_gate = gate
        ledger.record(connected, _pending(connected, "0x01"))
        future = tracker.track(connected, "0x01")

        WalletIdentity(signer).clear(connected)
        gate.set()
        future.result(timeout=5)

        assert connected.transactions == []
        assert connected.store.get(connected.namespace) is None
