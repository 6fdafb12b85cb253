"""Tests for end-to-end payment execution against a fake node."""

import pytest
from eth_account import Account
from eth_account.messages import encode_defunct

from conftest import ALPHA_USD, BOB, CAROL, PATH_USD, FakeSponsor
from tempo_pay.batch import BatchQueue
from tempo_pay.config import STORAGE_NAMESPACE
from tempo_pay.errors import EmptyBatch, InvalidRecipient, SubmissionRejected, SubmissionTimeout
from tempo_pay.ledger import TransactionLedger, TransactionStatus
from tempo_pay.payment import PaymentExecutor
from tempo_pay.tracker import StatusTracker
from tempo_pay.transfer import TransferRequest
from tempo_pay.wallet import WalletIdentity


@pytest.fixture
def ledger():
    return TransactionLedger()


@pytest.fixture
def executor(ledger_client, signer, ledger):
    tracker = StatusTracker(ledger_client, ledger)
    e = PaymentExecutor(ledger_client, signer, ledger=ledger, tracker=tracker)
    yield e
    e.close()


class TestSend:
    def test_successful_transfer(self, connected, executor, ledger_client, ledger):
        result = executor.send(connected, TransferRequest(PATH_USD, BOB, "12.5", memo=" rent "))

        assert result.tx_hash.startswith("0x")
        (record,) = result.records
        assert record.status is TransactionStatus.PENDING
        assert record.amount == "12.5"
        assert record.memo == "rent"
        assert record.token_symbol == "pathUSD"
        assert record.from_address == connected.account.address

        assert result.tracking.result(timeout=5) is TransactionStatus.CONFIRMED
        assert ledger.get(connected, result.tx_hash).status is TransactionStatus.CONFIRMED

    def test_payload_is_signed_by_account(self, connected, executor, ledger_client):
        executor.send(connected, TransferRequest(PATH_USD, BOB, "1"))
        signed = ledger_client.submitted[0]

        digest = bytes.fromhex(signed.digest[2:])
        recovered = Account.recover_message(encode_defunct(primitive=digest), signature=signed.signature)
        assert recovered == connected.account.address
        assert signed.payload["calls"][0]["method"] == "transfer"

    def test_validation_error_submits_nothing(self, connected, executor, ledger_client):
        with pytest.raises(InvalidRecipient):
            executor.send(connected, TransferRequest(PATH_USD, "0xNOTANADDRESS", "1"))
        assert ledger_client.network_calls == 0
        assert connected.transactions == []

    def test_rejection_surfaces_and_records_nothing(self, connected, executor, ledger_client):
        ledger_client.reject = "insufficient balance"
        with pytest.raises(SubmissionRejected, match="insufficient balance"):
            executor.send(connected, TransferRequest(PATH_USD, BOB, "1"))
        assert connected.transactions == []

    def test_timeout_never_marks_failed(self, connected, executor, ledger_client):
        ledger_client.submit_delay = 0.5
        with pytest.raises(SubmissionTimeout):
            executor.send(connected, TransferRequest(PATH_USD, BOB, "1"), timeout=0.05)
        executor.close()
        assert all(r.status is not TransactionStatus.FAILED for r in connected.transactions)

    def test_late_acceptance_is_recorded_pending(self, connected, executor, ledger_client):
        ledger_client.submit_delay = 0.3
        ledger_client.receipt_error = TimeoutError("no receipt yet")
        with pytest.raises(SubmissionTimeout):
            executor.send(connected, TransferRequest(PATH_USD, BOB, "7", memo="late"), timeout=0.05)

        executor.close()
        (record,) = connected.transactions
        assert record.status is TransactionStatus.PENDING
        assert record.amount == "7"
        assert record.memo == "late"
        assert ledger_client.receipt_requests == [record.hash]

    def test_late_acceptance_after_logout_records_nothing(self, connected, executor, ledger_client, signer):
        ledger_client.submit_delay = 0.3
        with pytest.raises(SubmissionTimeout):
            executor.send(connected, TransferRequest(PATH_USD, BOB, "1"), timeout=0.05)
        WalletIdentity(signer).clear(connected)

        executor.close()
        assert len(ledger_client.submitted) == 1
        assert connected.transactions == []

    def test_failed_receipt_marks_failed(self, connected, executor, ledger_client, ledger):
        ledger_client.receipt_status = False
        result = executor.send(connected, TransferRequest(PATH_USD, BOB, "1"))
        assert result.tracking.result(timeout=5) is TransactionStatus.FAILED
        assert ledger.get(connected, result.tx_hash).status is TransactionStatus.FAILED

    def test_record_is_persisted_before_confirmation(self, connected, store, ledger_client, signer, ledger):
        executor = PaymentExecutor(ledger_client, signer, ledger=ledger)
        try:
            result = executor.send(connected, TransferRequest(PATH_USD, BOB, "1"))
        finally:
            executor.close()
        assert result.tracking is None
        stored = store.get(STORAGE_NAMESPACE)["transactions"]
        assert stored[0]["hash"] == result.tx_hash
        assert stored[0]["status"] == "pending"

    def test_sponsored_send(self, connected, ledger_client, signer):
        connected.set_sponsored(True)
        executor = PaymentExecutor(ledger_client, signer, sponsor=FakeSponsor())
        try:
            result = executor.send(connected, TransferRequest(PATH_USD, BOB, "1"))
        finally:
            executor.close()
        assert result.sponsored
        assert ledger_client.submitted[0].payload["sponsorship"]["reference"] == "ref-1"


class TestSendBatch:
    def _queue(self):
        return BatchQueue([
            TransferRequest(PATH_USD, BOB, "10"),
            TransferRequest(ALPHA_USD, CAROL, "5", memo="split"),
        ])

    def test_batch_records_share_one_hash(self, connected, executor, ledger_client, ledger):
        queue = self._queue()
        result = executor.send_batch(connected, queue)

        assert len(ledger_client.submitted) == 1
        assert [r.hash for r in result.records] == [result.tx_hash] * 2
        assert [r.token_symbol for r in result.records] == ["pathUSD", "AlphaUSD"]
        assert len(queue) == 0

        result.tracking.result(timeout=5)
        assert {r.status for r in ledger.history(connected)} == {TransactionStatus.CONFIRMED}

    def test_uses_session_queue_by_default(self, connected, executor):
        connected.queue.append(TransferRequest(PATH_USD, BOB, "1"))
        result = executor.send_batch(connected)
        assert len(result.records) == 1
        assert len(connected.queue) == 0

    def test_rejected_batch_keeps_queue(self, connected, executor, ledger_client):
        ledger_client.reject = "reverted"
        queue = self._queue()
        with pytest.raises(SubmissionRejected):
            executor.send_batch(connected, queue)
        assert len(queue) == 2
        assert connected.transactions == []

    def test_timed_out_batch_keeps_queue(self, connected, executor, ledger_client):
        ledger_client.submit_delay = 0.3
        ledger_client.receipt_error = TimeoutError("no receipt yet")
        queue = self._queue()
        with pytest.raises(SubmissionTimeout):
            executor.send_batch(connected, queue, timeout=0.05)
        assert len(queue) == 2

        executor.close()
        records = connected.transactions
        assert len(records) == 2
        assert len({r.hash for r in records}) == 1
        assert {r.status for r in records} == {TransactionStatus.PENDING}
        assert len(queue) == 2

    def test_empty_batch(self, connected, executor, ledger_client):
        with pytest.raises(EmptyBatch):
            executor.send_batch(connected, BatchQueue())
        assert ledger_client.submitted == []
