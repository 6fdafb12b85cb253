"""
Payment execution.

Flow:
1. Validate and build the call (or bundle); validation errors stop here
2. Negotiate sponsorship if the session asks for it
3. Sign with the session's secret
4. Submit, bounded by the caller's timeout
5. Record the transfer(s) as pending
6. Hand the hash to the status tracker

Nothing is retried. A rejected submission creates no record. A timed-out one
raises to the caller, but if the node accepts it afterwards the transfer(s)
are recorded as pending and tracked. Either way a failed batch keeps its queue.
"""

from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from functools import partial
from typing import Callable, Optional, Sequence, Union

from .batch import BatchBuilder, BatchQueue, UnsignedBundle
from .ledger import TransactionLedger, TransactionRecord, TransactionStatus, now_ms
from .rpc import LedgerClient, submit_within
from .session import WalletSession
from .signer import Signer
from .sponsorship import SponsorClient
from .tracker import StatusTracker
from .transfer import TransferBuilder, TransferCall, TransferRequest, UnsignedCall

logger = logging.getLogger(__name__)


@dataclass
class PaymentResult:
    """Outcome of an accepted submission."""

    tx_hash: str
    records: tuple[TransactionRecord, ...]
    sponsored: bool = False
    tracking: Optional["Future[TransactionStatus]"] = field(default=None, repr=False)

    def to_dict(self) -> dict:
        return {
            "tx_hash": self.tx_hash,
            "sponsored": self.sponsored,
            "records": [r.to_dict() for r in self.records],
        }


class PaymentExecutor:
    """Orchestrates build, sign, submit, record and track."""

    def __init__(
        self,
        client: LedgerClient,
        signer: Signer,
        ledger: Optional[TransactionLedger] = None,
        tracker: Optional[StatusTracker] = None,
        sponsor: Optional[SponsorClient] = None,
    ):
        self.client = client
        self.signer = signer
        self.ledger = ledger or TransactionLedger()
        self.tracker = tracker
        self.transfers = TransferBuilder(sponsor=sponsor)
        self.batches = BatchBuilder(sponsor=sponsor)
        self._submit_pool = ThreadPoolExecutor(max_workers=2, thread_name_prefix="tempo-submit")

    def send(
        self,
        session: WalletSession,
        request: TransferRequest,
        timeout: Optional[float] = None,
    ) -> PaymentResult:
        unsigned = self.transfers.build(session, request)
        pairs = ((unsigned.call, request),)
        tx_hash = self._submit(
            session, unsigned, timeout,
            on_late=partial(self._accept_late, session, unsigned, pairs),
        )
        return self._accept(session, tx_hash, pairs, unsigned)

    def send_batch(
        self,
        session: WalletSession,
        queue: Optional[BatchQueue] = None,
        timeout: Optional[float] = None,
    ) -> PaymentResult:
        queue = queue if queue is not None else session.queue
        entries = queue.snapshot()
        bundle = self.batches.build(session, queue)
        pairs = tuple(zip(bundle.calls, entries))
        tx_hash = self._submit(
            session, bundle, timeout,
            on_late=partial(self._accept_late, session, bundle, pairs),
        )
        result = self._accept(session, tx_hash, pairs, bundle)
        queue.clear()
        logger.info("Batch of %d transfers accepted as %s", len(result.records), tx_hash)
        return result

    def _submit(
        self,
        session: WalletSession,
        unsigned: Union[UnsignedCall, UnsignedBundle],
        timeout: Optional[float],
        on_late: Optional[Callable[[str], None]] = None,
    ) -> str:
        account = session.require_account()
        signed = self.signer.sign(account.secret.reveal(), unsigned)
        effective = timeout if timeout is not None else session.config.submit_timeout_seconds
        return submit_within(self._submit_pool, self.client, signed, effective, on_late=on_late)

    def _accept(
        self,
        session: WalletSession,
        tx_hash: str,
        pairs: Sequence[tuple[TransferCall, TransferRequest]],
        unsigned: Union[UnsignedCall, UnsignedBundle],
    ) -> PaymentResult:
        records = tuple(self._record_for(session, tx_hash, call, request) for call, request in pairs)
        for record in records:
            self.ledger.record(session, record)
        return self._result(session, tx_hash, records, unsigned)

    def _accept_late(
        self,
        session: WalletSession,
        unsigned: Union[UnsignedCall, UnsignedBundle],
        pairs: Sequence[tuple[TransferCall, TransferRequest]],
        tx_hash: str,
    ) -> None:
        # The caller already saw SubmissionTimeout and may have logged out since.
        if not session.is_connected or session.account.address != unsigned.sender:
            logger.warning("Late submission %s belongs to a closed session, not recorded", tx_hash)
            return
        try:
            self._accept(session, tx_hash, pairs, unsigned)
        except RuntimeError:
            # tracker already shut down; the record stays pending for resume()
            logger.info("Late submission %s recorded as pending, not tracked", tx_hash)

    def _record_for(
        self,
        session: WalletSession,
        tx_hash: str,
        call: TransferCall,
        request: TransferRequest,
    ) -> TransactionRecord:
        token = session.find_token(call.token)
        return TransactionRecord(
            hash=tx_hash,
            from_address=session.require_account().address,
            to=call.to,
            amount=request.amount.strip(),
            token=call.token,
            token_symbol=token.symbol if token else "",
            memo=request.clean_memo,
            timestamp=now_ms(),
            status=TransactionStatus.PENDING,
        )

    def _result(self, session, tx_hash, records, unsigned) -> PaymentResult:
        tracking = self.tracker.track(session, tx_hash) if self.tracker else None
        return PaymentResult(
            tx_hash=tx_hash,
            records=records,
            sponsored=unsigned.sponsorship is not None,
            tracking=tracking,
        )

    def close(self, wait: bool = True) -> None:
        self._submit_pool.shutdown(wait=wait)
        if self.tracker:
            self.tracker.shutdown(wait=wait)

