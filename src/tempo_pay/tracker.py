"""
Confirmation tracking.

Each tracked hash gets a detached worker that waits for the receipt and
writes the terminal status into the ledger. A missing receipt never becomes
a failure: only an explicit failed receipt does.
"""

from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Optional

from .ledger import TransactionLedger, TransactionStatus
from .rpc import LedgerClient
from .session import WalletSession

logger = logging.getLogger(__name__)


class StatusTracker:
    """Fire-and-forget receipt watcher."""

    def __init__(
        self,
        client: LedgerClient,
        ledger: TransactionLedger,
        max_workers: int = 4,
    ):
        self.client = client
        self.ledger = ledger
        self._pool = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="tempo-tracker")

    def _wait(self, session: WalletSession, tx_hash: str, timeout: Optional[float]) -> TransactionStatus:
        effective = timeout if timeout is not None else session.config.receipt_timeout_seconds
        try:
            receipt = self.client.await_receipt(tx_hash, timeout=effective)
        except TimeoutError:
            logger.warning("No receipt for %s within %.1fs, left pending", tx_hash, effective)
            return TransactionStatus.PENDING
        except Exception as e:
            logger.warning("Receipt lookup for %s failed, left pending: %s", tx_hash, e)
            return TransactionStatus.PENDING

        status = TransactionStatus.CONFIRMED if receipt.status else TransactionStatus.FAILED
        self.ledger.update_status(session, tx_hash, status)
        return status

    def track(
        self,
        session: WalletSession,
        tx_hash: str,
        timeout: Optional[float] = None,
    ) -> "Future[TransactionStatus]":
        """Start watching tx_hash. The caller does not need to wait on the future."""
        logger.debug("Tracking %s", tx_hash)
        return self._pool.submit(self._wait, session, tx_hash, timeout)

    def resume(self, session: WalletSession, timeout: Optional[float] = None) -> list["Future[TransactionStatus]"]:
        """Re-track every pending record, e.g. after a restart."""
        hashes = list(dict.fromkeys(r.hash for r in self.ledger.pending(session)))
        return [self.track(session, h, timeout) for h in hashes]

    def shutdown(self, wait: bool = True) -> None:
        self._pool.shutdown(wait=wait)
