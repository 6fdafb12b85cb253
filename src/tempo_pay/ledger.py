"""
Transaction history for the active account.

Records are written as pending the moment a submission is accepted and get
exactly one terminal status later. History is most-recent-first and capped;
every change is persisted through the session's store.
"""

from __future__ import annotations

import logging
import time
from dataclasses import asdict, dataclass, replace
from enum import Enum
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from .session import WalletSession

logger = logging.getLogger(__name__)


class TransactionStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not TransactionStatus.PENDING


@dataclass(frozen=True)
class TransactionRecord:
    """One submitted transfer."""

    hash: str
    from_address: str
    to: str
    amount: str
    token: str
    token_symbol: str
    memo: Optional[str] = None
    timestamp: int = 0
    status: TransactionStatus = TransactionStatus.PENDING

    def to_dict(self) -> dict:
        d = asdict(self)
        d["from"] = d.pop("from_address")
        d["status"] = self.status.value
        return d

    @classmethod
    def from_dict(cls, data: dict) -> "TransactionRecord":
        return cls(
            hash=data["hash"],
            from_address=data["from"],
            to=data["to"],
            amount=str(data["amount"]),
            token=data["token"],
            token_symbol=data.get("token_symbol", ""),
            memo=data.get("memo"),
            timestamp=int(data.get("timestamp", 0)),
            status=TransactionStatus(data.get("status", TransactionStatus.PENDING.value)),
        )


def now_ms() -> int:
    return int(time.time() * 1000)


class TransactionLedger:
    """Bounded, persisted transaction history scoped to a session."""

    def record(self, session: "WalletSession", entry: TransactionRecord) -> None:
        with session.lock:
            history = [entry] + session.transactions
            dropped = len(history) - session.config.history_limit
            session.transactions = history[:session.config.history_limit]
            session.persist()
        if dropped > 0:
            logger.debug("History cap reached, dropped %d oldest record(s)", dropped)
        logger.info("Recorded %s %s -> %s (%s)", entry.hash, entry.amount, entry.to, entry.status.value)

    def update_status(
        self,
        session: "WalletSession",
        tx_hash: str,
        status: TransactionStatus,
    ) -> bool:
        """Apply pending -> terminal. Unknown hashes and terminal records are left alone."""
        status = TransactionStatus(status)
        if not status.is_terminal:
            return False
        with session.lock:
            changed = False
            updated = []
            for record in session.transactions:
                if record.hash == tx_hash and record.status is TransactionStatus.PENDING:
                    record = replace(record, status=status)
                    changed = True
                updated.append(record)
            if changed:
                session.transactions = updated
                session.persist()
        if changed:
            logger.info("Transaction %s is %s", tx_hash, status.value)
        else:
            logger.debug("No pending record for %s, status %s ignored", tx_hash, status.value)
        return changed

    def history(self, session: "WalletSession") -> list[TransactionRecord]:
        with session.lock:
            return list(session.transactions)

    def get(self, session: "WalletSession", tx_hash: str) -> Optional[TransactionRecord]:
        with session.lock:
            return next((r for r in session.transactions if r.hash == tx_hash), None)

    def pending(self, session: "WalletSession") -> list[TransactionRecord]:
        with session.lock:
            return [r for r in session.transactions if r.status is TransactionStatus.PENDING]
