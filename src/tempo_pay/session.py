"""
Wallet session context.

A WalletSession owns everything scoped to the active account: identity,
custom tokens, fee preference, batch queue, last balances, transaction
history and the sponsorship flag. Components receive it explicitly. The
persisted part is stored as one record under a single namespace key and is
rehydrated by ``WalletSession.load`` before any operation runs.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, Optional

from .batch import BatchQueue
from .config import STORAGE_NAMESPACE, EngineConfig
from .errors import WalletNotConnected
from .ledger import TransactionRecord
from .signer import SecretHandle
from .storage import KeyValueStore
from .tokens import DEFAULT_TOKENS, TokenDescriptor, find_token

logger = logging.getLogger(__name__)


@dataclass
class Account:
    address: str
    secret: SecretHandle

    def __repr__(self) -> str:
        return f"Account(address={self.address})"


class WalletSession:
    """Single-writer session state for one account."""

    def __init__(
        self,
        store: KeyValueStore,
        config: Optional[EngineConfig] = None,
        namespace: str = STORAGE_NAMESPACE,
    ):
        self.store = store
        self.config = config or EngineConfig()
        self.namespace = namespace
        self.lock = threading.RLock()

        self.account: Optional[Account] = None
        self.custom_tokens: list[TokenDescriptor] = []
        self.fee_token: str = self.config.default_fee_token
        self.transactions: list[TransactionRecord] = []
        self.is_sponsored: bool = False
        self.queue = BatchQueue()
        self.balances: tuple = ()

    @classmethod
    def load(
        cls,
        store: KeyValueStore,
        config: Optional[EngineConfig] = None,
        namespace: str = STORAGE_NAMESPACE,
    ) -> "WalletSession":
        """Build a session and rehydrate it from the persisted record, if any."""
        session = cls(store, config=config, namespace=namespace)
        record = store.get(namespace)
        if record:
            session._apply_record(record)
            logger.info(
                "Session restored: %s (%d transactions)",
                session.account.address if session.account else "no account",
                len(session.transactions),
            )
        return session

    @property
    def is_connected(self) -> bool:
        return self.account is not None and not self.account.secret.wiped

    def require_account(self) -> Account:
        if not self.is_connected:
            raise WalletNotConnected("No active account in this session")
        return self.account

    def token_set(self) -> list[TokenDescriptor]:
        return list(DEFAULT_TOKENS) + list(self.custom_tokens)

    def find_token(self, address: str) -> Optional[TokenDescriptor]:
        return find_token(self.token_set(), address)

    def set_sponsored(self, enabled: bool) -> None:
        with self.lock:
            self.require_account()
            self.is_sponsored = bool(enabled)
            self.persist()

    def reset_account_state(self) -> None:
        """Drop everything scoped to the current account (not the account itself)."""
        with self.lock:
            self.custom_tokens = []
            self.fee_token = self.config.default_fee_token
            self.transactions = []
            self.queue.clear()
            self.balances = ()

    def to_record(self) -> dict[str, Any]:
        account = self.account if self.is_connected else None
        return {
            "address": account.address if account else None,
            "secret": account.secret.reveal() if account else None,
            "custom_tokens": [t.to_dict() for t in self.custom_tokens],
            "fee_token": self.fee_token,
            "transactions": [r.to_dict() for r in self.transactions],
            "is_sponsored": self.is_sponsored,
        }

    def persist(self) -> None:
        """Write the record. A no-op once logged out, so late workers can't resurrect it."""
        with self.lock:
            if not self.is_connected:
                return
            self.store.set(self.namespace, self.to_record())

    def _apply_record(self, record: dict[str, Any]) -> None:
        address = record.get("address")
        secret = record.get("secret")
        if address and secret:
            self.account = Account(address=address, secret=SecretHandle(secret))
        self.custom_tokens = [TokenDescriptor.from_dict(t) for t in record.get("custom_tokens", [])]
        self.fee_token = record.get("fee_token") or self.config.default_fee_token
        self.transactions = [
            TransactionRecord.from_dict(t) for t in record.get("transactions", [])
        ][:self.config.history_limit]
        self.is_sponsored = bool(record.get("is_sponsored", False))
