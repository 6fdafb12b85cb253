"""Shared fixtures: in-memory store, connected session and a fake ledger node."""

import itertools
import threading
import time
from typing import Optional

import pytest
from eth_account import Account

from tempo_pay.config import NULL_ADDRESS, EngineConfig
from tempo_pay.errors import RpcError, SubmissionRejected
from tempo_pay.rpc import NetworkInfo, Receipt
from tempo_pay.session import WalletSession
from tempo_pay.signer import EthAccountSigner
from tempo_pay.sponsorship import SponsorshipTicket
from tempo_pay.storage import MemoryKeyValueStore
from tempo_pay.tokens import DEFAULT_TOKENS
from tempo_pay.wallet import WalletIdentity


PATH_USD = DEFAULT_TOKENS[0].address
ALPHA_USD = DEFAULT_TOKENS[1].address
BOB = "0x1111111111111111111111111111111111111111"
CAROL = "0x2222222222222222222222222222222222222222"


class FakeLedgerClient:
    """Records every call; balances, metadata and receipts are set by the test."""

    def __init__(self):
        self.balances: dict[str, int] = {}
        self.failing_tokens: set[str] = set()
        self.metadata: dict[str, dict] = {}
        self.user_tokens: dict[str, str] = {}
        self.fee_lookup_error: Optional[Exception] = None
        self.reject: Optional[str] = None
        self.submit_delay = 0.0
        self.receipt_status = True
        self.receipt_error: Optional[Exception] = None
        self.receipt_gate: Optional[threading.Event] = None
        self.block_number = 1200
        self.online = True
        self.closed = False

        self.calls: list[tuple] = []
        self.submitted: list = []
        self.receipt_requests: list[str] = []
        self._hashes = itertools.count(1)
        self._mutex = threading.Lock()

    def call(self, contract, method, args):
        with self._mutex:
            self.calls.append((contract, method, list(args)))
        key = contract.lower()
        if method == "balanceOf":
            if key in self.failing_tokens:
                raise RpcError(f"balanceOf failed on {contract}")
            return self.balances.get(key, 0)
        if method == "getUserToken":
            if self.fee_lookup_error is not None:
                raise self.fee_lookup_error
            return self.user_tokens.get(args[0].lower(), NULL_ADDRESS)
        if method in ("name", "symbol", "decimals"):
            meta = self.metadata.get(key)
            if meta is None:
                raise RpcError(f"eth_call {method} on {contract} returned no data")
            return meta[method]
        raise RpcError(f"unexpected call {method}")

    def submit(self, signed, timeout=None):
        if self.submit_delay:
            time.sleep(self.submit_delay)
        if self.reject is not None:
            raise SubmissionRejected(self.reject)
        with self._mutex:
            self.submitted.append(signed)
            return "0x" + f"{next(self._hashes):064x}"

    def await_receipt(self, tx_hash, timeout=None):
        with self._mutex:
            self.receipt_requests.append(tx_hash)
        if self.receipt_gate is not None:
            self.receipt_gate.wait(timeout=5)
        if self.receipt_error is not None:
            raise self.receipt_error
        return Receipt(tx_hash=tx_hash, status=self.receipt_status, block_number=1)

    def network_info(self):
        if not self.online:
            return NetworkInfo(block_number=0, chain_id=42431, connected=False)
        return NetworkInfo(block_number=self.block_number, chain_id=42431, connected=True)

    def close(self):
        self.closed = True

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()

    @property
    def network_calls(self) -> int:
        return len(self.calls) + len(self.submitted)


class FakeSponsor:
    def __init__(self, approved=True, delay=0.0, error=None, expires_at=0):
        self.approved = approved
        self.delay = delay
        self.error = error
        self.expires_at = expires_at
        self.requests: list[tuple[str, dict]] = []

    def request(self, sender, payload, timeout):
        self.requests.append((sender, payload))
        if self.delay:
            time.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return SponsorshipTicket(
            sponsor="0x3333333333333333333333333333333333333333",
            reference=f"ref-{len(self.requests)}",
            expires_at=self.expires_at,
            approved=self.approved,
        )


@pytest.fixture
def config(tmp_path):
    return EngineConfig(
        state_dir=tmp_path,
        submit_timeout_seconds=2.0,
        receipt_timeout_seconds=1.0,
        receipt_poll_interval=0.01,
        sponsorship_timeout_seconds=1.0,
    )


@pytest.fixture
def store():
    return MemoryKeyValueStore()


@pytest.fixture
def signer():
    return EthAccountSigner()


@pytest.fixture
def session(store, config):
    return WalletSession(store, config=config)


@pytest.fixture
def account_key():
    return Account.create()


@pytest.fixture
def connected(session, signer, account_key):
    WalletIdentity(signer).import_(session, account_key.key.hex())
    return session


@pytest.fixture
def ledger_client():
    return FakeLedgerClient()
