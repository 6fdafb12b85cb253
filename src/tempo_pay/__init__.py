"""
tempo-pay: Stablecoin payments on the Tempo ledger.

Single and batched TIP-20 transfers with memos, per-account fee token
preference, optional fee sponsorship and a persisted transaction history.
"""

__version__ = "0.1.0"

from .balances import BalanceAggregator, TokenBalance
from .batch import BatchBuilder, BatchQueue, UnsignedBundle
from .config import MODERATO, EngineConfig, TempoNetwork
from .fees import FeePreferenceReceipt, FeeTokenResolver
from .ledger import TransactionLedger, TransactionRecord, TransactionStatus
from .payment import PaymentExecutor, PaymentResult
from .rpc import JsonRpcClient, LedgerClient, NetworkInfo, Receipt
from .session import Account, WalletSession
from .signer import EthAccountSigner, SecretHandle, SignedCall, Signer
from .sponsorship import HttpSponsorClient, SponsorshipTicket
from .storage import FileKeyValueStore, KeyValueStore, MemoryKeyValueStore
from .tokens import DEFAULT_TOKENS, TokenDescriptor
from .tracker import StatusTracker
from .transfer import MemoTransfer, PlainTransfer, TransferBuilder, TransferRequest, UnsignedCall
from .wallet import WalletIdentity

__all__ = [
    "EngineConfig", "TempoNetwork", "MODERATO",
    "WalletSession", "Account", "WalletIdentity",
    "KeyValueStore", "FileKeyValueStore", "MemoryKeyValueStore",
    "Signer", "EthAccountSigner", "SecretHandle", "SignedCall",
    "LedgerClient", "JsonRpcClient", "Receipt", "NetworkInfo",
    "TokenDescriptor", "DEFAULT_TOKENS", "TokenBalance", "BalanceAggregator",
    "FeeTokenResolver", "FeePreferenceReceipt",
    "TransferRequest", "PlainTransfer", "MemoTransfer", "UnsignedCall", "TransferBuilder",
    "BatchQueue", "BatchBuilder", "UnsignedBundle",
    "SponsorshipTicket", "HttpSponsorClient",
    "TransactionLedger", "TransactionRecord", "TransactionStatus", "StatusTracker",
    "PaymentExecutor", "PaymentResult",
]
