"""
Tempo network configuration.

Moderato testnet constants, predeployed system contract addresses and the
engine's tunables. Environment variables override the defaults:

    TEMPO_RPC_URL       JSON-RPC endpoint
    TEMPO_SPONSOR_URL   fee sponsorship service
    TEMPO_HOME          directory holding the persisted wallet record
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path


NULL_ADDRESS = "0x0000000000000000000000000000000000000000"

STORAGE_NAMESPACE = "tempo-wallet-storage"
HISTORY_LIMIT = 50
MEMO_INLINE_LIMIT = 31

RPC_URL_ENV = "TEMPO_RPC_URL"
SPONSOR_URL_ENV = "TEMPO_SPONSOR_URL"
HOME_ENV = "TEMPO_HOME"


@dataclass(frozen=True)
class TempoNetwork:
    chain_id: int = 42431
    name: str = "Tempo Moderato Testnet"
    rpc_url: str = "https://rpc.moderato.tempo.xyz"
    explorer_url: str = "https://explore.tempo.xyz"
    sponsor_url: str = "https://sponsor.moderato.tempo.xyz"
    faucet_url: str = "https://docs.tempo.xyz/quickstart/faucet"
    currency_symbol: str = "USD"
    currency_decimals: int = 6

    @property
    def chain_id_hex(self) -> str:
        return hex(self.chain_id)

    def tx_url(self, tx_hash: str) -> str:
        return f"{self.explorer_url}/tx/{tx_hash}"

    def address_url(self, address: str) -> str:
        return f"{self.explorer_url}/address/{address}"

    def token_url(self, address: str) -> str:
        return f"{self.explorer_url}/token/{address}"


MODERATO = TempoNetwork()

CONTRACTS = {
    "FEE_MANAGER": "0x1000000000000000000000000000000000000000",
    "TIP20_FACTORY": "0x20Fc000000000000000000000000000000000000",
    "DEX": "0x20D0000000000000000000000000000000000000",
    "POLICY_REGISTRY": "0x2000000000000000000000000000000000000403",
    "ACCOUNT_KEYCHAIN": "0x0000000000000000000000000000000000000100",
}

DEFAULT_FEE_TOKEN = "0x20c0000000000000000000000000000000000000"


def _default_state_dir() -> Path:
    return Path.home() / ".tempo-pay"


@dataclass
class EngineConfig:
    """Tunables shared by the engine components."""

    network: TempoNetwork = field(default_factory=TempoNetwork)
    rpc_timeout_seconds: float = 15.0
    submit_timeout_seconds: float = 30.0
    receipt_timeout_seconds: float = 120.0
    receipt_poll_interval: float = 1.0
    sponsorship_timeout_seconds: float = 10.0
    balance_workers: int = 8
    tracker_workers: int = 4
    default_fee_token: str = DEFAULT_FEE_TOKEN
    history_limit: int = HISTORY_LIMIT
    state_dir: Path = field(default_factory=_default_state_dir)

    @classmethod
    def from_env(cls) -> "EngineConfig":
        base = TempoNetwork()
        network = TempoNetwork(
            rpc_url=os.getenv(RPC_URL_ENV, base.rpc_url),
            sponsor_url=os.getenv(SPONSOR_URL_ENV, base.sponsor_url),
        )
        home = os.getenv(HOME_ENV)
        state_dir = Path(home) if home else _default_state_dir()
        return cls(network=network, state_dir=state_dir)
