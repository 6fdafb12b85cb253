"""TIP-20 token descriptors: the default stablecoins plus per-account custom tokens."""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import TYPE_CHECKING, Optional

from eth_utils import is_address, to_checksum_address

if TYPE_CHECKING:
    from .rpc import LedgerClient
    from .session import WalletSession

logger = logging.getLogger(__name__)

TIP20_PREFIX = "0x20c"


@dataclass(frozen=True)
class TokenDescriptor:
    address: str
    symbol: str
    name: str
    decimals: int
    is_default: bool = False

    def __post_init__(self):
        if not 0 <= int(self.decimals) <= 255:
            raise ValueError(f"decimals must fit in uint8, got {self.decimals}")

    def matches(self, address: str) -> bool:
        return self.address.lower() == address.strip().lower()

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "TokenDescriptor":
        return cls(
            address=data["address"],
            symbol=data["symbol"],
            name=data["name"],
            decimals=int(data["decimals"]),
            is_default=bool(data.get("is_default", False)),
        )


DEFAULT_TOKENS: tuple[TokenDescriptor, ...] = (
    TokenDescriptor("0x20c0000000000000000000000000000000000000", "pathUSD", "Path USD", 6, True),
    TokenDescriptor("0x20c0000000000000000000000000000000000001", "AlphaUSD", "Alpha USD", 6, True),
    TokenDescriptor("0x20c0000000000000000000000000000000000002", "BetaUSD", "Beta USD", 6, True),
    TokenDescriptor("0x20c0000000000000000000000000000000000003", "ThetaUSD", "Theta USD", 6, True),
)


def is_tip20_address(address: str) -> bool:
    return address.lower().startswith(TIP20_PREFIX)


def get_default_token(address: str) -> Optional[TokenDescriptor]:
    return next((t for t in DEFAULT_TOKENS if t.matches(address)), None)


def find_token(tokens, address: str) -> Optional[TokenDescriptor]:
    return next((t for t in tokens if t.matches(address)), None)


def validate_token(client: "LedgerClient", address: str) -> Optional[TokenDescriptor]:
    """Read TIP-20 metadata from chain. None when the address is not a readable token."""
    if not is_address(address):
        return None
    checksummed = to_checksum_address(address)
    try:
        name = client.call(checksummed, "name", [])
        symbol = client.call(checksummed, "symbol", [])
        decimals = int(client.call(checksummed, "decimals", []))
        return TokenDescriptor(
            address=checksummed,
            symbol=symbol,
            name=name,
            decimals=decimals,
            is_default=False,
        )
    except Exception as e:
        logger.info("Token %s failed validation: %s", address, e)
        return None


def add_custom_token(session: "WalletSession", token: TokenDescriptor) -> bool:
    """Add a token to the session's custom list. False if already known."""
    with session.lock:
        session.require_account()
        if find_token(session.token_set(), token.address) is not None:
            return False
        session.custom_tokens.append(
            TokenDescriptor(token.address, token.symbol, token.name, token.decimals, False)
        )
        session.persist()
    logger.info("Custom token added: %s (%s)", token.symbol, token.address)
    return True


def remove_custom_token(session: "WalletSession", address: str) -> bool:
    """Remove a custom token. Default tokens can't be removed."""
    with session.lock:
        session.require_account()
        before = len(session.custom_tokens)
        session.custom_tokens = [t for t in session.custom_tokens if not t.matches(address)]
        removed = len(session.custom_tokens) != before
        if removed:
            session.persist()
    return removed
