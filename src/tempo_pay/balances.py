"""Multi-token balance aggregation for the active account."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Optional, Sequence

from .money import format_display
from .rpc import LedgerClient
from .session import WalletSession
from .tokens import TokenDescriptor

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TokenBalance:
    token: TokenDescriptor
    raw_amount: str
    display_amount: str

    @property
    def address(self) -> str:
        return self.token.address

    @property
    def symbol(self) -> str:
        return self.token.symbol

    @property
    def decimals(self) -> int:
        return self.token.decimals

    def to_dict(self) -> dict:
        return {
            **self.token.to_dict(),
            "raw_amount": self.raw_amount,
            "display_amount": self.display_amount,
        }


def zero_balance(token: TokenDescriptor) -> TokenBalance:
    return TokenBalance(token=token, raw_amount="0", display_amount=format_display(0, token.decimals))


class BalanceAggregator:
    """Fetches balanceOf for every token in the set, concurrently."""

    def __init__(self, client: LedgerClient, max_workers: Optional[int] = None):
        self.client = client
        self.max_workers = max_workers

    def fetch_one(self, address: str, token: TokenDescriptor) -> TokenBalance:
        try:
            raw = int(self.client.call(token.address, "balanceOf", [address]))
        except Exception as e:
            logger.warning("Balance of %s unavailable, showing zero: %s", token.symbol, e)
            return zero_balance(token)
        return TokenBalance(
            token=token,
            raw_amount=str(raw),
            display_amount=format_display(raw, token.decimals),
        )

    def fetch_all(
        self,
        session: WalletSession,
        token_set: Optional[Sequence[TokenDescriptor]] = None,
    ) -> list[TokenBalance]:
        """One entry per token, in token-set order. Failed lookups read as zero."""
        account = session.require_account()
        tokens = list(token_set) if token_set is not None else session.token_set()
        if not tokens:
            session.balances = ()
            return []

        workers = self.max_workers or session.config.balance_workers
        with ThreadPoolExecutor(max_workers=min(workers, len(tokens)), thread_name_prefix="tempo-balance") as pool:
            balances = list(pool.map(lambda t: self.fetch_one(account.address, t), tokens))

        session.balances = tuple(balances)
        return balances
