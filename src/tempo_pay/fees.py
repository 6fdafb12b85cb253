"""
Fee token preference.

Tempo accounts pay fees in a TIP-20 stablecoin of their choice, registered
with the fee manager contract. Fresh accounts have no preference on record;
they pay in the default stablecoin.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from functools import partial
from typing import Optional

from eth_utils import is_address, to_checksum_address

from .config import CONTRACTS, NULL_ADDRESS
from .errors import ResolutionFailure, UnknownToken
from .rpc import LedgerClient, submit_within
from .session import WalletSession
from .signer import Signer
from .transfer import ContractCall, UnsignedCall

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FeePreferenceReceipt:
    tx_hash: str
    token: str


class FeeTokenResolver:
    """Reads and updates an account's fee token preference."""

    def __init__(self, client: LedgerClient, signer: Signer, fee_manager: Optional[str] = None):
        self.client = client
        self.signer = signer
        self.fee_manager = fee_manager or CONTRACTS["FEE_MANAGER"]

    def _lookup(self, address: str) -> str:
        try:
            token = self.client.call(self.fee_manager, "getUserToken", [address])
        except Exception as e:
            raise ResolutionFailure(f"getUserToken({address}) failed: {e}") from e
        if not token or not is_address(token):
            raise ResolutionFailure(f"getUserToken({address}) returned {token!r}")
        return to_checksum_address(token)

    def resolve(self, session: WalletSession) -> str:
        """Current fee token; the configured default when unset or unreadable."""
        account = session.require_account()
        default = session.config.default_fee_token
        try:
            token = self._lookup(account.address)
        except ResolutionFailure as e:
            logger.warning("Fee token lookup failed, using default %s: %s", default, e)
            return default
        if token == NULL_ADDRESS:
            return default
        return token

    def set_preference(
        self,
        session: WalletSession,
        token: str,
        timeout: Optional[float] = None,
    ) -> FeePreferenceReceipt:
        """Submit setUserToken(token) within the timeout.

        The preference is cached once the node accepts it, including when the
        acceptance lands after SubmissionTimeout was raised.
        """
        account = session.require_account()
        known = session.find_token(token)
        if known is None:
            raise UnknownToken(token)
        token = to_checksum_address(known.address)

        unsigned = UnsignedCall(
            sender=account.address,
            call=ContractCall(target=self.fee_manager, method="setUserToken", call_args=(token,)),
            fee_token=session.fee_token,
        )
        signed = self.signer.sign(account.secret.reveal(), unsigned)
        effective = timeout if timeout is not None else session.config.submit_timeout_seconds
        pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix="tempo-fee")
        try:
            tx_hash = submit_within(
                pool, self.client, signed, effective,
                on_late=partial(_cache, session, account.address, token),
            )
        finally:
            pool.shutdown(wait=False)
        _cache(session, account.address, token, tx_hash)
        return FeePreferenceReceipt(tx_hash=tx_hash, token=token)


def _cache(session: WalletSession, address: str, token: str, tx_hash: str) -> None:
    with session.lock:
        if not session.is_connected or session.account.address != address:
            return
        session.fee_token = token
        session.persist()
    logger.info("Fee token preference set to %s (%s)", token, tx_hash)
