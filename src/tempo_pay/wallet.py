"""
Wallet identity: login, import, restore and logout for a session.

The secret is persisted with the session record so the account survives a
restart, and wiped from memory and storage on ``clear``.
"""

from __future__ import annotations

import logging
from typing import Optional

from .errors import InvalidSecret
from .session import Account, WalletSession
from .signer import SecretHandle, Signer, normalize_secret

logger = logging.getLogger(__name__)


class WalletIdentity:
    """Creates and destroys the active account of a session."""

    def __init__(self, signer: Signer):
        self.signer = signer

    def create(self, session: WalletSession) -> Account:
        secret = normalize_secret(self.signer.create_secret())
        address = self.signer.derive_address(secret)
        account = self._activate(session, address, secret)
        logger.info("Wallet created: %s", address)
        return account

    def import_(self, session: WalletSession, secret: str) -> Account:
        normalized = normalize_secret(secret)
        try:
            address = self.signer.derive_address(normalized)
        except InvalidSecret:
            raise
        except Exception as e:
            raise InvalidSecret(f"Cannot derive address: {type(e).__name__}") from None
        account = self._activate(session, address, normalized)
        logger.info("Wallet imported: %s", address)
        return account

    def restore(self, session: WalletSession) -> Optional[Account]:
        """Re-derive the persisted account's address; clear the session if it no longer matches."""
        if session.account is None:
            return None
        try:
            derived = self.signer.derive_address(session.account.secret.reveal())
        except Exception:
            logger.warning("Persisted secret is unusable, clearing session")
            self.clear(session)
            return None
        if derived.lower() != session.account.address.lower():
            logger.warning("Persisted address does not match its secret, clearing session")
            self.clear(session)
            return None
        return session.account

    def clear(self, session: WalletSession) -> None:
        """Logout: wipe the secret and every piece of account-scoped state."""
        with session.lock:
            previous = session.account
            if previous is not None:
                previous.secret.wipe()
            session.account = None
            session.reset_account_state()
            session.is_sponsored = False
            session.store.remove(session.namespace)
        if previous is not None:
            logger.info("Wallet cleared: %s", previous.address)

    def _activate(self, session: WalletSession, address: str, secret: str) -> Account:
        with session.lock:
            previous = session.account
            if previous is not None:
                previous.secret.wipe()
            if previous is None or previous.address.lower() != address.lower():
                session.reset_account_state()
            session.account = Account(address=address, secret=SecretHandle(secret))
            session.persist()
            return session.account
