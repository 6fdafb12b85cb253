"""
Signing collaborator.

The engine never touches key material directly: it holds an opaque
SecretHandle and asks a Signer to create secrets, derive addresses and sign
payloads. EthAccountSigner is the default eth-account backed implementation.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Optional, Protocol

from eth_account import Account
from eth_account.messages import encode_defunct
from eth_utils import keccak

from .errors import InvalidSecret

logger = logging.getLogger(__name__)

_SECRET_RE = re.compile(r"^[0-9a-fA-F]{64}$")


class SecretHandle:
    """Opaque holder for an account secret. Wiped on logout."""

    __slots__ = ("_secret",)

    def __init__(self, secret: str):
        self._secret: Optional[str] = secret

    @property
    def wiped(self) -> bool:
        return self._secret is None

    def reveal(self) -> str:
        if self._secret is None:
            raise RuntimeError("Secret handle has been wiped")
        return self._secret

    def wipe(self) -> None:
        self._secret = None

    def __repr__(self) -> str:
        return "SecretHandle(wiped)" if self._secret is None else "SecretHandle(***)"


def normalize_secret(secret: str) -> str:
    """Accept a 32-byte hex secret with or without 0x, return it 0x-prefixed lower-case."""
    candidate = secret.strip()
    if candidate.startswith(("0x", "0X")):
        candidate = candidate[2:]
    if not _SECRET_RE.match(candidate):
        raise InvalidSecret("Secret must be a 32-byte hex string")
    return "0x" + candidate.lower()


@dataclass(frozen=True)
class SignedCall:
    """An unsigned payload plus the sender's signature over its digest."""

    payload: dict
    signer: str
    digest: str
    signature: str

    def to_dict(self) -> dict:
        return {
            "payload": self.payload,
            "signer": self.signer,
            "digest": self.digest,
            "signature": self.signature,
        }


class Signer(Protocol):
    def create_secret(self) -> str: ...

    def derive_address(self, secret: str) -> str: ...

    def sign(self, secret: str, unsigned: Any) -> SignedCall: ...


def payload_digest(payload: dict) -> bytes:
    canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"))
    return keccak(text=canonical)


class EthAccountSigner:
    """Signer backed by eth-account local keys."""

    def create_secret(self) -> str:
        account = Account.create()
        return "0x" + bytes(account.key).hex()

    def derive_address(self, secret: str) -> str:
        try:
            return Account.from_key(secret).address
        except Exception as e:
            raise InvalidSecret(f"Cannot derive address: {type(e).__name__}") from None

    def sign(self, secret: str, unsigned: Any) -> SignedCall:
        payload = unsigned.to_dict()
        digest = payload_digest(payload)
        account = Account.from_key(secret)
        signed = account.sign_message(encode_defunct(primitive=digest))
        logger.debug("Signed payload %s for %s", digest.hex()[:16], account.address)
        return SignedCall(
            payload=payload,
            signer=account.address,
            digest="0x" + digest.hex(),
            signature="0x" + bytes(signed.signature).hex(),
        )
