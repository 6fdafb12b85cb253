"""
Single transfer construction.

A TransferRequest is validated and turned into one of two call shapes,
chosen once here and carried as a type from then on:

    PlainTransfer   transfer(to, amount)
    MemoTransfer    transferWithMemo(to, amount, memo)

The builder returns an UnsignedCall for the signing collaborator. It never
signs or submits.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Any, ClassVar, Optional, Union

from eth_utils import is_address, to_checksum_address

from . import memo as memo_codec
from .abi import encode_call
from .config import NULL_ADDRESS
from .errors import InvalidRecipient, UnknownToken
from .money import parse_units
from .sponsorship import SponsorClient, SponsorshipTicket, negotiate

if TYPE_CHECKING:
    from .session import WalletSession

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransferRequest:
    """A transfer as entered by the user."""

    token: str
    to: str
    amount: str
    memo: Optional[str] = None

    @property
    def has_memo(self) -> bool:
        return bool(self.memo and self.memo.strip())

    @property
    def clean_memo(self) -> Optional[str]:
        return self.memo.strip() if self.has_memo else None


@dataclass(frozen=True)
class PlainTransfer:
    token: str
    to: str
    amount: int

    kind: ClassVar[str] = "plain"
    method: ClassVar[str] = "transfer"

    def args(self) -> list[Any]:
        return [self.to, self.amount]

    def to_dict(self) -> dict:
        return {
            "kind": self.kind,
            "to": self.token,
            "method": self.method,
            "args": [self.to, str(self.amount)],
            "data": encode_call(self.method, self.args()),
        }


@dataclass(frozen=True)
class MemoTransfer:
    token: str
    to: str
    amount: int
    memo: bytes

    kind: ClassVar[str] = "memo"
    method: ClassVar[str] = "transferWithMemo"

    def args(self) -> list[Any]:
        return [self.to, self.amount, self.memo]

    def to_dict(self) -> dict:
        return {
            "kind": self.kind,
            "to": self.token,
            "method": self.method,
            "args": [self.to, str(self.amount), memo_codec.to_hex(self.memo)],
            "data": encode_call(self.method, self.args()),
        }


@dataclass(frozen=True)
class ContractCall:
    """Any other state-changing call, e.g. a fee manager update."""

    target: str
    method: str
    call_args: tuple

    kind: ClassVar[str] = "call"

    def args(self) -> list[Any]:
        return list(self.call_args)

    def to_dict(self) -> dict:
        return {
            "kind": self.kind,
            "to": self.target,
            "method": self.method,
            "args": [str(a) for a in self.call_args],
            "data": encode_call(self.method, self.args()),
        }


TransferCall = Union[PlainTransfer, MemoTransfer]


@dataclass(frozen=True)
class UnsignedCall:
    """One call ready for the signer."""

    sender: str
    call: Union[PlainTransfer, MemoTransfer, ContractCall]
    fee_token: str
    sponsorship: Optional[SponsorshipTicket] = None

    def to_dict(self) -> dict:
        return {
            "type": "single",
            "from": self.sender,
            "fee_token": self.fee_token,
            "calls": [self.call.to_dict()],
            "sponsorship": self.sponsorship.to_dict() if self.sponsorship else None,
        }


def validate_recipient(to: str) -> str:
    """Return the checksummed recipient or raise InvalidRecipient."""
    candidate = (to or "").strip()
    if not is_address(candidate):
        raise InvalidRecipient(candidate)
    checksummed = to_checksum_address(candidate)
    if checksummed == NULL_ADDRESS:
        raise InvalidRecipient(candidate, "null address")
    return checksummed


def encode_transfer(session: "WalletSession", request: TransferRequest) -> TransferCall:
    """Validate a request against the session's tokens and pick its call shape."""
    recipient = validate_recipient(request.to)
    token = session.find_token(request.token)
    if token is None:
        raise UnknownToken(request.token)
    amount = parse_units(request.amount, token.decimals)
    token_address = to_checksum_address(token.address)
    if request.has_memo:
        return MemoTransfer(
            token=token_address,
            to=recipient,
            amount=amount,
            memo=memo_codec.encode(request.clean_memo),
        )
    return PlainTransfer(token=token_address, to=recipient, amount=amount)


def sponsor_if_enabled(session: "WalletSession", sponsor: Optional[SponsorClient], unsigned):
    if not session.is_sponsored:
        return unsigned
    ticket = negotiate(
        sponsor,
        unsigned.sender,
        unsigned.to_dict(),
        session.config.sponsorship_timeout_seconds,
    )
    return replace(unsigned, sponsorship=ticket)


class TransferBuilder:
    """Builds a single transfer for the session's account."""

    def __init__(self, sponsor: Optional[SponsorClient] = None):
        self.sponsor = sponsor

    def build(self, session: "WalletSession", request: TransferRequest) -> UnsignedCall:
        account = session.require_account()
        call = encode_transfer(session, request)
        unsigned = UnsignedCall(sender=account.address, call=call, fee_token=session.fee_token)
        logger.debug("Built %s transfer of %d to %s", call.kind, call.amount, call.to)
        return sponsor_if_enabled(session, self.sponsor, unsigned)
