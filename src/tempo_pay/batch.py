"""Atomic batch construction: several transfers, one submission, all or nothing."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterator, Optional

from .errors import EmptyBatch
from .sponsorship import SponsorClient, SponsorshipTicket
from .transfer import TransferCall, TransferRequest, encode_transfer, sponsor_if_enabled

if TYPE_CHECKING:
    from .session import WalletSession

logger = logging.getLogger(__name__)


class BatchQueue:
    """Ordered transfers waiting for one atomic submission.

    Entries are only appended; the queue is emptied by ``clear`` after an
    accepted submission or an explicit abort.
    """

    def __init__(self, entries: Optional[list[TransferRequest]] = None):
        self._entries: list[TransferRequest] = list(entries or [])

    def append(self, request: TransferRequest) -> int:
        self._entries.append(request)
        return len(self._entries)

    def clear(self) -> None:
        self._entries = []

    def snapshot(self) -> tuple[TransferRequest, ...]:
        return tuple(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[TransferRequest]:
        return iter(tuple(self._entries))

    def __bool__(self) -> bool:
        return bool(self._entries)


@dataclass(frozen=True)
class UnsignedBundle:
    """Calls to be signed once and executed in order as a single unit."""

    sender: str
    calls: tuple[TransferCall, ...]
    fee_token: str
    sponsorship: Optional[SponsorshipTicket] = None

    def to_dict(self) -> dict:
        return {
            "type": "batch",
            "from": self.sender,
            "fee_token": self.fee_token,
            "calls": [c.to_dict() for c in self.calls],
            "sponsorship": self.sponsorship.to_dict() if self.sponsorship else None,
        }


class BatchBuilder:
    """Encodes a queue into one bundle. Never reorders or clears the queue."""

    def __init__(self, sponsor: Optional[SponsorClient] = None):
        self.sponsor = sponsor

    def build(self, session: "WalletSession", queue: BatchQueue) -> UnsignedBundle:
        entries = queue.snapshot()
        if not entries:
            raise EmptyBatch("Batch queue is empty")
        account = session.require_account()
        calls = tuple(encode_transfer(session, request) for request in entries)
        bundle = UnsignedBundle(sender=account.address, calls=calls, fee_token=session.fee_token)
        logger.debug("Built batch of %d calls for %s", len(calls), account.address)
        return sponsor_if_enabled(session, self.sponsor, bundle)
