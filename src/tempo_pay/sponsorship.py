"""
Fee sponsorship handshake.

When sponsorship is enabled, the builders send the unsigned payload to a
sponsor and wait for a ticket before handing the call to the signer:

    POST {sponsor_url}/sponsor  {"sender": ..., "payload": {...}}
    200 {"approved": true, "sponsor": "0x..", "reference": "..", "expires_at": 1700000000}

Anything other than an approved ticket within the timeout is
SponsorshipUnavailable.
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeout
from dataclasses import asdict, dataclass
from typing import Optional, Protocol

import httpx

from .config import EngineConfig
from .errors import SponsorshipUnavailable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SponsorshipTicket:
    sponsor: str
    reference: str
    expires_at: int
    approved: bool = True
    signature: Optional[str] = None

    @property
    def is_expired(self) -> bool:
        return self.expires_at != 0 and time.time() > self.expires_at

    def to_dict(self) -> dict:
        return asdict(self)


class SponsorClient(Protocol):
    def request(self, sender: str, payload: dict, timeout: float) -> SponsorshipTicket: ...


class HttpSponsorClient:
    """Sponsor service client over HTTPS."""

    def __init__(self, config: Optional[EngineConfig] = None, transport: Optional[httpx.BaseTransport] = None):
        self.config = config or EngineConfig()
        self._http = httpx.Client(
            timeout=self.config.sponsorship_timeout_seconds,
            transport=transport,
        )

    def request(self, sender: str, payload: dict, timeout: float) -> SponsorshipTicket:
        url = f"{self.config.network.sponsor_url.rstrip('/')}/sponsor"
        try:
            response = self._http.post(url, json={"sender": sender, "payload": payload}, timeout=timeout)
        except httpx.TimeoutException:
            raise SponsorshipUnavailable(f"Sponsor timed out after {timeout:.1f}s") from None
        except httpx.HTTPError as e:
            raise SponsorshipUnavailable(f"Sponsor unreachable: {e}") from e

        if response.status_code != 200:
            raise SponsorshipUnavailable(
                f"Sponsor rejected request ({response.status_code}): {response.text[:200]}"
            )
        try:
            body = response.json()
            return SponsorshipTicket(
                sponsor=body["sponsor"],
                reference=str(body["reference"]),
                expires_at=int(body.get("expires_at", 0)),
                approved=bool(body.get("approved", False)),
                signature=body.get("signature"),
            )
        except (ValueError, KeyError, TypeError) as e:
            raise SponsorshipUnavailable(f"Malformed sponsor response: {e}") from e

    def close(self):
        self._http.close()

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()


def negotiate(
    sponsor: Optional[SponsorClient],
    sender: str,
    payload: dict,
    timeout: float,
) -> SponsorshipTicket:
    """Block until the sponsor approves the payload, or raise SponsorshipUnavailable."""
    if sponsor is None:
        raise SponsorshipUnavailable("Sponsorship is enabled but no sponsor is configured")

    pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix="tempo-sponsor")
    future = pool.submit(sponsor.request, sender, payload, timeout)
    try:
        ticket = future.result(timeout=timeout)
    except FuturesTimeout:
        future.cancel()
        raise SponsorshipUnavailable(f"Sponsor did not answer within {timeout:.1f}s") from None
    except SponsorshipUnavailable:
        raise
    except Exception as e:
        raise SponsorshipUnavailable(f"Sponsor request failed: {type(e).__name__}: {e}") from e
    finally:
        pool.shutdown(wait=False)

    if not ticket.approved:
        raise SponsorshipUnavailable(f"Sponsor declined payload for {sender}")
    if ticket.is_expired:
        raise SponsorshipUnavailable(f"Sponsor ticket {ticket.reference} already expired")
    logger.info("Sponsorship granted by %s (ref %s)", ticket.sponsor, ticket.reference)
    return ticket
