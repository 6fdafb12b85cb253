"""
Ledger RPC collaborator.

LedgerClient is the read/submit/receipt surface the engine depends on.
JsonRpcClient implements it over JSON-RPC 2.0 with httpx.
"""

from __future__ import annotations

import itertools
import logging
import time
from concurrent.futures import Executor, Future
from concurrent.futures import TimeoutError as FuturesTimeout
from dataclasses import dataclass
from functools import partial
from typing import Any, Callable, Optional, Protocol, Sequence

import httpx

from .abi import decode_result, encode_call
from .config import EngineConfig
from .errors import RpcError, SubmissionRejected, SubmissionTimeout
from .signer import SignedCall

logger = logging.getLogger(__name__)

DEFAULT_SUBMIT_METHOD = "tempo_sendSignedCall"


@dataclass(frozen=True)
class Receipt:
    tx_hash: str
    status: bool
    block_number: Optional[int] = None


@dataclass(frozen=True)
class NetworkInfo:
    block_number: int
    chain_id: int
    connected: bool


class LedgerClient(Protocol):
    def call(self, contract: str, method: str, args: Sequence[Any]) -> Any: ...

    def submit(self, signed: SignedCall, timeout: Optional[float] = None) -> str: ...

    def await_receipt(self, tx_hash: str, timeout: Optional[float] = None) -> Receipt: ...

    def network_info(self) -> NetworkInfo: ...


class JsonRpcClient:
    """JSON-RPC client for a Tempo node.

    Reads go through eth_call; receipts are polled with
    eth_getTransactionReceipt. The method that accepts signed envelopes is
    deployment specific and set with ``submit_method``.
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        submit_method: str = DEFAULT_SUBMIT_METHOD,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.config = config or EngineConfig()
        self.submit_method = submit_method
        self._ids = itertools.count(1)
        self._http = httpx.Client(
            timeout=self.config.rpc_timeout_seconds,
            transport=transport,
        )

    @property
    def url(self) -> str:
        return self.config.network.rpc_url

    def _request(self, method: str, params: list, timeout: Optional[float] = None) -> Any:
        body = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params}
        kwargs = {} if timeout is None else {"timeout": timeout}
        try:
            response = self._http.post(self.url, json=body, **kwargs)
            response.raise_for_status()
            payload = response.json()
        except httpx.TimeoutException:
            raise
        except httpx.HTTPError as e:
            raise RpcError(f"{method} transport error: {e}") from e
        except ValueError as e:
            raise RpcError(f"{method} returned invalid JSON") from e

        error = payload.get("error")
        if error:
            raise RpcError(
                f"{method} failed: {error.get('message', error)}",
                code=error.get("code"),
            )
        return payload.get("result")

    def call(self, contract: str, method: str, args: Sequence[Any]) -> Any:
        data = encode_call(method, args)
        try:
            result = self._request("eth_call", [{"to": contract, "data": data}, "latest"])
        except httpx.TimeoutException as e:
            raise RpcError(f"eth_call {method} timed out") from e
        if not result or result == "0x":
            raise RpcError(f"eth_call {method} on {contract} returned no data")
        return decode_result(method, result)

    def submit(self, signed: SignedCall, timeout: Optional[float] = None) -> str:
        effective = timeout if timeout is not None else self.config.submit_timeout_seconds
        try:
            tx_hash = self._request(self.submit_method, [signed.to_dict()], timeout=effective)
        except httpx.TimeoutException:
            raise SubmissionTimeout(effective) from None
        except RpcError as e:
            raise SubmissionRejected(str(e)) from e
        if not isinstance(tx_hash, str) or not tx_hash:
            raise SubmissionRejected("node returned no transaction hash")
        logger.info("Submitted %s from %s", tx_hash, signed.signer)
        return tx_hash

    def await_receipt(self, tx_hash: str, timeout: Optional[float] = None) -> Receipt:
        """Poll until a receipt exists. Raises TimeoutError past the deadline."""
        effective = timeout if timeout is not None else self.config.receipt_timeout_seconds
        deadline = time.monotonic() + effective
        while True:
            try:
                raw = self._request("eth_getTransactionReceipt", [tx_hash])
            except httpx.TimeoutException:
                raw = None
            if raw:
                block = raw.get("blockNumber")
                return Receipt(
                    tx_hash=tx_hash,
                    status=int(raw.get("status", "0x0"), 16) == 1,
                    block_number=int(block, 16) if block else None,
                )
            if time.monotonic() >= deadline:
                raise TimeoutError(f"No receipt for {tx_hash} after {effective:.1f}s")
            time.sleep(self.config.receipt_poll_interval)

    def network_info(self) -> NetworkInfo:
        """Latest block and chain id. A node that can't answer reads as disconnected."""
        try:
            block = self._request("eth_blockNumber", [])
            chain_id = self._request("eth_chainId", [])
            return NetworkInfo(block_number=int(block, 16), chain_id=int(chain_id, 16), connected=True)
        except (httpx.TimeoutException, RpcError, TypeError, ValueError) as e:
            logger.warning("Node at %s unreachable: %s", self.url, e)
            return NetworkInfo(block_number=0, chain_id=self.config.network.chain_id, connected=False)

    def close(self):
        self._http.close()

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()


def submit_within(
    pool: Executor,
    client: LedgerClient,
    signed: SignedCall,
    timeout: float,
    on_late: Optional[Callable[[str], None]] = None,
) -> str:
    """Submit on ``pool`` and stop waiting after ``timeout`` seconds.

    Raises SubmissionTimeout when the deadline passes. If the node still
    accepts the call afterwards, ``on_late`` receives the hash so the caller
    can record it.
    """
    future = pool.submit(client.submit, signed, timeout)
    try:
        return future.result(timeout=timeout)
    except FuturesTimeout:
        if not future.cancel():
            future.add_done_callback(partial(_finish_late, on_late))
        raise SubmissionTimeout(timeout) from None


def _finish_late(on_late: Optional[Callable[[str], None]], future: Future) -> None:
    if future.cancelled():
        return
    error = future.exception()
    if error is not None:
        logger.info("Timed-out submission ended with %s", error)
        return
    tx_hash = future.result()
    logger.warning("Submission %s was accepted after the caller timed out", tx_hash)
    if on_late is not None:
        on_late(tx_hash)
