"""
Calldata for the TIP-20 and fee manager methods the engine uses.

Every argument here is a static 32-byte word (address, uint, bytes32), so
encoding is plain head concatenation. Dynamic return values (string) are
decoded for token metadata lookups only.
"""

from __future__ import annotations

from typing import Any, Sequence

from eth_utils import function_signature_to_4byte_selector, to_checksum_address


TIP20_METHODS = {
    "name": "name()",
    "symbol": "symbol()",
    "decimals": "decimals()",
    "balanceOf": "balanceOf(address)",
    "transfer": "transfer(address,uint256)",
    "transferWithMemo": "transferWithMemo(address,uint256,bytes32)",
}

FEE_MANAGER_METHODS = {
    "getUserToken": "getUserToken(address)",
    "setUserToken": "setUserToken(address)",
}

SIGNATURES = {**TIP20_METHODS, **FEE_MANAGER_METHODS}

RETURN_TYPES = {
    "name": "string",
    "symbol": "string",
    "decimals": "uint",
    "balanceOf": "uint",
    "getUserToken": "address",
}


def selector(method: str) -> bytes:
    try:
        signature = SIGNATURES[method]
    except KeyError:
        raise ValueError(f"Unknown contract method: {method}") from None
    return function_signature_to_4byte_selector(signature)


def _arg_types(method: str) -> list[str]:
    signature = SIGNATURES[method]
    inner = signature[signature.index("(") + 1:-1]
    return [t for t in inner.split(",") if t]


def _encode_word(arg_type: str, value: Any) -> bytes:
    if arg_type == "address":
        raw = bytes.fromhex(to_checksum_address(value)[2:])
        return raw.rjust(32, b"\x00")
    if arg_type.startswith("uint"):
        number = int(value)
        if number < 0 or number >= 2**256:
            raise ValueError(f"uint256 out of range: {value}")
        return number.to_bytes(32, "big")
    if arg_type == "bytes32":
        raw = bytes.fromhex(value[2:]) if isinstance(value, str) else bytes(value)
        if len(raw) != 32:
            raise ValueError("bytes32 argument must be exactly 32 bytes")
        return raw
    raise ValueError(f"Unsupported ABI type: {arg_type}")


def encode_call(method: str, args: Sequence[Any]) -> str:
    """Return 0x-prefixed calldata for method(args)."""
    types = _arg_types(method)
    if len(types) != len(args):
        raise ValueError(f"{method} expects {len(types)} arguments, got {len(args)}")
    body = b"".join(_encode_word(t, v) for t, v in zip(types, args))
    return "0x" + (selector(method) + body).hex()


def decode_result(method: str, data: str) -> Any:
    """Decode the return value of a view call."""
    raw = bytes.fromhex(data[2:] if data.startswith("0x") else data)
    kind = RETURN_TYPES.get(method)
    if kind is None:
        raise ValueError(f"No return decoder for {method}")
    if len(raw) < 32:
        raise ValueError(f"Short return data for {method}: {len(raw)} bytes")
    if kind == "uint":
        return int.from_bytes(raw[:32], "big")
    if kind == "address":
        return to_checksum_address(raw[12:32])
    offset = int.from_bytes(raw[:32], "big")
    length = int.from_bytes(raw[offset:offset + 32], "big")
    start = offset + 32
    return raw[start:start + length].decode("utf-8")
