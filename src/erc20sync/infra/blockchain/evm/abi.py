"""Minimal ERC-20 ABI helpers: Transfer topic, indexed address topics, decimals/symbol decoding."""

import re

from eth_abi import decode as abi_decode
from eth_abi.exceptions import DecodingError
from eth_utils import is_address as is_valid_address

from erc20sync.exceptions import ValidationError

# keccak256("Transfer(address,address,uint256)")
TRANSFER_TOPIC = "0xddf252ad1be2c89b69c2b068fc378daa952ba7f163c4a11628f55a4df523b3ef"

DECIMALS_SELECTOR = "0x313ce567"
SYMBOL_SELECTOR = "0x95d89b41"

_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")
_WORD = 64  # hex chars per 32-byte word


def is_address(value: str) -> bool:
    """0x-prefixed 20-byte hex; mixed case must carry a valid EIP-55 checksum."""
    if not isinstance(value, str) or not _ADDRESS_RE.match(value):
        return False
    return is_valid_address(value)


def assert_address(value: str, label: str = "address") -> str:
    """Return the lowercased address or raise ValidationError."""
    if not is_address(value):
        raise ValidationError(f"Invalid {label}: {value}", context={label: value})
    return value.lower()


def address_topic(address: str) -> str:
    """Left-pad a 20-byte address into a 32-byte indexed topic."""
    return "0x" + address[2:].lower().rjust(_WORD, "0")


def topic_to_address(topic: str | None) -> str | None:
    if not isinstance(topic, str) or len(topic) != 2 + _WORD:
        return None
    return "0x" + topic[-40:].lower()


def hex_to_int(value) -> int | None:
    """Parse a 0x-quantity (or decimal string/int). Returns None when unparseable."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if not isinstance(value, str) or not value:
        return None
    try:
        if value.startswith(("0x", "0X")):
            return int(value, 16) if len(value) > 2 else 0
        return int(value)
    except ValueError:
        return None


def _strip(data: str) -> str:
    return data[2:] if data.startswith(("0x", "0X")) else data


def _to_bytes(data: str) -> bytes:
    body = _strip(data or "")
    if not body:
        raise ValueError("empty return data")
    return bytes.fromhex(body)


def decode_uint(data: str) -> int:
    try:
        (value,) = abi_decode(["uint256"], _to_bytes(data))
    except DecodingError as e:
        raise ValueError(f"undecodable uint256: {e}") from e
    return value


def decode_string(data: str) -> str:
    """Decode an ABI ``string`` return value, falling back to ``bytes32`` (e.g. MKR)."""
    raw = _to_bytes(data)
    if len(raw) == 32:
        return raw.rstrip(b"\x00").decode("utf-8", errors="replace")

    try:
        (value,) = abi_decode(["string"], raw)
    except DecodingError as e:
        raise ValueError(f"undecodable string: {e}") from e
    return value
