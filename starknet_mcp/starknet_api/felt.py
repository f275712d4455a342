"""Cairo value encoding helpers on top of starknet-py's serializers."""

from __future__ import annotations

import re
from typing import Iterable, List, Sequence, Tuple

from starknet_py.cairo.felt import encode_shortstring
from starknet_py.constants import FIELD_PRIME
from starknet_py.serialization.data_serializers.byte_array_serializer import ByteArraySerializer
from starknet_py.serialization.data_serializers.uint256_serializer import Uint256Serializer
from starknet_py.serialization.errors import CairoSerializerException

from starknet_mcp.errors import InvalidArgumentsError

FELT_MAX = FIELD_PRIME

HEX_REGEX = re.compile(r"^0x[0-9a-fA-F]+$")
DECIMAL_REGEX = re.compile(r"^[0-9]+$")

_u256 = Uint256Serializer()
_byte_array = ByteArraySerializer()


def to_int(value: str | int) -> int:
    if isinstance(value, bool):
        raise InvalidArgumentsError(f"Invalid felt value: {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if HEX_REGEX.fullmatch(stripped):
            return int(stripped, 16)
        if DECIMAL_REGEX.fullmatch(stripped):
            return int(stripped)
    raise InvalidArgumentsError(f"Invalid felt value: {value!r}")


def encode_short_string(text: str) -> int:
    try:
        return encode_shortstring(text)
    except ValueError as exc:
        raise InvalidArgumentsError(f"Invalid short string {text!r}: {exc}") from exc


def normalize_calldata(values: Iterable[str | int]) -> List[str]:
    """
    Normalize caller calldata to hex felts.

    Hex and decimal strings are numbers; any other string is encoded as a Cairo
    short string.
    """
    normalized: List[str] = []
    for value in values:
        if isinstance(value, str) and not (
            HEX_REGEX.fullmatch(value.strip()) or DECIMAL_REGEX.fullmatch(value.strip())
        ):
            number = encode_short_string(value)
        else:
            number = to_int(value)
        if number < 0 or number >= FELT_MAX:
            raise InvalidArgumentsError(f"Calldata value out of felt range: {value!r}")
        normalized.append(hex(number))
    return normalized


def split_u256(value: int) -> List[str]:
    try:
        words = _u256.serialize(value)
    except (CairoSerializerException, ValueError, TypeError) as exc:
        raise InvalidArgumentsError(f"Value does not fit in u256: {value}") from exc
    return [hex(word) for word in words]


def join_u256(words: Sequence[str | int]) -> int:
    """Combine [low, high]; a single felt is returned as-is."""
    if not words:
        raise InvalidArgumentsError("Empty u256 result.")
    if len(words) == 1:
        return to_int(words[0])
    try:
        return _u256.deserialize([to_int(word) for word in words[:2]])
    except (CairoSerializerException, ValueError) as exc:
        raise InvalidArgumentsError(f"Malformed u256 result: {list(words[:2])}") from exc


def encode_byte_array(text: str) -> List[str]:
    return [hex(word) for word in _byte_array.serialize(text)]


def decode_byte_array(felts: Sequence[str | int], offset: int = 0) -> Tuple[str, int]:
    """Decode a serialized ByteArray; returns the text and the index just past it."""
    if offset >= len(felts):
        raise InvalidArgumentsError("Truncated ByteArray result.")
    end = offset + 3 + to_int(felts[offset])
    if end > len(felts):
        raise InvalidArgumentsError("Truncated ByteArray result.")
    try:
        text = _byte_array.deserialize([to_int(word) for word in felts[offset:end]])
    except (CairoSerializerException, ValueError) as exc:
        raise InvalidArgumentsError(f"Malformed ByteArray result: {exc}") from exc
    return text, end
