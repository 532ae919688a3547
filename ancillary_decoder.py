#!/usr/bin/env python3
"""
Ancillary Data Decoder

Recovers the original ancillary-data bytes from raw event log data on a
child chain. The mainnet voting contract only stores keccak256 of those
bytes, so every candidate is checked against the target hash and only a
verified match is ever returned.

Known event layouts are tried first, in a fixed priority order:

1. (bytes32, uint256, bytes)                              PriceRequestAdded
2. (uint256, bytes)                                       generic fallback
3. (bytes32, uint256, bytes, address, uint256, uint256)   RequestPrice
4. (bytes32, uint256, bytes, int256)                      DisputePrice

If none of them fire, brute_force_scan() looks for any ABI tail region
(offset word -> length word -> bytes) in the log body whose slice hashes
to the target.
"""

from typing import Callable, Optional, Sequence, Tuple, Union

from eth_abi import decode
from web3 import Web3

from uma_utils import BRUTE_FORCE_MAX_OFFSET, BRUTE_FORCE_MAX_LENGTH, logger

WORD_SIZE = 32

BytesLike = Union[bytes, bytearray, str]


def to_bytes(value: BytesLike) -> bytes:
    """
    Normalize log data to raw bytes.

    Accepts bytes (including HexBytes) or a hex string with or without 0x.
    Raises ValueError for a string that is not valid hex.
    """
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    text = value[2:] if value[:2] in ('0x', '0X') else value
    return bytes.fromhex(text)


def normalize_hash(target_hash: str) -> str:
    """Lowercase hex digest without a 0x prefix"""
    target = target_hash.strip().lower()
    return target[2:] if target.startswith('0x') else target


def hash_matches(candidate: BytesLike, target_hash: str) -> bool:
    """
    Check whether keccak256(candidate) equals target_hash.

    The comparison is case-insensitive on the hex digest and tolerates an
    optional 0x prefix on the target. Never raises: anything that cannot be
    hashed simply doesn't match.
    """
    try:
        digest = bytes(Web3.keccak(primitive=to_bytes(candidate))).hex()
        return digest == normalize_hash(target_hash)
    except (TypeError, ValueError, AttributeError):
        return False


def _decode_bytes_field(types: Sequence[str], index: int,
                        data: bytes, target_hash: str) -> Optional[bytes]:
    """Decode data as an ABI tuple and return field `index` if it verifies"""
    try:
        values = decode(list(types), data)
    except Exception as e:
        # eth_abi raises a family of decoding errors (and occasionally
        # ValueError/OverflowError) for data that doesn't fit the layout
        logger.debug(f"Layout {tuple(types)} did not decode: {e}")
        return None

    candidate = values[index]
    if hash_matches(candidate, target_hash):
        return bytes(candidate)
    return None


def decode_identifier_timed_bytes(data: bytes, target_hash: str) -> Optional[bytes]:
    """PriceRequestAdded: (bytes32 identifier, uint256 time, bytes ancillaryData)"""
    return _decode_bytes_field(('bytes32', 'uint256', 'bytes'), 2, data, target_hash)


def decode_timed_bytes(data: bytes, target_hash: str) -> Optional[bytes]:
    """Generic (uint256 time, bytes ancillaryData)"""
    return _decode_bytes_field(('uint256', 'bytes'), 1, data, target_hash)


def decode_request_price(data: bytes, target_hash: str) -> Optional[bytes]:
    """RequestPrice: (bytes32, uint256, bytes, address requester, uint256 reward, uint256 bond)"""
    return _decode_bytes_field(
        ('bytes32', 'uint256', 'bytes', 'address', 'uint256', 'uint256'), 2, data, target_hash
    )


def decode_dispute_price(data: bytes, target_hash: str) -> Optional[bytes]:
    """DisputePrice: (bytes32, uint256, bytes, int256 proposedPrice)"""
    return _decode_bytes_field(('bytes32', 'uint256', 'bytes', 'int256'), 2, data, target_hash)


# Order matters: more specific layouts first
LAYOUT_DECODERS: Tuple[Callable[[bytes, str], Optional[bytes]], ...] = (
    decode_identifier_timed_bytes,
    decode_timed_bytes,
    decode_request_price,
    decode_dispute_price,
)


def _read_word_u32(data: bytes, pos: int) -> int:
    """Big-endian read of the last 4 bytes of the 32-byte word at pos"""
    return int.from_bytes(data[pos + 28:pos + WORD_SIZE], 'big')


def brute_force_scan(data: BytesLike, target_hash: str,
                     max_offset: Optional[int] = None,
                     max_length: Optional[int] = None) -> Optional[bytes]:
    """
    Scan every 32-byte-aligned word for an offset/length pair delimiting
    bytes that hash to target_hash.

    Args:
        data: Raw log data
        target_hash: Expected keccak256 of the ancillary data (hex)
        max_offset: Largest offset considered (defaults to BRUTE_FORCE_MAX_OFFSET)
        max_length: Largest length considered (defaults to BRUTE_FORCE_MAX_LENGTH)

    Returns:
        The first slice whose hash matches, or None
    """
    if max_offset is None:
        max_offset = BRUTE_FORCE_MAX_OFFSET
    if max_length is None:
        max_length = BRUTE_FORCE_MAX_LENGTH

    try:
        buf = to_bytes(data)
    except (TypeError, ValueError):
        return None

    size = len(buf)
    if size < 2 * WORD_SIZE:
        return None

    for i in range(0, size - WORD_SIZE + 1, WORD_SIZE):
        offset = _read_word_u32(buf, i)
        if (offset == 0 or offset % WORD_SIZE != 0 or offset > max_offset
                or offset + WORD_SIZE > size):
            continue

        length = _read_word_u32(buf, offset)
        if length == 0 or length > max_length or offset + WORD_SIZE + length > size:
            continue

        candidate = buf[offset + WORD_SIZE:offset + WORD_SIZE + length]
        if hash_matches(candidate, target_hash):
            logger.debug(f"Brute-force match at word {i // WORD_SIZE} (offset {offset}, length {length})")
            return candidate

    return None


def find_ancillary_bytes(data: BytesLike, target_hash: str) -> Optional[bytes]:
    """
    Try every known layout in order, then the brute-force scan.

    Returns:
        Verified ancillary-data bytes, or None if nothing in this log matches
    """
    try:
        buf = to_bytes(data)
    except (TypeError, ValueError):
        return None
    if not buf:
        return None

    for decoder in LAYOUT_DECODERS:
        matched = decoder(buf, target_hash)
        if matched is not None:
            logger.debug(f"Matched ancillary data with {decoder.__name__}")
            return matched

    return brute_force_scan(buf, target_hash)
