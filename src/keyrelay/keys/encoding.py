"""Text encodings for keys and addresses.

- Hex with ``0x`` prefix (Ethereum style)
- Checksummed base-58: base58(payload || sha256(sha256(payload))[:4])
- Bech32 with network HRP (Avalanche X/P/C chain addresses)
"""

import hashlib

import base58
from bip_utils import Bech32Decoder, Bech32Encoder, Hash160

from keyrelay.errors import ChecksumMismatchError, InvalidEncodingError

HEX_PREFIX = "0x"
CHECKSUM_LEN = 4

# Avalanche network id -> bech32 human-readable part
NETWORK_HRPS = {
    1: "avax",       # Mainnet
    2: "cascade",
    3: "denali",
    4: "everest",
    5: "fuji",       # Testnet
    10: "testing",   # Unit tests
    12345: "local",
}
FALLBACK_HRP = "custom"


def get_hrp(network_id: int) -> str:
    """Get the bech32 HRP for a network id (``custom`` when unknown)."""
    return NETWORK_HRPS.get(network_id, FALLBACK_HRP)


def strip_hex_prefix(value: str) -> str:
    return value[len(HEX_PREFIX):] if value.startswith(HEX_PREFIX) else value


def encode_hex(data: bytes) -> str:
    return HEX_PREFIX + data.hex()


def decode_hex(value: str) -> bytes:
    """Decode hex with or without ``0x`` prefix.

    Raises:
        InvalidEncodingError: On non-hex characters or odd length
    """
    try:
        return bytes.fromhex(strip_hex_prefix(value))
    except ValueError as e:
        raise InvalidEncodingError(f"invalid hex string: {e}") from e


def checksum(payload: bytes) -> bytes:
    """First 4 bytes of double SHA-256."""
    return hashlib.sha256(hashlib.sha256(payload).digest()).digest()[:CHECKSUM_LEN]


def encode_checksummed(payload: bytes) -> str:
    """Base-58 encode ``payload`` with a 4-byte checksum appended."""
    return base58.b58encode(payload + checksum(payload)).decode()


def decode_checksummed(value: str) -> bytes:
    """Decode a checksummed base-58 string and verify its checksum.

    Raises:
        InvalidEncodingError: If the string is not base-58 or too short
        ChecksumMismatchError: If the checksum does not verify
    """
    try:
        raw = base58.b58decode(value)
    except ValueError as e:
        raise InvalidEncodingError(f"invalid base58 string: {e}") from e

    if len(raw) < CHECKSUM_LEN:
        raise InvalidEncodingError("base58 payload shorter than checksum")

    payload, check = raw[:-CHECKSUM_LEN], raw[-CHECKSUM_LEN:]
    if checksum(payload) != check:
        raise ChecksumMismatchError("checksum mismatch in checksummed encoding")
    return payload


def hash160(data: bytes) -> bytes:
    """RIPEMD160(SHA256(data))."""
    return Hash160.QuickDigest(data)


def bech32_encode(hrp: str, data: bytes) -> str:
    return Bech32Encoder.Encode(hrp, data)


def bech32_decode(hrp: str, address: str) -> bytes:
    """Decode a bech32 address, checking its HRP.

    Raises:
        InvalidEncodingError: If the address does not decode under ``hrp``
    """
    try:
        return Bech32Decoder.Decode(hrp, address)
    except ValueError as e:
        raise InvalidEncodingError(f"invalid bech32 address {address!r}: {e}") from e
