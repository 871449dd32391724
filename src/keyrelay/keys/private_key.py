"""secp256k1 private key material.

Encodings:
- raw: 32-byte big-endian scalar
- hex: "0x" + 64 hex digits (Ethereum)
- checksummed: "PrivateKey-" + base58(scalar || sha256(sha256(scalar))[:4])

The scalar is never rendered by ``repr``/``str`` so keys cannot leak into
logs or tracebacks by accident.
"""

import hmac
import logging
import secrets
from typing import Callable, Optional

from eth_keys import keys
from eth_keys.exceptions import ValidationError

from keyrelay.errors import (
    InvalidDigestLengthError,
    InvalidEncodingError,
    InvalidLengthError,
    InvalidScalarError,
    RandomSourceError,
    SigningError,
)
from keyrelay.keys.base import KeyInfo
from keyrelay.keys.encoding import (
    decode_checksummed,
    decode_hex,
    encode_checksummed,
    encode_hex,
)
from keyrelay.keys.public_key import PublicKey
from keyrelay.keys.signature import SECP256K1_N, Signature, to_recoverable_signature

logger = logging.getLogger(__name__)

KEY_LEN = 32
DIGEST_LEN = 32
CHECKSUMMED_PREFIX = "PrivateKey-"

# Draws are redone when the scalar falls outside [1, n); chance ~2^-128
MAX_GENERATE_ATTEMPTS = 8

RandomSource = Callable[[int], bytes]


class PrivateKey:
    """Immutable secp256k1 private key.

    Usage:
        key = PrivateKey.generate()
        info = key.derive_addresses(network_id=1)
        sig = key.sign_digest(hashlib.sha256(msg).digest())
    """

    __slots__ = ("_raw", "_key")

    def __init__(self, raw: bytes):
        """Use ``from_bytes`` / ``from_hex`` / ``from_checksummed`` instead."""
        self._raw = raw
        self._key = keys.PrivateKey(raw)

    @classmethod
    def generate(cls, rng: Optional[RandomSource] = None) -> "PrivateKey":
        """Generate a key from a cryptographically secure random source.

        Args:
            rng: Callable returning ``n`` random bytes. Defaults to
                ``secrets.token_bytes``; pass your own for tests.

        Raises:
            RandomSourceError: If the random source fails
        """
        rng = rng or secrets.token_bytes

        for _ in range(MAX_GENERATE_ATTEMPTS):
            try:
                raw = rng(KEY_LEN)
            except OSError as e:
                raise RandomSourceError(f"random source failed: {e}") from e

            if len(raw) != KEY_LEN:
                raise RandomSourceError(f"random source returned {len(raw)} bytes, expected {KEY_LEN}")

            if 0 < int.from_bytes(raw, "big") < SECP256K1_N:
                return cls(raw)

        raise RandomSourceError("random source kept producing invalid scalars")

    @classmethod
    def from_bytes(cls, raw: bytes) -> "PrivateKey":
        """Load from the raw 32-byte scalar.

        Raises:
            InvalidLengthError: If ``raw`` is not 32 bytes
            InvalidScalarError: If the scalar is zero or >= curve order
        """
        if len(raw) != KEY_LEN:
            raise InvalidLengthError("private key", KEY_LEN, len(raw))

        if not 0 < int.from_bytes(raw, "big") < SECP256K1_N:
            raise InvalidScalarError("private key scalar must be in [1, n)")

        try:
            return cls(bytes(raw))
        except ValidationError as e:
            raise InvalidScalarError(f"invalid private key: {e}") from e

    @classmethod
    def from_hex(cls, value: str) -> "PrivateKey":
        """Load from a hex string, with or without the "0x" prefix."""
        return cls.from_bytes(decode_hex(value))

    @classmethod
    def from_checksummed(cls, value: str) -> "PrivateKey":
        """Load from a checksummed base-58 string, with or without "PrivateKey-".

        Raises:
            InvalidEncodingError: If base-58 is malformed
            ChecksumMismatchError: If the checksum does not verify
        """
        return cls.from_bytes(decode_checksummed(value.removeprefix(CHECKSUMMED_PREFIX)))

    @classmethod
    def from_string(cls, value: str) -> "PrivateKey":
        """Load from either the checksummed or the hex encoding."""
        value = value.strip()
        if value.startswith(CHECKSUMMED_PREFIX):
            return cls.from_checksummed(value)
        return cls.from_hex(value)

    def to_bytes(self) -> bytes:
        return self._raw

    def to_hex(self) -> str:
        return encode_hex(self._raw)

    def to_checksummed(self) -> str:
        return CHECKSUMMED_PREFIX + encode_checksummed(self._raw)

    def derive_public_key(self) -> PublicKey:
        return PublicKey(self._key.public_key)

    def derive_addresses(self, network_id: int) -> KeyInfo:
        """Derive short, X/P/C chain and Ethereum addresses for a network."""
        return self.derive_public_key().to_info(network_id)

    def eth_address(self) -> str:
        return self._key.public_key.to_checksum_address()

    def sign_digest(self, digest: bytes) -> Signature:
        """Sign a 32-byte digest (already hashed, e.g. SHA-256 or keccak256).

        Returns:
            Low-S signature with ``v`` set to the raw recovery id

        Raises:
            InvalidDigestLengthError: If ``digest`` is not 32 bytes
            SigningError: If the curve operation fails
        """
        if len(digest) != DIGEST_LEN:
            raise InvalidDigestLengthError(len(digest))

        try:
            native = self._key.sign_msg_hash(digest)
        except ValidationError as e:
            raise SigningError(f"failed to sign digest: {e}") from e

        return to_recoverable_signature(native)

    def __eq__(self, other) -> bool:
        if not isinstance(other, PrivateKey):
            return NotImplemented
        return hmac.compare_digest(self._raw, other._raw)

    def __hash__(self) -> int:
        return hash(self.derive_public_key())

    def __repr__(self) -> str:
        return f"PrivateKey(address={self.eth_address()})"

    __str__ = __repr__

    def __reduce__(self):
        raise TypeError("PrivateKey cannot be pickled; use to_checksummed() explicitly")
