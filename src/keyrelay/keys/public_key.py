"""secp256k1 public keys and the addresses derived from them.

Address formats:
- Short id: RIPEMD160(SHA256(compressed public key)), 20 bytes
- HRP address: "{chain}-" + bech32(hrp(network_id), short id), e.g. "X-avax1..."
- Ethereum: last 20 bytes of keccak256(uncompressed key without 0x04 prefix)
"""

from eth_keys import keys
from eth_keys.exceptions import BadSignature, ValidationError

from keyrelay.errors import InvalidEncodingError, InvalidLengthError
from keyrelay.keys.base import ChainAddresses, KeyInfo
from keyrelay.keys.encoding import bech32_encode, encode_checksummed, get_hrp, hash160

COMPRESSED_LEN = 33
UNCOMPRESSED_LEN = 65
CHAIN_ALIASES = ("X", "P", "C")


class PublicKey:
    """Immutable secp256k1 public key."""

    __slots__ = ("_key",)

    def __init__(self, key: keys.PublicKey):
        self._key = key

    @classmethod
    def from_bytes(cls, raw: bytes) -> "PublicKey":
        """Load from 33-byte compressed or 65-byte uncompressed SEC1 bytes.

        Raises:
            InvalidLengthError: If the length is neither 33 nor 65
            InvalidEncodingError: If the bytes are not a point on the curve
        """
        try:
            if len(raw) == COMPRESSED_LEN:
                return cls(keys.PublicKey.from_compressed_bytes(raw))
            if len(raw) == UNCOMPRESSED_LEN:
                if raw[0] != 0x04:
                    raise InvalidEncodingError("uncompressed public key must start with 0x04")
                return cls(keys.PublicKey(raw[1:]))
        except ValidationError as e:
            raise InvalidEncodingError(f"invalid public key: {e}") from e
        raise InvalidLengthError("public key", UNCOMPRESSED_LEN, len(raw))

    @property
    def native(self) -> keys.PublicKey:
        """The underlying ``eth_keys`` public key."""
        return self._key

    def to_compressed_bytes(self) -> bytes:
        return self._key.to_compressed_bytes()

    def to_uncompressed_bytes(self) -> bytes:
        return b"\x04" + self._key.to_bytes()

    def to_short_id(self) -> bytes:
        return hash160(self.to_compressed_bytes())

    def to_short_address(self) -> str:
        return encode_checksummed(self.to_short_id())

    def hrp_address(self, network_id: int, chain_alias: str) -> str:
        """Bech32 address on ``chain_alias`` ("X", "P" or "C") of a network."""
        return f"{chain_alias}-{bech32_encode(get_hrp(network_id), self.to_short_id())}"

    def eth_address(self) -> str:
        return self._key.to_checksum_address()

    def eth_address_bytes(self) -> bytes:
        return self._key.to_canonical_address()

    def to_info(self, network_id: int) -> KeyInfo:
        """Derive short, X/P/C and Ethereum addresses for a network."""
        x_address, p_address, c_address = (
            self.hrp_address(network_id, alias) for alias in CHAIN_ALIASES
        )
        return KeyInfo(
            short_address=self.to_short_address(),
            eth_address=self.eth_address(),
            addresses={network_id: ChainAddresses(x_address, p_address, c_address)},
        )

    def verify(self, digest: bytes, signature) -> bool:
        """Check an ECDSA signature (anything with ``r``/``s``) over ``digest``."""
        try:
            native = keys.Signature(vrs=(0, signature.r, signature.s))
            return self._key.verify_msg_hash(digest, native)
        except (BadSignature, ValidationError):
            return False

    def __eq__(self, other) -> bool:
        if not isinstance(other, PublicKey):
            return NotImplemented
        return self._key.to_bytes() == other._key.to_bytes()

    def __hash__(self) -> int:
        return hash(self._key.to_bytes())

    def __repr__(self) -> str:
        return f"PublicKey({self.to_compressed_bytes().hex()})"
