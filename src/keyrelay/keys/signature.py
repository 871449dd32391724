"""Recoverable secp256k1 signatures and their Ethereum conventions.

A signature is 65 bytes: r (32) || s (32) || v (1). Three conventions for
``v`` are in use and must not be mixed:

- raw:      v = recovery id (0..3); output of ``sign_digest``
- ethereum: v = 27 + recovery id; EIP-191 messages and EIP-712 typed data
- eip155:   v = recovery id + chain_id * 2 + 35; legacy transactions

``s`` is always kept in the lower half of the curve order (low-S).
"""

from dataclasses import dataclass
from typing import Optional

from eth_keys import keys
from eth_keys.exceptions import BadSignature, ValidationError

from keyrelay.errors import InvalidLengthError, SigningError
from keyrelay.keys.public_key import PublicKey

SIGNATURE_LEN = 65

# secp256k1 group order
SECP256K1_N = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141
SECP256K1_HALF_N = SECP256K1_N // 2

ETH_V_OFFSET = 27
EIP155_V_OFFSET = 35


@dataclass(frozen=True)
class Signature:
    """65-byte recoverable ECDSA signature."""

    r: int
    s: int
    v: int

    @classmethod
    def from_bytes(cls, raw: bytes) -> "Signature":
        """Parse r || s || v.

        Raises:
            InvalidLengthError: If ``raw`` is not 65 bytes
        """
        if len(raw) != SIGNATURE_LEN:
            raise InvalidLengthError("signature", SIGNATURE_LEN, len(raw))
        return cls(
            r=int.from_bytes(raw[:32], "big"),
            s=int.from_bytes(raw[32:64], "big"),
            v=raw[64],
        )

    def to_bytes(self) -> bytes:
        """Serialize as r || s || v.

        ``v`` must fit a byte; EIP-155 signatures for large chain ids do not
        and are only usable through ``vrs``.
        """
        if self.v > 0xFF:
            raise SigningError(f"v={self.v} does not fit the 65-byte signature layout")
        return self.r.to_bytes(32, "big") + self.s.to_bytes(32, "big") + bytes([self.v])

    def to_hex(self) -> str:
        return "0x" + self.to_bytes().hex()

    @property
    def vrs(self) -> tuple[int, int, int]:
        return self.v, self.r, self.s

    @property
    def is_folded(self) -> bool:
        """True when ``v`` carries an EIP-155 chain id."""
        return self.v >= EIP155_V_OFFSET

    @property
    def recovery_id(self) -> int:
        """Recovery id regardless of the ``v`` convention in use."""
        if self.is_folded:
            return (self.v - EIP155_V_OFFSET) % 2
        if self.v >= ETH_V_OFFSET:
            return self.v - ETH_V_OFFSET
        return self.v

    @property
    def chain_id(self) -> Optional[int]:
        """Chain id folded into ``v``, or None if not folded."""
        if not self.is_folded:
            return None
        return (self.v - EIP155_V_OFFSET) // 2

    @property
    def is_low_s(self) -> bool:
        return self.s <= SECP256K1_HALF_N


def canonicalize(r: int, s: int, recovery_id: int) -> tuple[int, int, int]:
    """Move ``s`` into the lower half of the order, flipping the y-parity."""
    if s > SECP256K1_HALF_N:
        return r, SECP256K1_N - s, recovery_id ^ 1
    return r, s, recovery_id


def to_recoverable_signature(native: keys.Signature) -> Signature:
    """Convert an ``eth_keys`` signature (v in {0, 1}) to the raw layout."""
    r, s, recovery_id = canonicalize(native.r, native.s, native.v)
    return Signature(r=r, s=s, v=recovery_id)


def to_eth_signature(sig: Signature) -> Signature:
    """Raw recovery id -> Ethereum ``v = 27 + id``."""
    if sig.v >= ETH_V_OFFSET:
        return sig
    return Signature(r=sig.r, s=sig.s, v=sig.v + ETH_V_OFFSET)


def apply_eip155(sig: Signature, chain_id: int) -> Signature:
    """Fold ``chain_id`` into ``v``: v = recovery_id + chain_id * 2 + 35.

    Only for legacy transaction signatures. Typed-data signatures consumed by
    a forwarder contract must stay in the Ethereum convention.

    Raises:
        SigningError: If the signature is already folded
    """
    if sig.is_folded:
        raise SigningError(f"signature already carries chain id {sig.chain_id}")
    return Signature(r=sig.r, s=sig.s, v=sig.recovery_id + chain_id * 2 + EIP155_V_OFFSET)


def recover_public_key(sig: Signature, digest: bytes) -> PublicKey:
    """Recover the signer's public key from a signature over ``digest``.

    Raises:
        SigningError: If no public key can be recovered
    """
    try:
        native = keys.Signature(vrs=(sig.recovery_id, sig.r, sig.s))
        return PublicKey(native.recover_public_key_from_msg_hash(digest))
    except (BadSignature, ValidationError) as e:
        raise SigningError(f"public key recovery failed: {e}") from e
