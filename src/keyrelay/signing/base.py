"""Base interface for signing backends.

Every backend implements one primitive, signing a 32-byte digest. The
Ethereum entry points are built on it here so all backends share the exact
same ``v`` conventions:

1. sign_digest       -> raw recovery id (0..3)
2. sign_message      -> EIP-191 hash, v = 27 + id
3. sign_typed_data   -> EIP-712 hash, v = 27 + id (never chain-folded)
4. sign_transaction  -> tx signing hash, v = id + chain_id * 2 + 35
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping
from enum import Enum
from typing import Any, Protocol, Union, runtime_checkable

from eth_account.messages import SignableMessage, encode_defunct, encode_typed_data
from eth_utils import keccak

from keyrelay.errors import EncodingError, InvalidDigestLengthError
from keyrelay.keys.signature import Signature, apply_eip155, to_eth_signature
from keyrelay.signing.transactions import (
    DynamicFeeTransaction,
    LegacyTransaction,
    SignedTransaction,
)

logger = logging.getLogger(__name__)

DIGEST_LEN = 32

Transaction = Union[LegacyTransaction, DynamicFeeTransaction]


class SignerType(str, Enum):
    """Type of signing backend."""
    LOCAL = "local"   # Private key in memory
    KMS = "kms"       # AWS KMS


@runtime_checkable
class TypedData(Protocol):
    """Anything that can produce its own EIP-712 digest."""

    def eip712_digest(self) -> bytes:
        ...


def hash_signable(message: SignableMessage) -> bytes:
    """keccak256(0x19 || version || header || body)."""
    return keccak(b"\x19" + message.version + message.header + message.body)


def typed_data_digest(payload: Union[TypedData, Mapping[str, Any]]) -> bytes:
    """EIP-712 digest of a payload object or a full typed-data dict.

    Raises:
        EncodingError: If the typed-data dict cannot be encoded
    """
    if isinstance(payload, TypedData):
        return payload.eip712_digest()

    try:
        return hash_signable(encode_typed_data(full_message=dict(payload)))
    except (KeyError, TypeError, ValueError) as e:
        raise EncodingError(f"failed to encode EIP-712 typed data: {e}") from e


class Signer(ABC):
    """Abstract base class for signing backends.

    Implementations should NEVER expose raw private keys.
    All signing operations return signatures only.
    """

    def __init__(self, signer_type: SignerType, chain_id: int):
        self.signer_type = signer_type
        self._chain_id = chain_id

    @property
    @abstractmethod
    def address(self) -> str:
        """EIP-55 checksummed address of the signing key."""
        pass

    @property
    def chain_id(self) -> int:
        return self._chain_id

    @abstractmethod
    def with_chain_id(self, chain_id: int) -> "Signer":
        """Return a new signer bound to ``chain_id``; this one is unchanged."""
        pass

    @abstractmethod
    async def _sign_digest(self, digest: bytes) -> Signature:
        """Backend-specific signing of a validated 32-byte digest.

        Must return a low-S signature with the raw recovery id in ``v``.
        """
        pass

    async def sign_digest(self, digest: bytes) -> Signature:
        """Sign a 32-byte digest.

        Raises:
            InvalidDigestLengthError: If ``digest`` is not 32 bytes
            SigningError: If the backend fails
        """
        if len(digest) != DIGEST_LEN:
            raise InvalidDigestLengthError(len(digest))

        sig = await self._sign_digest(digest)
        logger.debug(f"{self.signer_type.value} signer {self.address} signed digest 0x{digest.hex()}")
        return sig

    async def sign_message(self, message: Union[bytes, str]) -> Signature:
        """Sign an EIP-191 personal message (``eth_sign``)."""
        if isinstance(message, str):
            signable = encode_defunct(text=message)
        else:
            signable = encode_defunct(primitive=message)

        sig = await self.sign_digest(hash_signable(signable))
        return to_eth_signature(sig)

    async def sign_typed_data(self, payload: Union[TypedData, Mapping[str, Any]]) -> Signature:
        """Sign EIP-712 typed data.

        The digest is signed as-is: no EIP-191 prefix and no chain-id fold,
        which is what on-chain ``ecrecover`` in a forwarder expects.
        """
        sig = await self.sign_digest(typed_data_digest(payload))
        return to_eth_signature(sig)

    async def sign_transaction(self, tx: Transaction) -> Signature:
        """Sign a transaction's chain-bound signing hash with EIP-155 ``v``.

        The transaction's own chain id wins; the signer's is used when unset.
        """
        if tx.chain_id is None:
            tx = tx.with_chain_id(self.chain_id)

        sig = await self.sign_digest(tx.signing_hash())
        return apply_eip155(to_eth_signature(sig), tx.chain_id)

    async def sign_and_encode_transaction(self, tx: Transaction) -> SignedTransaction:
        """Sign ``tx`` and return its raw encoding."""
        if tx.chain_id is None:
            tx = tx.with_chain_id(self.chain_id)

        sig = await self.sign_transaction(tx)
        signed = tx.encode_signed(sig)
        logger.info(f"Signed transaction 0x{signed.hash.hex()} from {self.address} (chain {tx.chain_id})")
        return signed

    async def health_check(self) -> bool:
        """Check if the signing backend is available.

        Returns:
            True if backend is ready to sign
        """
        return True

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(type={self.signer_type.value}, address={self.address}, chain_id={self.chain_id})"
