"""EVM transaction signing hashes and raw encoding.

Two transaction shapes are supported:
- LegacyTransaction: EIP-155 signing hash, v folded with the chain id
- DynamicFeeTransaction: EIP-1559 (type 0x02), y-parity in the raw encoding

Only what is needed to sign and serialize lives here; gas and nonce values
come from the caller.
"""

from dataclasses import dataclass, field, replace
from typing import Optional

import rlp
from eth_utils import keccak, to_canonical_address
from rlp.exceptions import SerializationError
from rlp.sedes import Binary, BigEndianInt, CountableList, List, big_endian_int, binary

from keyrelay.errors import EncodingError, SigningError
from keyrelay.keys.signature import Signature

DYNAMIC_FEE_TX_TYPE = 2

address_sedes = Binary.fixed_length(20, allow_empty=True)
access_list_sedes = CountableList(
    List([Binary.fixed_length(20, allow_empty=False), CountableList(BigEndianInt(32))]),
)


class _UnsignedLegacy(rlp.Serializable):
    fields = [
        ("nonce", big_endian_int),
        ("gas_price", big_endian_int),
        ("gas", big_endian_int),
        ("to", address_sedes),
        ("value", big_endian_int),
        ("data", binary),
        ("chain_id", big_endian_int),
        ("zero_r", big_endian_int),
        ("zero_s", big_endian_int),
    ]


class _SignedLegacy(rlp.Serializable):
    fields = [
        ("nonce", big_endian_int),
        ("gas_price", big_endian_int),
        ("gas", big_endian_int),
        ("to", address_sedes),
        ("value", big_endian_int),
        ("data", binary),
        ("v", big_endian_int),
        ("r", big_endian_int),
        ("s", big_endian_int),
    ]


class _UnsignedDynamicFee(rlp.Serializable):
    fields = [
        ("chain_id", big_endian_int),
        ("nonce", big_endian_int),
        ("max_priority_fee_per_gas", big_endian_int),
        ("max_fee_per_gas", big_endian_int),
        ("gas", big_endian_int),
        ("to", address_sedes),
        ("value", big_endian_int),
        ("data", binary),
        ("access_list", access_list_sedes),
    ]


class _SignedDynamicFee(rlp.Serializable):
    fields = [
        ("chain_id", big_endian_int),
        ("nonce", big_endian_int),
        ("max_priority_fee_per_gas", big_endian_int),
        ("max_fee_per_gas", big_endian_int),
        ("gas", big_endian_int),
        ("to", address_sedes),
        ("value", big_endian_int),
        ("data", binary),
        ("access_list", access_list_sedes),
        ("y_parity", big_endian_int),
        ("r", big_endian_int),
        ("s", big_endian_int),
    ]


def _to_bytes(address: Optional[str]) -> bytes:
    if address is None:
        return b""
    try:
        return to_canonical_address(address)
    except ValueError as e:
        raise EncodingError(f"invalid address {address!r}: {e}") from e


def _serialize(obj: rlp.Serializable) -> bytes:
    try:
        return rlp.encode(obj)
    except SerializationError as e:
        raise EncodingError(f"RLP encoding failed: {e}") from e


@dataclass(frozen=True)
class SignedTransaction:
    """A signed transaction ready for ``eth_sendRawTransaction``."""

    raw_transaction: bytes
    signature: Signature

    @property
    def hash(self) -> bytes:
        return keccak(self.raw_transaction)

    @property
    def raw_hex(self) -> str:
        return "0x" + self.raw_transaction.hex()


@dataclass(frozen=True)
class LegacyTransaction:
    """Pre-EIP-2718 transaction; signed with an EIP-155 folded ``v``.

    ``chain_id`` is filled from the signer when left as None.
    """

    nonce: int
    gas_price: int
    gas: int
    to: Optional[str]
    value: int = 0
    data: bytes = b""
    chain_id: Optional[int] = None

    def with_chain_id(self, chain_id: int) -> "LegacyTransaction":
        return replace(self, chain_id=chain_id)

    def signing_hash(self) -> bytes:
        """keccak(rlp([nonce, gasPrice, gas, to, value, data, chainId, 0, 0]))."""
        if self.chain_id is None:
            raise SigningError("legacy transaction needs a chain id to be signed")
        unsigned = _UnsignedLegacy(
            self.nonce, self.gas_price, self.gas, _to_bytes(self.to),
            self.value, self.data, self.chain_id, 0, 0,
        )
        return keccak(_serialize(unsigned))

    def encode_signed(self, signature: Signature) -> SignedTransaction:
        """RLP-encode with an EIP-155 folded signature."""
        if not signature.is_folded or signature.chain_id != self.chain_id:
            raise SigningError("legacy transaction needs a signature folded with its chain id")
        signed = _SignedLegacy(
            self.nonce, self.gas_price, self.gas, _to_bytes(self.to),
            self.value, self.data, signature.v, signature.r, signature.s,
        )
        return SignedTransaction(raw_transaction=_serialize(signed), signature=signature)


@dataclass(frozen=True)
class DynamicFeeTransaction:
    """EIP-1559 transaction (type 0x02).

    ``access_list`` entries are ``(address, [storage_key_int, ...])``.
    """

    nonce: int
    max_fee_per_gas: int
    max_priority_fee_per_gas: int
    gas: int
    to: Optional[str]
    value: int = 0
    data: bytes = b""
    chain_id: Optional[int] = None
    access_list: tuple = field(default_factory=tuple)

    def with_chain_id(self, chain_id: int) -> "DynamicFeeTransaction":
        return replace(self, chain_id=chain_id)

    def _access_list(self) -> list:
        return [[_to_bytes(address), list(keys)] for address, keys in self.access_list]

    def signing_hash(self) -> bytes:
        """keccak(0x02 || rlp([chainId, nonce, ..., accessList]))."""
        if self.chain_id is None:
            raise SigningError("dynamic fee transaction needs a chain id to be signed")
        unsigned = _UnsignedDynamicFee(
            self.chain_id, self.nonce, self.max_priority_fee_per_gas, self.max_fee_per_gas,
            self.gas, _to_bytes(self.to), self.value, self.data, self._access_list(),
        )
        return keccak(bytes([DYNAMIC_FEE_TX_TYPE]) + _serialize(unsigned))

    def encode_signed(self, signature: Signature) -> SignedTransaction:
        """Typed envelope 0x02 || rlp([..., yParity, r, s])."""
        signed = _SignedDynamicFee(
            self.chain_id, self.nonce, self.max_priority_fee_per_gas, self.max_fee_per_gas,
            self.gas, _to_bytes(self.to), self.value, self.data, self._access_list(),
            signature.recovery_id, signature.r, signature.s,
        )
        raw = bytes([DYNAMIC_FEE_TX_TYPE]) + _serialize(signed)
        return SignedTransaction(raw_transaction=raw, signature=signature)
