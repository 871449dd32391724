"""secp256k1 key material.

- PrivateKey: scalar with raw/hex/checksummed encodings and digest signing
- PublicKey: short id, X/P/C chain and Ethereum address derivation
- Signature: 65-byte recoverable signature codec
"""

from keyrelay.keys.base import ChainAddresses, KeyInfo
from keyrelay.keys.loader import load_keys_from_file, load_keys_from_text
from keyrelay.keys.private_key import PrivateKey
from keyrelay.keys.public_key import PublicKey
from keyrelay.keys.signature import (
    Signature,
    apply_eip155,
    canonicalize,
    recover_public_key,
    to_eth_signature,
    to_recoverable_signature,
)

__all__ = [
    "ChainAddresses",
    "KeyInfo",
    "PrivateKey",
    "PublicKey",
    "Signature",
    "apply_eip155",
    "canonicalize",
    "load_keys_from_file",
    "load_keys_from_text",
    "recover_public_key",
    "to_eth_signature",
    "to_recoverable_signature",
]
