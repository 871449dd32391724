"""Signing backends.

Provides the Signer capability and its implementations:
- LocalSigner: private key in memory
- KMSSigner: AWS KMS-backed signing
"""

from keyrelay.signing.base import Signer, SignerType, TypedData, typed_data_digest
from keyrelay.signing.factory import get_signer, get_signer_info, get_signer_type, reset_signer
from keyrelay.signing.kms import KmsKey, KMSSigner
from keyrelay.signing.local import LocalSigner
from keyrelay.signing.transactions import DynamicFeeTransaction, LegacyTransaction, SignedTransaction

__all__ = [
    "DynamicFeeTransaction",
    "KMSSigner",
    "KmsKey",
    "LegacyTransaction",
    "LocalSigner",
    "SignedTransaction",
    "Signer",
    "SignerType",
    "TypedData",
    "get_signer",
    "get_signer_info",
    "get_signer_type",
    "reset_signer",
    "typed_data_digest",
]
